"""Contrato del cliente del protocolo de mensajería (colaborador externo).

El Core no implementa el protocolo: consume una conexión que expone el
código de emparejamiento, el envío de mensajes y un flujo de eventos.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, runtime_checkable


@dataclass(frozen=True)
class ConnectionUpdate:
    """Payload de `connection.update`.

    `connection` es `"connecting"`, `"open"` o `"close"`; `status_code` es el
    motivo del último cierre (solo relevante en `"close"`).
    """

    connection: str | None = None
    status_code: int | None = None


@dataclass
class AuthState:
    """Estado de autenticación que el colaborador recibe al conectar."""

    creds: dict[str, Any]
    save_creds: Callable[[Any], None]


@runtime_checkable
class EventSource(Protocol):
    def on(self, event: str, callback: Callable[..., Any]) -> Any: ...

    def off(self, event: str, callback: Callable[..., Any] | None = None) -> Any: ...


@runtime_checkable
class ConnectionHandle(Protocol):
    """Una conexión viva del protocolo."""

    events: EventSource

    @property
    def registered(self) -> bool:
        """`False` mientras la cuenta no esté vinculada (hace falta código)."""
        ...

    @property
    def user_id(self) -> str | None:
        """Dirección del usuario autenticado, conocida tras `open`."""
        ...

    async def request_pairing_code(self, number: str) -> str: ...

    async def send_message(self, user_id: str, content: Mapping[str, Any]) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class MessagingClient(Protocol):
    """Fábrica de conexiones."""

    def connect(self, auth_state: AuthState, options: Mapping[str, Any]) -> ConnectionHandle: ...
