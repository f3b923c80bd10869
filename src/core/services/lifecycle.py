"""Máquina de estados del ciclo de vida de una conexión.

`transition(state, event)` es una función pura: devuelve el nuevo estado y
los efectos a ejecutar (pedir código, exportar, teardown, reinicio). La
ejecución de efectos vive en `core.services.controller`.

Estados:
- CONNECTING (inicial) → AWAITING_PAIRING si la cuenta no está registrada.
- * → OPEN con `connection == "open"`: exportar y cerrar (salida exitosa).
- * → CLOSED(reason) con `connection == "close"`: 401/403 es terminal
  (logout, se destruye la sesión); cualquier otro motivo pide reinicio.
- Un estado `finished` absorbe cualquier evento sin efectos.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Union

import httpx

from core.domain.models import ConnectionState, DisconnectKind, Phase, SessionOutcome
from core.errors import LoggedOutError
from core.interfaces.messaging import ConnectionUpdate
from core.logging import get_logger

logger = get_logger(__name__)

TERMINAL_STATUS_CODES: frozenset[int] = frozenset({401, 403})

_TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    asyncio.IncompleteReadError,
    httpx.TransportError,
)


# --- Eventos -------------------------------------------------------------


@dataclass(frozen=True)
class Started:
    """La conexión fue construida y los handlers ya están suscritos."""

    registered: bool
    code_issued: bool = False


@dataclass(frozen=True)
class PairingFailed:
    error: str = ""


Event = Union[Started, ConnectionUpdate, PairingFailed]


# --- Efectos -------------------------------------------------------------


@dataclass(frozen=True)
class RequestPairingCode:
    pass


@dataclass(frozen=True)
class ExportCredentials:
    pass


@dataclass(frozen=True)
class Teardown:
    destroy_session: bool
    linger: bool = False


@dataclass(frozen=True)
class Restart:
    reason: int | None


Effect = Union[RequestPairingCode, ExportCredentials, Teardown, Restart]


@dataclass(frozen=True)
class Transition:
    state: ConnectionState
    effects: tuple[Effect, ...] = field(default_factory=tuple)
    outcome: SessionOutcome | None = None


# --- Clasificación ---------------------------------------------------------


def classify_disconnect(status_code: int | None) -> DisconnectKind:
    if status_code in TERMINAL_STATUS_CODES:
        return DisconnectKind.TERMINAL
    return DisconnectKind.TRANSIENT


def classify_exception(exc: BaseException) -> DisconnectKind | None:
    """Transitorio/terminal por tipo o status code; `None` si no se reconoce."""

    if isinstance(exc, LoggedOutError):
        return DisconnectKind.TERMINAL

    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return classify_disconnect(status_code)

    if isinstance(exc, _TRANSIENT_EXCEPTIONS):
        return DisconnectKind.TRANSIENT
    return None


def install_exception_handler(loop: asyncio.AbstractEventLoop) -> None:
    """Silencia fallos asíncronos transitorios del protocolo (rate limit, timeouts...)."""

    def handler(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        if exc is not None and classify_exception(exc) is DisconnectKind.TRANSIENT:
            logger.debug("Suppressed transient fault: %r", exc)
            return
        loop.default_exception_handler(context)

    loop.set_exception_handler(handler)


# --- Transiciones ----------------------------------------------------------


def transition(state: ConnectionState, event: Event) -> Transition:
    if state.finished:
        return Transition(state)

    if isinstance(event, Started):
        if event.registered:
            return Transition(state)
        effects: tuple[Effect, ...] = () if event.code_issued else (RequestPairingCode(),)
        return Transition(ConnectionState(phase=Phase.AWAITING_PAIRING), effects)

    if isinstance(event, PairingFailed):
        return Transition(
            ConnectionState(phase=Phase.CLOSED, finished=True),
            (Teardown(destroy_session=False),),
            SessionOutcome.PAIRING_FAILED,
        )

    if isinstance(event, ConnectionUpdate):
        if event.connection == "open":
            return Transition(
                ConnectionState(phase=Phase.OPEN, finished=True),
                (ExportCredentials(), Teardown(destroy_session=True, linger=True)),
                SessionOutcome.EXPORTED,
            )
        if event.connection == "close":
            closed = ConnectionState(phase=Phase.CLOSED, reason=event.status_code, finished=True)
            if classify_disconnect(event.status_code) is DisconnectKind.TERMINAL:
                return Transition(closed, (Teardown(destroy_session=True),), SessionOutcome.LOGGED_OUT)
            return Transition(closed, (Restart(event.status_code),), SessionOutcome.RESTART)

    return Transition(state)
