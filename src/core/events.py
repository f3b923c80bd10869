"""Emisor de eventos (patrón Observer).

Referencia de `EventSource` para implementaciones del cliente de
mensajería: `connection.update` y `creds.update` se publican con `emit`.
"""

from __future__ import annotations

from typing import Any, Callable

CONNECTION_UPDATE = "connection.update"
CREDS_UPDATE = "creds.update"


class EventEmitter:
    """Registro síncrono de callbacks por nombre de evento."""

    def __init__(self) -> None:
        self._events: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, callback: Callable[..., Any]) -> "EventEmitter":
        self._events.setdefault(event, []).append(callback)
        return self

    def off(self, event: str, callback: Callable[..., Any] | None = None) -> "EventEmitter":
        if event not in self._events:
            return self

        if callback is None:
            del self._events[event]
        else:
            self._events[event] = [cb for cb in self._events[event] if cb != callback]
        return self

    def emit(self, event: str, *args: Any, **kwargs: Any) -> None:
        # Copia: un callback puede desuscribirse durante la emisión.
        for callback in list(self._events.get(event, ())):
            callback(*args, **kwargs)

    def listener_count(self, event: str) -> int:
        return len(self._events.get(event, ()))
