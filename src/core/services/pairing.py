"""Orquestación de peticiones de emparejamiento.

`PairingService.begin_pairing` es el punto de entrada del borde (HTTP/CLI):
valida el número, reserva la sesión, lanza el supervisor en segundo plano y
devuelve el código en cuanto está disponible. El resto del ciclo de vida
(open/close, subida, limpieza) sigue sin el llamador.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from adapters.protocol_loader import load_messaging_client
from adapters.session_store import SessionStore
from adapters.upload_providers import build_providers
from core.config import AppSettings
from core.domain.models import PairingRequest, SessionOutcome
from core.errors import ServiceUnavailableError
from core.interfaces.messaging import MessagingClient
from core.interfaces.uploader import UploadProvider
from core.logging import get_logger
from core.phone import canonicalize_number
from core.services.controller import LifecycleDeps, SessionSupervisor

logger = get_logger(__name__)


class PairingService:
    def __init__(
        self,
        *,
        settings: AppSettings,
        client: MessagingClient,
        store: SessionStore,
        providers: Sequence[UploadProvider],
    ) -> None:
        self._settings = settings
        self._deps = LifecycleDeps(
            settings=settings,
            client=client,
            store=store,
            providers=list(providers),
        )
        self._sessions: dict[str, tuple[SessionSupervisor, asyncio.Task[SessionOutcome]]] = {}
        # Serializa retire -> create -> registro por número.
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "PairingService":
        return cls(
            settings=settings,
            client=load_messaging_client(settings.protocol_factory),
            store=SessionStore.from_settings(settings),
            providers=build_providers(settings),
        )

    @property
    def store(self) -> SessionStore:
        return self._deps.store

    def supervisor(self, session_id: str) -> SessionSupervisor | None:
        entry = self._sessions.get(session_id)
        return entry[0] if entry else None

    async def begin_pairing(self, raw_number: str | None) -> str:
        """Devuelve el código formateado (`ABCD-EFGH`).

        Lanza `ValidationError` sin efectos secundarios si el número es
        inválido, o `ServiceUnavailableError` si no se obtuvo código.
        """

        request = PairingRequest(raw_number=raw_number)
        number = canonicalize_number(request.raw_number)

        async with self._locks.setdefault(number, asyncio.Lock()):
            await self._retire(number)
            handle = self._deps.store.create(number)
            supervisor = SessionSupervisor(handle=handle, number=number, deps=self._deps)
            task = asyncio.create_task(supervisor.run(), name=f"pairlink-session-{number}")
            self._sessions[number] = (supervisor, task)
            task.add_done_callback(lambda t, n=number: self._report(n, t))

        try:
            return await asyncio.wait_for(
                asyncio.shield(supervisor.pairing),
                timeout=self._settings.pairing_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("Timed out waiting for a pairing code for %s", number)
            task.cancel()
            raise ServiceUnavailableError() from None

    async def wait_finished(self, session_id: str) -> SessionOutcome | None:
        """Espera a que termine el supervisor de `session_id` (si sigue vivo)."""

        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        supervisor, task = entry
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return supervisor.outcome
            raise

    async def aclose(self) -> None:
        """Cancela todos los supervisores vivos (apagado del proceso)."""

        for number in list(self._sessions):
            async with self._locks.setdefault(number, asyncio.Lock()):
                await self._retire(number)

    async def _retire(self, number: str) -> None:
        entry = self._sessions.pop(number, None)
        if entry is None:
            return
        _, task = entry
        if task.done():
            return
        logger.info("Cancelling previous pairing attempt for %s", number)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    def _report(self, number: str, task: asyncio.Task[SessionOutcome]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Session %s crashed: %r", number, task.exception())
