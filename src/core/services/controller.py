"""Controlador del ciclo de vida y supervisor de sesión.

`ConnectionController` es dueño de una conexión del protocolo: se suscribe a
los eventos antes de cualquier I/O, los encola en orden de llegada, aplica
`lifecycle.transition` y ejecuta los efectos resultantes.

`SessionSupervisor` es dueño del id de sesión: lanza un controlador a la vez
y lo reemplaza ante cierres transitorios, con backoff exponencial y un tope
de reinicios consecutivos.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Sequence

from adapters.session_store import SessionStore
from core.config import AppSettings
from core.domain.models import ConnectionState, SessionHandle, SessionOutcome
from core.errors import (
    AllProvidersFailed,
    CredentialBundleMissing,
    NotificationError,
    PairingCodeError,
    ServiceUnavailableError,
)
from core.events import CONNECTION_UPDATE, CREDS_UPDATE
from core.interfaces.messaging import ConnectionHandle, ConnectionUpdate, MessagingClient
from core.interfaces.uploader import UploadProvider
from core.logging import get_logger
from core.phone import format_pairing_code, normalize_user_id
from core.services.lifecycle import (
    Event,
    ExportCredentials,
    PairingFailed,
    RequestPairingCode,
    Restart,
    Started,
    Teardown,
    Transition,
    transition,
)
from core.services.upload_chain import upload_credentials

logger = get_logger(__name__)

SUCCESS_TEMPLATE = (
    "*SESSION GENERATED* ✅\n\n"
    "Use this link in your ENV file:\n\n"
    "{url}\n\n"
    "_Keep this link private!_"
)
FAILURE_TEMPLATE = (
    "*SESSION EXPORT FAILED* ❌\n\n"
    "Your device was linked but the session could not be uploaded.\n"
    "Please request a new pairing code."
)


@dataclass
class LifecycleDeps:
    """Colaboradores compartidos por todos los controladores de una sesión."""

    settings: AppSettings
    client: MessagingClient
    store: SessionStore
    providers: Sequence[UploadProvider]


def _coerce_update(update: Any) -> ConnectionUpdate:
    if isinstance(update, ConnectionUpdate):
        return update
    if isinstance(update, Mapping):
        return ConnectionUpdate(
            connection=update.get("connection"),
            status_code=update.get("status_code"),
        )
    raise TypeError(f"unsupported connection update: {update!r}")


class ConnectionController:
    """Una instancia por conexión; nunca se reutiliza tras terminar."""

    def __init__(
        self,
        *,
        handle: SessionHandle,
        number: str,
        deps: LifecycleDeps,
        pairing: asyncio.Future[str],
    ) -> None:
        self._handle = handle
        self._number = number
        self._deps = deps
        self._pairing = pairing
        self._state = ConnectionState()
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._conn: ConnectionHandle | None = None
        self._disposed = False
        self._on_update = self._handle_connection_update
        self._on_creds = self._handle_creds_update

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connection(self) -> ConnectionHandle | None:
        return self._conn

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def run(self) -> SessionOutcome:
        settings = self._deps.settings
        self._auth_state = self._deps.store.load_auth_state(self._handle)
        self._conn = self._deps.client.connect(
            self._auth_state,
            {
                "connect_timeout_ms": settings.connect_timeout_ms,
                "print_qr_in_terminal": False,
                "mark_online_on_connect": False,
                "generate_high_quality_link_preview": False,
            },
        )
        # Suscribir antes de cualquier await para no perder eventos tempranos.
        self._conn.events.on(CONNECTION_UPDATE, self._on_update)
        self._conn.events.on(CREDS_UPDATE, self._on_creds)
        self._queue.put_nowait(
            Started(registered=self._conn.registered, code_issued=self._pairing.done())
        )

        try:
            while True:
                event = await self._queue.get()
                result = transition(self._state, event)
                self._state = result.state
                outcome = await self._execute(result)
                if self._state.finished:
                    if outcome is None:
                        raise RuntimeError(f"finished state without outcome: {self._state!r}")
                    return outcome
        except asyncio.CancelledError:
            await self._close_quietly()
            raise
        finally:
            self.dispose()

    def dispose(self) -> None:
        """Desuscribe los handlers; los eventos posteriores quedan inertes."""

        if self._disposed:
            return
        self._disposed = True
        if self._conn is not None:
            self._conn.events.off(CONNECTION_UPDATE, self._on_update)
            self._conn.events.off(CREDS_UPDATE, self._on_creds)

    def _require_connection(self) -> ConnectionHandle:
        if self._conn is None:
            raise RuntimeError(f"connection for {self._number} not started")
        return self._conn

    # --- handlers de eventos -------------------------------------------

    def _handle_connection_update(self, update: Any) -> None:
        if self._disposed:
            return
        self._queue.put_nowait(_coerce_update(update))

    def _handle_creds_update(self, bundle: Any) -> None:
        if self._disposed:
            return
        try:
            self._auth_state.save_creds(bundle)
        except (OSError, TypeError, ValueError):
            logger.exception("Could not persist credentials for %s", self._handle.id)

    # --- efectos ---------------------------------------------------------

    async def _execute(self, result: Transition) -> SessionOutcome | None:
        outcome = result.outcome
        for effect in result.effects:
            if isinstance(effect, RequestPairingCode):
                await self._request_pairing_code()
            elif isinstance(effect, ExportCredentials):
                if not await self._export_credentials():
                    outcome = SessionOutcome.EXPORT_FAILED
            elif isinstance(effect, Teardown):
                await self._teardown(effect)
            elif isinstance(effect, Restart):
                logger.info("Connection %s closed (%s), restarting", self._number, effect.reason)
        return outcome

    async def _request_pairing_code(self) -> None:
        settings = self._deps.settings
        conn = self._require_connection()
        # El socket necesita asentarse antes de aceptar la petición.
        await asyncio.sleep(settings.pairing_code_delay_seconds)
        try:
            raw_code = await conn.request_pairing_code(self._number)
        except Exception as exc:
            logger.error("Pairing code error for %s: %s", self._number, exc)
            if not self._pairing.done():
                self._pairing.set_exception(PairingCodeError(exc))
            self._queue.put_nowait(PairingFailed(str(exc)))
            return

        code = format_pairing_code(
            raw_code,
            group_size=settings.pairing_group_size,
            separator=settings.pairing_separator,
        )
        if not self._pairing.done():
            self._pairing.set_result(code)
        logger.info("Pairing code issued for %s", self._number)

    async def _export_credentials(self) -> bool:
        settings = self._deps.settings
        conn = self._require_connection()
        logger.info("Connected: %s", self._number)

        # El colaborador persiste las credenciales de forma asíncrona.
        await asyncio.sleep(settings.open_grace_seconds)
        user_id = normalize_user_id(conn.user_id, fallback_number=self._number)

        try:
            if not self._deps.store.bundle_exists(self._handle):
                raise CredentialBundleMissing(self._handle.bundle_path)
            result = await upload_credentials(
                self._handle.bundle_path,
                self._deps.providers,
                flush_grace_seconds=settings.flush_grace_seconds,
            )
        except (AllProvidersFailed, CredentialBundleMissing) as exc:
            logger.error("Upload failed for %s: %s", self._number, exc)
            await self._notify(user_id, FAILURE_TEMPLATE)
            return False

        await self._notify(
            user_id,
            SUCCESS_TEMPLATE.format(url=result.url),
            f"{settings.session_env_key}={result.url}",
        )
        logger.info("Session sent to %s", self._number)
        return True

    async def _send(self, user_id: str, text: str) -> None:
        conn = self._require_connection()
        try:
            await conn.send_message(user_id, {"text": text})
        except Exception as exc:
            raise NotificationError(f"could not notify {user_id}: {exc}") from exc

    async def _notify(self, user_id: str, *texts: str) -> None:
        for text in texts:
            try:
                await self._send(user_id, text)
            except NotificationError as exc:
                logger.warning("%s", exc)

    async def _teardown(self, effect: Teardown) -> None:
        if effect.linger:
            await asyncio.sleep(self._deps.settings.teardown_delay_seconds)
        await self._close_quietly()
        if effect.destroy_session:
            self._deps.store.destroy(self._handle)

    async def _close_quietly(self) -> None:
        if self._conn is None:
            return
        try:
            await self._conn.close()
        except Exception as exc:
            logger.debug("Error closing connection for %s: %s", self._number, exc)


class SessionSupervisor:
    """Un controlador a la vez por sesión, reemplazado ante cierres transitorios."""

    def __init__(self, *, handle: SessionHandle, number: str, deps: LifecycleDeps) -> None:
        self._handle = handle
        self._number = number
        self._deps = deps
        self.pairing: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        # Marca la excepción como recuperada aunque nadie espere el código.
        self.pairing.add_done_callback(lambda f: f.cancelled() or f.exception())
        self.controllers: list[ConnectionController] = []
        self.outcome: SessionOutcome | None = None

    @property
    def handle(self) -> SessionHandle:
        return self._handle

    @property
    def current(self) -> ConnectionController | None:
        return self.controllers[-1] if self.controllers else None

    def backoff(self, attempt: int) -> float:
        settings = self._deps.settings
        delay = settings.restart_backoff_seconds * (2 ** max(attempt - 1, 0))
        return min(delay, settings.restart_backoff_max_seconds)

    async def run(self) -> SessionOutcome:
        settings = self._deps.settings
        restarts = 0
        try:
            while True:
                controller = ConnectionController(
                    handle=self._handle,
                    number=self._number,
                    deps=self._deps,
                    pairing=self.pairing,
                )
                self.controllers.append(controller)
                outcome = await controller.run()

                if outcome is not SessionOutcome.RESTART:
                    return self._finish(outcome)
                if self._pairing_failed():
                    # El llamador ya recibió el 503; no hay código que proteger.
                    return self._finish(SessionOutcome.PAIRING_FAILED)

                restarts += 1
                if restarts > settings.max_consecutive_restarts:
                    logger.error(
                        "Giving up on %s after %d consecutive restarts",
                        self._number,
                        restarts - 1,
                    )
                    self._deps.store.destroy(self._handle)
                    return self._finish(SessionOutcome.RESTARTS_EXHAUSTED)

                delay = self.backoff(restarts)
                logger.info("Reconnecting %s in %.1fs (restart %d)", self._number, delay, restarts)
                await asyncio.sleep(delay)
        finally:
            if not self.pairing.done():
                self.pairing.set_exception(ServiceUnavailableError())

    def _pairing_failed(self) -> bool:
        return (
            self.pairing.done()
            and not self.pairing.cancelled()
            and self.pairing.exception() is not None
        )

    def _finish(self, outcome: SessionOutcome) -> SessionOutcome:
        self.outcome = outcome
        logger.info("Session %s finished: %s", self._number, outcome.value)
        return outcome
