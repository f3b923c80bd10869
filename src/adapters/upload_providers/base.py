"""Base común de proveedores HTTP.

Cada subclase define `name` y `_send`; la base traduce las excepciones de
httpx a `UploadFailure(NETWORK)` y los rechazos a `UploadFailure(PROVIDER_REJECTED)`.
"""

from __future__ import annotations

from pathlib import Path

import httpx

from adapters.http_client import build_async_client
from core.config import AppSettings
from core.domain.models import UploadFailure, UploadResult
from core.errors import UploadError, UploadErrorKind
from core.interfaces.uploader import UploadProvider
from core.logging import get_logger

logger = get_logger(__name__)


class HttpUploadProvider(UploadProvider):
    name = "http"

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._transport = transport

    async def upload(self, bundle_path: Path) -> UploadResult | UploadFailure:
        try:
            content = bundle_path.read_bytes()
        except OSError as exc:
            return self._failure(UploadErrorKind.PROVIDER_REJECTED, f"unreadable bundle: {exc}")

        try:
            async with build_async_client(self._settings, transport=self._transport) as client:
                url = await self._send(client, content)
        except UploadError as exc:
            return self._failure(exc.kind, exc.detail)
        except httpx.HTTPError as exc:
            return self._failure(UploadErrorKind.NETWORK, f"{type(exc).__name__}: {exc}")

        return UploadResult(provider_name=self.name, url=url)

    async def _send(self, client: httpx.AsyncClient, content: bytes) -> str:
        """Hace la única llamada HTTP y devuelve la URL, o lanza `UploadError`."""

        raise NotImplementedError

    def _reject(self, detail: str) -> UploadError:
        return UploadError(self.name, UploadErrorKind.PROVIDER_REJECTED, detail)

    def _failure(self, kind: UploadErrorKind, detail: str) -> UploadFailure:
        logger.warning("%s upload failed (%s): %s", self.name, kind.value, detail)
        return UploadFailure(provider_name=self.name, kind=kind, detail=detail)
