"""Proveedores de subida (adaptadores concretos).

Cada módulo implementa `core.interfaces.uploader.UploadProvider`.
`build_providers` los instancia en el orden configurado.
"""

from __future__ import annotations

import httpx

from adapters.upload_providers.base import HttpUploadProvider
from adapters.upload_providers.file_io import FileIoProvider
from adapters.upload_providers.pastebin import PastebinProvider
from adapters.upload_providers.zero_x_zero import ZeroXZeroProvider
from core.config import AppSettings
from core.errors import ConfigurationError

PROVIDERS: dict[str, type[HttpUploadProvider]] = {
    PastebinProvider.name: PastebinProvider,
    ZeroXZeroProvider.name: ZeroXZeroProvider,
    FileIoProvider.name: FileIoProvider,
}


def build_providers(
    settings: AppSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[HttpUploadProvider]:
    """Instancia `settings.upload_providers` en orden de prioridad."""

    unknown = [name for name in settings.upload_providers if name not in PROVIDERS]
    if unknown:
        raise ConfigurationError(
            f"Unknown upload providers: {', '.join(unknown)} (known: {', '.join(PROVIDERS)})"
        )
    return [PROVIDERS[name](settings, transport=transport) for name in settings.upload_providers]


__all__ = [
    "FileIoProvider",
    "HttpUploadProvider",
    "PROVIDERS",
    "PastebinProvider",
    "ZeroXZeroProvider",
    "build_providers",
]
