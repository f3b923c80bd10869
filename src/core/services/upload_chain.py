"""Cadena de subida con fallback ordenado.

Los proveedores se prueban de a uno, en el orden recibido: el primero que
responde con éxito corta la cadena. Si todos fallan se lanza
`AllProvidersFailed` con los motivos en orden de intento.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence

from core.domain.models import UploadFailure, UploadResult
from core.errors import AllProvidersFailed, CredentialBundleMissing
from core.interfaces.uploader import UploadProvider
from core.logging import get_logger

logger = get_logger(__name__)


async def upload_credentials(
    bundle_path: Path,
    providers: Sequence[UploadProvider],
    *,
    flush_grace_seconds: float = 1.0,
) -> UploadResult:
    # El colaborador escribe el bundle de forma asíncrona.
    if flush_grace_seconds:
        await asyncio.sleep(flush_grace_seconds)

    if not bundle_path.is_file():
        raise CredentialBundleMissing(bundle_path)

    failures: list[UploadFailure] = []
    for provider in providers:
        logger.info("Uploading to %s...", provider.name)
        outcome = await provider.upload(bundle_path)
        if isinstance(outcome, UploadResult):
            logger.info("Uploaded to %s: %s", outcome.provider_name, outcome.url)
            return outcome
        failures.append(outcome)
        logger.warning("%s failed, trying next...", provider.name)

    raise AllProvidersFailed(failures)
