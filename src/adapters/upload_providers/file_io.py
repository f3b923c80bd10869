"""Proveedor: file.io.

Implementación:
- Multipart con el campo `file`.
- Éxito si el JSON de respuesta trae `success: true` y un `link`.
"""

from __future__ import annotations

import httpx

from adapters.upload_providers.base import HttpUploadProvider
from core.domain.models import BUNDLE_FILENAME

_API_URL = "https://file.io"


class FileIoProvider(HttpUploadProvider):
    name = "file.io"

    async def _send(self, client: httpx.AsyncClient, content: bytes) -> str:
        response = await client.post(
            _API_URL,
            files={"file": (BUNDLE_FILENAME, content, "application/json")},
        )
        try:
            payload = response.json()
        except ValueError:
            raise self._reject(f"non-JSON response (HTTP {response.status_code})") from None

        if not isinstance(payload, dict) or payload.get("success") is not True:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise self._reject(f"success flag not set (HTTP {response.status_code}): {message}")

        link = payload.get("link")
        if not isinstance(link, str) or not link:
            raise self._reject("response without link")
        return link
