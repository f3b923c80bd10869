"""Proveedor: 0x0.st (cuerpo crudo, éxito por status 2xx)."""

from __future__ import annotations

import httpx

from adapters.upload_providers.base import HttpUploadProvider

_API_URL = "https://0x0.st"


class ZeroXZeroProvider(HttpUploadProvider):
    name = "0x0"

    async def _send(self, client: httpx.AsyncClient, content: bytes) -> str:
        response = await client.post(_API_URL, content=content)
        if not response.is_success:
            raise self._reject(f"0x0.st failed: HTTP {response.status_code} {response.reason_phrase}")
        url = response.text.strip()
        if not url:
            raise self._reject("0x0.st returned an empty body")
        return url
