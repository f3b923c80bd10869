"""Proveedor: Pastebin.

- Formulario URL-encoded contra `api_post.php` (paste no listado, expira en 1 día).
- El bundle debe ser JSON válido.
- Éxito si el cuerpo es un link `https://pastebin.com/...`; se devuelve el link raw.
"""

from __future__ import annotations

import json

import httpx

from adapters.upload_providers.base import HttpUploadProvider
from core.domain.models import BUNDLE_FILENAME

_API_URL = "https://pastebin.com/api/api_post.php"
_LINK_PREFIX = "https://pastebin.com/"
_RAW_PREFIX = "https://pastebin.com/raw/"


def to_raw_link(link: str) -> str:
    """`https://pastebin.com/abc` → `https://pastebin.com/raw/abc`."""

    if link.startswith(_RAW_PREFIX):
        return link
    return _RAW_PREFIX + link.removeprefix(_LINK_PREFIX)


class PastebinProvider(HttpUploadProvider):
    name = "pastebin"

    async def _send(self, client: httpx.AsyncClient, content: bytes) -> str:
        api_key = self._settings.pastebin_api_key
        if not api_key:
            raise self._reject("missing api key")

        try:
            text = content.decode("utf-8")
            json.loads(text)
        except ValueError:
            raise self._reject("file content is not valid JSON") from None

        response = await client.post(
            _API_URL,
            data={
                "api_dev_key": api_key,
                "api_option": "paste",
                "api_paste_code": text,
                "api_paste_name": BUNDLE_FILENAME,
                "api_paste_format": "json",
                "api_paste_private": "1",
                "api_paste_expire_date": "1D",
            },
        )
        link = response.text.strip()
        if not link.startswith(_LINK_PREFIX):
            raise self._reject(f"Pastebin Error: {link[:200]}")
        return to_raw_link(link)
