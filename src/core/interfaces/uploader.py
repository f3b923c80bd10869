"""Contrato de proveedores de subida.

Por qué Protocol:
- Contrato estructural (duck typing) sin herencia rígida.
- Permite que los proveedores (Pastebin, 0x0.st, file.io...) sean
  intercambiables y testeables sin acoplar el Core a servicios concretos.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from core.domain.models import UploadFailure, UploadResult


@runtime_checkable
class UploadProvider(Protocol):
    """Contrato mínimo para un servicio de alojamiento de archivos.

    Reglas de diseño:
    - `upload` hace exactamente una llamada HTTP y no reintenta.
    - Nunca lanza: los fallos de red o rechazos vuelven como `UploadFailure`.
    """

    name: str

    async def upload(self, bundle_path: Path) -> UploadResult | UploadFailure:
        ...
