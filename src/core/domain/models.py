"""Modelos del dominio (Pydantic v2).

Nota:
- Estos modelos describen *qué* es la información (sesión, subida, estado),
  no *cómo* se obtiene ni dónde se guarda.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.errors import UploadErrorKind

BUNDLE_FILENAME = "creds.json"


class PairingRequest(BaseModel):
    """Petición de emparejamiento tal como llega del borde (sin validar)."""

    raw_number: str | None = Field(
        default=None,
        description="Número de teléfono tal como lo envió el cliente.",
    )


class SessionHandle(BaseModel):
    """Propiedad exclusiva del directorio de credenciales de un intento."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        pattern=r"^\d+$",
        description="Identificador de sesión (número canónico, solo dígitos).",
    )
    storage_path: Path = Field(
        ...,
        description="Directorio de la sesión.",
    )

    @property
    def bundle_path(self) -> Path:
        return self.storage_path / BUNDLE_FILENAME


class Phase(str, Enum):
    CONNECTING = "connecting"
    AWAITING_PAIRING = "awaiting_pairing"
    OPEN = "open"
    CLOSED = "closed"


class ConnectionState(BaseModel):
    """Estado de la conexión de un controlador.

    `finished` indica que el controlador ya tomó su salida (teardown,
    logout, emparejamiento abandonado o reinicio delegado al supervisor).
    """

    model_config = ConfigDict(frozen=True)

    phase: Phase = Phase.CONNECTING
    reason: int | None = Field(
        default=None,
        description="Status code del protocolo en `CLOSED`.",
    )
    finished: bool = False


class UploadResult(BaseModel):
    """Subida exitosa de un proveedor."""

    provider_name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class UploadFailure(BaseModel):
    """Fallo tipado de un proveedor (red o rechazo)."""

    provider_name: str = Field(..., min_length=1)
    kind: UploadErrorKind
    detail: str = ""


class DisconnectKind(str, Enum):
    TRANSIENT = "transient"
    TERMINAL = "terminal"


class SessionOutcome(str, Enum):
    """Cómo terminó un controlador o un supervisor."""

    EXPORTED = "exported"
    EXPORT_FAILED = "export_failed"
    LOGGED_OUT = "logged_out"
    PAIRING_FAILED = "pairing_failed"
    RESTART = "restart"
    RESTARTS_EXHAUSTED = "restarts_exhausted"
