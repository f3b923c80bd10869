"""Taxonomía de errores del Core.

Cada error que cruza el borde HTTP lleva su `http_status`; el resto se
recupera localmente (cadena de subida, supervisor) o solo se registra.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.domain.models import UploadFailure


class PairlinkError(Exception):
    """Base de todos los errores del proyecto."""

    http_status: int = 500


class ConfigurationError(PairlinkError):
    """Configuración inválida (proveedor desconocido, factory inexistente...)."""


class ValidationError(PairlinkError):
    """Entrada inválida: se rechaza antes de reservar recursos."""

    http_status = 400


class MissingNumberError(ValidationError):
    http_status = 418

    def __init__(self) -> None:
        super().__init__("Phone number is required")


class InvalidNumberError(ValidationError):
    http_status = 400

    def __init__(self, raw: str) -> None:
        super().__init__("Invalid phone number provided.")
        self.raw = raw


class ServiceUnavailableError(PairlinkError):
    http_status = 503

    def __init__(self, message: str = "Service Unavailable") -> None:
        super().__init__(message)


class PairingCodeError(ServiceUnavailableError):
    """La llamada `request_pairing_code` del protocolo falló."""

    def __init__(self, cause: BaseException | None = None) -> None:
        super().__init__("Service Unavailable")
        self.cause = cause


class UploadErrorKind(str, Enum):
    NETWORK = "network"
    PROVIDER_REJECTED = "provider_rejected"


class UploadError(PairlinkError):
    """Fallo de un único proveedor (lo recupera la cadena probando el siguiente)."""

    def __init__(self, provider_name: str, kind: UploadErrorKind, detail: str) -> None:
        super().__init__(f"{provider_name}: {kind.value}: {detail}")
        self.provider_name = provider_name
        self.kind = kind
        self.detail = detail


class CredentialBundleMissing(PairlinkError):
    def __init__(self, path: object) -> None:
        super().__init__(f"credential bundle not found: {path}")
        self.path = path


class AllProvidersFailed(PairlinkError):
    """Se agotó la lista de proveedores; `failures` conserva el orden de intento."""

    def __init__(self, failures: list[UploadFailure]) -> None:
        reasons = "; ".join(
            f"{f.provider_name} ({f.kind.value}): {f.detail}" for f in failures
        )
        super().__init__(f"All upload services failed. {reasons}".strip())
        self.failures = failures


class NotificationError(PairlinkError):
    """Fallo al enviar un mensaje al usuario. Nunca es fatal."""


class LoggedOutError(PairlinkError):
    """El protocolo informó un cierre permanente (401/403)."""

    def __init__(self, status_code: int | None) -> None:
        super().__init__(f"session logged out (status {status_code})")
        self.status_code = status_code
