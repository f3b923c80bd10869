"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP/protocolo/almacenamiento) lean config de forma consistente.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "pairlink"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "pairlink"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "pairlink"
    return Path.home() / ".config" / "pairlink"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        try:
            existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))
        except OSError:
            existing = {}

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# pairlink user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Un único contrato de configuración para CLI, API HTTP y adaptadores.
    Todos los tiempos están en segundos salvo `connect_timeout_ms`.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAIRLINK_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    log_level: str = Field(
        default="INFO",
        description="Nivel de logging (DEBUG, INFO, WARNING, ...).",
    )

    # HTTP (proveedores de subida)
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout por request (segundos).",
    )
    user_agent: str = Field(
        default="pairlink/0.1",
        min_length=1,
        description="User-Agent para las subidas.",
    )
    upload_providers: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["pastebin", "0x0", "file.io"],
        min_length=1,
        description="Proveedores de subida en orden de prioridad.",
    )
    pastebin_api_key: str | None = Field(
        default=None,
        description="API key de Pastebin (api_dev_key). Sin ella el proveedor se rechaza.",
    )

    # Sesiones
    sessions_dir: Path = Field(
        default=Path("sessions"),
        description="Directorio raíz de los directorios de sesión.",
    )
    protocol_factory: str | None = Field(
        default=None,
        description="Cliente de mensajería como 'paquete.modulo:atributo'.",
    )
    session_env_key: str = Field(
        default="SESSION_URL",
        min_length=1,
        description="Clave del mensaje KEY=value enviado al usuario.",
    )

    # Tiempos del ciclo de vida
    pairing_code_delay_seconds: float = Field(default=1.5, ge=0)
    open_grace_seconds: float = Field(default=2.0, ge=0)
    flush_grace_seconds: float = Field(default=1.0, ge=0)
    teardown_delay_seconds: float = Field(default=5.0, ge=0)
    pairing_timeout_seconds: float = Field(default=60.0, gt=0)
    connect_timeout_ms: int = Field(default=60_000, gt=0)

    # Supervisor
    max_consecutive_restarts: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Reinicios consecutivos máximos ante cierres transitorios.",
    )
    restart_backoff_seconds: float = Field(default=1.0, ge=0)
    restart_backoff_max_seconds: float = Field(default=30.0, ge=0)

    # Formato del código de emparejamiento
    pairing_group_size: int = Field(default=4, ge=1)
    pairing_separator: str = Field(default="-")

    # API HTTP
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("upload_providers", mode="before")
    @classmethod
    def _split_providers(cls, value: object) -> object:
        # Acepta PAIRLINK_UPLOAD_PROVIDERS=pastebin,0x0 o una lista JSON.
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                return json.loads(text)
            return [part.strip() for part in text.split(",") if part.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()
