"""Almacén de sesiones en disco.

Un directorio `session-<id>` por intento de emparejamiento, con el bundle
de credenciales (`creds.json`) que escribe el colaborador de protocolo.

Reglas:
- `create` borra cualquier directorio previo del mismo id antes de crear.
- `destroy` es idempotente y nunca propaga errores de filesystem.
- Un handle destruido queda invalidado: su sink de credenciales deja de escribir.
"""

from __future__ import annotations

import json
import os
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from core.config import AppSettings
from core.domain.models import SessionHandle
from core.interfaces.messaging import AuthState
from core.logging import get_logger

logger = get_logger(__name__)


class SessionStore:
    """Dueño de los directorios de sesión bajo `root`."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._live: dict[str, object] = {}

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "SessionStore":
        return cls(settings.sessions_dir)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, session_id: str) -> Path:
        return self._root / f"session-{session_id}"

    def create(self, session_id: str) -> SessionHandle:
        handle = SessionHandle(id=session_id, storage_path=self.path_for(session_id))
        # Nunca reutilizar credenciales de un intento abortado.
        self.destroy(handle)
        handle.storage_path.mkdir(parents=True, exist_ok=True)
        self._live[session_id] = object()
        logger.debug("Session %s created at %s", session_id, handle.storage_path)
        return handle

    def exists(self, handle: SessionHandle) -> bool:
        return handle.storage_path.is_dir()

    def bundle_exists(self, handle: SessionHandle) -> bool:
        return handle.bundle_path.is_file()

    def destroy(self, handle: SessionHandle) -> None:
        self._live.pop(handle.id, None)
        try:
            shutil.rmtree(handle.storage_path)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.error("Error removing session %s: %s", handle.id, exc)
            return
        logger.debug("Session %s removed", handle.id)

    def load_auth_state(self, handle: SessionHandle) -> AuthState:
        """Estado de autenticación para el colaborador, con su sink de persistencia."""

        creds: dict[str, Any] = {}
        if handle.bundle_path.is_file():
            try:
                loaded = json.loads(handle.bundle_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Ignoring unreadable bundle for %s: %s", handle.id, exc)
            else:
                if isinstance(loaded, dict):
                    creds = loaded

        token = self._live.get(handle.id)

        def save_creds(bundle: Any) -> None:
            if token is None or self._live.get(handle.id) is not token:
                logger.debug("Dropping credentials update for retired session %s", handle.id)
                return
            self.save_credentials(handle, bundle)

        return AuthState(creds=creds, save_creds=save_creds)

    def save_credentials(self, handle: SessionHandle, bundle: Any) -> Path:
        """Escribe el bundle de forma atómica (tmp + replace)."""

        if isinstance(bundle, bytes):
            data = bundle
        elif isinstance(bundle, str):
            data = bundle.encode("utf-8")
        elif isinstance(bundle, Mapping):
            data = (
                json.dumps(dict(bundle), ensure_ascii=False, indent=2, sort_keys=True) + "\n"
            ).encode("utf-8")
        else:
            raise TypeError(f"unsupported credential bundle type: {type(bundle).__name__}")

        handle.storage_path.mkdir(parents=True, exist_ok=True)
        tmp = handle.bundle_path.with_suffix(".json.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, handle.bundle_path)
        return handle.bundle_path
