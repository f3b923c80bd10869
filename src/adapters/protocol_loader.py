"""Carga del cliente de mensajería configurado.

`protocol_factory` tiene la forma `paquete.modulo:atributo`; el atributo
puede ser una instancia, una clase o una función sin argumentos.
"""

from __future__ import annotations

import importlib

from core.errors import ConfigurationError
from core.interfaces.messaging import MessagingClient


def load_messaging_client(target: str | None) -> MessagingClient:
    if not target:
        raise ConfigurationError(
            "No messaging client configured (set PAIRLINK_PROTOCOL_FACTORY=package.module:attr)."
        )

    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Invalid protocol factory {target!r} (expected 'module:attr').")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import {module_name!r}: {exc}") from exc

    try:
        obj = getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"{module_name!r} has no attribute {attr!r}") from exc

    if isinstance(obj, type):
        obj = obj()
    elif not isinstance(obj, MessagingClient) and callable(obj):
        obj = obj()

    if not isinstance(obj, MessagingClient):
        raise ConfigurationError(f"{target!r} does not provide a messaging client (missing connect()).")
    return obj
