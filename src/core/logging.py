"""Utilidades de logging.

Los módulos piden su logger con `get_logger(__name__)`; la CLI y la API
configuran la salida una sola vez con `setup_logging` (Rich).
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_ROOT_NAME = "pairlink"


def get_logger(name: str) -> logging.Logger:
    """Logger hijo de `pairlink` que propaga al root.

    Si nadie configuró logging todavía, queda en WARNING para no ensuciar
    la salida de librerías que nos importen.
    """

    logger = logging.getLogger(f"{_ROOT_NAME}.{name}")
    logger.propagate = True

    if not logging.getLogger().handlers and not logging.getLogger(_ROOT_NAME).handlers:
        logger.setLevel(logging.WARNING)

    return logger


def setup_logging(level: str = "INFO", *, console: Console | None = None) -> logging.Logger:
    """Instala un `RichHandler` en el logger raíz del proyecto (idempotente)."""

    root = logging.getLogger(_ROOT_NAME)
    root.setLevel(level)
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.propagate = False

    # Los loggers creados antes de la configuración quedaron en WARNING.
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith(f"{_ROOT_NAME}.") and isinstance(logger, logging.Logger):
            logger.setLevel(logging.NOTSET)
    return root
