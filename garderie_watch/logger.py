# === FILE: garderie_watch/logger.py ===
"""Logging for **GarderieWatch**.

Every component logs through a child of the ``GarderieWatch`` logger::

    from garderie_watch.logger import get_logger
    logger = get_logger("orchestrator")     # -> "GarderieWatch.orchestrator"

Importing this module installs no handler. The CLI calls :func:`init_logging`
once per process; records from the children then reach the console and, when
``--log-file`` is given, a rotating log file. Library users may attach their
own handlers to ``GarderieWatch`` instead.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, List, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "GarderieWatch"

# rotation of the optional log file
LOG_FILE_MAX_BYTES: Final[int] = 5 * 1024 * 1024
LOG_FILE_BACKUPS: Final[int] = 3

_LevelT = Union[int, str]


def get_logger(component: str | None = None) -> logging.Logger:
    """Logger of one component, e.g. ``get_logger("store")``; the root project logger without argument."""
    if not component:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{component}")


def _build_handlers(log_file: str | Path | None, log_format: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(
            RotatingFileHandler(
                filename=str(log_file),
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )
    formatter = logging.Formatter(log_format)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """Attach console (and file) handlers to the ``GarderieWatch`` logger.

    The component loggers have no handlers of their own and propagate up to
    it, so ``level`` applies to the whole crawl/store/mail pipeline. With
    ``replace_handlers=False`` the new handlers are added next to the old ones.
    """
    root = get_logger()
    root.setLevel(level)
    if replace_handlers:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
    for handler in _build_handlers(log_file, log_format):
        root.addHandler(handler)
    # keep crawl output out of the host application's root logger
    root.propagate = False
    return root


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Used by the CLI before running a command."""
    return configure(level=level, log_file=log_file, log_format=log_format, replace_handlers=True)


__all__ = ["LOGGER_NAME", "DEFAULT_FORMAT", "get_logger", "configure", "init_logging"]
