"""Logging helpers for the sheetmap package."""

# Module responsibilities:
# - Centralize logging configuration with stream + optional rotating file handlers.
# - Provide get_logger() that configures the package root logger exactly once.

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

LOG_DIR_ENV = "SHEETMAP_LOG_DIR"
ROOT_LOGGER_NAME = "sheetmap"
_LOG_CONFIGURED = False


def _resolve_log_dir(log_dir: Optional[Path] = None) -> Optional[Path]:
    """Resolve the log directory from the argument or environment, ensuring existence."""
    target = log_dir
    if target is None:
        env_value = os.environ.get(LOG_DIR_ENV, "").strip()
        target = Path(env_value).expanduser() if env_value else None
    if target is None:
        return None
    target.mkdir(parents=True, exist_ok=True)
    return target


def _configure_logging(log_dir: Optional[Path] = None, level: int = logging.INFO) -> None:
    """Configure the package root logger once with console + optional file handlers."""
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    directory = _resolve_log_dir(log_dir)
    if directory is not None:
        file_handler = logging.handlers.RotatingFileHandler(
            directory / "sheetmap.log", maxBytes=2_000_000, backupCount=3, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    root_logger.propagate = False
    _LOG_CONFIGURED = True


def get_logger(name: str, log_dir: Optional[Path] = None) -> logging.Logger:
    """Return a package-scoped logger.

    Args:
        name: Logger name suffix appended to the package root logger namespace.
        log_dir: Optional directory for a rotating ``sheetmap.log`` file. Falls back
            to ``$SHEETMAP_LOG_DIR``; without either only the console handler is used.

    Returns:
        Configured logger scoped under ``sheetmap``.
    """

    _configure_logging(log_dir)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_level(level: int | str) -> None:
    """Adjust the level of the package root logger and its handlers."""

    _configure_logging()
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)
