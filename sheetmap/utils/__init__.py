"""Utility helpers for sheetmap."""

from .log import get_logger, set_level

__all__ = ["get_logger", "set_level"]
