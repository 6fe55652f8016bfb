"""Logging helpers for the Shiro journal."""

from __future__ import annotations

import logging
from typing import Optional, Union

_LOGGER_CONFIGURED = False
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if level is None:
        from .config import get_settings

        level = get_settings().log_level
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def configure_logging(level: Optional[Union[int, str]] = None, *, force: bool = False) -> None:
    """Configure root logging once; ``force`` re-applies a new level later on."""

    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED and not force:
        return

    logging.basicConfig(level=_resolve_level(level), format=_FORMAT, force=force)
    _LOGGER_CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Convenience helper that ensures logging is configured."""

    configure_logging()
    return logging.getLogger(name or "shiro")


__all__ = ["configure_logging", "get_logger"]
