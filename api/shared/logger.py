"""
Centralized logging for the repository analytics backend.

Structured, level-based logging using Python's built-in logging module.
The level comes from ``DashboardSettings.log_level`` unless given
explicitly.

Usage:
    from api.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Loaded %d repositories from %s", count, filename)
    logger.warning("Background run timed out for panel %s", panel_id)
"""

import logging
import sys
from typing import Optional

_configured = False

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the analytics backend.

    Call once at startup (main.py). Subsequent calls are no-ops.
    """
    global _configured
    if _configured:
        return

    if level is None:
        from ..app_config import get_settings

        level = get_settings().log_level

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger scoped to the backend namespace.

    Args:
        name: Module name (typically ``__name__``).
    """
    return logging.getLogger(name)
