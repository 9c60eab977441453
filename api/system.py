"""
System API routes for the repository analytics backend.

Health, environment information, and a bounded log of recent server errors.
"""

import platform
import sys
import threading
import traceback
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from fastapi import APIRouter, Query

from .app_config import get_settings
from .shared.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

MAX_ERROR_ENTRIES = 100

_error_log: Deque[Dict[str, Any]] = deque(maxlen=MAX_ERROR_ENTRIES)
_error_lock = threading.Lock()


def log_error(
    endpoint: str,
    message: str,
    level: str = "error",
    details: Optional[str] = None,
    exc: Optional[BaseException] = None,
) -> Dict[str, Any]:
    """Record a server error for ``GET /api/system/errors`` and log it.

    Args:
        endpoint: Request path that failed
        message: Error message
        level: "error" or "critical"
        details: Optional extra context
        exc: Optional exception whose traceback is kept
    """
    entry = {
        "timestamp": datetime.now().isoformat(),
        "level": level,
        "endpoint": endpoint,
        "message": message,
        "details": details,
        "traceback": (
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            if exc is not None
            else None
        ),
    }
    with _error_lock:
        _error_log.append(entry)

    if level == "critical":
        logger.critical("%s: %s", endpoint, message, exc_info=exc)
    else:
        logger.error("%s: %s", endpoint, message)
    return entry


def get_recent_errors(limit: int = MAX_ERROR_ENTRIES) -> List[Dict[str, Any]]:
    """Most recent errors first."""
    with _error_lock:
        entries = list(_error_log)
    return list(reversed(entries))[:limit]


def clear_errors() -> None:
    with _error_lock:
        _error_log.clear()


def _get_package_versions() -> Dict[str, str]:
    """Get versions of key packages."""
    packages = {}
    for name in ("numpy", "fastapi", "pydantic", "uvicorn", "orjson", "platformdirs"):
        try:
            module = __import__(name)
            packages[name] = getattr(module, "__version__", "unknown")
        except ImportError:
            pass
    return packages


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "Repository analytics backend is running",
    }


@router.get("/system/info")
async def system_info():
    """Get system, environment and pipeline settings information."""
    return {
        "python": {
            "version": sys.version,
            "platform": sys.platform,
            "executable": sys.executable,
        },
        "system": {
            "os": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
        },
        "packages": _get_package_versions(),
        "settings": get_settings().to_dict(),
    }


@router.get("/system/errors")
async def recent_errors(limit: int = Query(MAX_ERROR_ENTRIES, ge=1, le=MAX_ERROR_ENTRIES)):
    """Recently recorded server errors, newest first."""
    errors = get_recent_errors(limit)
    return {"errors": errors, "count": len(errors)}


@router.delete("/system/errors")
async def delete_errors():
    clear_errors()
    return {"success": True}
