"""
In-memory session store for uploaded repository data.

The dashboard holds exactly one dataset at a time. Loading new files
replaces the current records; clearing the session also resets the panels
of the execution shell so no result computed from old data stays visible.
"""

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .jobs import execution_shell
from .shared.errors import NoDataError
from .shared.ingest import FileProgress, IngestReport
from .shared.logger import get_logger
from .shared.records import Record

logger = get_logger(__name__)

# Dataset sizes at which the dashboard enables each optimisation
OPTIMIZATION_THRESHOLDS: Dict[str, int] = {
    "downsampling": 2000,
    "async_processing": 1000,
    "progressive_loading": 5000,
    "background_processing": 10000,
}


def performance_level(count: int) -> str:
    """Qualitative rendering-load level for a dataset of ``count`` rows."""
    if count < 1000:
        return "excellent"
    if count < 5000:
        return "good"
    if count < 10000:
        return "moderate"
    return "challenging"


def active_optimizations(count: int) -> List[str]:
    return [name for name, threshold in OPTIMIZATION_THRESHOLDS.items() if count > threshold]


class SessionStore:
    """Holds the records of the current dashboard session."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Tuple[Record, ...] = ()
        self._files: List[FileProgress] = []
        self._loaded_at: Optional[datetime] = None

    @property
    def records(self) -> Tuple[Record, ...]:
        return self._records

    @property
    def has_data(self) -> bool:
        return bool(self._records)

    def require_records(self) -> Tuple[Record, ...]:
        """Current records.

        Raises:
            NoDataError: if nothing has been loaded.
        """
        records = self._records
        if not records:
            raise NoDataError()
        return records

    def load(self, report: IngestReport) -> None:
        """Replace the session data with an ingestion result."""
        with self._lock:
            self._records = tuple(report.records)
            self._files = list(report.files)
            self._loaded_at = datetime.now()
        execution_shell.reset()
        logger.info("Loaded %d repositories from %d file(s)", len(report.records), len(report.files))

    def clear(self) -> None:
        with self._lock:
            self._records = ()
            self._files = []
            self._loaded_at = None
        execution_shell.reset()
        logger.info("Session data cleared")

    def describe(self) -> Dict[str, Any]:
        count = len(self._records)
        return {
            "has_data": count > 0,
            "total_records": count,
            "loaded_at": self._loaded_at.isoformat() if self._loaded_at else None,
            "files": [f.to_dict() for f in self._files],
            "performance_level": performance_level(count),
        }


# Global session store instance
session_store = SessionStore()
