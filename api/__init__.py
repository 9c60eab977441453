"""
API package for the repository analytics FastAPI backend.

This package provides the REST API endpoints for:
- CSV upload and session data (datasets.py)
- Statistics, histograms, size analysis and panel computations (analytics.py)
- System health, info and recent errors (system.py)
- Panel execution shell (jobs/)
- Computation engines (shared/)
"""

from .jobs import ComputationStatus, PanelState, execution_shell
from .session import SessionStore, session_store

__all__ = [
    "execution_shell",
    "PanelState",
    "ComputationStatus",
    "session_store",
    "SessionStore",
]
