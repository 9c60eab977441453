"""
Jobs package for analytics computations.

Provides the execution shell that runs panel computations immediately,
in a background pool or as an in-process fallback.
"""

from .manager import (
    ComputationStatus,
    ExecutionShell,
    PanelRegistry,
    PanelState,
    execution_shell,
    iter_batches,
)
from .protocol import ExecutionPath, OperationKind, dispatch

__all__ = [
    "execution_shell",
    "ExecutionShell",
    "PanelRegistry",
    "PanelState",
    "ComputationStatus",
    "ExecutionPath",
    "OperationKind",
    "dispatch",
    "iter_batches",
]
