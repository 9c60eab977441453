"""
Execution shell for analytics computations.

Each visualization panel owns a ``PanelState`` that moves through
``idle -> running -> succeeded | failed``. Small inputs are computed
in-process after one scheduling tick; large inputs are offloaded to a
thread pool with a timeout, and fall back to in-process execution when the
background run times out or fails. Every submission is tagged, and a result
whose tag is no longer the panel's latest is discarded.

When progressive revelation is enabled, point results are exposed in
growing batches (``succeeded`` with ``partial=True``) until the whole
reduced sequence is visible.

State changes are pushed to callbacks and to WebSocket subscribers of the
``panel:{panel_id}`` channel.
"""

import asyncio
import itertools
import threading
import traceback
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from ..app_config import DashboardSettings, get_settings
from ..shared.logger import get_logger
from .protocol import (
    ComputeResponse,
    ExecutionPath,
    OperationKind,
    ScatterResult,
    dispatch,
    serialize_result,
)

logger = get_logger(__name__)


class ComputationStatus(str, Enum):
    """Status of a panel's computation."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PanelState:
    """Observable computation state of one visualization panel."""

    panel_id: str
    status: ComputationStatus = ComputationStatus.IDLE
    tag: int = 0
    kind: Optional[OperationKind] = None
    request: Any = None
    result: Any = None
    error: Optional[str] = None
    error_traceback: Optional[str] = None
    progress: float = 0.0
    revealed: int = 0
    total: int = 0
    partial: bool = False
    execution_path: Optional[ExecutionPath] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_loading(self) -> bool:
        return self.status == ComputationStatus.RUNNING

    def visible_result(self) -> Any:
        """The result as currently revealed (a prefix while partial)."""
        if not self.partial:
            return self.result
        if isinstance(self.result, ScatterResult):
            return ScatterResult(
                points=self.result.points[: self.revealed],
                strategy=self.result.strategy,
                original_count=self.result.original_count,
                x_stats=self.result.x_stats,
                y_stats=self.result.y_stats,
            )
        return self.result[: self.revealed]

    def to_dict(self, include_result: bool = True) -> Dict[str, Any]:
        """Convert to the JSON view consumed by the dashboard."""
        data = {
            "panel_id": self.panel_id,
            "status": self.status.value,
            "tag": self.tag,
            "kind": self.kind.value if self.kind else None,
            "isLoading": self.is_loading,
            "error": self.error,
            "progress": self.progress,
            "revealed": self.revealed,
            "total": self.total,
            "partial": self.partial,
            "execution_path": self.execution_path.value if self.execution_path else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self._get_duration(),
        }
        if include_result:
            data["result"] = serialize_result(self.visible_result())
        return data

    def _get_duration(self) -> Optional[float]:
        if not self.started_at or not self.completed_at:
            return None
        return (self.completed_at - self.started_at).total_seconds()


class PanelRegistry:
    """Per-session collection of panel states."""

    def __init__(self):
        self._panels: Dict[str, PanelState] = {}
        self.lock = threading.RLock()

    def get(self, panel_id: str) -> Optional[PanelState]:
        with self.lock:
            return self._panels.get(panel_id)

    def get_or_create(self, panel_id: str) -> PanelState:
        with self.lock:
            state = self._panels.get(panel_id)
            if state is None:
                state = PanelState(panel_id=panel_id)
                self._panels[panel_id] = state
            return state

    def list(self) -> List[PanelState]:
        with self.lock:
            return list(self._panels.values())

    def clear(self) -> None:
        with self.lock:
            self._panels.clear()


def reveal_sizes(total: int, batch_size: int) -> List[int]:
    """Visible counts for each progressive step, ending at ``total``."""
    if total <= 0:
        return [0]
    if batch_size <= 0:
        return [total]
    return list(range(batch_size, total, batch_size)) + [total]


def iter_batches(items: Sequence[Any], batch_size: int) -> Iterator[Sequence[Any]]:
    """Yield growing prefixes of ``items``, ``batch_size`` more each time."""
    for size in reveal_sizes(len(items), batch_size):
        yield items[:size]


def _result_length(result: Any) -> Optional[int]:
    if isinstance(result, ScatterResult):
        return len(result.points)
    if isinstance(result, list):
        return len(result)
    return None


class ExecutionShell:
    """
    Runs analytics requests for dashboard panels.

    Only one computation per panel is current; a newer submission supersedes
    an in-flight one instead of queueing behind it.
    """

    def __init__(
        self,
        settings: Optional[DashboardSettings] = None,
        worker_fn: Callable[[Any], Any] = dispatch,
    ):
        """Initialize the shell.

        Args:
            settings: Pipeline settings; process settings when omitted.
            worker_fn: Entry point run inside the background pool. The
                in-process path always uses ``dispatch``.
        """
        self.settings = settings or get_settings()
        self.panels = PanelRegistry()
        self._worker_fn = worker_fn
        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix="analytics",
        )
        self._callbacks: Dict[str, List[Callable[[PanelState], None]]] = {}
        self._reveal_tasks: Dict[str, asyncio.Task] = {}
        self._notification_tasks: set = set()
        # Shared by all panels and never rewound, so a reset cannot recycle a tag
        self._tags = itertools.count(1)

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    async def submit(self, panel_id: str, request: Any) -> Optional[PanelState]:
        """Run ``request`` for ``panel_id`` and return the panel state.

        The returned state reflects the latest accepted submission, which
        may be a newer one if this submission was superseded meanwhile.
        Returns None when the panel was reset while the request ran.
        """
        self._cancel_reveal(panel_id)
        with self.panels.lock:
            state = self.panels.get_or_create(panel_id)
            tag = next(self._tags)
            state.tag = tag
            state.status = ComputationStatus.RUNNING
            state.kind = request.kind
            state.request = request
            state.result = None
            state.error = None
            state.error_traceback = None
            state.progress = 0.0
            state.revealed = 0
            state.total = 0
            state.partial = False
            state.execution_path = None
            state.started_at = datetime.now()
            state.completed_at = None
        self._notify_callbacks(state)

        # Yield once so the caller's current render is not blocked
        await asyncio.sleep(0)

        response = await self._execute(request, tag)
        return self._accept(panel_id, response)

    async def reprocess(self, panel_id: str) -> Optional[PanelState]:
        """Re-run the last request submitted for ``panel_id``.

        Raises:
            KeyError: if the panel is unknown or has never run.
        """
        state = self.panels.get(panel_id)
        if state is None or state.request is None:
            raise KeyError(panel_id)
        return await self.submit(panel_id, state.request)

    def get_state(self, panel_id: str) -> Optional[PanelState]:
        return self.panels.get(panel_id)

    async def _execute(self, request: Any, tag: int) -> ComputeResponse:
        kind = request.kind
        if request.size < self.settings.offload_threshold:
            return self._run_in_process(request, tag, ExecutionPath.IMMEDIATE)

        loop = asyncio.get_running_loop()
        try:
            result = await asyncio.wait_for(
                loop.run_in_executor(self._executor, self._worker_fn, request),
                timeout=self.settings.worker_timeout,
            )
            return ComputeResponse(kind=kind, tag=tag, result=result, path=ExecutionPath.BACKGROUND)
        except asyncio.TimeoutError:
            logger.warning(
                "Background %s timed out after %.1fs, running in-process",
                kind.value, self.settings.worker_timeout,
            )
        except Exception as e:
            logger.warning("Background %s failed (%s), running in-process", kind.value, e)

        return self._run_in_process(request, tag, ExecutionPath.FALLBACK)

    def _run_in_process(self, request: Any, tag: int, path: ExecutionPath) -> ComputeResponse:
        try:
            result = dispatch(request)
        except Exception as e:
            logger.error("%s computation failed: %s", request.kind.value, e)
            return ComputeResponse(
                kind=request.kind,
                tag=tag,
                error=str(e) or type(e).__name__,
                traceback=traceback.format_exc(),
                path=path,
            )
        return ComputeResponse(kind=request.kind, tag=tag, result=result, path=path)

    def _accept(self, panel_id: str, response: ComputeResponse) -> Optional[PanelState]:
        """Store ``response`` if its tag is still the panel's latest."""
        batch_size = self.settings.progressive_batch_size
        progressive = False

        with self.panels.lock:
            state = self.panels.get(panel_id)
            if state is None or state.tag != response.tag:
                logger.debug("Discarding stale %s result for panel %s", response.kind.value, panel_id)
                return state

            state.execution_path = response.path
            state.completed_at = datetime.now()

            if response.ok:
                state.status = ComputationStatus.SUCCEEDED
                state.result = response.result
                total = _result_length(response.result)
                state.total = total or 0
                progressive = (
                    self.settings.progressive_enabled
                    and total is not None
                    and total > batch_size
                )
                if progressive:
                    state.partial = True
                    state.revealed = reveal_sizes(total, batch_size)[0]
                    state.progress = state.revealed / total * 100
                else:
                    state.revealed = state.total
                    state.progress = 100.0
            else:
                state.status = ComputationStatus.FAILED
                state.error = response.error
                state.error_traceback = response.traceback

        self._notify_callbacks(state)

        if progressive:
            task = asyncio.get_running_loop().create_task(self._reveal(panel_id, response.tag))
            self._reveal_tasks[panel_id] = task
        return state

    # ------------------------------------------------------------------ #
    # Progressive revelation
    # ------------------------------------------------------------------ #

    async def _reveal(self, panel_id: str, tag: int) -> None:
        delay = self.settings.progressive_batch_delay
        batch_size = self.settings.progressive_batch_size

        state = self.panels.get(panel_id)
        if state is None:
            return
        for size in reveal_sizes(state.total, batch_size)[1:]:
            await asyncio.sleep(delay)
            with self.panels.lock:
                state = self.panels.get(panel_id)
                if state is None or state.tag != tag or not state.partial:
                    return
                state.revealed = size
                state.progress = size / state.total * 100
                state.partial = size < state.total
            self._notify_callbacks(state)

    async def wait_revealed(self, panel_id: str) -> Optional[PanelState]:
        """Wait until a panel's progressive revelation (if any) has finished."""
        task = self._reveal_tasks.get(panel_id)
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        return self.panels.get(panel_id)

    def _cancel_reveal(self, panel_id: str) -> None:
        task = self._reveal_tasks.pop(panel_id, None)
        if task is not None and not task.done():
            task.cancel()

    # ------------------------------------------------------------------ #
    # Notifications
    # ------------------------------------------------------------------ #

    def register_callback(self, panel_id: str, callback: Callable[[PanelState], None]) -> None:
        """Register a callback for panel state changes."""
        with self.panels.lock:
            self._callbacks.setdefault(panel_id, []).append(callback)

    def unregister_callback(self, panel_id: str, callback: Callable[[PanelState], None]) -> None:
        with self.panels.lock:
            if panel_id in self._callbacks:
                try:
                    self._callbacks[panel_id].remove(callback)
                except ValueError:
                    pass

    def _notify_callbacks(self, state: PanelState) -> None:
        with self.panels.lock:
            callbacks = list(self._callbacks.get(state.panel_id, []))

        for callback in callbacks:
            try:
                callback(state)
            except Exception as e:
                logger.error("Error in panel callback: %s", e)

        self._dispatch_websocket_notification(state)

    def _dispatch_websocket_notification(self, state: PanelState) -> None:
        """Schedule a WebSocket notification for a panel update."""
        from websocket import (
            notify_panel_completed,
            notify_panel_failed,
            notify_panel_progress,
            notify_panel_started,
        )

        data = state.to_dict(include_result=False)

        if state.status == ComputationStatus.RUNNING:
            coro = notify_panel_started(state.panel_id, data)
        elif state.status == ComputationStatus.FAILED:
            coro = notify_panel_failed(state.panel_id, state.error or "Unknown error", state.error_traceback)
        elif state.partial:
            coro = notify_panel_progress(state.panel_id, state.progress, state.revealed, state.total)
        else:
            coro = notify_panel_completed(state.panel_id, data)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return

        task = loop.create_task(coro)
        self._notification_tasks.add(task)
        task.add_done_callback(self._notification_tasks.discard)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def reset(self) -> None:
        """Forget all panels (used when the session data is cleared)."""
        for panel_id in list(self._reveal_tasks):
            self._cancel_reveal(panel_id)
        self.panels.clear()

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the background pool.

        Args:
            wait: Whether to wait for running computations to finish
        """
        self._executor.shutdown(wait=wait)


# Global execution shell instance
execution_shell = ExecutionShell()
