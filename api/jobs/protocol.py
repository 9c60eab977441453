"""
Tagged request/response protocol for analytics computations.

Every heavy operation is described by a frozen request dataclass carrying
its ``OperationKind`` and typed payload. ``dispatch`` routes a request to
its handler; the execution shell calls the same ``dispatch`` inside the
background pool and in-process, so both paths return identical results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from ..shared.binning import BinCountPolicy, build_histogram, cumulative_percentages
from ..shared.decimation import ReductionStrategy, ReductionThresholds, reduce, reduce_points
from ..shared.errors import UnsupportedOperationError
from ..shared.percentiles import select_percentiles
from ..shared.points import DEFAULT_TOLERANCES, Point, ScatterKind, build_points
from ..shared.records import NumericField, Record
from ..shared.scaling import ScalingMethod
from ..shared.statistics import StatisticalSummary, compute_statistics, summarize


class OperationKind(str, Enum):
    """Kinds of computation the shell can run."""

    STATISTICS = "statistics"
    HISTOGRAM = "histogram"
    DOWNSAMPLE = "downsample"
    DEDUPLICATE = "deduplicate"
    PERCENTILES = "percentiles"
    SCATTER = "scatter"


class ExecutionPath(str, Enum):
    """Where a computation actually ran."""

    IMMEDIATE = "immediate"
    BACKGROUND = "background"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class StatisticsRequest:
    kind: ClassVar[OperationKind] = OperationKind.STATISTICS

    records: Tuple[Record, ...]
    field: NumericField

    @property
    def size(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class HistogramRequest:
    kind: ClassVar[OperationKind] = OperationKind.HISTOGRAM

    values: Tuple[float, ...]
    policy: BinCountPolicy = BinCountPolicy.STURGES
    scaling: ScalingMethod = ScalingMethod.NONE
    bins: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class DownsampleRequest:
    kind: ClassVar[OperationKind] = OperationKind.DOWNSAMPLE

    points: Tuple[Point, ...]
    target: int
    strategy: ReductionStrategy = ReductionStrategy.LTTB
    tolerance: float = 1.0

    @property
    def size(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class DeduplicateRequest:
    kind: ClassVar[OperationKind] = OperationKind.DEDUPLICATE

    points: Tuple[Point, ...]
    tolerance: float = 1.0

    @property
    def size(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class PercentilesRequest:
    kind: ClassVar[OperationKind] = OperationKind.PERCENTILES

    records: Tuple[Record, ...]
    percentiles: Tuple[float, ...] = (10.0, 90.0)

    @property
    def size(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class ScatterRequest:
    """Build a scatter view's points and reduce them when ``optimize`` is set."""

    kind: ClassVar[OperationKind] = OperationKind.SCATTER

    records: Tuple[Record, ...]
    scatter: ScatterKind
    optimize: bool = True
    tolerance: Optional[float] = None
    thresholds: ReductionThresholds = field(default_factory=ReductionThresholds)

    @property
    def size(self) -> int:
        return len(self.records)


@dataclass
class HistogramResult:
    bins: List[Any]
    cumulative: List[float]
    total: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bins": [b.to_dict() for b in self.bins],
            "cumulative_percentages": self.cumulative,
            "total": self.total,
        }


@dataclass
class ScatterResult:
    points: List[Point]
    strategy: ReductionStrategy
    original_count: int
    x_stats: StatisticalSummary
    y_stats: StatisticalSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": [p.to_dict() for p in self.points],
            "strategy": self.strategy.value,
            "original_count": self.original_count,
            "point_count": len(self.points),
            "optimized": len(self.points) < self.original_count,
            "x_stats": self.x_stats.to_dict(),
            "y_stats": self.y_stats.to_dict(),
        }


@dataclass
class ComputeResponse:
    """Outcome of one tagged request."""

    kind: OperationKind
    tag: int
    result: Any = None
    error: Optional[str] = None
    traceback: Optional[str] = None
    path: Optional[ExecutionPath] = None

    @property
    def ok(self) -> bool:
        return self.error is None


_HANDLERS: Dict[OperationKind, Callable[[Any], Any]] = {}


def register(kind: OperationKind):
    """Register the handler for ``kind``."""

    def decorator(fn):
        _HANDLERS[kind] = fn
        return fn

    return decorator


@register(OperationKind.STATISTICS)
def _run_statistics(request: StatisticsRequest) -> StatisticalSummary:
    return compute_statistics(request.records, request.field)


@register(OperationKind.HISTOGRAM)
def _run_histogram(request: HistogramRequest) -> HistogramResult:
    bins = build_histogram(request.values, request.policy, request.scaling, request.bins)
    return HistogramResult(bins=bins, cumulative=cumulative_percentages(bins), total=sum(b.original_count for b in bins))


@register(OperationKind.DOWNSAMPLE)
def _run_downsample(request: DownsampleRequest) -> List[Point]:
    return reduce(request.points, request.target, request.strategy, request.tolerance)


@register(OperationKind.DEDUPLICATE)
def _run_deduplicate(request: DeduplicateRequest) -> List[Point]:
    return reduce(request.points, len(request.points), ReductionStrategy.DEDUPLICATE, request.tolerance)


@register(OperationKind.PERCENTILES)
def _run_percentiles(request: PercentilesRequest):
    return select_percentiles(request.records, request.percentiles)


@register(OperationKind.SCATTER)
def _run_scatter(request: ScatterRequest) -> ScatterResult:
    points = build_points(request.records, request.scatter)
    x_stats = summarize(p.x for p in points)
    y_stats = summarize(p.y for p in points)

    if not request.optimize:
        return ScatterResult(points, ReductionStrategy.PASSTHROUGH, len(points), x_stats, y_stats)

    tolerance = request.tolerance
    if tolerance is None:
        tolerance = DEFAULT_TOLERANCES[request.scatter]
    reduction = reduce_points(points, request.thresholds, tolerance=tolerance)
    return ScatterResult(reduction.points, reduction.strategy, reduction.original_count, x_stats, y_stats)


def dispatch(request: Any) -> Any:
    """Run ``request`` through the handler registered for its kind.

    Raises:
        UnsupportedOperationError: if the request kind has no handler.
    """
    kind = getattr(request, "kind", None)
    handler = _HANDLERS.get(kind)
    if handler is None:
        raise UnsupportedOperationError(f"No handler for operation {kind!r}")
    return handler(request)


def serialize_result(result: Any) -> Any:
    """JSON-friendly form of a handler result."""
    if result is None:
        return None
    if hasattr(result, "to_dict"):
        return result.to_dict()
    if isinstance(result, (list, tuple)):
        return [serialize_result(item) for item in result]
    return result
