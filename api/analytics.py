"""
Analytics API routes for the repository analytics backend.

Direct endpoints compute statistics, histograms and size breakdowns
synchronously. Panel endpoints submit tagged requests through the
execution shell and expose each panel's observable state
(``result``, ``isLoading``, ``error``, ``progress``).
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from .jobs import OperationKind, execution_shell
from .jobs.protocol import (
    DeduplicateRequest,
    DownsampleRequest,
    HistogramRequest,
    PercentilesRequest,
    ScatterRequest,
    StatisticsRequest,
)
from .session import OPTIMIZATION_THRESHOLDS, active_optimizations, performance_level, session_store
from .shared.binning import BinCountPolicy, bin_count, build_histogram, cumulative_percentages
from .shared.decimation import ReductionStrategy
from .shared.errors import NoDataError, UnknownFieldError
from .shared.percentiles import size_analysis
from .shared.points import ScatterKind, build_points
from .shared.records import NumericField
from .shared.scaling import ScalingMethod
from .shared.statistics import compute_statistics, numeric_samples, summarize_all

router = APIRouter()


# ============= Request Models =============


class PanelRequest(BaseModel):
    """Operation submitted for a dashboard panel."""

    operation: str = Field(..., description="statistics, histogram, downsample, deduplicate, percentiles or scatter")
    field: Optional[str] = Field(None, description="Numeric field for statistics and histogram")
    policy: Optional[str] = Field(None, description="Bin-count policy: sturges, freedman or scott")
    scaling: str = Field("none", description="Scaling method: none, minmax, zscore or robust")
    bins: Optional[int] = Field(None, ge=1, description="Explicit bin count")
    scatter: str = Field("age_size", description="Scatter view: age_size or commit_collaborator")
    optimize: bool = Field(True, description="Reduce scatter points by dataset size")
    tolerance: Optional[float] = Field(None, ge=0, description="Deduplication tolerance")
    target: int = Field(2000, ge=1, description="Target point count for downsampling")
    strategy: str = Field("lttb", description="Reduction strategy for downsampling")
    percentiles: List[float] = Field(default_factory=lambda: [10.0, 90.0])


# ============= Helpers =============


def _records():
    try:
        return session_store.require_records()
    except NoDataError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


def _parse_field(name: Optional[str]) -> NumericField:
    if not name:
        raise HTTPException(status_code=400, detail="A numeric field is required")
    try:
        return NumericField.parse(name)
    except UnknownFieldError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _parse_enum(enum_cls, value: str, label: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        choices = ", ".join(m.value for m in enum_cls)
        raise HTTPException(status_code=400, detail=f"Unknown {label} '{value}' (expected one of: {choices})") from e


def _build_request(body: PanelRequest) -> Any:
    operation = _parse_enum(OperationKind, body.operation, "operation")
    records = _records()

    if operation == OperationKind.STATISTICS:
        return StatisticsRequest(records=records, field=_parse_field(body.field))

    if operation == OperationKind.HISTOGRAM:
        numeric = _parse_field(body.field)
        return HistogramRequest(
            values=tuple(numeric_samples(records, numeric).tolist()),
            policy=_parse_enum(BinCountPolicy, body.policy or execution_shell.settings.default_bin_policy, "bin policy"),
            scaling=_parse_enum(ScalingMethod, body.scaling, "scaling method"),
            bins=body.bins,
        )

    if operation == OperationKind.PERCENTILES:
        if any(p < 0 or p > 100 for p in body.percentiles):
            raise HTTPException(status_code=400, detail="Percentiles must be between 0 and 100")
        return PercentilesRequest(records=records, percentiles=tuple(body.percentiles))

    scatter = _parse_enum(ScatterKind, body.scatter, "scatter view")
    thresholds = execution_shell.settings.thresholds

    if operation == OperationKind.SCATTER:
        return ScatterRequest(
            records=records,
            scatter=scatter,
            optimize=body.optimize,
            tolerance=body.tolerance,
            thresholds=thresholds,
        )

    points = tuple(build_points(records, scatter))
    tolerance = thresholds.dedup_tolerance if body.tolerance is None else body.tolerance
    if operation == OperationKind.DEDUPLICATE:
        return DeduplicateRequest(points=points, tolerance=tolerance)
    return DownsampleRequest(
        points=points,
        target=body.target,
        strategy=_parse_enum(ReductionStrategy, body.strategy, "reduction strategy"),
        tolerance=tolerance,
    )


def _panel_view(panel_id: str, state) -> Dict[str, Any]:
    # The panel can be reset by a data reload while its computation runs
    if state is None:
        raise HTTPException(status_code=409, detail=f"Panel '{panel_id}' was reset during computation")
    return state.to_dict()


# ============= Direct Endpoints =============


@router.get("/analytics/summary")
async def get_summary():
    """Summary statistics for every numeric field."""
    records = _records()
    stats = summarize_all(records)
    return {
        "total_records": len(records),
        "forks": sum(1 for r in records if r.is_fork),
        "archived": sum(1 for r in records if r.is_archived),
        "empty": sum(1 for r in records if r.is_empty),
        "statistics": {field.value: summary.to_dict() for field, summary in stats.items()},
    }


@router.get("/analytics/statistics/{field}")
async def get_field_statistics(field: str):
    """Statistical summary of a single numeric field."""
    numeric = _parse_field(field)
    summary = compute_statistics(_records(), numeric)
    return {"field": numeric.value, "label": numeric.label, "statistics": summary.to_dict()}


@router.get("/analytics/histogram")
async def get_histogram(
    field: str = Query(..., description="Numeric field to bin"),
    scaling: str = Query("none", description="Scaling method"),
    policy: Optional[str] = Query(None, description="Bin-count policy"),
    bins: Optional[int] = Query(None, ge=1, description="Explicit bin count"),
):
    """Dual original/scaled histogram of a numeric field."""
    numeric = _parse_field(field)
    method = _parse_enum(ScalingMethod, scaling, "scaling method")
    bin_policy = _parse_enum(BinCountPolicy, policy or execution_shell.settings.default_bin_policy, "bin policy")

    values = numeric_samples(_records(), numeric)
    histogram = build_histogram(values, bin_policy, method, bins)
    return {
        "field": numeric.value,
        "scaling": method.value,
        "policy": bin_policy.value,
        "bin_count": len(histogram),
        "total": int(values.size),
        "bins": [b.to_dict() for b in histogram],
        "cumulative_percentages": cumulative_percentages(histogram),
    }


@router.get("/analytics/size-analysis")
async def get_size_analysis(
    low: float = Query(10, ge=0, le=100),
    high: float = Query(90, ge=0, le=100),
    size: int = Query(10, ge=1),
):
    """Repositories around the low and high size percentiles."""
    return size_analysis(_records(), low, high, size).to_dict()


@router.get("/analytics/performance")
async def get_performance():
    """Rendering-load indicator for the loaded dataset."""
    count = len(session_store.records)
    return {
        "total_records": count,
        "level": performance_level(count),
        "suggested_bins": bin_count(count) if count else None,
        "optimizations": active_optimizations(count),
        "thresholds": OPTIMIZATION_THRESHOLDS,
        "reduction": execution_shell.settings.thresholds.to_dict(),
    }


# ============= Panel Endpoints =============


@router.get("/analytics/panels")
async def list_panels():
    """States of all panels (without results)."""
    return {"panels": [state.to_dict(include_result=False) for state in execution_shell.panels.list()]}


@router.post("/analytics/panels/{panel_id}")
async def submit_panel(panel_id: str, body: PanelRequest) -> Dict[str, Any]:
    """Run an operation for a panel through the execution shell."""
    request = _build_request(body)
    state = await execution_shell.submit(panel_id, request)
    return _panel_view(panel_id, state)


@router.get("/analytics/panels/{panel_id}")
async def get_panel(panel_id: str):
    state = execution_shell.get_state(panel_id)
    if state is None:
        raise HTTPException(status_code=404, detail=f"Panel '{panel_id}' not found")
    return state.to_dict()


@router.post("/analytics/panels/{panel_id}/reprocess")
async def reprocess_panel(panel_id: str):
    """Re-run the last operation submitted for a panel."""
    try:
        state = await execution_shell.reprocess(panel_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Panel '{panel_id}' has nothing to reprocess") from e
    return _panel_view(panel_id, state)
