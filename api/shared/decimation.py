"""
Point-cloud reduction utilities for scatter visualization.

Provides LTTB (Largest-Triangle-Three-Buckets) downsampling that preserves
the visual silhouette of a series better than uniform subsampling, plus
proximity deduplication and systematic/random/stratified sampling. The
``reduce_points`` policy picks a strategy from the input size using
tunable ``ReductionThresholds``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, TypeVar

import numpy as np

from .logger import get_logger

logger = get_logger(__name__)


class HasXY(Protocol):
    x: float
    y: float


P = TypeVar("P", bound=HasXY)


class SamplingStrategy(str, Enum):
    SYSTEMATIC = "systematic"
    RANDOM = "random"
    STRATIFIED = "stratified"


class ReductionStrategy(str, Enum):
    """Strategy applied (or requested) for a reduction."""

    PASSTHROUGH = "passthrough"
    DEDUPLICATE = "deduplicate"
    SYSTEMATIC = "systematic"
    RANDOM = "random"
    STRATIFIED = "stratified"
    LTTB = "lttb"
    DEDUPLICATE_SAMPLE = "deduplicate+systematic"


@dataclass(frozen=True)
class ReductionThresholds:
    """Size thresholds driving ``reduce_points``."""

    passthrough_limit: int = 2000
    sample_target: int = 2000
    lttb_threshold: int = 5000
    lttb_target: int = 2000
    lttb_heavy_threshold: int = 10000
    lttb_heavy_target: int = 1500
    dedup_tolerance: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReductionResult:
    """Reduced points plus a note of how they were obtained."""

    points: List[Any]
    strategy: ReductionStrategy
    original_count: int

    @property
    def reduced(self) -> bool:
        return len(self.points) < self.original_count


def lttb_indices(x, y, target_points: int):
    """Select indices using Largest-Triangle-Three-Buckets (LTTB).

    The first and last points are always kept. Each intermediate bucket
    contributes the point forming the largest triangle with the previously
    selected point and the average of the next bucket.

    Args:
        x: X-axis values. Shape (n,).
        y: Y-axis values. Shape (n,).
        target_points: Number of points to keep.

    Returns:
        Array of selected indices, sorted in ascending order. Shape (target_points,).
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    n = len(x)
    if n <= target_points or target_points < 3:
        return np.arange(n)

    indices = np.empty(target_points, dtype=np.intp)
    indices[0] = 0
    indices[-1] = n - 1

    bucket_size = (n - 2) / (target_points - 2)

    a_idx = 0  # Previously selected point index

    for i in range(1, target_points - 1):
        # Current bucket range
        bucket_start = int(math.floor((i - 1) * bucket_size)) + 1
        bucket_end = min(int(math.floor(i * bucket_size)) + 1, n - 1)

        # Next bucket range (for computing average); the last one holds the final point
        next_start = bucket_end
        next_end = min(int(math.floor((i + 1) * bucket_size)) + 1, n)
        if next_start >= next_end:
            next_end = min(next_start + 1, n)

        avg_x = np.mean(x[next_start:next_end])
        avg_y = np.mean(y[next_start:next_end])

        x_a = x[a_idx]
        y_a = y[a_idx]

        bucket_x = x[bucket_start:bucket_end]
        bucket_y = y[bucket_start:bucket_end]

        areas = 0.5 * np.abs(
            (x_a - avg_x) * (bucket_y - y_a) - (x_a - bucket_x) * (avg_y - y_a)
        )

        max_idx = bucket_start + int(np.argmax(areas))
        indices[i] = max_idx
        a_idx = max_idx

    return indices


def lttb_downsample(points: Sequence[P], target_points: int) -> List[P]:
    """Downsample a point series with LTTB, returning the original objects."""
    n = len(points)
    if n <= target_points or target_points < 3:
        return list(points)

    x = np.fromiter((p.x for p in points), dtype=np.float64, count=n)
    y = np.fromiter((p.y for p in points), dtype=np.float64, count=n)
    return [points[i] for i in lttb_indices(x, y, target_points)]


def deduplicate_points(points: Sequence[P], tolerance: float = 1.0) -> List[P]:
    """Drop points closer than ``tolerance`` to an already kept point.

    Points are scanned in input order. Kept points are indexed in a uniform
    grid with cell size ``tolerance`` so only the 3x3 neighbouring cells are
    compared; the result matches a pairwise scan against every kept point.
    Points with a non-finite coordinate have no grid cell and are dropped.
    """
    if not points:
        return []
    if tolerance <= 0:
        return list(points)

    grid: Dict[Tuple[int, int], List[P]] = {}
    kept: List[P] = []
    tol_sq = tolerance * tolerance

    for point in points:
        if not (math.isfinite(point.x) and math.isfinite(point.y)):
            continue
        cx = math.floor(point.x / tolerance)
        cy = math.floor(point.y / tolerance)

        duplicate = False
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for other in grid.get((cx + dx, cy + dy), ()):
                    if (point.x - other.x) ** 2 + (point.y - other.y) ** 2 < tol_sq:
                        duplicate = True
                        break
                if duplicate:
                    break
            if duplicate:
                break

        if not duplicate:
            kept.append(point)
            grid.setdefault((cx, cy), []).append(point)

    return kept


def systematic_sample(points: Sequence[P], target: int) -> List[P]:
    """Every ``floor(n / target)``-th point, in order, until ``target`` are taken."""
    n = len(points)
    if n <= target:
        return list(points)
    if target <= 0:
        return []

    step = n // target
    return [points[i] for i in range(0, n, step)][:target]


def random_sample(points: Sequence[P], target: int, rng: Optional[np.random.Generator] = None) -> List[P]:
    """Shuffle and take the first ``target`` points."""
    n = len(points)
    if n <= target:
        return list(points)
    if target <= 0:
        return []

    rng = rng or np.random.default_rng()
    return [points[i] for i in rng.permutation(n)[:target]]


def stratified_sample(points: Sequence[P], target: int, rng: Optional[np.random.Generator] = None) -> List[P]:
    """One random point from each of ``target`` contiguous equal-size chunks."""
    n = len(points)
    if n <= target:
        return list(points)
    if target <= 0:
        return []

    rng = rng or np.random.default_rng()
    chunk = n // target
    sampled = []
    for i in range(target):
        start = i * chunk
        if start >= n:
            break
        end = min((i + 1) * chunk, n)
        sampled.append(points[start + int(rng.integers(0, end - start))])
    return sampled


_SAMPLERS = {
    SamplingStrategy.SYSTEMATIC: systematic_sample,
    SamplingStrategy.RANDOM: random_sample,
    SamplingStrategy.STRATIFIED: stratified_sample,
}


def sample_points(
    points: Sequence[P],
    target: int,
    strategy: SamplingStrategy = SamplingStrategy.SYSTEMATIC,
) -> List[P]:
    """Sample ``points`` down to ``target`` with the given strategy."""
    if len(points) <= target:
        return list(points)
    return _SAMPLERS[SamplingStrategy(strategy)](points, target)


def reduce(
    points: Sequence[P],
    target: int,
    strategy: ReductionStrategy = ReductionStrategy.LTTB,
    tolerance: float = 1.0,
) -> List[P]:
    """Reduce ``points`` with an explicitly chosen strategy.

    Args:
        points: Input points (objects exposing ``x`` and ``y``).
        target: Desired maximum number of points.
        strategy: Reduction strategy.
        tolerance: Proximity tolerance for deduplication.
    """
    strategy = ReductionStrategy(strategy)
    if strategy is ReductionStrategy.PASSTHROUGH:
        return list(points)
    if strategy is ReductionStrategy.DEDUPLICATE:
        return deduplicate_points(points, tolerance)
    if strategy is ReductionStrategy.LTTB:
        return lttb_downsample(points, target)
    if strategy is ReductionStrategy.DEDUPLICATE_SAMPLE:
        return systematic_sample(deduplicate_points(points, tolerance), target)
    return sample_points(points, target, SamplingStrategy(strategy.value))


def reduce_points(
    points: Sequence[P],
    thresholds: Optional[ReductionThresholds] = None,
    tolerance: Optional[float] = None,
) -> ReductionResult:
    """Reduce ``points`` with the strategy implied by their count.

    - ``n <= passthrough_limit``: unchanged
    - ``n > lttb_heavy_threshold``: LTTB to ``lttb_heavy_target``
    - ``n > lttb_threshold``: LTTB to ``lttb_target``
    - otherwise: deduplicate, then systematic sample to ``sample_target``

    Args:
        points: Input points.
        thresholds: Threshold table; defaults when omitted.
        tolerance: Deduplication tolerance overriding ``thresholds.dedup_tolerance``.
    """
    thresholds = thresholds or ReductionThresholds()
    n = len(points)

    if n <= thresholds.passthrough_limit:
        return ReductionResult(list(points), ReductionStrategy.PASSTHROUGH, n)

    if n > thresholds.lttb_heavy_threshold:
        reduced = lttb_downsample(points, thresholds.lttb_heavy_target)
        strategy = ReductionStrategy.LTTB
    elif n > thresholds.lttb_threshold:
        reduced = lttb_downsample(points, thresholds.lttb_target)
        strategy = ReductionStrategy.LTTB
    else:
        tol = thresholds.dedup_tolerance if tolerance is None else tolerance
        reduced = deduplicate_points(points, tol)
        strategy = ReductionStrategy.DEDUPLICATE
        if len(reduced) > thresholds.sample_target:
            reduced = systematic_sample(reduced, thresholds.sample_target)
            strategy = ReductionStrategy.DEDUPLICATE_SAMPLE

    logger.debug("Reduced %d points to %d (%s)", n, len(reduced), strategy.value)
    return ReductionResult(reduced, strategy, n)
