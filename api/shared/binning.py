"""
Histogram binning for distribution views.

Bins are contiguous equal-width intervals over ``[min, max]`` of the valid
sample. When a scaling method is active the scaled values are binned a
second time over their own range, so the original and scaled columns of a
bin describe the shape of each distribution rather than one set of bins
with relabelled axes.
"""

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

import numpy as np

from .scaling import ScalingMethod, scale
from .statistics import valid_values

T = TypeVar("T")

MIN_BINS = 5
DEFAULT_STURGES_CAP = 20


class BinCountPolicy(str, Enum):
    """Heuristics for choosing the number of bins."""

    STURGES = "sturges"
    FREEDMAN = "freedman"
    SCOTT = "scott"

    @classmethod
    def parse(cls, value: Union[str, "BinCountPolicy"]) -> "BinCountPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown bin count policy {value!r} (expected one of: {valid})") from None


def bin_count(
    n: int,
    policy: Union[str, BinCountPolicy] = BinCountPolicy.STURGES,
    sturges_cap: int = DEFAULT_STURGES_CAP,
) -> int:
    """Number of bins for a sample of size ``n``.

    Args:
        n: Sample size.
        policy: Bin-count heuristic.
        sturges_cap: Upper bound for Sturges' rule (20 for distribution
            views, 30 for generic aggregation).
    """
    policy = BinCountPolicy.parse(policy)
    if n <= 0:
        return MIN_BINS

    if policy is BinCountPolicy.FREEDMAN:
        return max(MIN_BINS, min(50, math.ceil(np.cbrt(n) * 2)))
    if policy is BinCountPolicy.SCOTT:
        return max(MIN_BINS, min(40, math.ceil(n ** (1 / 3) * 3.5)))
    return max(MIN_BINS, min(sturges_cap, math.ceil(math.log2(n) + 1)))


@dataclass(frozen=True)
class Bin:
    """One histogram bin with parallel original and scaled axes."""

    range: str
    scaled_range: str
    original_count: int
    scaled_count: int
    percentage: float
    start: float
    end: float
    scaled_start: float
    scaled_end: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _edges(lo: float, hi: float, count: int) -> Tuple[float, List[Tuple[float, float]]]:
    width = (hi - lo) / count
    return width, [(lo + i * width, lo + (i + 1) * width) for i in range(count)]


def assign_bins(values: np.ndarray, lo: float, width: float, count: int) -> np.ndarray:
    """Per-bin counts using ``floor((v - lo) / width)`` clamped to the last bin."""
    if values.size == 0:
        return np.zeros(count, dtype=np.int64)
    if width == 0:
        # Zero range: every value sits at lo
        counts = np.zeros(count, dtype=np.int64)
        counts[0] = values.size
        return counts
    index = np.floor((values - lo) / width).astype(np.int64)
    index = np.clip(index, 0, count - 1)
    return np.bincount(index, minlength=count)


def build_histogram(
    values: Sequence[float],
    policy: Union[str, BinCountPolicy] = BinCountPolicy.STURGES,
    scaling: Union[str, ScalingMethod] = ScalingMethod.NONE,
    bins: Optional[int] = None,
) -> List[Bin]:
    """Bin a numeric sequence, optionally alongside its scaled version.

    Args:
        values: Raw values; non-finite and negative entries are dropped.
        policy: Bin-count heuristic used when ``bins`` is not given.
        scaling: Scaling method whose output is binned independently.
        bins: Explicit bin count overriding the policy.

    Returns:
        Ordered bins; empty when no valid values remain.
    """
    scaling = ScalingMethod.parse(scaling)
    raw = valid_values(values)
    total = raw.size
    if total == 0:
        return []

    count = bins if bins is not None and bins > 0 else bin_count(total, policy)

    lo, hi = float(raw.min()), float(raw.max())
    width, edges = _edges(lo, hi, count)
    original_counts = assign_bins(raw, lo, width, count)

    scaled_active = scaling is not ScalingMethod.NONE
    if scaled_active:
        scaled = np.asarray(scale(raw.tolist(), scaling), dtype=np.float64)
        s_lo, s_hi = float(scaled.min()), float(scaled.max())
        s_width, scaled_edges = _edges(s_lo, s_hi, count)
        scaled_counts = assign_bins(scaled, s_lo, s_width, count)
    else:
        scaled_edges = edges
        scaled_counts = original_counts

    result: List[Bin] = []
    for i in range(count):
        start, end = edges[i]
        s_start, s_end = scaled_edges[i]
        label = f"{start:.1f}-{end:.1f}"
        result.append(Bin(
            range=label,
            scaled_range=f"{s_start:.3f}-{s_end:.3f}" if scaled_active else label,
            original_count=int(original_counts[i]),
            scaled_count=int(scaled_counts[i]),
            percentage=float(original_counts[i]) / total * 100,
            start=start,
            end=end,
            scaled_start=s_start,
            scaled_end=s_end,
        ))
    return result


def cumulative_percentages(bins: Sequence[Bin]) -> List[float]:
    """Running sum of bin percentages, for cumulative display columns."""
    return np.cumsum([b.percentage for b in bins]).tolist() if bins else []


@dataclass
class ItemBin(Generic[T]):
    """A bin carrying the items whose value falls into it."""

    start: float
    end: float
    count: int = 0
    items: List[T] = field(default_factory=list)


def aggregate_into_bins(
    items: Sequence[T],
    get_value: Callable[[T], float],
    count: int,
) -> List[ItemBin[T]]:
    """Group arbitrary items into ``count`` equal-width bins by a value accessor.

    Items whose value is NaN or infinite are left out.
    """
    if not items or count <= 0:
        return []

    pairs = [(item, get_value(item)) for item in items]
    pairs = [(item, v) for item, v in pairs if math.isfinite(v)]
    if not pairs:
        return []

    lo = min(v for _, v in pairs)
    hi = max(v for _, v in pairs)
    width, edges = _edges(lo, hi, count)
    result = [ItemBin(start=s, end=e) for s, e in edges]

    for item, v in pairs:
        index = 0 if width == 0 else min(int(math.floor((v - lo) / width)), count - 1)
        result[index].count += 1
        result[index].items.append(item)
    return result
