"""
Descriptive statistics for repository numeric fields.

Percentiles use the nearest-rank method,
``rank = ceil(count * p / 100) - 1`` clamped to ``[0, count - 1]``, with
no interpolation between neighbouring values. Mean and standard deviation
are population statistics (divisor N) rounded to two decimals.
"""

import math
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, Sequence

import numpy as np

from .records import FIELD_ACCESSORS, NumericField, Record


@dataclass(frozen=True)
class StatisticalSummary:
    """Summary of a numeric sample set."""

    count: int = 0
    mean: float = 0.0
    std: float = 0.0
    min: float = 0.0
    max: float = 0.0
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


EMPTY_SUMMARY = StatisticalSummary()


def valid_values(values: Iterable) -> np.ndarray:
    """Keep finite, non-negative numbers; everything else is dropped."""
    kept = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float, np.integer, np.floating)):
            continue
        if math.isfinite(v) and v >= 0:
            kept.append(float(v))
    return np.asarray(kept, dtype=np.float64)


def numeric_samples(records: Sequence[Record], field: NumericField) -> np.ndarray:
    """Extract the valid sample set of ``field`` across ``records``."""
    accessor = FIELD_ACCESSORS[NumericField.parse(field)]
    return valid_values(accessor(r) for r in records)


def nearest_rank_index(count: int, p: float) -> int:
    """Index of the ``p``-th percentile in an ascending sample of ``count``."""
    index = math.ceil(count * p / 100) - 1
    return max(0, min(index, count - 1))


def nearest_rank(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an already sorted sample (0 when empty)."""
    if len(sorted_values) == 0:
        return 0.0
    return float(sorted_values[nearest_rank_index(len(sorted_values), p)])


def summarize(values: Iterable) -> StatisticalSummary:
    """Compute the statistical summary of a raw numeric sequence."""
    sample = np.sort(valid_values(values))
    count = int(sample.size)
    if count == 0:
        return EMPTY_SUMMARY

    mean = float(sample.mean())
    std = float(np.sqrt(np.mean((sample - mean) ** 2)))

    return StatisticalSummary(
        count=count,
        mean=round(mean, 2),
        std=round(std, 2),
        min=float(sample[0]),
        max=float(sample[-1]),
        p25=nearest_rank(sample, 25),
        p50=nearest_rank(sample, 50),
        p75=nearest_rank(sample, 75),
    )


def compute_statistics(records: Sequence[Record], field: NumericField) -> StatisticalSummary:
    """Compute the statistical summary of one numeric field.

    Args:
        records: Repository records (may be empty).
        field: Numeric field to summarize.

    Returns:
        StatisticalSummary; all zeros when no valid values remain.
    """
    return summarize(numeric_samples(records, field))


def summarize_all(records: Sequence[Record]) -> Dict[NumericField, StatisticalSummary]:
    """Summaries for every numeric field, in schema order."""
    return {field: compute_statistics(records, field) for field in NumericField}
