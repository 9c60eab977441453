"""
Percentile selection over repository records.

Records are ordered ascending by a sort key (repository size by default)
and picked at nearest-rank indices. Results reference the caller's record
objects; nothing is copied or mutated.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from .records import Record
from .statistics import nearest_rank_index

SortKey = Callable[[Record], float]


def size_key(record: Record) -> float:
    return record.repo_size_mb


def format_size(size_mb: float) -> str:
    """``1500`` -> ``"1.5 GB"``, ``12.34`` -> ``"12.3 MB"``."""
    if size_mb >= 1000:
        return f"{size_mb / 1000:.1f} GB"
    return f"{size_mb:.1f} MB"


@dataclass(frozen=True)
class PercentileRecord:
    """A record selected at a percentile rank."""

    record: Record
    percentile: float
    sort_value: float
    index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentile": self.percentile,
            "sort_value": self.sort_value,
            "index": self.index,
            "repository": self.record.to_dict(),
        }


def sort_records(records: Sequence[Record], key: SortKey = size_key) -> List[Record]:
    """Stable ascending sort by ``key``."""
    return sorted(records, key=key)


def select_percentiles(
    records: Sequence[Record],
    percentiles: Sequence[float],
    key: SortKey = size_key,
) -> List[PercentileRecord]:
    """Pick the record at each requested percentile.

    Args:
        records: Repository records.
        percentiles: Percentiles in ``[0, 100]``.
        key: Sort key; repository size by default.

    Returns:
        One entry per requested percentile, in request order. Empty when
        there are no records.
    """
    if not records:
        return []

    ordered = sort_records(records, key)
    selected = []
    for p in percentiles:
        index = nearest_rank_index(len(ordered), p)
        record = ordered[index]
        selected.append(PercentileRecord(record=record, percentile=p, sort_value=key(record), index=index))
    return selected


def percentile_neighborhood(
    records: Sequence[Record],
    percentile: float,
    size: int = 10,
    key: SortKey = size_key,
    ordered: Optional[List[Record]] = None,
) -> List[Record]:
    """Records around a percentile rank, in ascending order.

    Lower percentiles (<= 50) return the smallest records up to and
    including the rank; upper percentiles return ``size`` records starting
    at the rank.
    """
    if not records:
        return []

    if ordered is None:
        ordered = sort_records(records, key)
    index = nearest_rank_index(len(ordered), percentile)

    if percentile <= 50:
        return ordered[: min(size, index + 1)]
    return ordered[max(0, index): min(len(ordered), index + size)]


@dataclass
class SizeAnalysis:
    """Bottom and top size percentile groups."""

    low: Optional[PercentileRecord]
    high: Optional[PercentileRecord]
    low_group: List[Record]
    high_group: List[Record]

    def to_dict(self) -> Dict[str, Any]:
        def group(records: List[Record]) -> List[Dict[str, Any]]:
            return [
                {
                    "name": r.full_name,
                    "size_mb": r.repo_size_mb,
                    "size": format_size(r.repo_size_mb),
                    "record_count": r.record_count,
                    "is_fork": r.is_fork,
                    "is_archived": r.is_archived,
                    "is_empty": r.is_empty,
                }
                for r in records
            ]

        return {
            "low": self.low.to_dict() if self.low else None,
            "high": self.high.to_dict() if self.high else None,
            "low_group": group(self.low_group),
            "high_group": group(self.high_group),
        }


def size_analysis(
    records: Sequence[Record],
    low: float = 10,
    high: float = 90,
    size: int = 10,
) -> SizeAnalysis:
    """P10/P90-style breakdown of repositories by size."""
    ordered = sort_records(records, size_key)
    selected = select_percentiles(records, [low, high])
    return SizeAnalysis(
        low=selected[0] if selected else None,
        high=selected[1] if selected else None,
        low_group=percentile_neighborhood(records, low, size, ordered=ordered),
        high_group=percentile_neighborhood(records, high, size, ordered=ordered),
    )
