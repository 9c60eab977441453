"""
Scatter point builders.

Projects repository records onto two numeric axes for the age-vs-size and
commit-comments-vs-collaborators views.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .records import Record


@dataclass(frozen=True)
class Point:
    """A record projected onto two numeric axes."""

    x: float
    y: float
    label: str = ""
    extra: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "name": self.label, **self.extra}


class ScatterKind(str, Enum):
    AGE_SIZE = "age_size"
    COMMIT_COLLABORATOR = "commit_collaborator"


# Deduplication tolerance per view, in axis units
DEFAULT_TOLERANCES: Dict[ScatterKind, float] = {
    ScatterKind.AGE_SIZE: 2.0,
    ScatterKind.COMMIT_COLLABORATOR: 1.0,
}


def _parse_timestamp(value: str) -> Optional[datetime]:
    value = value.strip()
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calculate_age(created: str, now: Optional[datetime] = None) -> int:
    """Age in whole days (rounded up) since ``created``; 0 if unparseable."""
    created_at = _parse_timestamp(created)
    if created_at is None:
        return 0
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    seconds = abs((now - created_at).total_seconds())
    return math.ceil(seconds / 86400)


def color_for_value(value: float, lo: float, hi: float) -> str:
    """Green-to-red HSL color for ``value`` within ``[lo, hi]``."""
    ratio = 0.0 if hi == lo else (value - lo) / (hi - lo)
    hue = (1 - ratio) * 120
    return f"hsl({hue:g}, 70%, 50%)"


def _plottable(value: float) -> bool:
    return math.isfinite(value) and value >= 0


def age_vs_size_points(records: Sequence[Record], now: Optional[datetime] = None) -> List[Point]:
    """Age (days) against repository size, colored by record count."""
    if not records:
        return []

    counts = [r.record_count for r in records]
    lo, hi = min(counts), max(counts)

    points = []
    for repo in records:
        if not repo.created or not _plottable(repo.repo_size_mb):
            continue
        age = calculate_age(repo.created, now)
        if age <= 0:
            continue
        points.append(Point(
            x=float(age),
            y=repo.repo_size_mb,
            label=repo.full_name,
            extra={
                "age": age,
                "size": repo.repo_size_mb,
                "record_count": repo.record_count,
                "color": color_for_value(repo.record_count, lo, hi),
            },
        ))
    return points


def commit_vs_collaborator_points(records: Sequence[Record]) -> List[Point]:
    """Collaborator count against commit comment count."""
    return [
        Point(
            x=repo.collaborator_count,
            y=repo.commit_comment_count,
            label=repo.full_name,
            extra={
                "commit_comments": repo.commit_comment_count,
                "collaborators": repo.collaborator_count,
                "marker_size": max(4.0, min(12.0, repo.repo_size_mb / 10)),
            },
        )
        for repo in records
        if _plottable(repo.collaborator_count) and _plottable(repo.commit_comment_count)
    ]


BUILDERS = {
    ScatterKind.AGE_SIZE: age_vs_size_points,
    ScatterKind.COMMIT_COLLABORATOR: commit_vs_collaborator_points,
}


def build_points(records: Sequence[Record], kind: ScatterKind) -> List[Point]:
    return BUILDERS[ScatterKind(kind)](records)
