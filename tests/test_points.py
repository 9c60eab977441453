"""
Tests for scatter point builders.

Run tests:
    pytest tests/test_points.py -v
"""

from datetime import datetime, timezone

from api.shared.points import (
    ScatterKind,
    age_vs_size_points,
    build_points,
    calculate_age,
    color_for_value,
    commit_vs_collaborator_points,
)

NOW = datetime(2024, 1, 11, tzinfo=timezone.utc)


class TestCalculateAge:
    def test_whole_days_rounded_up(self):
        assert calculate_age("2024-01-01T00:00:00Z", NOW) == 10
        assert calculate_age("2024-01-01T12:00:00Z", NOW) == 10
        assert calculate_age("2023-12-31T23:00:00Z", NOW) == 11

    def test_unparseable(self):
        assert calculate_age("", NOW) == 0
        assert calculate_age("yesterday", NOW) == 0


class TestColor:
    def test_range_ends(self):
        assert color_for_value(0, 0, 10) == "hsl(120, 70%, 50%)"
        assert color_for_value(10, 0, 10) == "hsl(0, 70%, 50%)"

    def test_flat_range(self):
        assert color_for_value(5, 5, 5) == "hsl(120, 70%, 50%)"


class TestBuilders:
    def test_age_vs_size(self, make_record):
        records = [
            make_record(repo_name="a", created="2024-01-01T00:00:00Z", repo_size_mb=12.0, record_count=1.0),
            make_record(repo_name="b", created="", repo_size_mb=3.0),
            make_record(repo_name="c", created="2024-01-06T00:00:00Z", repo_size_mb=4.0, record_count=9.0),
        ]
        points = age_vs_size_points(records, now=NOW)
        assert [(p.x, p.y) for p in points] == [(10.0, 12.0), (5.0, 4.0)]
        assert points[0].label == "acme/a"
        assert points[1].to_dict()["color"] == "hsl(0, 70%, 50%)"

    def test_commit_vs_collaborator(self, make_record):
        records = [
            make_record(collaborator_count=3.0, commit_comment_count=7.0, repo_size_mb=500.0),
            make_record(collaborator_count=1.0, commit_comment_count=0.0, repo_size_mb=1.0),
        ]
        points = commit_vs_collaborator_points(records)
        assert [(p.x, p.y) for p in points] == [(3.0, 7.0), (1.0, 0.0)]
        assert points[0].extra["marker_size"] == 12.0
        assert points[1].extra["marker_size"] == 4.0

    def test_build_points_by_kind(self, make_record):
        records = [make_record(collaborator_count=2.0)]
        assert build_points(records, ScatterKind.COMMIT_COLLABORATOR)[0].x == 2.0
        assert build_points(records, "commit_collaborator")[0].x == 2.0

    def test_empty(self):
        assert age_vs_size_points([], now=NOW) == []
        assert commit_vs_collaborator_points([]) == []

    def test_non_finite_values_are_not_plotted(self, make_record):
        records = [
            make_record(repo_name="ok", collaborator_count=2.0, commit_comment_count=1.0),
            make_record(repo_name="wide", collaborator_count=float("inf"), commit_comment_count=1.0),
            make_record(repo_name="tall", collaborator_count=1.0, commit_comment_count=float("nan")),
        ]
        points = commit_vs_collaborator_points(records)
        assert [p.label for p in points] == ["acme/ok"]

    def test_infinite_size_is_not_plotted(self, make_record):
        records = [
            make_record(repo_name="a", created="2024-01-01T00:00:00Z", repo_size_mb=float("inf")),
            make_record(repo_name="b", created="2024-01-01T00:00:00Z", repo_size_mb=2.0),
        ]
        points = age_vs_size_points(records, now=NOW)
        assert [p.label for p in points] == ["acme/b"]
