"""
Root conftest.py for repository analytics tests.

This file contains shared fixtures and pytest configuration
that applies to all test modules.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Ensure the project root is in the path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from api.app_config import DashboardSettings
from api.shared.records import BOOLEAN_COLUMNS, REQUIRED_COLUMNS, Record, attribute_name


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "websocket: mark test as involving WebSocket communication",
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running",
    )


def pytest_collection_modifyitems(config, items):
    """Mark WebSocket tests based on their name."""
    for item in items:
        if "websocket" in item.name.lower():
            item.add_marker(pytest.mark.websocket)


# ============================================================================
# Record Builders
# ============================================================================


def record_defaults() -> Dict[str, Any]:
    """Column values of an unremarkable repository."""
    values: Dict[str, Any] = {column: 0.0 for column in REQUIRED_COLUMNS}
    for column in BOOLEAN_COLUMNS:
        values[column] = False
    values.update({
        "Org_Name": "acme",
        "Repo_Name": "repo",
        "Last_Push": "2024-01-01T00:00:00Z",
        "Last_Update": "2024-01-01T00:00:00Z",
        "Full_URL": "https://example.com/acme/repo",
        "Migration_Issue": "",
        "Created": "2020-01-01T00:00:00Z",
    })
    return values


def build_record(**overrides: Any) -> Record:
    """Build a ``Record`` from snake_case attribute overrides."""
    values = {attribute_name(column): value for column, value in record_defaults().items()}
    values.update(overrides)
    return Record(**values)


def build_csv(rows: List[Dict[str, Any]]) -> str:
    """Render rows (keyed by CSV column) as an export, filling defaults."""
    lines = [",".join(REQUIRED_COLUMNS)]
    for row in rows:
        values = record_defaults()
        values.update(row)
        cells = []
        for column in REQUIRED_COLUMNS:
            value = values[column]
            if isinstance(value, bool):
                cells.append("true" if value else "false")
            elif isinstance(value, float) and value.is_integer():
                cells.append(str(int(value)))
            else:
                cells.append(str(value))
        lines.append(",".join(cells))
    return "\n".join(lines) + "\n"


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def make_record():
    """Factory fixture for ``Record`` instances."""
    return build_record


@pytest.fixture
def sized_records():
    """100 repositories with sizes 1..100 MB, in shuffled order."""
    sizes = list(range(1, 101))
    sizes = sizes[50:] + sizes[:50]
    return [
        build_record(repo_name=f"repo-{int(size)}", repo_size_mb=float(size), record_count=float(size * 2))
        for size in sizes
    ]


@pytest.fixture
def fast_settings():
    """Settings with short delays and small thresholds for shell tests."""
    return DashboardSettings(
        worker_timeout=2.0,
        max_workers=2,
        offload_threshold=10,
        progressive_enabled=True,
        progressive_batch_size=100,
        progressive_batch_delay=0.0,
    )
