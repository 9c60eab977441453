"""
HTTP and WebSocket tests for the analytics API.

Run tests:
    pytest tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from api.session import performance_level, session_store
from api.system import clear_errors, log_error
from main import app

from conftest import build_csv


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def client():
    """Create a test client with an empty session."""
    session_store.clear()
    clear_errors()
    with TestClient(app) as c:
        yield c
    session_store.clear()


@pytest.fixture
def loaded_client(client):
    """Client whose session holds ten repositories of 1..10 MB."""
    text = build_csv([
        {"Repo_Name": f"repo-{i}", "Repo_Size_mb": i, "Record_Count": i * 3, "Collaborator_Count": i % 4}
        for i in range(1, 11)
    ])
    response = client.post("/api/datasets/upload", files=[("files", ("export.csv", text, "text/csv"))])
    assert response.status_code == 200
    return client


# ============================================================================
# System
# ============================================================================


class TestSystem:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_info_includes_settings(self, client):
        data = client.get("/api/system/info").json()
        assert "python" in data
        assert data["settings"]["offload_threshold"] >= 1

    def test_recent_errors(self, client):
        assert client.get("/api/system/errors").json()["count"] == 0
        log_error(endpoint="/api/x", message="boom")
        errors = client.get("/api/system/errors").json()["errors"]
        assert errors[0]["message"] == "boom"
        assert errors[0]["endpoint"] == "/api/x"


# ============================================================================
# Datasets
# ============================================================================


class TestDatasets:
    def test_upload_reports_files(self, client):
        files = [
            ("files", ("a.csv", build_csv([{"Repo_Name": "a"}]), "text/csv")),
            ("files", ("b.csv", "Org_Name\nacme\n", "text/csv")),
        ]
        response = client.post("/api/datasets/upload", files=files)
        assert response.status_code == 200
        data = response.json()
        assert data["total_records"] == 1
        assert data["has_errors"] is True
        assert [f["status"] for f in data["files"]] == ["completed", "error"]

    def test_upload_rejects_non_csv(self, client):
        response = client.post("/api/datasets/upload", files=[("files", ("data.json", "{}", "application/json"))])
        assert response.status_code == 400

    def test_upload_rejects_broken_csv(self, client):
        response = client.post("/api/datasets/upload", files=[("files", ("a.csv", "Org_Name\n", "text/csv"))])
        assert response.status_code == 400

    def test_info_and_clear(self, loaded_client):
        info = loaded_client.get("/api/datasets").json()
        assert info["total_records"] == 10
        assert info["performance_level"] == "excellent"

        assert loaded_client.delete("/api/datasets").status_code == 200
        assert loaded_client.get("/api/datasets").json()["has_data"] is False
        assert loaded_client.get("/api/analytics/summary").status_code == 404


# ============================================================================
# Direct Analytics
# ============================================================================


class TestAnalytics:
    def test_no_data(self, client):
        response = client.get("/api/analytics/statistics/Repo_Size_mb")
        assert response.status_code == 404
        assert response.json()["detail"] == "No repository data loaded"

    def test_summary(self, loaded_client):
        data = loaded_client.get("/api/analytics/summary").json()
        assert data["total_records"] == 10
        assert data["statistics"]["Repo_Size_mb"]["mean"] == 5.5

    def test_field_statistics(self, loaded_client):
        data = loaded_client.get("/api/analytics/statistics/Repo_Size_mb").json()
        assert data["statistics"] == {
            "count": 10, "mean": 5.5, "std": 2.87, "min": 1.0,
            "max": 10.0, "p25": 3.0, "p50": 5.0, "p75": 8.0,
        }

    def test_unknown_field(self, loaded_client):
        response = loaded_client.get("/api/analytics/statistics/Stars")
        assert response.status_code == 400
        assert "Stars" in response.json()["detail"]

    def test_histogram(self, loaded_client):
        response = loaded_client.get(
            "/api/analytics/histogram",
            params={"field": "Repo_Size_mb", "scaling": "minmax"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["bin_count"] == 5
        assert sum(b["original_count"] for b in data["bins"]) == 10
        assert data["cumulative_percentages"][-1] == pytest.approx(100.0)

    def test_histogram_bad_scaling(self, loaded_client):
        response = loaded_client.get("/api/analytics/histogram", params={"field": "Repo_Size_mb", "scaling": "log"})
        assert response.status_code == 400

    def test_size_analysis(self, loaded_client):
        data = loaded_client.get("/api/analytics/size-analysis").json()
        assert data["low"]["sort_value"] == 1.0
        assert data["high"]["sort_value"] == 9.0
        assert len(data["high_group"]) == 2

    def test_performance(self, loaded_client):
        data = loaded_client.get("/api/analytics/performance").json()
        assert data["level"] == "excellent"
        assert data["optimizations"] == []
        assert data["thresholds"]["background_processing"] == 10000

    def test_performance_levels(self):
        assert performance_level(999) == "excellent"
        assert performance_level(4999) == "good"
        assert performance_level(9999) == "moderate"
        assert performance_level(10000) == "challenging"


# ============================================================================
# Panels
# ============================================================================


class TestPanels:
    def test_submit_and_get(self, loaded_client):
        response = loaded_client.post(
            "/api/analytics/panels/size-histogram",
            json={"operation": "histogram", "field": "Repo_Size_mb", "scaling": "zscore"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "succeeded"
        assert data["isLoading"] is False
        assert data["error"] is None
        assert data["result"]["total"] == 10

        fetched = loaded_client.get("/api/analytics/panels/size-histogram").json()
        assert fetched["tag"] == data["tag"]

    def test_reprocess(self, loaded_client):
        first = loaded_client.post(
            "/api/analytics/panels/stats",
            json={"operation": "statistics", "field": "Record_Count"},
        ).json()
        data = loaded_client.post("/api/analytics/panels/stats/reprocess").json()
        assert data["tag"] > first["tag"]
        assert data["result"]["max"] == 30.0

    def test_scatter_panel(self, loaded_client):
        data = loaded_client.post(
            "/api/analytics/panels/scatter",
            json={"operation": "scatter", "scatter": "commit_collaborator"},
        ).json()
        assert data["result"]["strategy"] == "passthrough"
        assert data["result"]["point_count"] == 10

    def test_percentiles_panel(self, loaded_client):
        data = loaded_client.post(
            "/api/analytics/panels/pct",
            json={"operation": "percentiles", "percentiles": [10, 90]},
        ).json()
        assert [p["index"] for p in data["result"]] == [0, 8]

    def test_unknown_panel(self, client):
        assert client.get("/api/analytics/panels/nope").status_code == 404
        assert client.post("/api/analytics/panels/nope/reprocess").status_code == 404

    def test_invalid_operation(self, loaded_client):
        response = loaded_client.post("/api/analytics/panels/x", json={"operation": "cluster"})
        assert response.status_code == 400

    def test_missing_field(self, loaded_client):
        response = loaded_client.post("/api/analytics/panels/x", json={"operation": "statistics"})
        assert response.status_code == 400

    def test_clearing_data_resets_panels(self, loaded_client):
        loaded_client.post("/api/analytics/panels/stats", json={"operation": "statistics", "field": "Issue_Count"})
        loaded_client.delete("/api/datasets")
        assert loaded_client.get("/api/analytics/panels/stats").status_code == 404


# ============================================================================
# WebSocket
# ============================================================================


class TestPanelWebSocket:
    def test_panel_websocket_receives_updates(self, loaded_client):
        with loaded_client.websocket_connect("/ws/panel/stats") as ws:
            assert ws.receive_json()["type"] == "connected"
            assert ws.receive_json()["type"] == "subscribed"

            loaded_client.post(
                "/api/analytics/panels/stats",
                json={"operation": "statistics", "field": "Repo_Size_mb"},
            )
            types = {ws.receive_json()["type"] for _ in range(2)}
            assert types == {"panel_started", "panel_completed"}

    def test_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["type"] == "connected"
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"
