"""Integration tests for the FastAPI backend.

Uses TestClient with the service built over the in-memory store — no Redis needed.
"""

from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import FakeStore, make_sample
from trendwatch.errors import TrendAnalysisError
from trendwatch.store.base import current_key, history_key
from trendwatch.trends.service import PerformanceTrendService

BASE = "/api/v1/trends"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client(mock_settings: object, store: FakeStore) -> Generator[TestClient]:  # noqa: ARG001
    """Create a TestClient whose service is backed by the fake store."""
    with patch("trendwatch.api.main.build_service", return_value=PerformanceTrendService(store)):
        from trendwatch.api.main import app

        with TestClient(app) as tc:
            yield tc


def _seed_history(store: FakeStore, route: str, scores: list[float]) -> None:
    for i, score in enumerate(scores):
        store.seed(history_key(route, 1_760_860_800_000 + i), make_sample(route, score, f"2026-10-19T0{i}:00:00+00:00"))


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class TestAnalysisEndpoint:
    @pytest.mark.integration
    def test_returns_trends(self, client: TestClient, store: FakeStore) -> None:
        _seed_history(store, "/ilan/42", [80, 78, 65])

        resp = client.get(f"{BASE}/analysis", params={"period": "7d"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["totalTrends"] == 1
        assert body["period"] == "7d"
        assert body["trends"][0]["trend"] == "degrading"
        assert body["trends"][0]["change"] == -13

    @pytest.mark.integration
    def test_omitted_period_uses_service_default(self, mock_settings: object, store: FakeStore) -> None:  # noqa: ARG002
        _seed_history(store, "/ilan/42", [80, 78, 65])
        service = PerformanceTrendService(store, default_period="30d")
        with patch("trendwatch.api.main.build_service", return_value=service):
            from trendwatch.api.main import app

            with TestClient(app) as tc:
                resp = tc.get(f"{BASE}/analysis")

        assert resp.status_code == 200
        assert resp.json()["period"] == "30d"
        assert resp.json()["trends"][0]["period"] == "30d"

    @pytest.mark.integration
    def test_invalid_period_returns_422(self, client: TestClient) -> None:
        resp = client.get(f"{BASE}/analysis", params={"period": "2w"})
        assert resp.status_code == 422

    @pytest.mark.integration
    def test_engine_failure_returns_500(self, client: TestClient) -> None:
        with patch.object(
            PerformanceTrendService,
            "analyze_trends",
            new_callable=AsyncMock,
            side_effect=TrendAnalysisError(),
        ):
            resp = client.get(f"{BASE}/analysis")

        assert resp.status_code == 500
        assert resp.json()["detail"] == "Trend analysis failed"

    @pytest.mark.integration
    def test_store_down_returns_500(self, client: TestClient, store: FakeStore) -> None:
        store.down = True
        resp = client.get(f"{BASE}/analysis")
        assert resp.status_code == 500


class TestRouteEndpoints:
    @pytest.mark.integration
    def test_route_trend(self, client: TestClient, store: FakeStore) -> None:
        _seed_history(store, "/ilan/42", [80, 78])

        resp = client.get(f"{BASE}/route/%2Filan%2F42")

        assert resp.status_code == 200
        assert resp.json()["trend"]["route"] == "/ilan/42"

    @pytest.mark.integration
    def test_route_trend_404(self, client: TestClient) -> None:
        resp = client.get(f"{BASE}/route/unknown")
        assert resp.status_code == 404

    @pytest.mark.integration
    def test_history(self, client: TestClient, store: FakeStore) -> None:
        client.post(
            f"{BASE}/performance-data",
            json={"route": "home", "metrics": {"lcp": 1500, "cls": 0.1}, "score": 91},
        )

        resp = client.get(f"{BASE}/history/home", params={"period": "1h"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["totalRecords"] == 1
        assert body["history"][0]["score"] == 91


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


class TestAlertEndpoints:
    @pytest.mark.integration
    def test_generate_list_resolve(self, client: TestClient, store: FakeStore) -> None:
        _seed_history(store, "/a", [80, 65])
        _seed_history(store, "/b", [70, 64])

        generated = client.post(f"{BASE}/alerts/generate").json()
        assert generated["generatedAlerts"] == 2

        listed = client.get(f"{BASE}/alerts").json()
        assert listed["totalAlerts"] == 2
        assert listed["criticalAlerts"] == 1
        assert listed["highAlerts"] == 1
        assert listed["lowAlerts"] == 0

        alert_id = listed["alerts"][0]["id"]
        resp = client.put(f"{BASE}/alerts/{alert_id}/resolve")
        assert resp.status_code == 200
        assert resp.json()["alertId"] == alert_id

        assert client.get(f"{BASE}/alerts").json()["totalAlerts"] == 1

    @pytest.mark.integration
    def test_resolve_unknown_is_ok(self, client: TestClient) -> None:
        resp = client.put(f"{BASE}/alerts/alert_0_nope/resolve")
        assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Summary, ingestion, maintenance
# ---------------------------------------------------------------------------


class TestSummaryEndpoint:
    @pytest.mark.integration
    def test_summary(self, client: TestClient, store: FakeStore) -> None:
        store.seed(current_key("/"), make_sample("/", 84, "2026-10-19T09:00:00+00:00"))

        resp = client.get(f"{BASE}/summary")

        assert resp.status_code == 200
        summary = resp.json()["summary"]
        assert summary["totalRoutes"] == 1
        assert summary["averageScore"] == 84


class TestPerformanceData:
    @pytest.mark.integration
    def test_ingest_writes_snapshot_and_history(self, client: TestClient, store: FakeStore) -> None:
        resp = client.post(
            f"{BASE}/performance-data",
            json={
                "route": "/ilan/9",
                "metrics": {"lcp": 2100, "fid": 30, "cls": 0.02, "ttfb": 180},
                "score": 0,
                "userAgent": "Mozilla/5.0",
                "viewport": {"width": 390, "height": 844},
            },
        )

        assert resp.status_code == 200
        assert resp.json()["score"] == 0
        assert current_key("/ilan/9") in store.data
        assert any(k.startswith("perf:history:/ilan/9:") for k in store.data)

    @pytest.mark.integration
    @pytest.mark.parametrize(
        "payload",
        [
            {"metrics": {}, "score": 50},
            {"route": "/", "score": 50},
            {"route": "/", "metrics": {}},
            {"route": "/", "metrics": {}, "score": 150},
        ],
    )
    def test_invalid_payload_returns_422(self, client: TestClient, payload: dict) -> None:
        resp = client.post(f"{BASE}/performance-data", json=payload)
        assert resp.status_code == 422

    @pytest.mark.integration
    def test_debug_keys_and_clear(self, client: TestClient, store: FakeStore) -> None:
        _seed_history(store, "/", [80, 81])

        keys = client.get(f"{BASE}/debug/keys").json()
        assert keys["totalKeys"] == 2

        resp = client.delete(f"{BASE}/performance-data")
        assert resp.json()["clearedKeys"] == 2
        assert store.data == {}


class TestHealthAndMetrics:
    @pytest.mark.integration
    def test_healthy(self, client: TestClient) -> None:
        resp = client.get(f"{BASE}/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert {c["name"] for c in body["components"]} == {"redis", "trend_engine"}

    @pytest.mark.integration
    def test_unhealthy_when_store_down(self, client: TestClient, store: FakeStore) -> None:
        store.down = True

        resp = client.get(f"{BASE}/health")

        assert resp.status_code == 503
        assert resp.json()["status"] == "unhealthy"

    @pytest.mark.integration
    def test_metrics_exposition(self, client: TestClient) -> None:
        client.get(f"{BASE}/summary")

        resp = client.get("/metrics")

        assert resp.status_code == 200
        assert "trendwatch_requests_total" in resp.text

    @pytest.mark.integration
    def test_store_closed_on_shutdown(self, mock_settings: object, store: FakeStore) -> None:  # noqa: ARG002
        with patch("trendwatch.api.main.build_service", return_value=PerformanceTrendService(store)):
            from trendwatch.api.main import app

            with TestClient(app):
                pass

        assert store.closed is True
