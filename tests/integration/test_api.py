"""
Integration tests for the scorecard engine API.

All endpoints tested:
- System: health
- Scorecard: batch computation, per-item errors, timeouts
- Benchmarks: peer benchmark, resolution buckets, resolution summary
- Metrics: upsert, read, manual values, exclusion
"""

from datetime import timedelta

import pytest

from scorecard.models.enums import Direction
from tests.conftest import NOW, make_metric, make_observation, make_rollup


@pytest.fixture
def seeded(storage, org_tree):
    """Two reps in one benchmark group plus a team rollup."""
    storage.write_metric(
        make_metric("rep_a", owner_node_id="sales_east", benchmark_group="deals",
                    goal=20, direction=Direction.HIGHER_IS_BETTER)
    )
    storage.write_metric(make_metric("rep_b", owner_node_id="sales_west", benchmark_group="deals"))
    storage.write_metric(make_rollup("team", ["rep_a", "rep_b"]))
    storage.append_observations(
        [
            make_observation("rep_a", 12, NOW - timedelta(hours=2)),
            make_observation("rep_b", 8, NOW - timedelta(hours=2)),
        ]
    )
    return storage


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestScorecardEndpoint:
    def test_compute_scorecard(self, client, seeded):
        response = client.post(
            "/api/v1/scorecard",
            json={"metric_ids": ["team", "rep_a"], "windows": ["week"], "as_of": NOW.isoformat()},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True

        data = body["data"]
        assert data["total"] == 2
        assert data["failed"] == 0
        team, rep_a = data["results"]
        assert team["value"] == 20
        assert team["provenance"] == "rollup"
        assert rep_a["status"] == "off_track"

    def test_invalid_window_reported_per_item(self, client, seeded):
        response = client.post(
            "/api/v1/scorecard",
            json={"metric_ids": ["rep_a"], "windows": ["week", "fortnight"], "as_of": NOW.isoformat()},
        )
        assert response.status_code == 200
        results = response.json()["data"]["results"]
        assert results[0]["state"] == "ok"
        assert results[1]["state"] == "unavailable"
        assert results[1]["error"]["code"] == "invalid_window_kind"

    def test_empty_metric_list_is_rejected(self, client):
        response = client.post("/api/v1/scorecard", json={"metric_ids": []})
        assert response.status_code == 422

    def test_timeout_returns_504(self, client, seeded, monkeypatch):
        from scorecard.engine.errors import ScorecardTimeout
        from scorecard.engine.service import ScorecardService

        def expired(self, *args, **kwargs):
            raise ScorecardTimeout(0.01)

        monkeypatch.setattr(ScorecardService, "compute_scorecard", expired)
        response = client.post(
            "/api/v1/scorecard", json={"metric_ids": ["rep_a"], "timeout_seconds": 0.01}
        )
        assert response.status_code == 504


class TestBenchmarksEndpoint:
    def test_get_benchmark(self, client, seeded):
        response = client.get("/api/v1/benchmarks/rep_a", params={"as_of": NOW.isoformat()})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["population_size"] == 2
        assert data["percentile"] == 50
        assert data["max"] == 12
        assert data["comparison"]["team_average"] == 10

    def test_get_benchmark_scoped(self, client, seeded):
        response = client.get(
            "/api/v1/benchmarks/rep_a",
            params={"scope": "sales_east", "as_of": NOW.isoformat()},
        )
        assert response.json()["data"]["population_values"] == [12]

    def test_unknown_metric_returns_404(self, client):
        assert client.get("/api/v1/benchmarks/nobody").status_code == 404

    def test_invalid_window_returns_422(self, client, seeded):
        response = client.get("/api/v1/benchmarks/rep_a", params={"window": "decade"})
        assert response.status_code == 422

    def test_resolution_buckets(self, client):
        response = client.post(
            "/api/v1/benchmarks/resolution-buckets",
            json={
                "items": [
                    {"item_id": "1", "is_closed": True, "duration_ms": 3_600_000},
                    {"item_id": "2", "is_closed": True, "duration_ms": 3_600_001},
                    {"item_id": "3", "is_closed": False},
                ]
            },
        )
        assert response.status_code == 200
        buckets = {b["bucket"]: b for b in response.json()["data"]}
        assert buckets["<1h"]["count"] == 1
        assert buckets["1-4h"]["percentage"] == 50
        assert list(buckets) == ["<1h", "1-4h", "4-24h", "1-3d", "3d+"]

    def test_resolution_buckets_rejects_negative_duration(self, client):
        response = client.post(
            "/api/v1/benchmarks/resolution-buckets",
            json={"items": [{"item_id": "1", "is_closed": True, "duration_ms": -5}]},
        )
        assert response.status_code == 422

    def test_resolution_summary(self, client):
        response = client.post(
            "/api/v1/benchmarks/resolution-summary",
            json={
                "current": [
                    {"item_id": "1", "is_closed": True, "duration_ms": 1000, "owner_id": "sam"},
                    {"item_id": "2", "is_closed": False, "owner_id": "sam"},
                ],
                "previous": [{"item_id": "0", "is_closed": True, "duration_ms": 500}],
            },
        )
        data = response.json()["data"]
        assert data["total"] == 2
        assert data["open"] == 1
        assert data["total_change_pct"] == 100.0
        assert data["avg_time_to_close_change_pct"] == 100.0
        assert data["owners"][0]["owner_id"] == "sam"

    def test_resolution_summary_breakdowns(self, client):
        response = client.post(
            "/api/v1/benchmarks/resolution-summary",
            json={
                "current": [
                    {"item_id": "1", "is_closed": True, "duration_ms": 1000,
                     "first_response_ms": 400, "category": "billing", "source": "email",
                     "client_name": "acme", "created_at": NOW.isoformat()},
                ],
                "period_start": (NOW - timedelta(days=1)).isoformat(),
                "period_end": NOW.isoformat(),
            },
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["avg_first_response_ms"] == 400
        assert data["daily_volume"] == [
            {"day": "2024-05-14", "count": 0},
            {"day": "2024-05-15", "count": 1},
        ]
        assert data["categories"] == [{"category": "billing", "count": 1, "percentage": 100}]
        assert data["sources"][0]["source"] == "email"
        assert data["clients"] == [{"client_name": "acme", "program_name": None, "item_count": 1}]


class TestMetricsEndpoint:
    def test_upsert_and_read_metric(self, client):
        payload = {"metric_id": "mrr", "name": "MRR", "unit": "currency", "windows": ["mtd"]}
        assert client.put("/api/v1/metrics", json=payload).status_code == 200
        response = client.get("/api/v1/metrics/mrr")
        assert response.json()["data"]["unit"] == "currency"

    def test_invalid_metric_definition_is_rejected(self, client):
        payload = {"metric_id": "bad", "name": "Bad", "is_rollup": True}
        assert client.put("/api/v1/metrics", json=payload).status_code == 422

    def test_read_unknown_metric_returns_404(self, client):
        assert client.get("/api/v1/metrics/nope").status_code == 404

    def test_record_manual_value(self, client, seeded):
        response = client.post("/api/v1/metrics/rep_a/values", json={"value": 3, "notes": "late deal"})
        assert response.status_code == 200
        assert response.json()["data"]["source"] == "manual"
        assert len(seeded.fetch_observations("rep_a")) == 2

    def test_record_value_on_rollup_returns_422(self, client, seeded):
        response = client.post("/api/v1/metrics/team/values", json={"value": 3})
        assert response.status_code == 422

    def test_record_value_on_unknown_metric_returns_404(self, client):
        assert client.post("/api/v1/metrics/nope/values", json={"value": 3}).status_code == 404

    def test_exclude_value(self, client, seeded):
        obs_id = seeded.fetch_observations("rep_a")[0].observation_id
        assert client.delete(f"/api/v1/metrics/values/{obs_id}").status_code == 200
        assert client.delete(f"/api/v1/metrics/values/{obs_id}").status_code == 404
