"""Tests for the FastAPI app (app.py) routes and store lifecycle."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

from habit_log import default_record
from mentor import (
    NOT_ENOUGH_DATA_MESSAGE,
    SERVICE_ERROR_MESSAGE,
    InsightReason,
    InsightResult,
)


# ── Health / catalog ──────────────────────────


class TestHealthCheck:
    def test_healthz_returns_200(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_alias(self, client):
        assert client.get("/health").status_code == 200


class TestHabits:
    def test_lists_catalog(self, client):
        habits = client.get("/api/habits").json()
        assert len(habits) == 6
        assert habits[0] == {"id": "exercise", "label": "Exercise"}


# ── Records ───────────────────────────────────


class TestGetLog:
    def test_unlogged_day_returns_defaults(self, client):
        data = client.get("/api/logs/2024-01-01").json()
        assert data == {"record": default_record("2024-01-01"), "saved": False}

    def test_reading_does_not_create(self, client, slot_path):
        client.get("/api/logs/2024-01-01")
        assert client.get("/api/logs").json() == {}
        assert not slot_path.exists()

    def test_bad_date_is_422(self, client):
        assert client.get("/api/logs/2024-13-01").status_code == 422


class TestUpdateLog:
    def test_partial_update(self, client):
        response = client.patch("/api/logs/2024-01-01", json={"studyMinutes": 120, "mood": 4})
        assert response.status_code == 200
        record = response.json()["record"]
        assert record["studyMinutes"] == 120
        assert record["mood"] == 4
        assert record["energy"] == 3

    def test_merge_scenario(self, client):
        client.patch("/api/logs/2024-01-01", json={"studyMinutes": 120, "instagramMinutes": 10})
        record = client.patch("/api/logs/2024-01-01", json={"instagramMinutes": 45}).json()["record"]
        expected = default_record("2024-01-01")
        expected.update(studyMinutes=120, instagramMinutes=45)
        assert record == expected

    def test_writes_slot(self, client, slot_path):
        client.patch("/api/logs/2024-01-01", json={"reflection": "solid day"})
        data = json.loads(slot_path.read_text())
        assert data["2024-01-01"]["reflection"] == "solid day"

    def test_snake_case_names_accepted(self, client):
        record = client.patch("/api/logs/2024-01-01", json={"water_intake": 8}).json()["record"]
        assert record["waterIntake"] == 8

    def test_rating_out_of_range(self, client):
        assert client.patch("/api/logs/2024-01-01", json={"mood": 6}).status_code == 422

    def test_bad_time(self, client):
        assert client.patch("/api/logs/2024-01-01", json={"bedTime": "25:00"}).status_code == 422

    def test_negative_minutes(self, client):
        assert client.patch("/api/logs/2024-01-01", json={"studyMinutes": -5}).status_code == 422

    def test_unknown_field(self, client):
        assert client.patch("/api/logs/2024-01-01", json={"steps": 9000}).status_code == 422

    def test_explicit_null_rejected(self, client):
        assert client.patch("/api/logs/2024-01-01", json={"mood": None}).status_code == 422

    def test_bad_date(self, client):
        assert client.patch("/api/logs/yesterday", json={}).status_code == 422


class TestToggleHabit:
    def test_toggle(self, client):
        url = "/api/logs/2024-01-01/habits/read/toggle"
        assert client.post(url).json()["record"]["habits"] == {"read": True}
        assert client.post(url).json()["record"]["habits"] == {"read": False}

    def test_unknown_habit_404(self, client):
        assert client.post("/api/logs/2024-01-01/habits/juggling/toggle").status_code == 404


class TestSaveInsight:
    def test_save(self, client):
        response = client.put("/api/logs/2024-01-01/insight", json={"insight": "Keep going"})
        assert response.status_code == 200
        assert client.get("/api/logs/2024-01-01").json()["record"]["aiMentorInsight"] == "Keep going"

    def test_empty_insight_rejected(self, client):
        assert client.put("/api/logs/2024-01-01/insight", json={"insight": ""}).status_code == 422


class TestLifecycle:
    def test_records_survive_restart(self, client, slot_path):
        import app as app_module
        from fastapi.testclient import TestClient

        client.patch("/api/logs/2024-01-01", json={"mood": 5})
        with patch.object(app_module, "LOG_PATH", slot_path):
            with TestClient(app_module.app) as second:
                assert second.get("/api/logs/2024-01-01").json()["record"]["mood"] == 5

    def test_corrupt_slot_starts_empty(self, slot_path):
        import app as app_module
        from fastapi.testclient import TestClient

        slot_path.write_text("{oops")
        with patch.object(app_module, "LOG_PATH", slot_path):
            with TestClient(app_module.app) as tc:
                assert tc.get("/api/logs").json() == {}

    def test_badly_typed_slot_starts_empty(self, slot_path):
        import app as app_module
        from fastapi.testclient import TestClient

        slot_path.write_text(json.dumps({"2024-01-01": {"mood": "great", "dailyGoal": None}}))
        with patch.object(app_module, "LOG_PATH", slot_path):
            with TestClient(app_module.app) as tc:
                assert tc.get("/api/logs").json() == {}
                response = tc.get("/api/analytics", params={"anchor": "2024-01-01"})
                assert response.status_code == 200


# ── Analytics / charts ────────────────────────


class TestAnalytics:
    def test_default_window(self, client):
        data = client.get("/api/analytics", params={"anchor": "2024-01-14"}).json()
        assert len(data["days"]) == 14
        assert data["window"]["end"] == "2024-01-14"

    def test_custom_window(self, client):
        client.patch("/api/logs/2024-01-05", json={"mood": 5})
        data = client.get("/api/analytics", params={"days": 5, "anchor": "2024-01-05"}).json()
        assert [d["date"] for d in data["days"]][-1] == "2024-01-05"
        assert data["days"][-1]["mood"] == 5
        assert data["summary"]["days_logged"] == 1

    def test_window_bounds(self, client):
        assert client.get("/api/analytics", params={"days": 0}).status_code == 422

    def test_bad_anchor(self, client):
        assert client.get("/api/analytics", params={"anchor": "soon"}).status_code == 422


class TestCharts:
    def test_png(self, client):
        response = client.get("/api/charts/focus.png", params={"days": 3, "anchor": "2024-01-03"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")

    def test_unknown_chart_404(self, client):
        assert client.get("/api/charts/pie.png").status_code == 404


# ── Mentor ────────────────────────────────────


class TestMentorInsight:
    def test_no_records(self, client):
        data = client.post("/api/mentor/insight", json={"anchor": "2024-01-01"}).json()
        assert data["insight"] == NOT_ENOUGH_DATA_MESSAGE
        assert data["reason"] == "insufficient_data"
        assert data["error"] is None
        assert data["records_used"] == 0

    def test_uses_latest_seven_records(self, client):
        for day in range(1, 10):
            client.patch(f"/api/logs/2024-01-{day:02d}", json={})
        mock = AsyncMock(return_value=InsightResult(InsightReason.OK, content="Nice"))
        with patch("app.generate_insight", mock):
            data = client.post("/api/mentor/insight").json()
        records = mock.await_args.args[0]
        assert [r["date"] for r in records] == [f"2024-01-{d:02d}" for d in range(3, 10)]
        assert data["insight"] == "Nice"
        assert data["records_used"] == 7

    def test_anchor_excludes_later_records(self, client):
        for day in range(1, 10):
            client.patch(f"/api/logs/2024-01-{day:02d}", json={})
        mock = AsyncMock(return_value=InsightResult(InsightReason.OK, content="Nice"))
        with patch("app.generate_insight", mock):
            data = client.post("/api/mentor/insight", json={"anchor": "2024-01-04"}).json()
        records = mock.await_args.args[0]
        assert [r["date"] for r in records] == ["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04"]
        assert data["date"] == "2024-01-04"
        assert data["records_used"] == 4

    def test_failure_sets_banner(self, client):
        client.patch("/api/logs/2024-01-01", json={})
        mock = AsyncMock(return_value=InsightResult(InsightReason.SERVICE_ERROR, detail="401"))
        with patch("app.generate_insight", mock):
            response = client.post("/api/mentor/insight", json={"anchor": "2024-01-01"})
        data = response.json()
        assert response.status_code == 200
        assert data["insight"] == SERVICE_ERROR_MESSAGE
        assert data["error"] is not None

    def test_generate_does_not_save(self, client):
        client.patch("/api/logs/2024-01-01", json={})
        mock = AsyncMock(return_value=InsightResult(InsightReason.OK, content="Nice"))
        with patch("app.generate_insight", mock):
            client.post("/api/mentor/insight", json={"anchor": "2024-01-01"})
        assert "aiMentorInsight" not in client.get("/api/logs/2024-01-01").json()["record"]


# ── 404 for unknown routes ───────────────────


class TestNotFound:
    def test_unknown_api_route_returns_404(self, client):
        assert client.get("/api/nonexistent").status_code == 404
