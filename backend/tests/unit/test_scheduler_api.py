"""
API tests for the scheduler admin router.

Covers job status, manual job runs and system metrics, including the
service API key guard that protects them.
"""

from datetime import date
from unittest.mock import patch

import pytest

from app.config import settings
from app.services import scheduler as scheduler_module

LONG_AGO = date(2000, 1, 1)


async def seed(session_maker, *rows):
    async with session_maker() as session:
        session.add_all(rows)
        await session.commit()
        return [row.id for row in rows]


class TestSchedulerStatus:
    """Tests for GET /api/scheduler/status."""

    def teardown_method(self):
        scheduler_module.scheduler.remove_all_jobs()

    @pytest.mark.asyncio
    async def test_status_when_stopped(self, api_client):
        scheduler_module.setup_scheduled_jobs()

        response = await api_client.get("/api/scheduler/status")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["running"] is False
        assert data["totalJobs"] == 2
        assert {job["id"] for job in data["jobs"]} == {"review_targets", "review_reminders"}

    @pytest.mark.asyncio
    async def test_requires_api_key(self, api_client):
        with patch.object(settings, "REVIEW_API_KEY", "secret"):
            missing = await api_client.get("/api/scheduler/status")
            wrong = await api_client.get(
                "/api/scheduler/status", headers={"X-API-Key": "wrong"}
            )
            valid = await api_client.get(
                "/api/scheduler/status", headers={"X-API-Key": "secret"}
            )

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert valid.status_code == 200

    @pytest.mark.asyncio
    async def test_no_user_header_needed(self, api_client):
        response = await api_client.get(
            "/api/scheduler/status", headers={"X-User-Id": ""}
        )

        assert response.status_code == 200


class TestRunJob:
    """Tests for POST /api/scheduler/run/{job_id}."""

    @pytest.mark.asyncio
    async def test_run_targets_job(self, api_client, session_maker, make_record):
        await seed(
            session_maker,
            make_record("p-1", 0, LONG_AGO),
            make_record("p-2", 1, LONG_AGO, user_id="user-2"),
        )

        with patch("app.db.base.async_session_maker", session_maker):
            response = await api_client.post("/api/scheduler/run/review_targets")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Job review_targets executed"
        assert body["data"]["jobId"] == "review_targets"
        assert body["data"]["counts"] == {"user-1": 1, "user-2": 1}

    @pytest.mark.asyncio
    async def test_unknown_job(self, api_client):
        response = await api_client.post("/api/scheduler/run/no-such-job")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_run_requires_api_key(self, api_client):
        with patch.object(settings, "REVIEW_API_KEY", "secret"):
            response = await api_client.post("/api/scheduler/run/review_targets")

        assert response.status_code == 401


class TestSystemMetrics:
    """Tests for GET /api/scheduler/metrics."""

    @pytest.mark.asyncio
    async def test_metrics_after_completion(self, api_client, session_maker, make_record):
        done_id, _, _ = await seed(
            session_maker,
            make_record("p-1", 0, LONG_AGO),
            make_record("p-2", 1, LONG_AGO),
            make_record("p-3", 0, LONG_AGO, user_id="user-2"),
        )
        completed = await api_client.post(
            f"/api/review/complete/{done_id}", json={"isCorrect": True}
        )
        assert completed.status_code == 200

        response = await api_client.get("/api/scheduler/metrics")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["users"] == {"total": 2, "active": 1}
        assert data["reviews"]["due"] == 2
        assert data["reviews"]["completed"] == 1
        assert data["reviews"]["correct"] == 1
        assert data["reviews"]["completionRate"] == pytest.approx(1 / 3)
        assert data["reviews"]["accuracyRate"] == 1.0
        assert data["scheduler"]["running"] is False

    @pytest.mark.asyncio
    async def test_metrics_for_day(self, api_client):
        response = await api_client.get("/api/scheduler/metrics", params={"date": "2024-03-15"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["date"] == "2024-03-15"
        assert data["reviews"]["completed"] == 0
