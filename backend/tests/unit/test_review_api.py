"""
API tests for the review router.

Exercises the HTTP surface end to end (routing, identity header, request
validation, envelopes and error mapping) against the in-memory database.
"""

from datetime import date
from unittest.mock import patch

import pytest

from app.config import settings
from app.db.models_review import MasteryRecord

LONG_AGO = date(2000, 1, 1)


async def seed(session_maker, *rows):
    async with session_maker() as session:
        session.add_all(rows)
        await session.commit()
        return [row.id for row in rows]


class TestIdentity:
    """Tests for caller identity and the service API key."""

    @pytest.mark.asyncio
    async def test_missing_user_header(self, api_client):
        response = await api_client.get("/api/review/today", headers={"X-User-Id": ""})

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "unauthenticated"

    @pytest.mark.asyncio
    async def test_wrong_api_key(self, api_client):
        with patch.object(settings, "REVIEW_API_KEY", "secret"):
            response = await api_client.get(
                "/api/review/today", headers={"X-API-Key": "wrong"}
            )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_api_key(self, api_client):
        with patch.object(settings, "REVIEW_API_KEY", "secret"):
            response = await api_client.get(
                "/api/review/today", headers={"X-API-Key": "secret"}
            )

        assert response.status_code == 200


class TestQueueEndpoints:
    """Tests for the GET queue endpoints."""

    @pytest.mark.asyncio
    async def test_today_envelope_and_pagination(self, api_client, session_maker, make_record):
        await seed(
            session_maker,
            make_record("p-1", 0, LONG_AGO),
            make_record("p-2", 1, LONG_AGO),
            make_record("p-3", 2, LONG_AGO),
            make_record("p-4", 0, LONG_AGO, user_id="user-2"),
        )

        response = await api_client.get("/api/review/today", params={"page": 1, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
        assert [item["problem_id"] for item in body["data"]] == ["p-1", "p-2"]
        assert body["data"][0]["mastery_level"] == 0

    @pytest.mark.asyncio
    async def test_limit_above_maximum(self, api_client):
        response = await api_client.get("/api/review/today", params={"limit": 1000})

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_priority_carries_overdue_days(self, api_client, session_maker, make_record):
        await seed(session_maker, make_record("p-1", 1, LONG_AGO))

        response = await api_client.get("/api/review/priority")

        assert response.status_code == 200
        item = response.json()["data"][0]
        assert item["problem_id"] == "p-1"
        assert item["overdue_days"] > 0

    @pytest.mark.asyncio
    async def test_priority_negative_cap(self, api_client):
        response = await api_client.get("/api/review/priority", params={"maxOverdueDays": -1})

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_progress(self, api_client, session_maker, make_record):
        await seed(
            session_maker,
            make_record("p-1", 0, LONG_AGO),
            make_record("p-2", 3, LONG_AGO),
        )

        response = await api_client.get("/api/review/progress")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["todayTotal"] == 2
        assert data["masteryDistribution"]["level0"] == 1
        assert data["masteryDistribution"]["level3"] == 1
        assert "reviewDate" in data

    @pytest.mark.asyncio
    async def test_corrupt_row_is_server_error(self, api_client, session_maker, make_record):
        await seed(session_maker, make_record("p-1", 9, LONG_AGO))

        response = await api_client.get("/api/review/today")

        assert response.status_code == 500
        assert response.json()["error"] == "invariant_violation"


class TestCompletionEndpoints:
    """Tests for the POST completion endpoints."""

    @pytest.mark.asyncio
    async def test_complete_review(self, api_client, session_maker, make_record):
        (record_id,) = await seed(session_maker, make_record("p-1", 0, LONG_AGO))

        response = await api_client.post(
            f"/api/review/complete/{record_id}",
            json={"isCorrect": True, "timeSpent": 30, "confidenceLevel": 4},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["recordId"] == record_id
        assert data["masteryLevel"] == 1
        assert data["masteryLevelChanged"] is True
        assert data["duplicate"] is False
        assert data["nextReviewDate"] is not None

        async with session_maker() as session:
            stored = await session.get(MasteryRecord, record_id)
        assert stored.mastery_level == 1

    @pytest.mark.asyncio
    async def test_duplicate_submission_id(self, api_client, session_maker, make_record):
        (record_id,) = await seed(session_maker, make_record("p-1", 2, LONG_AGO))
        payload = {"isCorrect": False, "submissionId": "attempt-7"}

        first = await api_client.post(f"/api/review/complete/{record_id}", json=payload)
        second = await api_client.post(f"/api/review/complete/{record_id}", json=payload)

        assert first.json()["data"]["masteryLevel"] == 1
        assert second.status_code == 200
        assert second.json()["message"] == "Review already recorded"
        assert second.json()["data"]["duplicate"] is True
        assert second.json()["data"]["masteryLevel"] == 1

    @pytest.mark.asyncio
    async def test_unknown_record(self, api_client):
        response = await api_client.post(
            "/api/review/complete/does-not-exist", json={"isCorrect": True}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_other_users_record(self, api_client, session_maker, make_record):
        (record_id,) = await seed(
            session_maker, make_record("p-1", 0, LONG_AGO, user_id="user-2")
        )

        response = await api_client.post(
            f"/api/review/complete/{record_id}", json={"isCorrect": True}
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"isCorrect": "yes"},
            {"isCorrect": True, "confidenceLevel": 9},
            {"isCorrect": True, "timeSpent": -5},
            {"isCorrect": True, "userId": "user-2"},
        ],
    )
    async def test_invalid_body(self, api_client, session_maker, make_record, payload):
        (record_id,) = await seed(session_maker, make_record("p-1", 0, LONG_AGO))

        response = await api_client.post(f"/api/review/complete/{record_id}", json=payload)

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_input"

        async with session_maker() as session:
            stored = await session.get(MasteryRecord, record_id)
        assert stored.total_attempts == 0

    @pytest.mark.asyncio
    async def test_submission_enrolls_problem(self, api_client):
        response = await api_client.post(
            "/api/review/submissions",
            json={"problemId": "p-42", "problemSetId": "set-1", "isCorrect": True},
        )

        assert response.status_code == 200
        assert response.json()["data"]["masteryLevel"] == 1

        progress = await api_client.get("/api/review/progress")
        assert progress.json()["data"]["todayTotal"] == 0


class TestStatisticsEndpoints:
    """Tests for daily stats and efficiency."""

    @pytest.mark.asyncio
    async def test_daily_stats_for_day(self, api_client):
        response = await api_client.get("/api/review/stats/daily", params={"date": "2024-03-15"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["date"] == "2024-03-15"
        assert data["totalReviewsCompleted"] == 0
        assert data["averageTimeSpent"] == 0.0

    @pytest.mark.asyncio
    async def test_daily_stats_counts_completions(self, api_client):
        await api_client.post(
            "/api/review/submissions",
            json={"problemId": "p-1", "isCorrect": True, "timeSpent": 20},
        )

        response = await api_client.get("/api/review/stats/daily")

        data = response.json()["data"]
        assert data["totalReviewsCompleted"] == 1
        assert data["correctAnswers"] == 1
        assert data["masteryLevelChanges"]["increased"] == 1

    @pytest.mark.asyncio
    async def test_efficiency(self, api_client):
        response = await api_client.get(
            "/api/review/efficiency",
            params={"startDate": "2024-03-01", "endDate": "2024-03-31"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalDays"] == 31
        assert data["dailyBreakdown"] == []

    @pytest.mark.asyncio
    async def test_efficiency_reversed_range(self, api_client):
        response = await api_client.get(
            "/api/review/efficiency",
            params={"startDate": "2024-03-31", "endDate": "2024-03-01"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_efficiency_requires_dates(self, api_client):
        response = await api_client.get("/api/review/efficiency")

        assert response.status_code == 422


class TestWorkbookEndpoints:
    """Tests for workbook review endpoints."""

    @pytest.mark.asyncio
    async def test_enroll_list_and_complete(self, api_client):
        enrolled = await api_client.post(
            "/api/review/workbooks/enroll", json={"problemSetId": "set-1"}
        )
        assert enrolled.status_code == 200
        schedule = enrolled.json()["data"]
        assert schedule["review_stage"] == 0

        targets = await api_client.get("/api/review/workbooks")
        assert [s["problem_set_id"] for s in targets.json()["data"]] == ["set-1"]

        abandoned = await api_client.post(
            f"/api/review/workbooks/complete/{schedule['id']}",
            json={"success": True, "attemptedAll": False},
        )
        assert abandoned.json()["data"]["completed"] is False
        assert abandoned.json()["data"]["reviewStage"] == 0

        passed = await api_client.post(
            f"/api/review/workbooks/complete/{schedule['id']}", json={"success": True}
        )
        assert passed.json()["data"]["completed"] is True
        assert passed.json()["data"]["reviewStage"] == 1

        targets = await api_client.get("/api/review/workbooks")
        assert targets.json()["data"] == []

    @pytest.mark.asyncio
    async def test_duplicate_workbook_submission(self, api_client):
        enrolled = await api_client.post(
            "/api/review/workbooks/enroll", json={"problemSetId": "set-1"}
        )
        schedule_id = enrolled.json()["data"]["id"]
        payload = {"success": True, "submissionId": "session-1"}

        first = await api_client.post(
            f"/api/review/workbooks/complete/{schedule_id}", json=payload
        )
        second = await api_client.post(
            f"/api/review/workbooks/complete/{schedule_id}", json=payload
        )

        assert first.json()["data"]["reviewStage"] == 1
        assert first.json()["data"]["duplicate"] is False
        assert second.status_code == 200
        assert second.json()["message"] == "Workbook review already recorded"
        assert second.json()["data"]["duplicate"] is True
        assert second.json()["data"]["reviewStage"] == 1

    @pytest.mark.asyncio
    async def test_unknown_schedule(self, api_client):
        response = await api_client.post(
            "/api/review/workbooks/complete/missing", json={"success": False}
        )

        assert response.status_code == 404


class TestHealth:
    """Tests for health endpoints."""

    @pytest.mark.asyncio
    async def test_basic(self, api_client):
        response = await api_client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_detailed(self, api_client):
        response = await api_client.get("/api/health/detailed")

        body = response.json()
        assert body["dependencies"]["database"]["status"] == "healthy"
        assert body["dependencies"]["scheduler"]["status"] == "disabled"

    @pytest.mark.asyncio
    async def test_ready(self, api_client):
        response = await api_client.get("/api/health/ready")

        assert response.json() == {"ready": True}
