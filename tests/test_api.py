"""HTTP tests for the roadmap and analytics routes."""

import pytest
from httpx import AsyncClient

from builders import make_roadmap

OWNER_HEADERS = {"X-Owner-Id": "learner-1"}


def _payload(milestone_count: int = 3, task_count: int = 2) -> dict:
    draft = make_roadmap(milestone_count, task_count)
    return {
        "career": draft.career,
        "timeline": draft.timeline,
        "milestones": [m.model_dump(mode="json") for m in draft.milestones],
    }


async def _create(client: AsyncClient, headers: dict = OWNER_HEADERS, **kwargs) -> dict:
    response = await client.post("/api/roadmaps", json=_payload(**kwargs), headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_and_list(client: AsyncClient) -> None:
    created = await _create(client)
    assert created["owner_id"] == "learner-1"
    assert created["total_progress"] == 0
    assert [m["id"] for m in created["milestones"]] == ["1", "2", "3"]

    await _create(client, headers={"X-Owner-Id": "someone-else"})

    response = await client.get("/api/roadmaps", headers=OWNER_HEADERS)
    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == [created["id"]]


@pytest.mark.asyncio
async def test_missing_owner_header(client: AsyncClient) -> None:
    response = await client.get("/api/roadmaps")
    assert response.status_code == 401
    assert "X-Owner-Id" in response.json()["detail"]


@pytest.mark.asyncio
async def test_foreign_and_unknown_roadmaps(client: AsyncClient) -> None:
    created = await _create(client)

    response = await client.get(
        f"/api/roadmaps/{created['id']}", headers={"X-Owner-Id": "intruder"}
    )
    assert response.status_code == 403
    assert response.json()["error_type"] == "OwnershipError"

    response = await client.get("/api/roadmaps/999999", headers=OWNER_HEADERS)
    assert response.status_code == 404
    assert response.json()["detail"] == "Roadmap 999999 not found"


@pytest.mark.asyncio
async def test_submit_quiz(client: AsyncClient) -> None:
    created = await _create(client)
    response = await client.post(
        f"/api/roadmaps/{created['id']}/milestones/2/quiz",
        json={"score": 7, "total": 10, "strong_areas": ["loops"], "weak_areas": []},
        headers=OWNER_HEADERS,
    )
    assert response.status_code == 201
    result = response.json()
    assert result["percentage"] == 70
    assert result["passed"] is True
    assert result["milestone_completed"] is True
    assert result["new_total_progress"] == 33

    roadmap = (
        await client.get(f"/api/roadmaps/{created['id']}", headers=OWNER_HEADERS)
    ).json()
    second = roadmap["milestones"][1]
    assert second["completed"] is True
    assert all(task["completed"] for task in second["tasks"])
    assert second["quiz_reports"][0]["strong_areas"] == ["loops"]


@pytest.mark.asyncio
async def test_submit_quiz_rejects_invalid_totals(client: AsyncClient) -> None:
    created = await _create(client)
    url = f"/api/roadmaps/{created['id']}/milestones/1/quiz"

    response = await client.post(url, json={"score": 0, "total": 0}, headers=OWNER_HEADERS)
    assert response.status_code == 422

    response = await client.post(url, json={"score": 11, "total": 10}, headers=OWNER_HEADERS)
    assert response.status_code == 422

    roadmap = (
        await client.get(f"/api/roadmaps/{created['id']}", headers=OWNER_HEADERS)
    ).json()
    assert roadmap["milestones"][0]["quiz_reports"] == []


@pytest.mark.asyncio
async def test_submit_quiz_unknown_milestone(client: AsyncClient) -> None:
    created = await _create(client)
    response = await client.post(
        f"/api/roadmaps/{created['id']}/milestones/nope/quiz",
        json={"score": 5, "total": 10},
        headers=OWNER_HEADERS,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_toggle_task(client: AsyncClient) -> None:
    created = await _create(client)
    base = f"/api/roadmaps/{created['id']}/milestones/1/tasks"

    response = await client.post(f"{base}/1-2/toggle", headers=OWNER_HEADERS)
    assert response.status_code == 422
    assert response.json()["error_type"] == "TaskLockedError"

    response = await client.post(f"{base}/1-1/toggle", headers=OWNER_HEADERS)
    assert response.status_code == 200
    assert response.json()["total_progress"] == 17


@pytest.mark.asyncio
async def test_replace_roadmap(client: AsyncClient) -> None:
    created = await _create(client)
    milestones = created["milestones"]
    for task in milestones[0]["tasks"]:
        task["completed"] = True
    milestones[0]["completed"] = True

    response = await client.put(
        f"/api/roadmaps/{created['id']}",
        json={"milestones": milestones, "progress_basis": "milestones"},
        headers=OWNER_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["total_progress"] == 33

    response = await client.put(
        f"/api/roadmaps/{created['id']}",
        json={"milestones": list(reversed(milestones))},
        headers=OWNER_HEADERS,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_progress_endpoint(client: AsyncClient) -> None:
    created = await _create(client, milestone_count=2, task_count=3)
    await client.post(
        f"/api/roadmaps/{created['id']}/milestones/1/tasks/1-1/toggle", headers=OWNER_HEADERS
    )

    response = await client.get(f"/api/roadmaps/{created['id']}/progress", headers=OWNER_HEADERS)
    assert response.status_code == 200
    progress = response.json()
    assert progress["task_progress"] == 17
    assert progress["milestone_progress"] == 0
    assert progress["milestones"][0]["unlocked_task_indexes"] == [0, 1]
    assert progress["milestones"][1]["unlocked_task_indexes"] == [0]


@pytest.mark.asyncio
async def test_analytics_summary(client: AsyncClient) -> None:
    first = await _create(client)
    second = await _create(client)
    for roadmap_id, score in ((first["id"], 9), (first["id"], 3), (second["id"], 6)):
        response = await client.post(
            f"/api/roadmaps/{roadmap_id}/milestones/1/quiz",
            json={"score": score, "total": 10, "weak_areas": ["css"]},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 201

    response = await client.get("/api/analytics/summary", headers=OWNER_HEADERS)
    assert response.status_code == 200
    summary = response.json()
    assert summary["total_roadmaps"] == 2
    assert summary["total_quizzes_taken"] == 3
    assert summary["average_quiz_score"] == 60
    assert summary["weaknesses"] == [{"label": "css", "count": 3}]

    response = await client.get(
        "/api/analytics/summary",
        params={"roadmap_id": second["id"]},
        headers=OWNER_HEADERS,
    )
    assert response.json()["total_quizzes_taken"] == 1


@pytest.mark.asyncio
async def test_delete_roadmap(client: AsyncClient) -> None:
    created = await _create(client)
    response = await client.delete(f"/api/roadmaps/{created['id']}", headers=OWNER_HEADERS)
    assert response.status_code == 204

    response = await client.get(f"/api/roadmaps/{created['id']}", headers=OWNER_HEADERS)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_rejects_invalid_quiz_report(client: AsyncClient) -> None:
    payload = _payload()
    payload["milestones"][0]["quiz_reports"] = [{"score": 3, "total": 0}]

    response = await client.post("/api/roadmaps", json=payload, headers=OWNER_HEADERS)
    assert response.status_code == 422

    response = await client.get("/api/roadmaps", headers=OWNER_HEADERS)
    assert response.json() == []
    response = await client.get("/api/analytics/summary", headers=OWNER_HEADERS)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_replace_rejects_invalid_appended_report(client: AsyncClient) -> None:
    created = await _create(client)
    milestones = created["milestones"]
    milestones[0]["quiz_reports"].append({"score": 12, "total": 10})

    response = await client.put(
        f"/api/roadmaps/{created['id']}",
        json={"milestones": milestones},
        headers=OWNER_HEADERS,
    )
    assert response.status_code == 422

    response = await client.get(f"/api/roadmaps/{created['id']}/progress", headers=OWNER_HEADERS)
    assert response.status_code == 200
    assert response.json()["milestones"][0]["quiz_attempts"] == 0


@pytest.mark.asyncio
async def test_summary_with_untitled_topic(client: AsyncClient) -> None:
    payload = _payload(milestone_count=1)
    payload["milestones"][0]["title"] = "Week 1:"
    response = await client.post("/api/roadmaps", json=payload, headers=OWNER_HEADERS)
    roadmap_id = response.json()["id"]
    await client.post(
        f"/api/roadmaps/{roadmap_id}/milestones/1/quiz",
        json={"score": 8, "total": 10},
        headers=OWNER_HEADERS,
    )

    response = await client.get("/api/analytics/summary", headers=OWNER_HEADERS)
    assert response.status_code == 200
    assert response.json()["topic_performance"][0]["topic"] == "Week 1:"


@pytest.mark.asyncio
async def test_create_rejects_week_count_mismatch(client: AsyncClient) -> None:
    payload = _payload(milestone_count=2)
    payload["timeline"] = "6 weeks"
    response = await client.post("/api/roadmaps", json=payload, headers=OWNER_HEADERS)
    assert response.status_code == 422
    assert response.json()["details"] == {"expected": 6, "received": 2}
