from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.main import app
from app.core.config import settings
from app.api.auth import get_user_crud
from app.api.challenges import get_challenge_crud, get_submission_crud, get_submission_pipeline
from app.api.leaderboard import get_leaderboard_service
from app.services.leaderboard import LeaderboardService

from fakes import FakeUserCRUD, PipelineHarness, make_user


client = TestClient(app)


def auth(user_key, secret=None):
    token = jwt.encode(
        {"sub": user_key, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        secret or settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def harness():
    users = {
        "stu": make_user("stu", name="Sam"),
        "fac": make_user("fac", role="faculty"),
        "fac2": make_user("fac2", role="faculty"),
        "adm": make_user("adm", role="admin"),
        "gone": make_user("gone", is_active=False),
    }
    h = PipelineHarness()
    h.stats.users = users
    h.challenges.add("c1", created_by="fac", tags=["math"])
    h.challenges.add("draft", created_by="fac", is_published=False)

    app.dependency_overrides[get_challenge_crud] = lambda: h.challenges
    app.dependency_overrides[get_submission_crud] = lambda: h.submissions
    app.dependency_overrides[get_submission_pipeline] = lambda: h.pipeline
    app.dependency_overrides[get_leaderboard_service] = lambda: LeaderboardService(
        h.stats, h.submissions, h.challenges
    )
    app.dependency_overrides[get_user_crud] = lambda: FakeUserCRUD(users)
    yield h
    app.dependency_overrides.clear()


NEW_CHALLENGE = {
    "title": "Reverse a string",
    "description": "Print the input reversed",
    "category": "programming",
    "difficulty": "Easy",
    "points": 40,
    "timeLimit": 15,
    "problemStatement": "Reverse it",
    "inputFormat": "A line",
    "outputFormat": "The line reversed",
    "constraints": "1 <= len <= 100",
    "tags": ["Strings"],
    "solution": "print(input()[::-1])",
    "isPublished": True,
    "testCases": [{"input": "abc", "expectedOutput": "cba"}],
}


def test_root():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_list_challenges_hides_solution(harness):
    response = client.get("/api/challenges/")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [c["_key"] for c in body["data"]] == ["c1"]
    assert "solution" not in body["data"][0]
    assert "testCases" not in body["data"][0]
    assert body["data"][0]["timeLimit"] == 30
    assert body["pagination"] == {"current": 1, "pages": 1, "total": 1}


def test_get_challenge(harness):
    response = client.get("/api/challenges/c1")
    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Challenge c1"

    response = client.get("/api/challenges/draft")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Challenge not found"}


def test_filters(harness):
    response = client.get("/api/challenges/filters")
    assert response.status_code == 200
    assert response.json()["data"] == {"categories": ["dsa"], "difficulties": ["medium"], "tags": ["math"]}


def test_submit_requires_token(harness):
    response = client.post("/api/challenges/c1/submit", json={"code": "x", "language": "python"})
    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.parametrize("headers", [
    {"Authorization": "Bearer not-a-jwt"},
    "wrong-secret",
    "inactive",
    "unknown",
])
def test_submit_rejects_bad_credentials(harness, headers):
    if headers == "wrong-secret":
        headers = auth("stu", secret="another-secret")
    elif headers == "inactive":
        headers = auth("gone")
    elif headers == "unknown":
        headers = auth("nobody")
    response = client.post(
        "/api/challenges/c1/submit", json={"code": "x", "language": "python"}, headers=headers
    )
    assert response.status_code == 401


def test_submit_and_duplicate(harness):
    response = client.post(
        "/api/challenges/c1/submit", json={"code": "print(1)", "language": "python"}, headers=auth("stu")
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["isCorrect"] is True
    assert data["status"] == "accepted"
    assert data["score"] == 112
    assert data["userKey"] == "stu"

    response = client.post(
        "/api/challenges/c1/submit", json={"code": "print(1)", "language": "python"}, headers=auth("stu")
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Challenge already solved"}


def test_submit_validation(harness):
    response = client.post(
        "/api/challenges/c1/submit", json={"code": "print(1)", "language": "cobol"}, headers=auth("stu")
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Unsupported language: cobol"

    response = client.post("/api/challenges/c1/submit", json={"language": "python"}, headers=auth("stu"))
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["errors"][0]["loc"][-1] == "code"


def test_my_submissions(harness):
    harness.judge.passes = [False]
    for _ in range(3):
        client.post("/api/challenges/c1/submit", json={"code": "x", "language": "go"}, headers=auth("stu"))
        harness.clock.advance(minutes=1)

    response = client.get("/api/challenges/c1/submissions?limit=2", headers=auth("stu"))
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["data"][0]["submittedAt"] > body["data"][1]["submittedAt"]
    assert body["pagination"] == {"current": 1, "pages": 2, "total": 3}

    response = client.get("/api/challenges/c1/submissions", headers=auth("fac"))
    assert response.json()["data"] == []


def test_create_challenge_requires_faculty(harness):
    response = client.post("/api/challenges/", json=NEW_CHALLENGE, headers=auth("stu"))
    assert response.status_code == 403

    response = client.post("/api/challenges/", json=NEW_CHALLENGE, headers=auth("fac"))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["createdBy"] == "fac"
    assert data["difficulty"] == "easy"
    assert data["tags"] == ["strings"]
    assert "solution" not in data
    assert [t.expected_output for t in harness.challenges.get_test_cases(data["_key"])] == ["cba"]

    response = client.post("/api/challenges/", json={**NEW_CHALLENGE, "testCases": []}, headers=auth("fac"))
    assert response.status_code == 422
    assert response.json()["errors"][0]["loc"][-1] == "testCases"


def test_update_and_delete_permissions(harness):
    response = client.put("/api/challenges/c1", json={"points": 300}, headers=auth("fac2"))
    assert response.status_code == 403

    response = client.put("/api/challenges/c1", json={"points": 300}, headers=auth("adm"))
    assert response.status_code == 200
    assert response.json()["data"]["points"] == 300
    assert response.json()["data"]["title"] == "Challenge c1"

    response = client.delete("/api/challenges/c1", headers=auth("fac"))
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.get("/api/challenges/c1").status_code == 404
    assert harness.challenges.challenges["c1"].is_active is False


def test_leaderboard_endpoints(harness):
    client.post("/api/challenges/c1/submit", json={"code": "print(1)", "language": "python"}, headers=auth("stu"))
    harness.stats.add("fac")

    response = client.get("/api/leaderboard/")
    assert response.status_code == 200
    board = response.json()["data"]
    assert [e["userKey"] for e in board["leaderboard"]] == ["stu", "fac"]
    assert board["leaderboard"][0]["rank"] == 1
    assert board["leaderboard"][0]["user"]["name"] == "Sam"
    assert board["pagination"]["total"] == 2

    response = client.get("/api/leaderboard/user/stu")
    assert response.json()["data"]["rank"] == 1
    assert response.json()["data"]["totalScore"] == 112

    response = client.get("/api/leaderboard/category/dsa")
    assert [e["categoryScore"] for e in response.json()["data"]["leaderboard"]] == [112]

    response = client.get("/api/leaderboard/streaks")
    assert response.json()["data"]["leaderboard"][0]["currentStreak"] == 1

    response = client.get("/api/leaderboard/stats")
    stats = response.json()["data"]
    assert stats["totalSolved"] == 1
    assert stats["topScorer"] == {"name": "Sam", "value": 112}

    response = client.get("/api/leaderboard/achievements/stu")
    assert response.json()["data"]["totalAchievements"] == 1


def test_leaderboard_errors(harness):
    assert client.get("/api/leaderboard/?timeframe=year").status_code == 422
    assert client.get("/api/leaderboard/category/cooking").status_code == 422

    response = client.get("/api/leaderboard/user/nobody")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "User stats not found"}


def test_test_case_management(harness):
    response = client.post(
        "/api/challenges/c1/test-cases",
        json={"input": "5 5", "expectedOutput": "10", "isHidden": False},
        headers=auth("fac"),
    )
    assert response.status_code == 201
    assert response.json()["data"]["position"] == 2

    response = client.get("/api/challenges/c1/test-cases", headers=auth("fac"))
    cases = response.json()["data"]
    assert [c["position"] for c in cases] == [0, 1, 2]
    assert cases[2]["expectedOutput"] == "10"
    assert cases[2]["isHidden"] is False

    assert client.get("/api/challenges/c1/test-cases", headers=auth("stu")).status_code == 403
