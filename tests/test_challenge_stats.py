from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.models.challenge import ChallengeCreate, ChallengeInDB, ChallengeUpdate
from app.models.user_stats import UserStatsInDB

ONE_TEST_CASE = [{"input": "1 2", "expectedOutput": "3"}]


def make_challenge(**fields):
    data = dict(
        key="c1", title="Two Sum", description="Find two numbers", category="dsa",
        difficulty="easy", points=50, time_limit=30, problem_statement="...",
        input_format="...", output_format="...", constraints="...", created_by="f1",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    data.update(fields)
    return ChallengeInDB(**data)


def test_update_stats_keeps_success_rate_consistent():
    challenge = make_challenge()
    outcomes = [True, False, False, True, False, True, True]
    for solved in outcomes:
        challenge.update_stats(solved, time_taken=4.0)
        assert challenge.solved_by <= challenge.attempts
        assert challenge.success_rate == challenge.calculated_success_rate()
    assert challenge.attempts == 7
    assert challenge.solved_by == 4
    assert challenge.success_rate == 57


def test_success_rate_rounds_half_up():
    challenge = make_challenge(attempts=7, solved_by=0)
    challenge.update_stats(True, 1.0)  # 1/8 = 12.5%
    assert challenge.success_rate == 13


def test_average_time_is_running_mean_of_solves():
    challenge = make_challenge()
    challenge.update_stats(True, 10.0)
    challenge.update_stats(False, 50.0)
    challenge.update_stats(True, 20.0)
    assert challenge.average_time == pytest.approx(15.0)


def test_success_rate_zero_without_attempts():
    assert make_challenge().calculated_success_rate() == 0


def test_challenge_create_normalizes_input():
    challenge = ChallengeCreate(
        title="Ping", description="d", category="DSA", difficulty="Hard", points=10,
        time_limit=5, problem_statement="p", input_format="i", output_format="o",
        constraints="c", tags=[" Arrays ", "", "HASHING"], test_cases=ONE_TEST_CASE,
    )
    assert challenge.category.value == "dsa"
    assert challenge.difficulty.value == "hard"
    assert challenge.tags == ["arrays", "hashing"]
    assert challenge.is_published is False


@pytest.mark.parametrize("field,value", [
    ("points", 0), ("points", 1001), ("time_limit", 301), ("title", "x" * 201),
    ("hints", ["h" * 501]), ("category", "cooking"), ("test_cases", []),
])
def test_challenge_create_rejects_out_of_range(field, value):
    data = dict(
        title="Ping", description="d", category="dsa", difficulty="easy", points=10,
        time_limit=5, problem_statement="p", input_format="i", output_format="o", constraints="c",
        test_cases=ONE_TEST_CASE,
    )
    data[field] = value
    with pytest.raises(ValidationError):
        ChallengeCreate(**data)


def test_stats_document_fills_missing_buckets():
    stats = UserStatsInDB.model_validate({
        "_key": "s1",
        "_rev": "_abc",
        "userKey": "u1",
        "categoryStats": {"dsa": {"solved": 2, "attempted": 3, "score": 210}},
        "createdAt": "2024-01-01T00:00:00+00:00",
    })
    assert stats.rev == "_abc"
    assert stats.category_stats["dsa"].score == 210
    assert set(stats.category_stats) == {
        "dsa", "aptitude", "programming", "web-development", "mobile-development", "ai-ml"
    }
    assert set(stats.difficulty_stats) == {"easy", "medium", "hard", "expert"}

    document = stats.to_document()
    assert "_rev" not in document and "_key" not in document
    assert document["categoryStats"]["dsa"] == {"solved": 2, "attempted": 3, "score": 210}
    assert document["userKey"] == "u1"


def test_challenge_update_cannot_clear_test_cases():
    with pytest.raises(ValidationError):
        ChallengeUpdate(test_cases=[])
    assert ChallengeUpdate(points=20).test_cases is None
