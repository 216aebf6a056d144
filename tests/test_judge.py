import pytest

from app.services.judge import SimulatedJudge


def run_many(judge, n=50):
    return [judge.run_test_case("print(1)", "python", "1", "1") for _ in range(n)]


def test_seeded_judge_is_reproducible():
    first = run_many(SimulatedJudge(seed=7))
    second = run_many(SimulatedJudge(seed=7))
    assert first == second


def test_reported_figures_stay_in_range():
    for outcome in run_many(SimulatedJudge(seed=1), n=200):
        assert 0 <= outcome.execution_time_ms < SimulatedJudge.MAX_EXECUTION_TIME_MS
        assert 0 <= outcome.memory_mb < SimulatedJudge.MAX_MEMORY_MB
        assert outcome.output == ("1" if outcome.passed else "Wrong output")


def test_extreme_probabilities():
    assert all(o.passed for o in run_many(SimulatedJudge(pass_probability=1.0)))
    assert not any(o.passed for o in run_many(SimulatedJudge(pass_probability=0.0)))


@pytest.mark.parametrize("probability", [-0.1, 1.5])
def test_rejects_invalid_probability(probability):
    with pytest.raises(ValueError):
        SimulatedJudge(pass_probability=probability)
