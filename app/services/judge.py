"""
Judge backends.

The submission pipeline only depends on the ``Judge`` protocol, so the
simulated judge can be swapped for a sandboxed executor without touching
scoring, streaks or ranking.

The SimulatedJudge does NOT run code. Each test case passes with a fixed
probability and reports random execution time and memory, mirroring the
demo behaviour of the web app. Its notion of correctness is meaningless for
production use.
"""

import random
from dataclasses import dataclass
from typing import Optional, Protocol

from app.core.config import settings


@dataclass
class JudgeOutcome:
    """Result of one test case run."""
    passed: bool
    output: Optional[str]
    execution_time_ms: float
    memory_mb: float


class Judge(Protocol):
    def run_test_case(
        self,
        code: str,
        language: str,
        input: str,
        expected_output: str
    ) -> JudgeOutcome:
        ...


class SimulatedJudge:
    """Random pass/fail judge used until a real executor is wired in."""

    MAX_EXECUTION_TIME_MS = 1000
    MAX_MEMORY_MB = 50

    def __init__(self, pass_probability: float = 0.7, seed: Optional[int] = None):
        if not 0.0 <= pass_probability <= 1.0:
            raise ValueError("pass_probability must be between 0 and 1")
        self.pass_probability = pass_probability
        self._random = random.Random(seed)

    def run_test_case(
        self,
        code: str,
        language: str,
        input: str,
        expected_output: str
    ) -> JudgeOutcome:
        passed = self._random.random() < self.pass_probability
        return JudgeOutcome(
            passed=passed,
            output=expected_output if passed else "Wrong output",
            execution_time_ms=self._random.random() * self.MAX_EXECUTION_TIME_MS,
            memory_mb=self._random.random() * self.MAX_MEMORY_MB,
        )


_judge: Optional[Judge] = None


def get_judge() -> Judge:
    """FastAPI dependency returning the process-wide judge."""
    global _judge
    if _judge is None:
        _judge = SimulatedJudge(
            pass_probability=settings.JUDGE_PASS_PROBABILITY,
            seed=settings.JUDGE_SEED,
        )
    return _judge
