from typing import Optional, List
from datetime import datetime
from enum import Enum
from pydantic import Field

from app.models.base import CamelModel, DocumentModel


class SubmissionStatus(str, Enum):
    """Submission status enum."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    WRONG_ANSWER = "wrong-answer"
    TIME_LIMIT_EXCEEDED = "time-limit-exceeded"
    RUNTIME_ERROR = "runtime-error"
    COMPILATION_ERROR = "compilation-error"


class SubmissionLanguage(str, Enum):
    """Languages a solution can be submitted in."""
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    JAVA = "java"
    CPP = "cpp"
    C = "c"
    GO = "go"
    RUST = "rust"
    TYPESCRIPT = "typescript"


class SubmissionCreate(CamelModel):
    """Request body for submitting a solution."""
    code: str
    language: str


class TestResult(CamelModel):
    """Outcome of running the submission against one test case."""
    test_case_key: Optional[str] = None
    passed: bool
    actual_output: Optional[str] = None
    execution_time: float = Field(default=0.0, description="Milliseconds")
    memory_usage: float = Field(default=0.0, description="MB")


class SubmissionBase(CamelModel):
    """Base model for challenge submissions."""
    user_key: str
    challenge_key: str
    code: str
    language: SubmissionLanguage
    status: SubmissionStatus = SubmissionStatus.PENDING
    score: int = Field(default=0, ge=0)
    time_taken: float = Field(ge=0, description="Minutes")
    memory_used: float = Field(default=0.0, description="MB")
    test_results: List[TestResult] = Field(default_factory=list)
    error_message: Optional[str] = None
    is_correct: bool = False
    submitted_at: datetime

    # Set only on correct submissions; a unique sparse index on it allows a
    # single correct solve per (user, challenge).
    solved_key: Optional[str] = None

    # Progress of the aggregate updates. Each step is flagged as soon as it
    # lands so recovery never applies it twice.
    challenge_stats_applied: bool = False
    user_stats_applied: bool = False
    aggregates_applied: bool = False


class SubmissionInDB(SubmissionBase, DocumentModel):
    """Submission database model."""
    created_at: datetime

    @property
    def is_accepted(self) -> bool:
        """Check if submission was accepted."""
        return self.status == SubmissionStatus.ACCEPTED


class Submission(SubmissionBase):
    """Submission API model."""
    key: str = Field(alias="_key")
    created_at: datetime


def solved_key_for(user_key: str, challenge_key: str) -> str:
    return f"{user_key}:{challenge_key}"
