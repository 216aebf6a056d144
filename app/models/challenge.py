from typing import List, Optional
from datetime import datetime
from enum import Enum
from pydantic import Field, field_validator

from app.models.base import CamelModel, DocumentModel
from app.utils.rounding import round_half_up


class ChallengeCategory(str, Enum):
    """Challenge categories."""
    DSA = "dsa"
    APTITUDE = "aptitude"
    PROGRAMMING = "programming"
    WEB_DEVELOPMENT = "web-development"
    MOBILE_DEVELOPMENT = "mobile-development"
    AI_ML = "ai-ml"


class ChallengeDifficulty(str, Enum):
    """Challenge difficulty levels."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class SampleInput(CamelModel):
    """Worked example shown with the problem statement."""
    input: str
    output: str
    explanation: Optional[str] = None


class TestCaseCreate(CamelModel):
    """Test case as supplied by a challenge author."""
    input: str
    expected_output: str
    is_hidden: bool = True


class TestCaseInDB(DocumentModel):
    """Test case stored as a child document of its challenge."""
    challenge_key: str
    position: int
    input: str
    expected_output: str
    is_hidden: bool = True


class ChallengeBase(CamelModel):
    """Fields an author controls."""
    title: str = Field(max_length=200)
    description: str = Field(max_length=2000)
    category: ChallengeCategory
    difficulty: ChallengeDifficulty
    points: int = Field(ge=1, le=1000)
    time_limit: int = Field(ge=1, le=300, description="Time limit in minutes")
    problem_statement: str
    input_format: str
    output_format: str
    constraints: str
    sample_input: List[SampleInput] = Field(default_factory=list)
    hints: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @field_validator("category", "difficulty", mode="before")
    @classmethod
    def _lowercase_enum(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("hints")
    @classmethod
    def _check_hints(cls, value: List[str]) -> List[str]:
        for hint in value:
            if len(hint) > 500:
                raise ValueError("Hint cannot exceed 500 characters")
        return value

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: List[str]) -> List[str]:
        return [tag.strip().lower() for tag in value if tag and tag.strip()]


class ChallengeCreate(ChallengeBase):
    """Challenge creation model."""
    test_cases: List[TestCaseCreate] = Field(min_length=1)
    solution: Optional[str] = None
    is_published: bool = False


class ChallengeUpdate(CamelModel):
    """Partial challenge update; only provided fields change."""
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    category: Optional[ChallengeCategory] = None
    difficulty: Optional[ChallengeDifficulty] = None
    points: Optional[int] = Field(default=None, ge=1, le=1000)
    time_limit: Optional[int] = Field(default=None, ge=1, le=300)
    problem_statement: Optional[str] = None
    input_format: Optional[str] = None
    output_format: Optional[str] = None
    constraints: Optional[str] = None
    sample_input: Optional[List[SampleInput]] = None
    hints: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    solution: Optional[str] = None
    is_published: Optional[bool] = None
    test_cases: Optional[List[TestCaseCreate]] = Field(default=None, min_length=1)

    @field_validator("category", "difficulty", mode="before")
    @classmethod
    def _lowercase_enum(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        return [tag.strip().lower() for tag in value if tag and tag.strip()]


class ChallengeInDB(ChallengeBase, DocumentModel):
    """Challenge database model."""
    solution: Optional[str] = None
    created_by: str
    is_active: bool = True
    is_published: bool = False
    published_at: Optional[datetime] = None

    # Aggregates maintained by update_stats()
    attempts: int = Field(default=0, ge=0)
    solved_by: int = Field(default=0, ge=0)
    average_time: float = 0.0
    success_rate: int = Field(default=0, ge=0, le=100)

    created_at: datetime
    updated_at: Optional[datetime] = None

    @property
    def is_available(self) -> bool:
        """Whether users can see and submit to this challenge."""
        return self.is_active and self.is_published

    def calculated_success_rate(self) -> int:
        if self.attempts == 0:
            return 0
        return round_half_up(self.solved_by / self.attempts * 100)

    def update_stats(self, is_solved: bool, time_taken: float) -> None:
        """Fold one submission into the aggregate counters."""
        self.attempts += 1

        if is_solved:
            self.solved_by += 1
            self.average_time = (
                (self.average_time * (self.solved_by - 1)) + time_taken
            ) / self.solved_by

        self.success_rate = self.calculated_success_rate()


class Challenge(ChallengeBase):
    """Challenge API model. Never carries test cases or the solution."""
    key: str = Field(alias="_key")
    created_by: str
    is_active: bool = True
    is_published: bool = False
    published_at: Optional[datetime] = None
    attempts: int = 0
    solved_by: int = 0
    average_time: float = 0.0
    success_rate: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_db(cls, challenge: ChallengeInDB) -> "Challenge":
        return cls.model_validate(challenge.model_dump(exclude={"solution", "rev"}))


class ChallengeFilters(CamelModel):
    """Distinct filter values of the visible challenges."""
    categories: List[str]
    difficulties: List[str]
    tags: List[str]

