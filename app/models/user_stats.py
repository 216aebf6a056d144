from typing import Optional, List, Dict
from datetime import datetime, date
from pydantic import Field, field_validator

from app.models.base import CamelModel, DocumentModel
from app.models.challenge import ChallengeCategory, ChallengeDifficulty


class BucketStats(CamelModel):
    """Solved/attempted/score counters for one category or difficulty."""
    solved: int = 0
    attempted: int = 0
    score: int = 0


def _empty_buckets(keys) -> Dict[str, BucketStats]:
    return {k.value: BucketStats() for k in keys}


class Achievement(CamelModel):
    """A one-time milestone unlocked by a user."""
    name: str
    description: str
    icon: str
    unlocked_at: datetime


class UserStatsBase(CamelModel):
    """Per-user aggregate of challenge activity."""
    user_key: str
    total_score: int = Field(default=0, ge=0)
    challenges_solved: int = Field(default=0, ge=0)
    challenges_attempted: int = Field(default=0, ge=0)

    # Streak state
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_submission_date: Optional[date] = None
    streak_start_date: Optional[date] = None

    category_stats: Dict[str, BucketStats] = Field(
        default_factory=lambda: _empty_buckets(ChallengeCategory)
    )
    difficulty_stats: Dict[str, BucketStats] = Field(
        default_factory=lambda: _empty_buckets(ChallengeDifficulty)
    )
    achievements: List[Achievement] = Field(default_factory=list)

    # Leaderboard bookkeeping
    rank: int = 0
    previous_rank: int = 0
    rank_updated_at: Optional[datetime] = None

    @field_validator("category_stats")
    @classmethod
    def _fill_categories(cls, value: Dict[str, BucketStats]) -> Dict[str, BucketStats]:
        # Older documents may lack categories added later
        for category in ChallengeCategory:
            value.setdefault(category.value, BucketStats())
        return value

    @field_validator("difficulty_stats")
    @classmethod
    def _fill_difficulties(cls, value: Dict[str, BucketStats]) -> Dict[str, BucketStats]:
        for difficulty in ChallengeDifficulty:
            value.setdefault(difficulty.value, BucketStats())
        return value

    def has_achievement(self, name: str) -> bool:
        return any(a.name == name for a in self.achievements)


class UserStatsInDB(UserStatsBase, DocumentModel):
    """User stats database model."""
    created_at: datetime
    updated_at: Optional[datetime] = None


class UserStats(UserStatsBase):
    """User stats API model."""
    key: str = Field(alias="_key")
    created_at: datetime
    updated_at: Optional[datetime] = None


class PublicUser(CamelModel):
    """Profile fields shown next to leaderboard entries."""
    key: str = Field(alias="_key")
    name: str
    avatar: Optional[str] = None
    department: Optional[str] = None
    year: Optional[int] = None


class LeaderboardEntry(UserStats):
    """One ranked row of a leaderboard page."""
    user: Optional[PublicUser] = None
    category_score: Optional[int] = None
    category_solved: Optional[int] = None


class Pagination(CamelModel):
    current: int
    pages: int
    total: int


class LeaderboardPage(CamelModel):
    leaderboard: List[LeaderboardEntry]
    category: Optional[str] = None
    pagination: Pagination


class UserRank(UserStats):
    """A user's stats with their freshly computed global rank."""
    user: Optional[PublicUser] = None


class TopPerformer(CamelModel):
    name: str
    value: int


class GlobalStats(CamelModel):
    total_users: int
    total_challenges: int
    total_submissions: int
    total_solved: int
    success_rate: int
    top_scorer: Optional[TopPerformer] = None
    longest_streak: Optional[TopPerformer] = None
    most_solved: Optional[TopPerformer] = None
    category_stats: Dict[str, int]


class UserAchievements(CamelModel):
    achievements: List[Achievement]
    total_achievements: int
