"""
Leaderboard ranking.

Users are totally ordered by (totalScore, challengesSolved, currentStreak),
all descending. Exact ties keep the order in which the stats documents were
created. ``rank`` is the 1-based position in that order.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from math import ceil
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.core.exceptions import NotFoundError, RevisionConflictError, ValidationError
from app.crud.challenge import ChallengeCRUD
from app.crud.submission import SubmissionCRUD
from app.crud.user_stats import UserStatsCRUD
from app.models.challenge import ChallengeCategory
from app.models.user_stats import (
    GlobalStats, LeaderboardEntry, LeaderboardPage, Pagination, TopPerformer,
    UserAchievements, UserRank, UserStatsBase
)
from app.utils.clock import utcnow
from app.utils.rounding import round_half_up

logger = logging.getLogger(__name__)

TIMEFRAME_DAYS = {"all": None, "week": 7, "month": 30}


def leaderboard_key(stats: UserStatsBase) -> Tuple[int, int, int]:
    """Sort key putting better users first."""
    return (-stats.total_score, -stats.challenges_solved, -stats.current_streak)


def assign_ranks(stats_in_creation_order: Sequence[UserStatsBase]) -> List[Tuple[UserStatsBase, int]]:
    """Pair every stats record with its 1-based rank.

    ``sorted`` is stable, so exact ties keep their creation order.
    """
    ordered = sorted(stats_in_creation_order, key=leaderboard_key)
    return [(stats, position) for position, stats in enumerate(ordered, start=1)]


@dataclass
class RankRecomputeResult:
    total: int
    updated: int
    conflicts: int


class LeaderboardRanker:
    """Recomputes and stores every user's global rank."""

    def __init__(self, user_stats_crud: UserStatsCRUD):
        self.user_stats_crud = user_stats_crud

    def recompute_ranks(self, now: Optional[datetime] = None) -> RankRecomputeResult:
        """Rewrite rank/previousRank for users whose position changed.

        A document written concurrently is skipped and counted as a
        conflict; the caller should request another pass so ranks converge.
        """
        now = now or utcnow()
        all_stats = self.user_stats_crud.list_in_creation_order()
        updated = 0
        conflicts = 0

        for stats, new_rank in assign_ranks(all_stats):
            if stats.rank == new_rank:
                continue
            try:
                self.user_stats_crud.update_rank(stats, new_rank, now)
                updated += 1
            except RevisionConflictError:
                conflicts += 1

        if conflicts:
            logger.warning(f"Rank recomputation skipped {conflicts} concurrently modified users")
        logger.info(f"Recomputed ranks for {len(all_stats)} users, {updated} changed")
        return RankRecomputeResult(total=len(all_stats), updated=updated, conflicts=conflicts)


def _page_count(total: int, limit: int) -> int:
    return ceil(total / limit) if total else 0


class LeaderboardService:
    """Read-only leaderboard projections."""

    def __init__(
        self,
        user_stats_crud: UserStatsCRUD,
        submission_crud: SubmissionCRUD,
        challenge_crud: ChallengeCRUD
    ):
        self.user_stats_crud = user_stats_crud
        self.submission_crud = submission_crud
        self.challenge_crud = challenge_crud

    @staticmethod
    def _entries(rows: List[Dict[str, Any]], offset: int) -> List[LeaderboardEntry]:
        entries = []
        for index, row in enumerate(rows):
            entry = LeaderboardEntry.model_validate(row)
            entry.rank = offset + index + 1
            entries.append(entry)
        return entries

    def get_leaderboard(
        self,
        timeframe: str = "all",
        category: Optional[ChallengeCategory] = None,
        page: int = 1,
        limit: int = 50,
        now: Optional[datetime] = None
    ) -> LeaderboardPage:
        """Global leaderboard page, optionally limited to recently active users."""
        if category:
            return self.get_category_leaderboard(category, page, limit)
        if timeframe not in TIMEFRAME_DAYS:
            raise ValidationError("timeframe must be one of: all, week, month")

        offset = (page - 1) * limit
        active_since = None
        days = TIMEFRAME_DAYS[timeframe]
        if days:
            active_since = (now or utcnow()) - timedelta(days=days)

        rows, total = self.user_stats_crud.get_leaderboard_page(limit, offset, active_since)
        return LeaderboardPage(
            leaderboard=self._entries(rows, offset),
            pagination=Pagination(current=page, pages=_page_count(total, limit), total=total)
        )

    def get_category_leaderboard(self, category: ChallengeCategory, page: int = 1, limit: int = 50) -> LeaderboardPage:
        offset = (page - 1) * limit
        rows, total = self.user_stats_crud.get_category_page(category, limit, offset)

        entries = self._entries(rows, offset)
        for entry in entries:
            bucket = entry.category_stats[category.value]
            entry.category_score = bucket.score
            entry.category_solved = bucket.solved

        return LeaderboardPage(
            leaderboard=entries,
            category=category.value,
            pagination=Pagination(current=page, pages=_page_count(total, limit), total=total)
        )

    def get_streak_leaderboard(self, page: int = 1, limit: int = 50) -> LeaderboardPage:
        offset = (page - 1) * limit
        rows, total = self.user_stats_crud.get_streak_page(limit, offset)
        return LeaderboardPage(
            leaderboard=self._entries(rows, offset),
            pagination=Pagination(current=page, pages=_page_count(total, limit), total=total)
        )

    def get_user_rank(self, user_key: str) -> UserRank:
        """A user's stats with a rank computed from the live data."""
        row = self.user_stats_crud.get_with_user(user_key)
        if not row:
            raise NotFoundError("User stats not found")

        user_rank = UserRank.model_validate(row)
        user_rank.rank = self.user_stats_crud.count_ahead(user_rank) + 1
        return user_rank

    def get_user_achievements(self, user_key: str) -> UserAchievements:
        stats = self.user_stats_crud.get_by_user(user_key)
        if not stats:
            raise NotFoundError("User stats not found")
        return UserAchievements(
            achievements=stats.achievements,
            total_achievements=len(stats.achievements)
        )

    def get_global_stats(self) -> GlobalStats:
        total_submissions = self.submission_crud.count_submissions()
        total_solved = self.submission_crud.count_submissions(correct_only=True)
        success_rate = (
            round_half_up(total_solved / total_submissions * 100) if total_submissions else 0
        )

        def top(field: str) -> Optional[TopPerformer]:
            row = self.user_stats_crud.get_top_by(field)
            if not row or row.get("name") is None:
                return None
            return TopPerformer(name=row["name"], value=row["value"])

        return GlobalStats(
            total_users=self.user_stats_crud.count_users(),
            total_challenges=self.challenge_crud.count_available(),
            total_submissions=total_submissions,
            total_solved=total_solved,
            success_rate=success_rate,
            top_scorer=top("totalScore"),
            longest_streak=top("longestStreak"),
            most_solved=top("challengesSolved"),
            category_stats=self.user_stats_crud.count_users_per_category()
        )
