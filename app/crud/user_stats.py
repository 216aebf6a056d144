from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
import logging

from arango.database import StandardDatabase
from arango.exceptions import (
    DocumentInsertError, DocumentReplaceError, DocumentRevisionError, DocumentUpdateError
)

from app.core.exceptions import PersistenceError, RevisionConflictError
from app.models.challenge import ChallengeCategory
from app.models.user_stats import UserStatsBase, UserStatsInDB
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

UNIQUE_CONSTRAINT_VIOLATED = 1210

# Joins the public profile of the owning user onto a stats document
_WITH_USER = """
    LET u = DOCUMENT("users", s.userKey)
    RETURN MERGE(s, {
        user: u ? KEEP(u, "_key", "name", "avatar", "department", "year") : null
    })
"""


class UserStatsCRUD:
    """User stats and leaderboard database operations."""

    def __init__(self, db: StandardDatabase):
        self.db = db
        self.collection = db.collection('user_stats')

    def get_by_user(self, user_key: str) -> Optional[UserStatsInDB]:
        cursor = self.db.aql.execute(
            "FOR s IN user_stats FILTER s.userKey == @user_key LIMIT 1 RETURN s",
            bind_vars={"user_key": user_key}
        )
        result = list(cursor)
        return UserStatsInDB.model_validate(result[0]) if result else None

    def get_or_create(self, user_key: str) -> UserStatsInDB:
        """Load a user's stats, creating an empty document on first use."""
        existing = self.get_by_user(user_key)
        if existing:
            return existing

        now = utcnow()
        stats_data = UserStatsBase(user_key=user_key).model_dump(mode="json", by_alias=True)
        stats_data["createdAt"] = now.isoformat()
        stats_data["updatedAt"] = now.isoformat()

        try:
            result = self.collection.insert(stats_data, return_new=True)
        except DocumentInsertError as e:
            if e.error_code == UNIQUE_CONSTRAINT_VIOLATED:
                # Created concurrently by another request
                return self.get_by_user(user_key)
            logger.error(f"Failed to create stats for user {user_key}: {e}")
            raise PersistenceError() from e

        return UserStatsInDB.model_validate(result['new'])

    def save(self, stats: UserStatsInDB) -> UserStatsInDB:
        """Replace the stats document if nobody wrote it since it was read."""
        stats_data = stats.to_document()
        stats_data["_key"] = stats.key
        stats_data["_rev"] = stats.rev
        stats_data["updatedAt"] = utcnow().isoformat()

        try:
            result = self.collection.replace(stats_data, check_rev=True, return_new=True)
        except DocumentRevisionError as e:
            raise RevisionConflictError(f"Stats of user {stats.user_key} changed concurrently") from e
        except DocumentReplaceError as e:
            logger.error(f"Failed to save stats of user {stats.user_key}: {e}")
            raise PersistenceError() from e

        return UserStatsInDB.model_validate(result['new'])

    def list_in_creation_order(self) -> List[UserStatsInDB]:
        """Every stats document, oldest first. This is the leaderboard tie-break order."""
        cursor = self.db.aql.execute(
            "FOR s IN user_stats SORT s.createdAt ASC, s._key ASC RETURN s"
        )
        return [UserStatsInDB.model_validate(doc) for doc in cursor]

    def update_rank(self, stats: UserStatsInDB, rank: int, ranked_at: datetime) -> None:
        """Move a user to a new rank, remembering the old one."""
        try:
            self.collection.update(
                {
                    "_key": stats.key,
                    "_rev": stats.rev,
                    "previousRank": stats.rank,
                    "rank": rank,
                    "rankUpdatedAt": ranked_at.isoformat()
                },
                check_rev=True
            )
        except DocumentRevisionError as e:
            raise RevisionConflictError(f"Stats of user {stats.user_key} changed concurrently") from e
        except DocumentUpdateError as e:
            logger.error(f"Failed to update rank of user {stats.user_key}: {e}")
            raise PersistenceError() from e

    # ------------------------------------------------------------------
    # Leaderboard reads
    # ------------------------------------------------------------------

    def get_leaderboard_page(
        self,
        limit: int,
        offset: int,
        active_since: Optional[datetime] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Stats in leaderboard order, optionally only users with a recent solve."""
        bind_vars = {"limit": limit, "offset": offset}
        active_filter = ""

        if active_since:
            active_filter = """
            LET active = (
                FOR sub IN challenge_submissions
                FILTER sub.isCorrect == true
                    AND DATE_TIMESTAMP(sub.submittedAt) >= DATE_TIMESTAMP(@since)
                RETURN DISTINCT sub.userKey
            )
            """
            bind_vars["since"] = active_since.isoformat()

        query = f"""
        {active_filter}
        LET matches = (
            FOR s IN user_stats
            {"FILTER s.userKey IN active" if active_since else ""}
            RETURN s
        )
        RETURN {{
            total: LENGTH(matches),
            items: (
                FOR s IN matches
                SORT s.totalScore DESC, s.challengesSolved DESC, s.currentStreak DESC,
                    s.createdAt ASC, s._key ASC
                LIMIT @offset, @limit
                {_WITH_USER}
            )
        }}
        """
        result = list(self.db.aql.execute(query, bind_vars=bind_vars))[0]
        return result["items"], result["total"]

    def get_category_page(
        self,
        category: ChallengeCategory,
        limit: int,
        offset: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Users with at least one solve in a category, best in category first."""
        query = f"""
        LET matches = (
            FOR s IN user_stats
            FILTER s.categoryStats[@category].solved > 0
            RETURN s
        )
        RETURN {{
            total: LENGTH(matches),
            items: (
                FOR s IN matches
                SORT s.categoryStats[@category].score DESC,
                    s.categoryStats[@category].solved DESC,
                    s.createdAt ASC, s._key ASC
                LIMIT @offset, @limit
                {_WITH_USER}
            )
        }}
        """
        result = list(self.db.aql.execute(query, bind_vars={
            "category": category.value,
            "limit": limit,
            "offset": offset
        }))[0]
        return result["items"], result["total"]

    def get_streak_page(self, limit: int, offset: int) -> Tuple[List[Dict[str, Any]], int]:
        """Stats ordered by current then longest streak."""
        query = f"""
        RETURN {{
            total: LENGTH(user_stats),
            items: (
                FOR s IN user_stats
                SORT s.currentStreak DESC, s.longestStreak DESC, s.createdAt ASC, s._key ASC
                LIMIT @offset, @limit
                {_WITH_USER}
            )
        }}
        """
        result = list(self.db.aql.execute(query, bind_vars={"limit": limit, "offset": offset}))[0]
        return result["items"], result["total"]

    def get_with_user(self, user_key: str) -> Optional[Dict[str, Any]]:
        query = f"""
        FOR s IN user_stats
        FILTER s.userKey == @user_key
        LIMIT 1
        {_WITH_USER}
        """
        result = list(self.db.aql.execute(query, bind_vars={"user_key": user_key}))
        return result[0] if result else None

    def count_ahead(self, stats: UserStatsBase) -> int:
        """Number of users strictly ahead on (score, solved, streak)."""
        cursor = self.db.aql.execute(
            """
            FOR s IN user_stats
            FILTER s.totalScore > @score
                OR (s.totalScore == @score AND s.challengesSolved > @solved)
                OR (s.totalScore == @score AND s.challengesSolved == @solved
                    AND s.currentStreak > @streak)
            COLLECT WITH COUNT INTO ahead
            RETURN ahead
            """,
            bind_vars={
                "score": stats.total_score,
                "solved": stats.challenges_solved,
                "streak": stats.current_streak
            }
        )
        result = list(cursor)
        return result[0] if result else 0

    def count_users(self) -> int:
        return self.collection.count()

    def get_top_by(self, field: str) -> Optional[Dict[str, Any]]:
        """Best user by one numeric stats field, with their name."""
        if field not in ("totalScore", "longestStreak", "challengesSolved"):
            raise ValueError(f"Unsupported field: {field}")
        query = f"""
        FOR s IN user_stats
        SORT s.{field} DESC, s.createdAt ASC
        LIMIT 1
        LET u = DOCUMENT("users", s.userKey)
        RETURN {{name: u ? u.name : null, value: s.{field}}}
        """
        result = list(self.db.aql.execute(query))
        return result[0] if result else None

    def count_users_per_category(self) -> Dict[str, int]:
        """How many users solved at least one challenge in each category."""
        query = """
        FOR category IN @categories
        LET users = LENGTH(
            FOR s IN user_stats
            FILTER s.categoryStats[category].solved > 0
            RETURN 1
        )
        RETURN {category: category, users: users}
        """
        cursor = self.db.aql.execute(query, bind_vars={
            "categories": [c.value for c in ChallengeCategory]
        })
        return {row["category"]: row["users"] for row in cursor}
