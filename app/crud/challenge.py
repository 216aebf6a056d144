from typing import List, Optional, Tuple
import logging

from tenacity import retry, retry_if_exception_type, stop_after_attempt

from arango.database import StandardDatabase
from arango.exceptions import (
    ArangoServerError, DocumentInsertError, DocumentParseError, DocumentRevisionError,
    DocumentUpdateError
)

from app.core.exceptions import NotFoundError, PersistenceError, RevisionConflictError
from app.models.challenge import (
    ChallengeCategory, ChallengeCreate, ChallengeDifficulty, ChallengeFilters,
    ChallengeInDB, ChallengeUpdate, TestCaseCreate, TestCaseInDB
)
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"createdAt", "points", "attempts", "solvedBy", "successRate", "title"}
STATS_WRITE_ATTEMPTS = 5


class ChallengeCRUD:
    """Challenge and test case database operations."""

    def __init__(self, db: StandardDatabase):
        self.db = db
        self.collection = db.collection('challenges')
        self.test_cases_collection = db.collection('challenge_test_cases')

    def create_challenge(self, challenge: ChallengeCreate, created_by: str) -> ChallengeInDB:
        """Create a challenge and its test cases."""
        now = utcnow()

        challenge_data = challenge.model_dump(mode="json", by_alias=True, exclude={"test_cases"})
        challenge_data.update({
            "createdBy": created_by,
            "isActive": True,
            "publishedAt": now.isoformat() if challenge.is_published else None,
            "attempts": 0,
            "solvedBy": 0,
            "averageTime": 0.0,
            "successRate": 0,
            "createdAt": now.isoformat(),
            "updatedAt": now.isoformat()
        })

        try:
            result = self.collection.insert(challenge_data, return_new=True)
        except DocumentInsertError as e:
            logger.error(f"Failed to insert challenge: {e}")
            raise PersistenceError() from e

        new_challenge = ChallengeInDB.model_validate(result['new'])
        self.replace_test_cases(new_challenge.key, challenge.test_cases)
        return new_challenge

    def get_challenge(self, key: str) -> Optional[ChallengeInDB]:
        """Get a challenge by key, including inactive or unpublished ones."""
        try:
            challenge_data = self.collection.get(key)
        except DocumentParseError:
            return None
        if not challenge_data:
            return None
        return ChallengeInDB.model_validate(challenge_data)

    def get_challenges(
        self,
        category: Optional[ChallengeCategory] = None,
        difficulty: Optional[ChallengeDifficulty] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[ChallengeInDB], int]:
        """Visible challenges matching the filters, plus the total match count."""
        query_filters = ["c.isActive == true", "c.isPublished == true"]
        bind_vars = {"limit": limit, "offset": offset}

        if category:
            query_filters.append("c.category == @category")
            bind_vars["category"] = category.value

        if difficulty:
            query_filters.append("c.difficulty == @difficulty")
            bind_vars["difficulty"] = difficulty.value

        if search:
            query_filters.append(
                "(CONTAINS(LOWER(c.title), @search)"
                " OR CONTAINS(LOWER(c.description), @search)"
                " OR LENGTH(c.tags[* FILTER CONTAINS(CURRENT, @search)]) > 0)"
            )
            bind_vars["search"] = search.lower()

        if sort_by not in SORTABLE_FIELDS:
            sort_by = "createdAt"
        direction = "DESC" if sort_order.lower() == "desc" else "ASC"

        query = f"""
        LET matches = (
            FOR c IN challenges
            FILTER {" AND ".join(query_filters)}
            RETURN c
        )
        RETURN {{
            total: LENGTH(matches),
            items: (
                FOR c IN matches
                SORT c.{sort_by} {direction}
                LIMIT @offset, @limit
                RETURN UNSET(c, "solution")
            )
        }}
        """

        result = list(self.db.aql.execute(query, bind_vars=bind_vars))[0]
        challenges = [ChallengeInDB.model_validate(doc) for doc in result["items"]]
        return challenges, result["total"]

    def update_challenge(self, key: str, challenge_update: ChallengeUpdate) -> ChallengeInDB:
        """Apply a partial update. Test cases are replaced when provided."""
        existing = self.get_challenge(key)
        if not existing:
            raise NotFoundError("Challenge not found")

        now = utcnow()
        update_data = challenge_update.model_dump(
            mode="json", by_alias=True, exclude_unset=True, exclude={"test_cases"}
        )
        update_data["_key"] = key
        update_data["updatedAt"] = now.isoformat()

        if challenge_update.is_published and not existing.published_at:
            update_data["publishedAt"] = now.isoformat()

        try:
            result = self.collection.update(update_data, return_new=True, merge=False)
        except DocumentUpdateError as e:
            logger.error(f"Failed to update challenge {key}: {e}")
            raise PersistenceError() from e

        if challenge_update.test_cases is not None:
            self.replace_test_cases(key, challenge_update.test_cases)

        return ChallengeInDB.model_validate(result['new'])

    def deactivate_challenge(self, key: str) -> None:
        """Soft delete: hide the challenge, keep its submissions."""
        try:
            self.collection.update({
                "_key": key,
                "isActive": False,
                "updatedAt": utcnow().isoformat()
            })
        except DocumentUpdateError as e:
            logger.error(f"Failed to deactivate challenge {key}: {e}")
            raise PersistenceError() from e

    @retry(
        retry=retry_if_exception_type(RevisionConflictError),
        stop=stop_after_attempt(STATS_WRITE_ATTEMPTS),
        reraise=True
    )
    def record_submission(self, key: str, is_solved: bool, time_taken: float) -> ChallengeInDB:
        """Fold a submission into the challenge aggregates.

        Uses a revision check so concurrent submissions do not overwrite each
        other's counts; on conflict the challenge is reloaded and retried.
        """
        challenge = self.get_challenge(key)
        if not challenge:
            raise NotFoundError("Challenge not found")

        challenge.update_stats(is_solved, time_taken)

        try:
            result = self.collection.update(
                {
                    "_key": key,
                    "_rev": challenge.rev,
                    "attempts": challenge.attempts,
                    "solvedBy": challenge.solved_by,
                    "averageTime": challenge.average_time,
                    "successRate": challenge.success_rate
                },
                check_rev=True,
                return_new=True
            )
        except DocumentRevisionError as e:
            logger.warning(f"Revision conflict updating stats of challenge {key}")
            raise RevisionConflictError(f"Stats of challenge {key} changed concurrently") from e
        except DocumentUpdateError as e:
            raise PersistenceError() from e

        return ChallengeInDB.model_validate(result['new'])

    def get_filters(self) -> ChallengeFilters:
        """Distinct categories, difficulties and tags of visible challenges."""
        query = """
        LET visible = (
            FOR c IN challenges
            FILTER c.isActive == true AND c.isPublished == true
            RETURN c
        )
        RETURN {
            categories: UNIQUE(visible[*].category),
            difficulties: UNIQUE(visible[*].difficulty),
            tags: SORTED_UNIQUE(FLATTEN(visible[*].tags))
        }
        """
        result = list(self.db.aql.execute(query))[0]
        return ChallengeFilters(
            categories=result["categories"],
            difficulties=result["difficulties"],
            tags=[tag for tag in result["tags"] if tag]
        )

    def count_available(self) -> int:
        cursor = self.db.aql.execute(
            """
            FOR c IN challenges
            FILTER c.isActive == true AND c.isPublished == true
            COLLECT WITH COUNT INTO total
            RETURN total
            """
        )
        result = list(cursor)
        return result[0] if result else 0

    # ------------------------------------------------------------------
    # Test cases (child documents keyed by challenge and position)
    # ------------------------------------------------------------------

    def get_test_cases(self, challenge_key: str) -> List[TestCaseInDB]:
        """Test cases of a challenge in stored order."""
        cursor = self.db.aql.execute(
            """
            FOR t IN challenge_test_cases
            FILTER t.challengeKey == @challenge_key
            SORT t.position ASC
            RETURN t
            """,
            bind_vars={"challenge_key": challenge_key}
        )
        return [TestCaseInDB.model_validate(doc) for doc in cursor]

    def replace_test_cases(self, challenge_key: str, test_cases: List[TestCaseCreate]) -> List[TestCaseInDB]:
        """Replace the whole ordered test case list of a challenge."""
        try:
            self.db.aql.execute(
                """
                FOR t IN challenge_test_cases
                FILTER t.challengeKey == @challenge_key
                REMOVE t IN challenge_test_cases
                """,
                bind_vars={"challenge_key": challenge_key}
            )
            documents = [
                {
                    **test_case.model_dump(mode="json", by_alias=True),
                    "challengeKey": challenge_key,
                    "position": position
                }
                for position, test_case in enumerate(test_cases)
            ]
            if documents:
                results = self.test_cases_collection.insert_many(documents)
                failures = [r for r in results if isinstance(r, ArangoServerError)]
                if failures:
                    raise failures[0]
        except ArangoServerError as e:
            logger.error(f"Failed to store test cases of challenge {challenge_key}: {e}")
            raise PersistenceError() from e

        return self.get_test_cases(challenge_key)

    def add_test_case(self, challenge_key: str, test_case: TestCaseCreate) -> TestCaseInDB:
        """Append one test case after the existing ones."""
        position = len(self.get_test_cases(challenge_key))
        try:
            result = self.test_cases_collection.insert(
                {
                    **test_case.model_dump(mode="json", by_alias=True),
                    "challengeKey": challenge_key,
                    "position": position
                },
                return_new=True
            )
        except DocumentInsertError as e:
            # The (challengeKey, position) index rejects a concurrent append
            logger.error(f"Failed to add test case to challenge {challenge_key}: {e}")
            raise PersistenceError() from e
        return TestCaseInDB.model_validate(result['new'])
