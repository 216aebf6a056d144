from typing import List, Optional, Tuple
from datetime import datetime
import logging

from arango.database import StandardDatabase
from arango.exceptions import DocumentInsertError, DocumentUpdateError

from app.core.exceptions import AlreadySolvedError, PersistenceError
from app.models.submission import SubmissionBase, SubmissionInDB
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

# ArangoDB "unique constraint violated"
UNIQUE_CONSTRAINT_VIOLATED = 1210


class SubmissionCRUD:
    """Challenge submission database operations."""

    def __init__(self, db: StandardDatabase):
        self.db = db
        self.collection = db.collection('challenge_submissions')

    def create_submission(self, submission: SubmissionBase) -> SubmissionInDB:
        """Insert a submission.

        A second correct submission for the same user and challenge trips the
        unique index on ``solvedKey`` and is reported as AlreadySolvedError.
        """
        submission_data = submission.model_dump(mode="json", by_alias=True)
        submission_data["createdAt"] = utcnow().isoformat()

        try:
            result = self.collection.insert(submission_data, return_new=True)
        except DocumentInsertError as e:
            if e.error_code == UNIQUE_CONSTRAINT_VIOLATED:
                raise AlreadySolvedError() from e
            logger.error(f"Failed to insert submission: {e}")
            raise PersistenceError() from e

        return SubmissionInDB.model_validate(result['new'])

    def find_correct_submission(self, user_key: str, challenge_key: str) -> Optional[SubmissionInDB]:
        """The user's accepted submission for a challenge, if any."""
        cursor = self.db.aql.execute(
            """
            FOR s IN challenge_submissions
            FILTER s.userKey == @user_key
                AND s.challengeKey == @challenge_key
                AND s.isCorrect == true
            LIMIT 1
            RETURN s
            """,
            bind_vars={"user_key": user_key, "challenge_key": challenge_key}
        )
        result = list(cursor)
        return SubmissionInDB.model_validate(result[0]) if result else None

    def get_user_challenge_submissions(
        self,
        user_key: str,
        challenge_key: str,
        limit: int = 10,
        offset: int = 0
    ) -> Tuple[List[SubmissionInDB], int]:
        """A user's submissions for one challenge, newest first, with total."""
        query = """
        LET matches = (
            FOR s IN challenge_submissions
            FILTER s.userKey == @user_key AND s.challengeKey == @challenge_key
            RETURN s
        )
        RETURN {
            total: LENGTH(matches),
            items: (
                FOR s IN matches
                SORT s.submittedAt DESC
                LIMIT @offset, @limit
                RETURN s
            )
        }
        """
        result = list(self.db.aql.execute(query, bind_vars={
            "user_key": user_key,
            "challenge_key": challenge_key,
            "limit": limit,
            "offset": offset
        }))[0]
        submissions = [SubmissionInDB.model_validate(doc) for doc in result["items"]]
        return submissions, result["total"]

    def mark_step_applied(self, key: str, step: str) -> None:
        """Set one aggregate progress flag (camelCase field name) on a submission."""
        try:
            self.collection.update({"_key": key, step: True})
        except DocumentUpdateError as e:
            logger.error(f"Failed to mark {step} on submission {key}: {e}")
            raise PersistenceError() from e

    def mark_aggregates_applied(self, key: str) -> None:
        self.mark_step_applied(key, "aggregatesApplied")

    def get_pending_aggregates(self, submitted_before: datetime, limit: int = 100) -> List[SubmissionInDB]:
        """Submissions whose aggregate updates never completed, oldest first."""
        cursor = self.db.aql.execute(
            """
            FOR s IN challenge_submissions
            FILTER s.aggregatesApplied == false
                AND DATE_TIMESTAMP(s.submittedAt) < DATE_TIMESTAMP(@before)
            SORT s.submittedAt ASC
            LIMIT @limit
            RETURN s
            """,
            bind_vars={"before": submitted_before.isoformat(), "limit": limit}
        )
        return [SubmissionInDB.model_validate(doc) for doc in cursor]

    def count_submissions(self, correct_only: bool = False) -> int:
        query = """
        FOR s IN challenge_submissions
        FILTER @correct_only == false OR s.isCorrect == true
        COLLECT WITH COUNT INTO total
        RETURN total
        """
        result = list(self.db.aql.execute(query, bind_vars={"correct_only": correct_only}))
        return result[0] if result else 0
