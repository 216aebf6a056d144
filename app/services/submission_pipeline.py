"""
Submission pipeline.

Judges a solution, stores the submission and folds it into the challenge
and user aggregates. The stored submission is the durable record: once it
is written, failures while updating aggregates are logged and left for the
recovery sweep instead of failing the request.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt

from app.core.config import settings
from app.core.exceptions import (
    AlreadySolvedError, NotFoundError, RevisionConflictError, ValidationError
)
from app.crud.challenge import ChallengeCRUD
from app.crud.submission import SubmissionCRUD
from app.crud.user_stats import UserStatsCRUD
from app.models.challenge import ChallengeInDB
from app.models.submission import (
    SubmissionBase, SubmissionInDB, SubmissionLanguage, SubmissionStatus,
    TestResult, solved_key_for
)
from app.services.judge import Judge
from app.services.scoring import compute_score
from app.services.stats_aggregator import apply_submission
from app.services.streaks import streak_day
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

STATS_SAVE_ATTEMPTS = 5
WRONG_ANSWER_MESSAGE = "Wrong Answer"
CHALLENGE_STATS_STEP = "challengeStatsApplied"
USER_STATS_STEP = "userStatsApplied"


class SubmissionPipeline:

    def __init__(
        self,
        challenge_crud: ChallengeCRUD,
        submission_crud: SubmissionCRUD,
        user_stats_crud: UserStatsCRUD,
        judge: Judge,
        request_rank_recompute: Callable[[], None],
        clock: Callable[[], datetime] = utcnow,
        timer: Callable[[], float] = time.monotonic,
        streak_timezone: Optional[str] = None
    ):
        self.challenge_crud = challenge_crud
        self.submission_crud = submission_crud
        self.user_stats_crud = user_stats_crud
        self.judge = judge
        self.request_rank_recompute = request_rank_recompute
        self.clock = clock
        self.timer = timer
        self.streak_timezone = streak_timezone or settings.STREAK_TIMEZONE

    def submit_solution(
        self,
        user_key: str,
        challenge_key: str,
        code: str,
        language: str
    ) -> SubmissionInDB:
        """Judge and record a solution.

        Raises:
            ValidationError: blank code or unsupported language
            NotFoundError: challenge missing, inactive, unpublished or without test cases
            AlreadySolvedError: the user already has a correct submission
        """
        if not code or not code.strip():
            raise ValidationError("Code is required")
        try:
            submission_language = SubmissionLanguage((language or "").lower())
        except ValueError:
            raise ValidationError(f"Unsupported language: {language}")

        challenge = self.challenge_crud.get_challenge(challenge_key)
        if not challenge or not challenge.is_available:
            raise NotFoundError("Challenge not found")

        if self.submission_crud.find_correct_submission(user_key, challenge_key):
            raise AlreadySolvedError()

        test_cases = self.challenge_crud.get_test_cases(challenge_key)
        if not test_cases:
            raise NotFoundError("Challenge has no test cases")

        started = self.timer()
        test_results: List[TestResult] = []
        for test_case in test_cases:
            outcome = self.judge.run_test_case(
                code, submission_language.value, test_case.input, test_case.expected_output
            )
            test_results.append(TestResult(
                test_case_key=test_case.key,
                passed=outcome.passed,
                actual_output=outcome.output,
                execution_time=outcome.execution_time_ms,
                memory_usage=outcome.memory_mb
            ))
        time_taken = max(0.0, self.timer() - started) / 60

        is_correct = all(result.passed for result in test_results)
        memory_used = max(result.memory_usage for result in test_results)
        score = compute_score(challenge.points, time_taken, memory_used, is_correct)

        submission = self.submission_crud.create_submission(SubmissionBase(
            user_key=user_key,
            challenge_key=challenge_key,
            code=code,
            language=submission_language,
            status=SubmissionStatus.ACCEPTED if is_correct else SubmissionStatus.WRONG_ANSWER,
            score=score,
            time_taken=time_taken,
            memory_used=memory_used,
            test_results=test_results,
            error_message=None if is_correct else WRONG_ANSWER_MESSAGE,
            is_correct=is_correct,
            submitted_at=self.clock(),
            solved_key=solved_key_for(user_key, challenge_key) if is_correct else None
        ))

        logger.info(
            f"Submission {submission.key} by user {user_key} on challenge {challenge_key}: "
            f"{submission.status.value}, score {score}"
        )

        try:
            self._apply_aggregates(submission, challenge)
        except Exception:
            logger.error(
                f"Aggregate update failed for submission {submission.key}, left for recovery",
                exc_info=True
            )
            return submission

        self._request_ranks(submission)
        return submission

    def _apply_aggregates(self, submission: SubmissionInDB, challenge: ChallengeInDB) -> None:
        """Fold the submission into the challenge and user aggregates.

        Steps already flagged on the submission are skipped, so this can be
        called again for a submission that failed part way.
        """
        if not submission.challenge_stats_applied:
            self.challenge_crud.record_submission(
                challenge.key, submission.is_correct, submission.time_taken
            )
            self.submission_crud.mark_step_applied(submission.key, CHALLENGE_STATS_STEP)
            submission.challenge_stats_applied = True

        if not submission.user_stats_applied:
            self._update_user_stats(submission, challenge)
            self.submission_crud.mark_step_applied(submission.key, USER_STATS_STEP)
            submission.user_stats_applied = True

        self.submission_crud.mark_aggregates_applied(submission.key)
        submission.aggregates_applied = True

    def _request_ranks(self, submission: SubmissionInDB) -> None:
        if not submission.is_correct:
            return
        try:
            self.request_rank_recompute()
        except Exception:
            # Ranks are rebuilt from scratch by the next request
            logger.error(f"Rank recompute request failed after submission {submission.key}", exc_info=True)

    @retry(
        retry=retry_if_exception_type(RevisionConflictError),
        stop=stop_after_attempt(STATS_SAVE_ATTEMPTS),
        reraise=True
    )
    def _update_user_stats(self, submission: SubmissionInDB, challenge: ChallengeInDB) -> None:
        # Reloaded on every attempt so a retry re-applies onto the winner's write
        stats = self.user_stats_crud.get_or_create(submission.user_key)
        unlocked = apply_submission(
            stats,
            challenge.category,
            challenge.difficulty,
            submission.is_correct,
            submission.score,
            streak_day(submission.submitted_at, self.streak_timezone),
            self.clock()
        )
        try:
            self.user_stats_crud.save(stats)
        except RevisionConflictError:
            logger.warning(f"Revision conflict saving stats of user {submission.user_key}, retrying")
            raise

        for achievement in unlocked:
            logger.info(f"User {submission.user_key} unlocked achievement '{achievement.name}'")

    def reapply_aggregates(self, submission: SubmissionInDB) -> None:
        """Finish the aggregate updates a stored submission is missing."""
        challenge = self.challenge_crud.get_challenge(submission.challenge_key)
        if not challenge:
            raise NotFoundError("Challenge not found")
        self._apply_aggregates(submission, challenge)
        self._request_ranks(submission)

    def recover_pending_aggregates(self, grace_seconds: Optional[float] = None, limit: int = 100) -> int:
        """Re-apply aggregates of submissions that never completed them.

        Only submissions older than the grace period are picked up, so
        requests still in flight are left alone. Returns how many were
        recovered.
        """
        if grace_seconds is None:
            grace_seconds = settings.AGGREGATE_RECOVERY_GRACE_SECONDS
        cutoff = self.clock() - timedelta(seconds=grace_seconds)

        recovered = 0
        for submission in self.submission_crud.get_pending_aggregates(cutoff, limit):
            try:
                self.reapply_aggregates(submission)
                recovered += 1
            except Exception:
                logger.error(f"Recovery failed for submission {submission.key}", exc_info=True)

        if recovered:
            logger.info(f"Recovered aggregates for {recovered} submissions")
        return recovered
