import asyncio
import logging
from typing import Optional

from app.core.config import settings
from app.crud.challenge import ChallengeCRUD
from app.crud.submission import SubmissionCRUD
from app.crud.user_stats import UserStatsCRUD
from app.db.database import get_db
from app.services.judge import get_judge
from app.services.leaderboard import LeaderboardRanker
from app.services.submission_pipeline import SubmissionPipeline

logger = logging.getLogger(__name__)


class RankScheduler:
    """
    Background service that recomputes leaderboard ranks on request and
    periodically recovers submissions whose aggregates were never applied.
    """

    def __init__(
        self,
        debounce_seconds: float = settings.RANK_DEBOUNCE_SECONDS,
        recovery_interval: float = settings.AGGREGATE_RECOVERY_INTERVAL_SECONDS
    ):
        self.is_running = False
        self.debounce_seconds = debounce_seconds
        self.recovery_interval = recovery_interval
        self.task: Optional[asyncio.Task] = None
        self.recovery_task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._requested: Optional[asyncio.Event] = None

    async def start(self):
        """Start the rank scheduler"""
        if self.is_running:
            logger.warning("Rank scheduler is already running")
            return

        self.is_running = True
        self._loop = asyncio.get_running_loop()
        self._requested = asyncio.Event()
        self.task = asyncio.create_task(self._run_ranker())
        self.recovery_task = asyncio.create_task(self._run_recovery())
        logger.info("Rank scheduler started")

    async def stop(self):
        """Stop the rank scheduler"""
        if not self.is_running:
            return

        self.is_running = False
        for task in (self.task, self.recovery_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self.task = None
        self.recovery_task = None
        self._loop = None
        logger.info("Rank scheduler stopped")

    def request(self):
        """Ask for a rank recomputation.

        Safe to call from worker threads. Requests arriving while one is
        pending are merged. Without a running scheduler the ranks are
        recomputed immediately in the caller's thread.
        """
        if not self.is_running or self._loop is None:
            self._recompute()
            return
        self._loop.call_soon_threadsafe(self._requested.set)

    async def _run_ranker(self):
        logger.info(f"Rank scheduler running with {self.debounce_seconds}s debounce")

        while self.is_running:
            try:
                await self._requested.wait()
                await asyncio.sleep(self.debounce_seconds)
                self._requested.clear()
                await asyncio.to_thread(self._recompute)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in rank scheduler: {e}", exc_info=True)

    async def _run_recovery(self):
        while self.is_running:
            try:
                await asyncio.sleep(self.recovery_interval)
                await asyncio.to_thread(self._recover)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in aggregate recovery: {e}", exc_info=True)

    def _recompute(self):
        ranker = LeaderboardRanker(UserStatsCRUD(get_db()))
        result = ranker.recompute_ranks()
        if result.conflicts:
            # Some users changed mid-pass; go again so ranks converge
            if self.is_running and self._loop is not None:
                self._loop.call_soon_threadsafe(self._requested.set)
            else:
                logger.warning("Rank recomputation left conflicts unresolved")

    def _recover(self):
        db = get_db()
        pipeline = SubmissionPipeline(
            ChallengeCRUD(db),
            SubmissionCRUD(db),
            UserStatsCRUD(db),
            get_judge(),
            request_rank_recompute=self.request
        )
        pipeline.recover_pending_aggregates()


# Global scheduler instance
rank_scheduler = RankScheduler()


async def start_rank_scheduler():
    """Start the rank scheduler service"""
    await rank_scheduler.start()


async def stop_rank_scheduler():
    """Stop the rank scheduler service"""
    await rank_scheduler.stop()


def request_rank_recompute():
    """Signal handed to the submission pipeline."""
    rank_scheduler.request()
