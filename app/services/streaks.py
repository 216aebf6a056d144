"""
Daily solve streaks.

A streak is the number of consecutive calendar days with at least one
accepted submission. Days are taken in the configured STREAK_TIMEZONE so
the boundary does not move with the server's local clock.
"""

from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from app.models.user_stats import UserStatsBase


@lru_cache(maxsize=32)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def streak_day(moment: datetime, tz_name: str) -> date:
    """Calendar day of ``moment`` in ``tz_name``. Naive datetimes are UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(_zone(tz_name)).date()


def advance_streak(stats: UserStatsBase, today: date) -> bool:
    """Record an accepted solve on ``today``.

    Returns False when the day was already counted, True otherwise.
    """
    last = stats.last_submission_date

    if last is None:
        stats.current_streak = 1
        stats.streak_start_date = today
    elif last >= today:
        # Same day, or an out-of-order replay of an older solve
        return False
    elif last == today - timedelta(days=1):
        stats.current_streak += 1
    else:
        stats.current_streak = 1
        stats.streak_start_date = today

    stats.longest_streak = max(stats.longest_streak, stats.current_streak)
    stats.last_submission_date = today
    return True
