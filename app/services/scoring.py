"""
Submission scoring.

A correct submission earns the challenge's base points plus two small
bonuses: up to 10% for finishing within the hour and up to 5% for staying
under 100 MB. The total never exceeds 115% of the base points.
"""

from app.utils.rounding import round_half_up

TIME_BONUS_WINDOW_MINUTES = 60
TIME_BONUS_RATE = 0.10
MEMORY_BONUS_WINDOW_MB = 100
MEMORY_BONUS_RATE = 0.05


def compute_score(
    base_points: int,
    time_taken_minutes: float,
    memory_used_mb: float,
    is_correct: bool
) -> int:
    """Points earned by a submission. Wrong submissions earn nothing."""
    if not is_correct:
        return 0

    time_factor = max(0.0, 1 - time_taken_minutes / TIME_BONUS_WINDOW_MINUTES)
    time_bonus = round_half_up(base_points * time_factor * TIME_BONUS_RATE)

    memory_factor = max(0.0, 1 - memory_used_mb / MEMORY_BONUS_WINDOW_MB)
    memory_bonus = round_half_up(base_points * memory_factor * MEMORY_BONUS_RATE)

    return base_points + time_bonus + memory_bonus
