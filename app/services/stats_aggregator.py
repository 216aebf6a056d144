from datetime import date, datetime
from typing import List

from app.models.challenge import ChallengeCategory, ChallengeDifficulty
from app.models.user_stats import Achievement, UserStatsBase
from app.services.achievements import evaluate_achievements
from app.services.streaks import advance_streak


def apply_submission(
    stats: UserStatsBase,
    category: ChallengeCategory,
    difficulty: ChallengeDifficulty,
    is_correct: bool,
    score: int,
    today: date,
    now: datetime
) -> List[Achievement]:
    """Fold one submission into a user's stats.

    Attempt counters always move. Solve counters, score and the streak only
    move for correct submissions. Achievements are checked last, against the
    updated figures, and the newly unlocked ones are returned.
    """
    category_bucket = stats.category_stats[category.value]
    difficulty_bucket = stats.difficulty_stats[difficulty.value]

    stats.challenges_attempted += 1
    category_bucket.attempted += 1
    difficulty_bucket.attempted += 1

    if is_correct:
        stats.challenges_solved += 1
        stats.total_score += score
        category_bucket.solved += 1
        category_bucket.score += score
        difficulty_bucket.solved += 1
        difficulty_bucket.score += score
        advance_streak(stats, today)

    return evaluate_achievements(stats, now)
