from datetime import date, datetime, timezone

from app.models.challenge import ChallengeCategory, ChallengeDifficulty
from app.models.user_stats import UserStatsBase
from app.services.achievements import ACHIEVEMENT_RULES, evaluate_achievements
from app.services.stats_aggregator import apply_submission

NOW = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


def names(achievements):
    return [a.name for a in achievements]


def test_rule_order():
    assert names(ACHIEVEMENT_RULES)[:4] == ["First Solve", "Week Warrior", "Monthly Master", "Score Master"]
    assert names(ACHIEVEMENT_RULES)[4:] == [f"{c.value} Expert" for c in ChallengeCategory]


def test_first_solve_unlocks_once():
    stats = UserStatsBase(user_key="u1", challenges_solved=1)
    unlocked = evaluate_achievements(stats, NOW)
    assert names(unlocked) == ["First Solve"]
    assert unlocked[0].icon == "🎉"
    assert unlocked[0].description == "Solved your first challenge!"
    assert unlocked[0].unlocked_at == NOW

    assert evaluate_achievements(stats, NOW) == []
    assert names(stats.achievements) == ["First Solve"]


def test_streak_achievements_fire_on_exact_lengths():
    stats = UserStatsBase(user_key="u1", challenges_solved=2, current_streak=6)
    assert evaluate_achievements(stats, NOW) == []

    stats.current_streak = 7
    assert names(evaluate_achievements(stats, NOW)) == ["Week Warrior"]

    stats.current_streak = 30
    assert names(evaluate_achievements(stats, NOW)) == ["Monthly Master"]


def test_several_rules_unlock_in_order():
    stats = UserStatsBase(user_key="u1", challenges_solved=1, current_streak=7, total_score=1000)
    stats.category_stats["ai-ml"].solved = 10
    stats.category_stats["dsa"].solved = 12
    unlocked = evaluate_achievements(stats, NOW)
    assert names(unlocked) == ["First Solve", "Week Warrior", "Score Master", "dsa Expert", "ai-ml Expert"]


def test_achievement_names_stay_unique():
    stats = UserStatsBase(user_key="u1")
    for day in range(1, 31):
        apply_submission(
            stats, ChallengeCategory.DSA, ChallengeDifficulty.EASY,
            is_correct=True, score=100, today=date(2024, 3, day), now=NOW
        )
    all_names = names(stats.achievements)
    assert len(all_names) == len(set(all_names))
    assert set(all_names) == {"First Solve", "Week Warrior", "Monthly Master", "Score Master", "dsa Expert"}


def test_apply_wrong_submission_only_counts_attempts():
    stats = UserStatsBase(user_key="u1")
    unlocked = apply_submission(
        stats, ChallengeCategory.APTITUDE, ChallengeDifficulty.HARD,
        is_correct=False, score=0, today=date(2024, 3, 4), now=NOW
    )
    assert unlocked == []
    assert stats.challenges_attempted == 1
    assert stats.category_stats["aptitude"].attempted == 1
    assert stats.difficulty_stats["hard"].attempted == 1
    assert stats.challenges_solved == 0
    assert stats.current_streak == 0
    assert stats.last_submission_date is None


def test_apply_correct_submission_updates_buckets():
    stats = UserStatsBase(user_key="u1")
    apply_submission(
        stats, ChallengeCategory.WEB_DEVELOPMENT, ChallengeDifficulty.EXPERT,
        is_correct=True, score=230, today=date(2024, 3, 4), now=NOW
    )
    assert stats.total_score == 230
    assert stats.category_stats["web-development"].model_dump() == {"solved": 1, "attempted": 1, "score": 230}
    assert stats.difficulty_stats["expert"].model_dump() == {"solved": 1, "attempted": 1, "score": 230}
    assert stats.total_score == sum(b.score for b in stats.category_stats.values())
