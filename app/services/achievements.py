"""
Achievement rules.

Rules are checked in a fixed order after the counters and streak of a
submission have been applied. Each achievement is unlocked at most once per
user, keyed by name.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List

from app.models.challenge import ChallengeCategory
from app.models.user_stats import Achievement, UserStatsBase

CATEGORY_EXPERT_THRESHOLD = 10


@dataclass(frozen=True)
class AchievementRule:
    name: str
    description: str
    icon: str
    qualifies: Callable[[UserStatsBase], bool]


def _category_rule(category: ChallengeCategory) -> AchievementRule:
    return AchievementRule(
        name=f"{category.value} Expert",
        description=f"Solved {CATEGORY_EXPERT_THRESHOLD}+ {category.value} challenges!",
        icon="🏆",
        qualifies=lambda s: s.category_stats[category.value].solved >= CATEGORY_EXPERT_THRESHOLD,
    )


ACHIEVEMENT_RULES: List[AchievementRule] = [
    AchievementRule(
        name="First Solve",
        description="Solved your first challenge!",
        icon="🎉",
        qualifies=lambda s: s.challenges_solved == 1,
    ),
    AchievementRule(
        name="Week Warrior",
        description="Maintained a 7-day streak!",
        icon="🔥",
        qualifies=lambda s: s.current_streak == 7,
    ),
    AchievementRule(
        name="Monthly Master",
        description="Maintained a 30-day streak!",
        icon="👑",
        qualifies=lambda s: s.current_streak == 30,
    ),
    AchievementRule(
        name="Score Master",
        description="Earned 1000+ points!",
        icon="⭐",
        qualifies=lambda s: s.total_score >= 1000,
    ),
] + [_category_rule(category) for category in ChallengeCategory]


def evaluate_achievements(stats: UserStatsBase, now: datetime) -> List[Achievement]:
    """Append newly qualified achievements to ``stats`` and return them."""
    unlocked = []

    for rule in ACHIEVEMENT_RULES:
        if stats.has_achievement(rule.name) or not rule.qualifies(stats):
            continue
        achievement = Achievement(
            name=rule.name,
            description=rule.description,
            icon=rule.icon,
            unlocked_at=now,
        )
        stats.achievements.append(achievement)
        unlocked.append(achievement)

    return unlocked
