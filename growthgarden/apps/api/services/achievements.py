"""Fixed achievement catalogue and the unlock check."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from growthgarden.libs.logging_utils import colorize
from growthgarden.libs.schemas.models import Achievement, AchievementCreate, Action, Goal
from growthgarden.libs.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GardenStats:
    goals: Sequence[Goal]
    actions: Sequence[Action]

    @property
    def completed_actions(self) -> int:
        return sum(1 for action in self.actions if action.is_completed)

    @property
    def goal_count(self) -> int:
        return len(self.goals)

    @property
    def highest_level(self) -> int:
        return max((goal.current_level for goal in self.goals), default=0)

    @property
    def plant_types(self) -> int:
        return len({goal.plant_type for goal in self.goals})


@dataclass(frozen=True)
class AchievementDefinition:
    key: str
    title: str
    description: str
    icon_name: str
    condition: Callable[[GardenStats], bool]


ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        "first-action", "First Step", "Completed your first action", "🌱",
        lambda stats: stats.completed_actions == 1,
    ),
    AchievementDefinition(
        "action-streak", "Action Hero", "Completed 5 actions", "⚡",
        lambda stats: stats.completed_actions >= 5,
    ),
    AchievementDefinition(
        "goal-setter", "Goal Setter", "Created your first goal", "🎯",
        lambda stats: stats.goal_count >= 1,
    ),
    AchievementDefinition(
        "multi-goal", "Multi-Tasker", "Created 3 goals", "🌳",
        lambda stats: stats.goal_count >= 3,
    ),
    AchievementDefinition(
        "level-up", "Level Up!", "Reached level 2 with any goal", "📈",
        lambda stats: stats.highest_level >= 2,
    ),
    AchievementDefinition(
        "master-gardener", "Master Gardener", "Reached level 5 with any goal", "👑",
        lambda stats: stats.highest_level >= 5,
    ),
    AchievementDefinition(
        "consistency", "Consistency King", "Completed 10 actions", "🔥",
        lambda stats: stats.completed_actions >= 10,
    ),
    AchievementDefinition(
        "variety", "Variety Seeker", "Created goals of different plant types", "🌺",
        lambda stats: stats.plant_types >= 3,
    ),
)


def _already_unlocked(definition: AchievementDefinition, existing: Sequence[Achievement]) -> bool:
    for achievement in existing:
        if achievement.key == definition.key:
            return True
        # Rows created before keys existed only carry a title.
        if achievement.key is None and achievement.title == definition.title:
            return True
    return False


async def check_achievements(storage: StorageBackend, user_id: str) -> list[Achievement]:
    """Create every achievement whose condition now holds. Returns the new ones."""

    stats = GardenStats(
        goals=await storage.list_goals(user_id),
        actions=await storage.list_actions(user_id),
    )
    existing = await storage.list_achievements(user_id)

    unlocked: list[Achievement] = []
    for definition in ACHIEVEMENTS:
        if _already_unlocked(definition, existing) or not definition.condition(stats):
            continue
        achievement = await storage.create_achievement(
            user_id,
            AchievementCreate(
                title=definition.title,
                description=definition.description,
                icon_name=definition.icon_name,
            ),
            key=definition.key,
        )
        unlocked.append(achievement)
        logger.info(
            colorize(f"Achievement unlocked: {definition.title}", "green"),
            extra={"event": "achievement_unlocked", "user_id": user_id, "key": definition.key},
        )
    return unlocked


async def check_achievements_safely(storage: StorageBackend, user_id: str) -> list[Achievement]:
    """Run the check as a side effect; failures are logged, never raised."""

    try:
        return await check_achievements(storage, user_id)
    except Exception:
        logger.exception("Achievement check failed for %s", user_id)
        return []


__all__ = [
    "ACHIEVEMENTS",
    "AchievementDefinition",
    "GardenStats",
    "check_achievements",
    "check_achievements_safely",
]
