"""Action completion, leveling and plant health."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from growthgarden.libs.schemas.models import Action, CamelModel, Goal, utcnow
from growthgarden.libs.storage.base import StorageBackend

from .achievements import check_achievements_safely

logger = logging.getLogger(__name__)

ATTENTION_AFTER_HOURS = 72
WITHER_AFTER_HOURS = 168


class TreeHealth(CamelModel):
    status: Literal["healthy", "warning", "withered"]
    hours_since_watered: float
    hours_until_warning: float
    hours_until_wither: float
    days_since_watered: int


class GoalHealth(Goal):
    needs_attention: bool = False
    tree_health: TreeHealth


@dataclass
class CompletionResult:
    action: Action
    goal: Goal | None
    awarded: bool


def tree_health(last_watered: datetime, now: datetime | None = None) -> TreeHealth:
    now = now or utcnow()
    hours = max(0.0, (now - last_watered).total_seconds() / 3600)
    if hours >= WITHER_AFTER_HOURS:
        status = "withered"
    elif hours >= ATTENTION_AFTER_HOURS:
        status = "warning"
    else:
        status = "healthy"
    return TreeHealth(
        status=status,
        hours_since_watered=round(hours, 2),
        hours_until_warning=round(max(0.0, ATTENTION_AFTER_HOURS - hours), 2),
        hours_until_wither=round(max(0.0, WITHER_AFTER_HOURS - hours), 2),
        days_since_watered=int(hours // 24),
    )


async def complete_action(
    storage: StorageBackend,
    user_id: str,
    action_id: int,
    now: datetime | None = None,
) -> CompletionResult | None:
    """Complete an action and water its goal.

    Returns None when the action does not exist. Completing an action twice
    is a no-op that awards nothing.
    """

    now = now or utcnow()
    action = await storage.get_action(user_id, action_id)
    if action is None:
        return None
    if action.is_completed:
        return CompletionResult(action=action, goal=None, awarded=False)

    completed = await storage.mark_action_completed(user_id, action_id, now)
    if completed is None:
        # Lost the race to a concurrent completion.
        current = await storage.get_action(user_id, action_id)
        if current is None:
            return None
        return CompletionResult(action=current, goal=None, awarded=False)

    goal = await storage.apply_goal_reward(user_id, completed.goal_id, completed.xp_reward, now)
    if goal is not None:
        logger.info(
            "Action %s completed: goal %s now level %s (%s/%s XP)",
            action_id,
            goal.id,
            goal.current_level,
            goal.current_xp,
            goal.max_xp,
        )
    await check_achievements_safely(storage, user_id)
    return CompletionResult(action=completed, goal=goal, awarded=True)


async def check_goal_health(
    storage: StorageBackend,
    user_id: str,
    now: datetime | None = None,
) -> list[GoalHealth]:
    """Wither neglected goals and flag the ones that need water soon.

    Only active goals are considered; withered goals never come back.
    """

    now = now or utcnow()
    updated: list[GoalHealth] = []
    for goal in await storage.list_goals(user_id):
        if goal.status != "active":
            continue
        hours = (now - goal.last_watered).total_seconds() / 3600
        health = tree_health(goal.last_watered, now)
        if hours > WITHER_AFTER_HOURS:
            withered = await storage.update_goal(user_id, goal.id, {"status": "withered"})
            if withered is None:
                continue
            logger.info("Goal %s withered after %.1f hours", goal.id, hours)
            updated.append(GoalHealth(**withered.model_dump(), tree_health=health))
        elif hours > ATTENTION_AFTER_HOURS:
            updated.append(GoalHealth(**goal.model_dump(), needs_attention=True, tree_health=health))
    return updated


__all__ = [
    "ATTENTION_AFTER_HOURS",
    "CompletionResult",
    "GoalHealth",
    "TreeHealth",
    "WITHER_AFTER_HOURS",
    "check_goal_health",
    "complete_action",
    "tree_health",
]
