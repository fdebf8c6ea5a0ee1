"""In-process storage used when no database is configured."""

from __future__ import annotations

import itertools
from datetime import datetime
from typing import Any, Iterator, Mapping

from growthgarden.libs.schemas.models import (
    Achievement,
    AchievementCreate,
    Action,
    ActionCreate,
    DailyHabit,
    DailyHabitCreate,
    Goal,
    GoalCreate,
    User,
    utcnow,
)

from .base import StorageBackend, level_after_reward


class MemoryStore(StorageBackend):
    """Dict-backed storage. Data lives for the lifetime of the process."""

    kind = "memory"
    persistent = False

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._goals: dict[int, Goal] = {}
        self._actions: dict[int, Action] = {}
        self._achievements: dict[int, Achievement] = {}
        self._habits: dict[int, DailyHabit] = {}
        self._goal_ids: Iterator[int] = itertools.count(1)
        self._action_ids: Iterator[int] = itertools.count(1)
        self._achievement_ids: Iterator[int] = itertools.count(1)
        self._habit_ids: Iterator[int] = itertools.count(1)

    # Users -----------------------------------------------------------------

    async def ensure_user(
        self,
        user_id: str,
        email: str,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> User:
        existing = self._users.get(user_id)
        if existing is not None:
            return existing
        user = User(id=user_id, email=email, name=name, avatar_url=avatar_url)
        self._users[user_id] = user
        return user

    async def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def update_user(self, user_id: str, changes: Mapping[str, Any]) -> User | None:
        user = self._users.get(user_id)
        if user is None:
            return None
        allowed = {k: v for k, v in changes.items() if k in {"name", "avatar_url"}}
        updated = user.model_copy(update=allowed)
        self._users[user_id] = updated
        return updated

    # Goals -----------------------------------------------------------------

    async def list_goals(self, user_id: str) -> list[Goal]:
        return [goal for goal in self._goals.values() if goal.user_id == user_id]

    async def get_goal(self, user_id: str, goal_id: int) -> Goal | None:
        goal = self._goals.get(goal_id)
        if goal is None or goal.user_id != user_id:
            return None
        return goal

    async def create_goal(self, user_id: str, payload: GoalCreate) -> Goal:
        now = utcnow()
        goal = Goal(
            id=next(self._goal_ids),
            user_id=user_id,
            name=payload.name,
            description=payload.description,
            plant_type=payload.plant_type,
            timeline_months=payload.timeline_months,
            last_watered=now,
            created_at=now,
        )
        self._goals[goal.id] = goal
        return goal

    async def update_goal(
        self, user_id: str, goal_id: int, changes: Mapping[str, Any]
    ) -> Goal | None:
        goal = await self.get_goal(user_id, goal_id)
        if goal is None:
            return None
        updated = goal.model_copy(update=_strip_identity(changes))
        self._goals[goal_id] = updated
        return updated

    async def delete_goal(self, user_id: str, goal_id: int) -> bool:
        if await self.get_goal(user_id, goal_id) is None:
            return False
        del self._goals[goal_id]
        for action_id in [a.id for a in self._actions.values() if a.goal_id == goal_id]:
            del self._actions[action_id]
        return True

    async def apply_goal_reward(
        self, user_id: str, goal_id: int, xp: int, watered_at: datetime
    ) -> Goal | None:
        goal = await self.get_goal(user_id, goal_id)
        if goal is None:
            return None
        level, remaining = level_after_reward(goal.current_level, goal.current_xp, goal.max_xp, xp)
        updated = goal.model_copy(
            update={"current_level": level, "current_xp": remaining, "last_watered": watered_at}
        )
        self._goals[goal_id] = updated
        return updated

    # Actions ---------------------------------------------------------------

    async def list_actions(self, user_id: str) -> list[Action]:
        return [action for action in self._actions.values() if action.user_id == user_id]

    async def list_actions_by_goal(self, user_id: str, goal_id: int) -> list[Action]:
        return [
            action
            for action in self._actions.values()
            if action.user_id == user_id and action.goal_id == goal_id
        ]

    async def get_action(self, user_id: str, action_id: int) -> Action | None:
        action = self._actions.get(action_id)
        if action is None or action.user_id != user_id:
            return None
        return action

    async def create_action(self, user_id: str, payload: ActionCreate) -> Action:
        action = Action(
            id=next(self._action_ids),
            goal_id=payload.goal_id,
            user_id=user_id,
            title=payload.title,
            description=payload.description,
            xp_reward=payload.xp_reward,
            personal_reward=payload.personal_reward,
            due_date=payload.due_date,
        )
        self._actions[action.id] = action
        return action

    async def update_action(
        self, user_id: str, action_id: int, changes: Mapping[str, Any]
    ) -> Action | None:
        action = await self.get_action(user_id, action_id)
        if action is None:
            return None
        updated = action.model_copy(update=_strip_identity(changes))
        self._actions[action_id] = updated
        return updated

    async def delete_action(self, user_id: str, action_id: int) -> bool:
        if await self.get_action(user_id, action_id) is None:
            return False
        del self._actions[action_id]
        return True

    async def mark_action_completed(
        self, user_id: str, action_id: int, at: datetime
    ) -> Action | None:
        action = await self.get_action(user_id, action_id)
        if action is None or action.is_completed:
            return None
        updated = action.model_copy(update={"is_completed": True, "completed_at": at})
        self._actions[action_id] = updated
        return updated

    # Achievements ----------------------------------------------------------

    async def list_achievements(self, user_id: str) -> list[Achievement]:
        return [a for a in self._achievements.values() if a.user_id == user_id]

    async def create_achievement(
        self, user_id: str, payload: AchievementCreate, *, key: str | None = None
    ) -> Achievement:
        if key:
            for existing in self._achievements.values():
                if existing.user_id == user_id and existing.key == key:
                    return existing
        achievement = Achievement(
            id=next(self._achievement_ids),
            user_id=user_id,
            key=key,
            title=payload.title,
            description=payload.description,
            icon_name=payload.icon_name,
        )
        self._achievements[achievement.id] = achievement
        return achievement

    # Daily habits ----------------------------------------------------------

    def _find_habit(self, user_id: str, day: str) -> DailyHabit | None:
        for habit in self._habits.values():
            if habit.user_id == user_id and habit.date == day:
                return habit
        return None

    async def get_daily_habit(self, user_id: str, day: str) -> DailyHabit | None:
        return self._find_habit(user_id, day)

    async def list_daily_habits(self, user_id: str, start: str, end: str) -> list[DailyHabit]:
        habits = [
            habit
            for habit in self._habits.values()
            if habit.user_id == user_id and start <= habit.date <= end
        ]
        return sorted(habits, key=lambda habit: habit.date)

    async def create_daily_habit(self, user_id: str, payload: DailyHabitCreate) -> DailyHabit:
        values = payload.model_dump(exclude={"date"})
        existing = self._find_habit(user_id, payload.date)
        if existing is not None:
            updated = existing.model_copy(update=values)
            self._habits[existing.id] = updated
            return updated
        habit = DailyHabit(id=next(self._habit_ids), user_id=user_id, date=payload.date, **values)
        self._habits[habit.id] = habit
        return habit

    async def update_daily_habit(
        self, user_id: str, day: str, changes: Mapping[str, Any]
    ) -> DailyHabit | None:
        habit = self._find_habit(user_id, day)
        if habit is None:
            return None
        updated = habit.model_copy(update=_strip_identity(changes))
        self._habits[habit.id] = updated
        return updated

    async def delete_daily_habit(self, user_id: str, day: str) -> bool:
        habit = self._find_habit(user_id, day)
        if habit is None:
            return False
        del self._habits[habit.id]
        return True


def _strip_identity(changes: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: value
        for key, value in changes.items()
        if key not in {"id", "user_id", "created_at", "date"}
    }


__all__ = ["MemoryStore"]
