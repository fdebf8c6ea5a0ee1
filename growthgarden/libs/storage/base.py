"""Storage interface shared by the volatile and Postgres backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping

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
)


class StorageUnavailableError(RuntimeError):
    """Raised when a persistent backend is used without a connection."""

    def __init__(self, message: str = "database not available") -> None:
        super().__init__(message)


def level_after_reward(level: int, xp: int, max_xp: int, reward: int) -> tuple[int, int]:
    """Return ``(level, xp)`` after adding ``reward`` experience points.

    Levels never decrease, and the remaining experience always stays in
    ``[0, max_xp)``.
    """

    total = xp + reward
    return max(level, level + total // max_xp), total % max_xp


class StorageBackend(ABC):
    """Owner-scoped persistence operations.

    Every method takes the owning user id. Lookups that miss return ``None``
    (or ``False``/empty) rather than raising.
    """

    kind: str = "unknown"
    persistent: bool = False

    # Users -----------------------------------------------------------------

    @abstractmethod
    async def ensure_user(
        self,
        user_id: str,
        email: str,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> User: ...

    @abstractmethod
    async def get_user(self, user_id: str) -> User | None: ...

    @abstractmethod
    async def update_user(self, user_id: str, changes: Mapping[str, Any]) -> User | None: ...

    # Goals -----------------------------------------------------------------

    @abstractmethod
    async def list_goals(self, user_id: str) -> list[Goal]: ...

    @abstractmethod
    async def get_goal(self, user_id: str, goal_id: int) -> Goal | None: ...

    @abstractmethod
    async def create_goal(self, user_id: str, payload: GoalCreate) -> Goal: ...

    @abstractmethod
    async def update_goal(
        self, user_id: str, goal_id: int, changes: Mapping[str, Any]
    ) -> Goal | None: ...

    @abstractmethod
    async def delete_goal(self, user_id: str, goal_id: int) -> bool: ...

    @abstractmethod
    async def apply_goal_reward(
        self, user_id: str, goal_id: int, xp: int, watered_at: datetime
    ) -> Goal | None:
        """Add ``xp`` to a goal and water it in a single step."""

    # Actions ---------------------------------------------------------------

    @abstractmethod
    async def list_actions(self, user_id: str) -> list[Action]: ...

    @abstractmethod
    async def list_actions_by_goal(self, user_id: str, goal_id: int) -> list[Action]: ...

    @abstractmethod
    async def get_action(self, user_id: str, action_id: int) -> Action | None: ...

    @abstractmethod
    async def create_action(self, user_id: str, payload: ActionCreate) -> Action: ...

    @abstractmethod
    async def update_action(
        self, user_id: str, action_id: int, changes: Mapping[str, Any]
    ) -> Action | None: ...

    @abstractmethod
    async def delete_action(self, user_id: str, action_id: int) -> bool: ...

    @abstractmethod
    async def mark_action_completed(
        self, user_id: str, action_id: int, at: datetime
    ) -> Action | None:
        """Flip a pending action to completed.

        Returns ``None`` when the action is missing or was already completed,
        so exactly one caller wins the transition.
        """

    # Achievements ----------------------------------------------------------

    @abstractmethod
    async def list_achievements(self, user_id: str) -> list[Achievement]: ...

    @abstractmethod
    async def create_achievement(
        self, user_id: str, payload: AchievementCreate, *, key: str | None = None
    ) -> Achievement:
        """Store an achievement. A non-null ``key`` is unique per user; repeats return the existing row."""

    # Daily habits ----------------------------------------------------------

    @abstractmethod
    async def get_daily_habit(self, user_id: str, day: str) -> DailyHabit | None: ...

    @abstractmethod
    async def list_daily_habits(self, user_id: str, start: str, end: str) -> list[DailyHabit]: ...

    @abstractmethod
    async def create_daily_habit(self, user_id: str, payload: DailyHabitCreate) -> DailyHabit: ...

    @abstractmethod
    async def update_daily_habit(
        self, user_id: str, day: str, changes: Mapping[str, Any]
    ) -> DailyHabit | None: ...

    @abstractmethod
    async def delete_daily_habit(self, user_id: str, day: str) -> bool: ...

    async def close(self) -> None:
        """Release backend resources."""


__all__ = ["StorageBackend", "StorageUnavailableError", "level_after_reward"]
