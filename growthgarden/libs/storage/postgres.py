"""asyncpg-backed storage."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Mapping, Sequence

import asyncpg

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

from .base import StorageBackend, StorageUnavailableError

logger = logging.getLogger(__name__)

# Columns callers may change through the generic update paths.
_USER_COLUMNS = {"name": "name", "avatar_url": "avatar_url"}
_GOAL_COLUMNS = {
    "name": "name",
    "description": "description",
    "plant_type": "plant_type",
    "timeline_months": "timeline_months",
    "status": "status",
    "current_level": "current_level",
    "current_xp": "current_xp",
    "max_xp": "max_xp",
    "last_watered": "last_watered",
}
_ACTION_COLUMNS = {
    "title": "title",
    "description": "description",
    "xp_reward": "xp_reward",
    "personal_reward": "personal_reward",
    "due_date": "due_date",
    "is_completed": "is_completed",
    "completed_at": "completed_at",
    "feeling": "feeling",
    "reflection": "reflection",
    "difficulty": "difficulty",
    "satisfaction": "satisfaction",
    "reflected_at": "reflected_at",
}
_HABIT_COLUMNS = {
    "eat_healthy": "eat_healthy",
    "exercise": "exercise",
    "sleep_before_11pm": "sleep_before_11pm",
    "notes": "notes",
}

_REWARD_SQL = """
    UPDATE goals
       SET current_level = GREATEST(current_level, current_level + (current_xp + $3) / max_xp),
           current_xp = (current_xp + $3) % max_xp,
           last_watered = $4
     WHERE id = $1 AND user_id = $2
 RETURNING *
"""

_INSERT_USER_SQL = """
    INSERT INTO users (id, email, name, avatar_url)
    VALUES ($1, $2, $3, $4)
    ON CONFLICT DO NOTHING
    RETURNING *
"""

_RELEASE_EMAIL_SQL = """
    UPDATE users
       SET email = email || '#' || id::text
     WHERE email = $1 AND id <> $2
"""

_COMPLETE_SQL = """
    UPDATE actions
       SET is_completed = TRUE, completed_at = $3
     WHERE id = $1 AND user_id = $2 AND NOT is_completed
 RETURNING *
"""


def _normalize_arg(val: Any) -> Any:
    if isinstance(val, uuid.UUID):
        return str(val)
    return val


def _build_update(
    table: str,
    changes: Mapping[str, Any],
    columns: Mapping[str, str],
    where: Sequence[str],
    where_args: Sequence[Any],
) -> tuple[str, list[Any]] | None:
    assignments: list[str] = []
    args: list[Any] = list(where_args)
    for field, value in changes.items():
        column = columns.get(field)
        if column is None:
            continue
        args.append(value)
        assignments.append(f"{column} = ${len(args)}")
    if not assignments:
        return None
    clause = " AND ".join(where)
    return f"UPDATE {table} SET {', '.join(assignments)} WHERE {clause} RETURNING *", args


class PostgresStore(StorageBackend):
    """Storage over an asyncpg pool. Every query is filtered by owner."""

    kind = "postgres"
    persistent = True

    def __init__(self, pool: asyncpg.Pool | None) -> None:
        self._pool = pool

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise StorageUnavailableError()
        return self._pool

    async def _fetch(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        normalized_args = tuple(_normalize_arg(arg) for arg in args)
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(sql, *normalized_args)
        return [dict(row) for row in rows]

    async def _fetchrow(self, sql: str, *args: Any) -> dict[str, Any] | None:
        normalized_args = tuple(_normalize_arg(arg) for arg in args)
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(sql, *normalized_args)
        return dict(row) if row else None

    async def _execute(self, sql: str, *args: Any) -> str:
        normalized_args = tuple(_normalize_arg(arg) for arg in args)
        async with self.pool.acquire() as connection:
            return await connection.execute(sql, *normalized_args)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # Users -----------------------------------------------------------------

    async def ensure_user(
        self,
        user_id: str,
        email: str,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> User:
        row = await self._fetchrow(_INSERT_USER_SQL, user_id, email, name, avatar_url)
        if row is None:
            row = await self._fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        if row is None:
            # The email still belongs to an older identity; free it for this one.
            logger.warning("Email for user %s is held by another user id; releasing it", user_id)
            await self._execute(_RELEASE_EMAIL_SQL, email, user_id)
            row = await self._fetchrow(_INSERT_USER_SQL, user_id, email, name, avatar_url)
            if row is None:
                row = await self._fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        return User.model_validate(row)

    async def get_user(self, user_id: str) -> User | None:
        row = await self._fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        return User.model_validate(row) if row else None

    async def update_user(self, user_id: str, changes: Mapping[str, Any]) -> User | None:
        statement = _build_update("users", changes, _USER_COLUMNS, ["id = $1"], [user_id])
        if statement is None:
            return await self.get_user(user_id)
        row = await self._fetchrow(statement[0], *statement[1])
        return User.model_validate(row) if row else None

    # Goals -----------------------------------------------------------------

    async def list_goals(self, user_id: str) -> list[Goal]:
        rows = await self._fetch("SELECT * FROM goals WHERE user_id = $1 ORDER BY id", user_id)
        return [Goal.model_validate(row) for row in rows]

    async def get_goal(self, user_id: str, goal_id: int) -> Goal | None:
        row = await self._fetchrow(
            "SELECT * FROM goals WHERE id = $1 AND user_id = $2", goal_id, user_id
        )
        return Goal.model_validate(row) if row else None

    async def create_goal(self, user_id: str, payload: GoalCreate) -> Goal:
        row = await self._fetchrow(
            """
            INSERT INTO goals (user_id, name, description, plant_type, timeline_months)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            user_id,
            payload.name,
            payload.description,
            payload.plant_type,
            payload.timeline_months,
        )
        return Goal.model_validate(row)

    async def update_goal(
        self, user_id: str, goal_id: int, changes: Mapping[str, Any]
    ) -> Goal | None:
        statement = _build_update(
            "goals", changes, _GOAL_COLUMNS, ["id = $1", "user_id = $2"], [goal_id, user_id]
        )
        if statement is None:
            return await self.get_goal(user_id, goal_id)
        row = await self._fetchrow(statement[0], *statement[1])
        return Goal.model_validate(row) if row else None

    async def delete_goal(self, user_id: str, goal_id: int) -> bool:
        status = await self._execute(
            "DELETE FROM goals WHERE id = $1 AND user_id = $2", goal_id, user_id
        )
        return status.endswith(" 1")

    async def apply_goal_reward(
        self, user_id: str, goal_id: int, xp: int, watered_at: datetime
    ) -> Goal | None:
        row = await self._fetchrow(_REWARD_SQL, goal_id, user_id, xp, watered_at)
        return Goal.model_validate(row) if row else None

    # Actions ---------------------------------------------------------------

    async def list_actions(self, user_id: str) -> list[Action]:
        rows = await self._fetch("SELECT * FROM actions WHERE user_id = $1 ORDER BY id", user_id)
        return [Action.model_validate(row) for row in rows]

    async def list_actions_by_goal(self, user_id: str, goal_id: int) -> list[Action]:
        rows = await self._fetch(
            "SELECT * FROM actions WHERE user_id = $1 AND goal_id = $2 ORDER BY id",
            user_id,
            goal_id,
        )
        return [Action.model_validate(row) for row in rows]

    async def get_action(self, user_id: str, action_id: int) -> Action | None:
        row = await self._fetchrow(
            "SELECT * FROM actions WHERE id = $1 AND user_id = $2", action_id, user_id
        )
        return Action.model_validate(row) if row else None

    async def create_action(self, user_id: str, payload: ActionCreate) -> Action:
        row = await self._fetchrow(
            """
            INSERT INTO actions (goal_id, user_id, title, description, xp_reward, personal_reward, due_date)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            payload.goal_id,
            user_id,
            payload.title,
            payload.description,
            payload.xp_reward,
            payload.personal_reward,
            payload.due_date,
        )
        return Action.model_validate(row)

    async def update_action(
        self, user_id: str, action_id: int, changes: Mapping[str, Any]
    ) -> Action | None:
        statement = _build_update(
            "actions", changes, _ACTION_COLUMNS, ["id = $1", "user_id = $2"], [action_id, user_id]
        )
        if statement is None:
            return await self.get_action(user_id, action_id)
        row = await self._fetchrow(statement[0], *statement[1])
        return Action.model_validate(row) if row else None

    async def delete_action(self, user_id: str, action_id: int) -> bool:
        status = await self._execute(
            "DELETE FROM actions WHERE id = $1 AND user_id = $2", action_id, user_id
        )
        return status.endswith(" 1")

    async def mark_action_completed(
        self, user_id: str, action_id: int, at: datetime
    ) -> Action | None:
        row = await self._fetchrow(_COMPLETE_SQL, action_id, user_id, at)
        return Action.model_validate(row) if row else None

    # Achievements ----------------------------------------------------------

    async def list_achievements(self, user_id: str) -> list[Achievement]:
        rows = await self._fetch(
            "SELECT * FROM achievements WHERE user_id = $1 ORDER BY unlocked_at, id", user_id
        )
        return [Achievement.model_validate(row) for row in rows]

    async def create_achievement(
        self, user_id: str, payload: AchievementCreate, *, key: str | None = None
    ) -> Achievement:
        row = await self._fetchrow(
            """
            INSERT INTO achievements (user_id, key, title, description, icon_name)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (user_id, key) DO NOTHING
            RETURNING *
            """,
            user_id,
            key,
            payload.title,
            payload.description,
            payload.icon_name,
        )
        if row is None:
            row = await self._fetchrow(
                "SELECT * FROM achievements WHERE user_id = $1 AND key = $2", user_id, key
            )
        return Achievement.model_validate(row)

    # Daily habits ----------------------------------------------------------

    async def get_daily_habit(self, user_id: str, day: str) -> DailyHabit | None:
        row = await self._fetchrow(
            "SELECT * FROM daily_habits WHERE user_id = $1 AND date = $2", user_id, day
        )
        return DailyHabit.model_validate(row) if row else None

    async def list_daily_habits(self, user_id: str, start: str, end: str) -> list[DailyHabit]:
        rows = await self._fetch(
            """
            SELECT * FROM daily_habits
             WHERE user_id = $1 AND date >= $2 AND date <= $3
             ORDER BY date
            """,
            user_id,
            start,
            end,
        )
        return [DailyHabit.model_validate(row) for row in rows]

    async def create_daily_habit(self, user_id: str, payload: DailyHabitCreate) -> DailyHabit:
        row = await self._fetchrow(
            """
            INSERT INTO daily_habits (user_id, date, eat_healthy, exercise, sleep_before_11pm, notes)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (user_id, date) DO UPDATE
               SET eat_healthy = EXCLUDED.eat_healthy,
                   exercise = EXCLUDED.exercise,
                   sleep_before_11pm = EXCLUDED.sleep_before_11pm,
                   notes = EXCLUDED.notes
            RETURNING *
            """,
            user_id,
            payload.date,
            payload.eat_healthy,
            payload.exercise,
            payload.sleep_before_11pm,
            payload.notes,
        )
        return DailyHabit.model_validate(row)

    async def update_daily_habit(
        self, user_id: str, day: str, changes: Mapping[str, Any]
    ) -> DailyHabit | None:
        statement = _build_update(
            "daily_habits", changes, _HABIT_COLUMNS, ["user_id = $1", "date = $2"], [user_id, day]
        )
        if statement is None:
            return await self.get_daily_habit(user_id, day)
        row = await self._fetchrow(statement[0], *statement[1])
        return DailyHabit.model_validate(row) if row else None

    async def delete_daily_habit(self, user_id: str, day: str) -> bool:
        status = await self._execute(
            "DELETE FROM daily_habits WHERE user_id = $1 AND date = $2", user_id, day
        )
        return status.endswith(" 1")


__all__ = ["PostgresStore"]
