"""Domain records and request payloads for GrowthGarden.

Field names are snake_case in Python and camelCase on the wire; every model
accepts either spelling on input and dumps by alias in responses.
"""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PlantType = Literal["sprout", "herb", "tree", "flower"]
GoalStatus = Literal["active", "completed", "withered"]

DEFAULT_MAX_XP = 100
DEFAULT_TIMELINE_MONTHS = 3
DEFAULT_XP_REWARD = 15

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _date_only_to_midnight(value: Any) -> Any:
    if isinstance(value, str) and _DATE_ONLY.match(value):
        return datetime.combine(date.fromisoformat(value), datetime.min.time())
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, datetime.min.time())
    return value


def _assume_utc(value: datetime) -> datetime:
    # Offset-less input (and TIMESTAMP columns) is read as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, BeforeValidator(_date_only_to_midnight), AfterValidator(_assume_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class User(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, uuid.UUID) else value


class Goal(CamelModel):
    id: int
    user_id: str
    name: str
    description: Optional[str] = None
    plant_type: PlantType = "sprout"
    current_level: int = Field(default=1, ge=1)
    current_xp: int = Field(default=0, ge=0, alias="currentXP")
    max_xp: int = Field(default=DEFAULT_MAX_XP, gt=0, alias="maxXP")
    timeline_months: int = DEFAULT_TIMELINE_MONTHS
    status: GoalStatus = "active"
    last_watered: UtcDatetime = Field(default_factory=utcnow)
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @field_validator("user_id", mode="before")
    @classmethod
    def _stringify_owner(cls, value: Any) -> Any:
        return str(value) if isinstance(value, uuid.UUID) else value


class Action(CamelModel):
    id: int
    goal_id: int
    user_id: str
    title: str
    description: Optional[str] = None
    xp_reward: int = DEFAULT_XP_REWARD
    personal_reward: Optional[str] = None
    is_completed: bool = False
    due_date: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None
    feeling: Optional[str] = None
    reflection: Optional[str] = None
    difficulty: Optional[int] = None
    satisfaction: Optional[int] = None
    reflected_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @field_validator("user_id", mode="before")
    @classmethod
    def _stringify_owner(cls, value: Any) -> Any:
        return str(value) if isinstance(value, uuid.UUID) else value


class Achievement(CamelModel):
    id: int
    user_id: str
    key: Optional[str] = None
    title: str
    description: str
    icon_name: str
    unlocked_at: UtcDatetime = Field(default_factory=utcnow)

    @field_validator("user_id", mode="before")
    @classmethod
    def _stringify_owner(cls, value: Any) -> Any:
        return str(value) if isinstance(value, uuid.UUID) else value


class DailyHabit(CamelModel):
    id: int
    user_id: str
    date: str
    eat_healthy: bool = False
    exercise: bool = False
    sleep_before_11pm: bool = Field(default=False, alias="sleepBefore11pm")
    notes: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @field_validator("user_id", mode="before")
    @classmethod
    def _stringify_owner(cls, value: Any) -> Any:
        return str(value) if isinstance(value, uuid.UUID) else value


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class GoalCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    plant_type: PlantType = "sprout"
    timeline_months: int = Field(default=DEFAULT_TIMELINE_MONTHS, ge=1, le=120)


class GoalUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    plant_type: Optional[PlantType] = None
    timeline_months: Optional[int] = Field(default=None, ge=1, le=120)
    # Withering happens only through the health sweep.
    status: Optional[Literal["completed"]] = None


class ActionCreate(CamelModel):
    goal_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    xp_reward: int = Field(default=DEFAULT_XP_REWARD, ge=0)
    personal_reward: Optional[str] = None
    due_date: Optional[UtcDatetime] = None


class ActionUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    xp_reward: Optional[int] = Field(default=None, ge=0)
    personal_reward: Optional[str] = None
    due_date: Optional[UtcDatetime] = None


class ReflectionUpdate(CamelModel):
    feeling: str = Field(min_length=1, max_length=50)
    reflection: Optional[str] = None
    difficulty: Optional[int] = Field(default=None, ge=1, le=5)
    satisfaction: Optional[int] = Field(default=None, ge=1, le=5)
    reflected_at: Optional[UtcDatetime] = None


class AchievementCreate(CamelModel):
    title: str = Field(min_length=1)
    description: str
    icon_name: str


class DailyHabitCreate(CamelModel):
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    eat_healthy: bool = False
    exercise: bool = False
    sleep_before_11pm: bool = Field(default=False, alias="sleepBefore11pm")
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def _real_calendar_date(cls, value: str) -> str:
        date.fromisoformat(value)
        return value


class DailyHabitUpdate(CamelModel):
    eat_healthy: Optional[bool] = None
    exercise: Optional[bool] = None
    sleep_before_11pm: Optional[bool] = Field(default=None, alias="sleepBefore11pm")
    notes: Optional[str] = None


class UserUpdate(CamelModel):
    name: Optional[str] = Field(default=None, max_length=200)
    avatar_url: Optional[str] = None


__all__ = [
    "Achievement",
    "AchievementCreate",
    "Action",
    "ActionCreate",
    "ActionUpdate",
    "CamelModel",
    "DEFAULT_MAX_XP",
    "DEFAULT_TIMELINE_MONTHS",
    "DEFAULT_XP_REWARD",
    "DailyHabit",
    "DailyHabitCreate",
    "DailyHabitUpdate",
    "Goal",
    "GoalCreate",
    "GoalStatus",
    "GoalUpdate",
    "PlantType",
    "ReflectionUpdate",
    "User",
    "UserUpdate",
    "UtcDatetime",
    "utcnow",
]
