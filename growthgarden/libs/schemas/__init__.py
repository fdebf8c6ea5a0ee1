"""Pydantic models and schema utilities."""

from .models import (
    Achievement,
    AchievementCreate,
    Action,
    ActionCreate,
    ActionUpdate,
    DailyHabit,
    DailyHabitCreate,
    DailyHabitUpdate,
    Goal,
    GoalCreate,
    GoalUpdate,
    ReflectionUpdate,
    User,
    UserUpdate,
)
from .settings import AppSettings, get_settings

__all__ = [
    "Achievement",
    "AchievementCreate",
    "Action",
    "ActionCreate",
    "ActionUpdate",
    "AppSettings",
    "DailyHabit",
    "DailyHabitCreate",
    "DailyHabitUpdate",
    "Goal",
    "GoalCreate",
    "GoalUpdate",
    "ReflectionUpdate",
    "User",
    "UserUpdate",
    "get_settings",
]
