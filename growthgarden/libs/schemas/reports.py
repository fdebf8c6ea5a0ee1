"""Weekly reflection report shapes."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .models import CamelModel


class FeelingShare(CamelModel):
    feeling: str
    emoji: str
    count: int
    percentage: int
    actions: List[str] = []


class PatternAnalysis(CamelModel):
    positive_patterns: str
    negative_patterns: str
    growth_areas: str


class LearningSummary(CamelModel):
    insights: List[str] = []
    patterns: List[str] = []
    recommendations: List[str] = []


class Accomplishments(CamelModel):
    total_actions: int
    total_xp: int = Field(alias="totalXP")
    achievements: List[str] = []
    streak: int = 0
    story: Optional[str] = None


class WeeklyReflectionReport(CamelModel):
    week_start: datetime
    week_end: datetime
    feeling_distribution: List[FeelingShare] = []
    accomplishments: Accomplishments
    learning_summary: LearningSummary
    ai_analysis: PatternAnalysis


__all__ = [
    "Accomplishments",
    "FeelingShare",
    "LearningSummary",
    "PatternAnalysis",
    "WeeklyReflectionReport",
]
