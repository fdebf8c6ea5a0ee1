"""Weekly reflection report assembly."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from growthgarden.libs.llm_router.router import LLMRouter
from growthgarden.libs.schemas.models import Achievement, Action, utcnow
from growthgarden.libs.schemas.reports import (
    Accomplishments,
    FeelingShare,
    WeeklyReflectionReport,
)
from growthgarden.libs.storage.base import StorageBackend

from .insights import (
    generate_learning_summary,
    generate_pattern_analysis,
    generate_story,
)

logger = logging.getLogger(__name__)

DEFAULT_FEELING_EMOJI = "😊"
FEELING_EMOJI: Dict[str, str] = {
    "Happy": "😊",
    "Excited": "🎉",
    "Relaxed": "😌",
    "Accomplished": "💪",
    "Relieved": "😌",
    "Confident": "😎",
    "Thoughtful": "🤔",
    "Tired": "😴",
    "Stressed": "😅",
    "Frustrated": "😤",
    "Grateful": "😇",
    "Proud": "🤗",
}

DEFAULT_HISTORY_WEEKS = 8
MAX_HISTORY_WEEKS = 52


def feeling_emoji(feeling: str) -> str:
    return FEELING_EMOJI.get(feeling, DEFAULT_FEELING_EMOJI)


def week_bounds(reference: datetime | date | None = None) -> Tuple[datetime, datetime]:
    """Return the Sunday-to-Saturday UTC window containing ``reference``."""

    if reference is None:
        reference = utcnow()
    if isinstance(reference, datetime):
        if reference.tzinfo is not None:
            reference = reference.astimezone(timezone.utc)
        day = reference.date()
    else:
        day = reference
    start_day = day - timedelta(days=(day.weekday() + 1) % 7)
    start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return start, end


def weekly_actions(actions: Sequence[Action], start: datetime, end: datetime) -> List[Action]:
    """Completed actions whose reflection falls inside the window."""

    return [
        action
        for action in actions
        if action.is_completed and action.reflected_at is not None and start <= action.reflected_at <= end
    ]


def feeling_distribution(actions: Sequence[Action]) -> List[FeelingShare]:
    total = len(actions)
    buckets: Dict[str, List[str]] = {}
    for action in actions:
        if action.feeling:
            buckets.setdefault(action.feeling, []).append(action.title)
    shares = [
        FeelingShare(
            feeling=feeling,
            emoji=feeling_emoji(feeling),
            count=len(titles),
            percentage=math.floor(len(titles) * 100 / total + 0.5) if total else 0,
            actions=titles,
        )
        for feeling, titles in buckets.items()
    ]
    # sorted() is stable, so ties keep first-seen order.
    return sorted(shares, key=lambda share: share.count, reverse=True)


def longest_streak(actions: Sequence[Action]) -> int:
    """Longest run of consecutive UTC calendar days with a reflected action."""

    days = sorted(
        {action.reflected_at.astimezone(timezone.utc).date() for action in actions if action.reflected_at}
    )
    best = run = 0
    previous: Optional[date] = None
    for day in days:
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        best = max(best, run)
        previous = day
    return best


def achievements_in_window(achievements: Sequence[Achievement], start: datetime, end: datetime) -> List[str]:
    return [a.title for a in achievements if start <= a.unlocked_at <= end]


async def build_weekly_report(
    storage: StorageBackend,
    user_id: str,
    *,
    router: LLMRouter | None = None,
    reference: datetime | date | None = None,
    include_story: bool = True,
    use_ai: bool = True,
) -> WeeklyReflectionReport | None:
    """Assemble the report for the week containing ``reference``.

    Returns None when the week has no completed and reflected actions.
    """

    start, end = week_bounds(reference)
    actions = weekly_actions(await storage.list_actions(user_id), start, end)
    if not actions:
        logger.info("No reflection data for %s in week starting %s", user_id, start.date())
        return None

    distribution = feeling_distribution(actions)
    total_xp = sum(action.xp_reward for action in actions)
    achievements = achievements_in_window(await storage.list_achievements(user_id), start, end)
    streak = longest_streak(actions)

    ai_router = router if use_ai else None
    analysis_task = generate_pattern_analysis(ai_router, actions, distribution)
    learning_task = generate_learning_summary(ai_router, actions, distribution)
    if include_story:
        analysis, learning, story = await asyncio.gather(
            analysis_task,
            learning_task,
            generate_story(ai_router, actions, total_xp, achievements, streak),
        )
    else:
        analysis, learning = await asyncio.gather(analysis_task, learning_task)
        story = None

    return WeeklyReflectionReport(
        week_start=start,
        week_end=end,
        feeling_distribution=distribution,
        accomplishments=Accomplishments(
            total_actions=len(actions),
            total_xp=total_xp,
            achievements=achievements,
            streak=streak,
            story=story,
        ),
        learning_summary=learning,
        ai_analysis=analysis,
    )


async def historical_reports(
    storage: StorageBackend,
    user_id: str,
    *,
    weeks: int = DEFAULT_HISTORY_WEEKS,
    now: datetime | None = None,
) -> List[WeeklyReflectionReport]:
    """Deterministic reports for the last ``weeks`` weeks that have data, newest first."""

    weeks = max(1, min(MAX_HISTORY_WEEKS, weeks))
    now = now or utcnow()
    reports: List[WeeklyReflectionReport] = []
    for offset in range(weeks):
        report = await build_weekly_report(
            storage, user_id, reference=now - timedelta(weeks=offset), use_ai=False
        )
        if report is not None:
            reports.append(report)
    return reports


__all__ = [
    "DEFAULT_HISTORY_WEEKS",
    "FEELING_EMOJI",
    "MAX_HISTORY_WEEKS",
    "achievements_in_window",
    "build_weekly_report",
    "feeling_distribution",
    "feeling_emoji",
    "historical_reports",
    "longest_streak",
    "week_bounds",
    "weekly_actions",
]
