"""AI-written narrative for the weekly reflection, with deterministic fallbacks."""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from typing import Any, Dict, List, Sequence

from growthgarden.apps.api.core.llm import LLMResponseError, call_llm
from growthgarden.libs.json_utils import json_safe, parse_json_object
from growthgarden.libs.llm_router.router import LLMRouter, LLMUnavailableError
from growthgarden.libs.schemas.models import Action
from growthgarden.libs.schemas.reports import FeelingShare, LearningSummary, PatternAnalysis

logger = logging.getLogger(__name__)

POSITIVE_FEELINGS = {"Happy", "Excited", "Accomplished", "Confident", "Proud", "Grateful"}
NEGATIVE_FEELINGS = {"Tired", "Stressed", "Frustrated"}

ANALYSIS_SYSTEM_PROMPT = (
    "You are a personal growth coach reading one week of reflection data. "
    "Be warm, specific and brief. Celebrate what worked and suggest gentle adjustments."
)
LEARNING_SYSTEM_PROMPT = (
    "You are a personal development guide summarising what someone learned this week. "
    "Ground every observation in the data you are given."
)
STORY_SYSTEM_PROMPT = (
    "You are a storyteller who turns a week of small wins into a short, encouraging narrative "
    "about a growing garden."
)

ANALYSIS_PROMPT_TEMPLATE = """Weekly reflection data:
{data}

Return JSON only with three string fields:
{{"positivePatterns": "...", "negativePatterns": "...", "growthAreas": "..."}}
"""

LEARNING_PROMPT_TEMPLATE = """Weekly reflection data:
{data}

Return JSON only with three arrays of short sentences:
{{"insights": ["..."], "patterns": ["..."], "recommendations": ["..."]}}
"""

STORY_PROMPT_TEMPLATE = """Weekly accomplishments:
{data}

Return JSON only: {{"story": "two or three short paragraphs"}}
"""


def _average(values: Sequence[int | None], default: int = 3) -> float:
    if not values:
        return float(default)
    return sum(value if value is not None else default for value in values) / len(values)


def _action_digest(action: Action) -> Dict[str, Any]:
    return {
        "title": action.title,
        "feeling": action.feeling,
        "satisfaction": action.satisfaction,
        "difficulty": action.difficulty,
        "reflection": action.reflection,
        "xpReward": action.xp_reward,
    }


def _dump(payload: Dict[str, Any]) -> str:
    return json.dumps(json_safe(payload), ensure_ascii=False, indent=2)


async def _ask_json(router: LLMRouter | None, system: str, prompt: str, *, label: str) -> Dict[str, Any] | None:
    try:
        reply = await call_llm(router, prompt, system=system, force_json=True)
    except (LLMUnavailableError, LLMResponseError) as exc:
        logger.info("Using fallback %s: %s", label, exc, extra={"event": "ai_fallback", "artifact": label})
        return None
    parsed = parse_json_object(reply)
    if parsed is None:
        logger.warning(
            "Unparseable %s reply; using fallback", label, extra={"event": "ai_fallback", "artifact": label}
        )
    return parsed


def _string_list(value: Any) -> List[str] | None:
    if isinstance(value, list):
        items = [str(item).strip() for item in value if str(item).strip()]
        return items or None
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return None


# ---------------------------------------------------------------------------
# Deterministic fallbacks
# ---------------------------------------------------------------------------


def fallback_pattern_analysis(actions: Sequence[Action]) -> PatternAnalysis:
    positive = [a for a in actions if a.feeling in POSITIVE_FEELINGS]
    negative = [a for a in actions if a.feeling in NEGATIVE_FEELINGS]

    if positive:
        themes = ", ".join(a.title.lower() for a in positive[:3])
        positive_text = (
            f"You've been feeling great about tasks that involve {themes}. "
            "These activities seem to energize and motivate you."
        )
    else:
        positive_text = "You've been maintaining a positive outlook on your tasks this week."

    if negative:
        themes = ", ".join(a.title.lower() for a in negative[:3])
        negative_text = (
            f"Tasks that made you feel challenged include {themes}. "
            "Consider breaking these down into smaller steps or adjusting your approach."
        )
    else:
        negative_text = "You've been handling challenges well this week with minimal stress."

    return PatternAnalysis(
        positive_patterns=positive_text,
        negative_patterns=negative_text,
        growth_areas=(
            "Focus on building consistency with activities that make you feel accomplished, "
            "and consider what made those experiences particularly rewarding."
        ),
    )


def fallback_learning_summary(
    actions: Sequence[Action], distribution: Sequence[FeelingShare]
) -> LearningSummary:
    insights: List[str] = []
    patterns: List[str] = []
    recommendations: List[str] = []

    if distribution:
        top = distribution[0]
        insights.append(
            f"You felt {top.feeling.lower()} most often this week ({top.percentage}% of the time)."
        )
        if top.percentage > 50:
            insights.append("You're maintaining a consistent emotional state across your tasks.")

    words = Counter(
        word
        for action in actions
        for word in re.findall(r"[a-z']+", action.title.lower())
        if len(word) > 3
    )
    frequent = [word for word, _ in words.most_common(3)]
    if frequent:
        patterns.append(f"You've been focusing on activities related to: {', '.join(frequent)}.")

    satisfaction = _average([a.satisfaction for a in actions])
    if satisfaction < 3:
        recommendations.append(
            "Consider adjusting your task difficulty or breaking complex tasks into smaller, "
            "more manageable steps."
        )
    elif satisfaction > 4:
        recommendations.append(
            "You're finding great satisfaction in your tasks. Consider taking on slightly more "
            "challenging goals."
        )
    if len(actions) < 5:
        recommendations.append(
            "Try to complete a few more actions this week to build momentum and gather more insights."
        )
    recommendations.append("Continue reflecting on your feelings after each task to build self-awareness.")

    return LearningSummary(insights=insights, patterns=patterns, recommendations=recommendations)


def fallback_story(action_count: int, total_xp: int, achievements: Sequence[str], streak: int) -> str:
    parts = ["This week, you've been on a real journey of growth and self-discovery."]
    if action_count > 0:
        parts.append(
            f"You completed {action_count} meaningful action{'s' if action_count != 1 else ''}, "
            "each one a step forward in your personal development."
        )
    if total_xp > 0:
        parts.append(f"With {total_xp} XP earned, you've built up real momentum in your growth garden.")
    if achievements:
        count = len(achievements)
        parts.append(
            f"Your dedication has been recognized with {count} new achievement{'s' if count > 1 else ''}, "
            "marking important milestones in your journey."
        )
    if streak > 0:
        parts.append(
            f"You've maintained a {streak}-day streak, showing consistency and commitment to your goals."
        )
    parts.append(
        "Every action you take and every reflection you make is part of your own story of growth."
    )
    return " ".join(parts)


# ---------------------------------------------------------------------------
# AI generators
# ---------------------------------------------------------------------------


async def generate_pattern_analysis(
    router: LLMRouter | None,
    actions: Sequence[Action],
    distribution: Sequence[FeelingShare],
) -> PatternAnalysis:
    fallback = fallback_pattern_analysis(actions)
    if router is None:
        return fallback
    data = {
        "totalActions": len(actions),
        "feelingDistribution": [share.model_dump(by_alias=True) for share in distribution],
        "positiveActions": [_action_digest(a) for a in actions if a.feeling in POSITIVE_FEELINGS],
        "negativeActions": [_action_digest(a) for a in actions if a.feeling in NEGATIVE_FEELINGS],
        "averageSatisfaction": _average([a.satisfaction for a in actions]),
        "averageDifficulty": _average([a.difficulty for a in actions]),
    }
    parsed = await _ask_json(
        router,
        ANALYSIS_SYSTEM_PROMPT,
        ANALYSIS_PROMPT_TEMPLATE.format(data=_dump(data)),
        label="pattern analysis",
    )
    if parsed is None:
        return fallback
    return PatternAnalysis(
        positive_patterns=str(parsed.get("positivePatterns") or fallback.positive_patterns),
        negative_patterns=str(parsed.get("negativePatterns") or fallback.negative_patterns),
        growth_areas=str(parsed.get("growthAreas") or fallback.growth_areas),
    )


async def generate_learning_summary(
    router: LLMRouter | None,
    actions: Sequence[Action],
    distribution: Sequence[FeelingShare],
) -> LearningSummary:
    fallback = fallback_learning_summary(actions, distribution)
    if router is None:
        return fallback
    data = {
        "weekStats": {
            "totalActions": len(actions),
            "totalXP": sum(a.xp_reward for a in actions),
            "averageSatisfaction": _average([a.satisfaction for a in actions]),
            "averageDifficulty": _average([a.difficulty for a in actions]),
        },
        "feelingBreakdown": [share.model_dump(by_alias=True) for share in distribution],
        "actionDetails": [_action_digest(a) for a in actions],
    }
    parsed = await _ask_json(
        router,
        LEARNING_SYSTEM_PROMPT,
        LEARNING_PROMPT_TEMPLATE.format(data=_dump(data)),
        label="learning summary",
    )
    if parsed is None:
        return fallback
    return LearningSummary(
        insights=_string_list(parsed.get("insights")) or fallback.insights,
        patterns=_string_list(parsed.get("patterns")) or fallback.patterns,
        recommendations=_string_list(parsed.get("recommendations")) or fallback.recommendations,
    )


async def generate_story(
    router: LLMRouter | None,
    actions: Sequence[Action],
    total_xp: int,
    achievements: Sequence[str],
    streak: int,
) -> str:
    fallback = fallback_story(len(actions), total_xp, achievements, streak)
    if router is None:
        return fallback
    data = {
        "weekStats": {
            "totalActions": len(actions),
            "totalXP": total_xp,
            "streak": streak,
            "achievements": list(achievements),
        },
        "actions": [_action_digest(a) for a in actions],
    }
    parsed = await _ask_json(
        router,
        STORY_SYSTEM_PROMPT,
        STORY_PROMPT_TEMPLATE.format(data=_dump(data)),
        label="story",
    )
    if parsed is None:
        return fallback
    story = parsed.get("story")
    return story.strip() if isinstance(story, str) and story.strip() else fallback


__all__ = [
    "NEGATIVE_FEELINGS",
    "POSITIVE_FEELINGS",
    "fallback_learning_summary",
    "fallback_pattern_analysis",
    "fallback_story",
    "generate_learning_summary",
    "generate_pattern_analysis",
    "generate_story",
]
