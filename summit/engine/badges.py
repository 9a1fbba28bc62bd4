"""
summit.engine.badges — Badge Evaluator
=======================================

Handler-registry rules engine for the static badge catalog.  Each
:class:`RequirementType` maps to a reader that pulls one metric out of a
:class:`MemberMetrics` snapshot; a badge qualifies when that metric is
``>= requirement_value``.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from summit.database.models import RequirementType

logger = logging.getLogger(__name__)


class BadgeRule(Protocol):
    """What the evaluator needs from a catalog entry (ORM row or mock)."""

    id: int
    name: str
    requirement_type: str
    requirement_value: int


# ---------------------------------------------------------------------------
# Member metrics — snapshot passed to every reader
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MemberMetrics:
    """Accumulated numbers a badge threshold can be compared against."""

    total_points: int = 0
    weekly_points: int = 0
    monthly_points: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    challenges_completed: int = 0
    achievements: int = 0
    goals_completed: int = 0
    discussions: int = 0
    meetings_attended: int = 0
    badges: int = 0


METRIC_READERS: dict[str, Callable[[MemberMetrics], int]] = {
    RequirementType.POINTS: lambda m: m.total_points,
    RequirementType.WEEKLY_POINTS: lambda m: m.weekly_points,
    RequirementType.MONTHLY_POINTS: lambda m: m.monthly_points,
    RequirementType.STREAK: lambda m: m.current_streak,
    RequirementType.LONGEST_STREAK: lambda m: m.longest_streak,
    RequirementType.CHALLENGES_COMPLETED: lambda m: m.challenges_completed,
    RequirementType.ACHIEVEMENTS: lambda m: m.achievements,
    RequirementType.GOALS_COMPLETED: lambda m: m.goals_completed,
    RequirementType.DISCUSSIONS: lambda m: m.discussions,
    RequirementType.MEETINGS_ATTENDED: lambda m: m.meetings_attended,
    RequirementType.BADGES: lambda m: m.badges,
}


def metric_value(metrics: MemberMetrics, requirement_type: str) -> int | None:
    """Return the metric for *requirement_type*, or None if unknown."""
    reader = METRIC_READERS.get(requirement_type)
    if reader is None:
        return None
    return reader(metrics)


# ---------------------------------------------------------------------------
# Main evaluation function
# ---------------------------------------------------------------------------
def evaluate_badges(
    catalog: Iterable[BadgeRule],
    metrics: MemberMetrics,
    already_earned: set[int],
) -> list[int]:
    """Return IDs of catalog badges the member newly qualifies for.

    Badges already in *already_earned* are skipped.  Unknown requirement
    types never qualify.
    """
    newly_earned: list[int] = []

    for badge in catalog:
        if badge.id in already_earned:
            continue

        value = metric_value(metrics, badge.requirement_type)
        if value is None:
            logger.warning(
                "Badge %r (id=%d) has unknown requirement_type %r — skipping",
                badge.name, badge.id, badge.requirement_type,
            )
            continue

        if value >= badge.requirement_value:
            newly_earned.append(badge.id)
            logger.info(
                "Badge qualified: %s (id=%d) — %s %d >= %d",
                badge.name, badge.id, badge.requirement_type,
                value, badge.requirement_value,
            )

    return newly_earned
