"""
summit.engine.points — Point Ledger Arithmetic
===============================================

Pure balance calculations for the point ledger.  No database I/O.

Weekly and monthly counters are *rolling*: each carries the key of the
period it accumulates (ISO week ``2024-W01``, month ``2024-01``).  A credit
landing in a newer period starts that counter from zero.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import TYPE_CHECKING

from summit.database.models import ActionType

if TYPE_CHECKING:
    from summit.engine.cache import CatalogCache

__all__ = [
    "DEFAULT_ACTION_POINTS",
    "PointBalance",
    "apply_credit",
    "current_view",
    "period_keys",
    "points_for_action",
]

# Fallbacks when the settings table has no ``points.<action>`` row
DEFAULT_ACTION_POINTS: dict[ActionType, int] = {
    ActionType.ACHIEVEMENT_POSTED: 10,
    ActionType.DISCUSSION_CREATED: 5,
    ActionType.GOAL_COMPLETED: 25,
    ActionType.MEETING_ATTENDED: 15,
}


@dataclass(frozen=True, slots=True)
class PointBalance:
    total_points: int = 0
    weekly_points: int = 0
    monthly_points: int = 0
    week_key: str | None = None
    month_key: str | None = None


def period_keys(day: date) -> tuple[str, str]:
    """Return ``(week_key, month_key)`` for *day*."""
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}", f"{day.year}-{day.month:02d}"


def apply_credit(balance: PointBalance, amount: int, day: date) -> PointBalance:
    """Add *amount* to every counter, rolling weekly/monthly over first.

    Raises
    ------
    ValueError
        If *amount* is zero.
    """
    if amount == 0:
        raise ValueError("Point amount must be non-zero")

    week_key, month_key = period_keys(day)
    weekly = balance.weekly_points if balance.week_key == week_key else 0
    monthly = balance.monthly_points if balance.month_key == month_key else 0

    return PointBalance(
        total_points=balance.total_points + amount,
        weekly_points=weekly + amount,
        monthly_points=monthly + amount,
        week_key=week_key,
        month_key=month_key,
    )


def current_view(balance: PointBalance, day: date) -> PointBalance:
    """Zero out weekly/monthly counters that belong to an earlier period."""
    week_key, month_key = period_keys(day)
    return replace(
        balance,
        weekly_points=balance.weekly_points if balance.week_key == week_key else 0,
        monthly_points=balance.monthly_points if balance.month_key == month_key else 0,
    )


def points_for_action(action: ActionType, cache: CatalogCache | None = None) -> int:
    """Configured point value for a community action.

    Reads ``points.<action>`` from the settings cache, falling back to
    :data:`DEFAULT_ACTION_POINTS`.  Actions without a fixed value (daily
    challenges, manual awards) raise ``ValueError``.
    """
    if action not in DEFAULT_ACTION_POINTS:
        raise ValueError(f"Action {action!s} has no fixed point value")
    default = DEFAULT_ACTION_POINTS[action]
    if cache is None:
        return default
    return cache.get_int(f"points.{action}", default)
