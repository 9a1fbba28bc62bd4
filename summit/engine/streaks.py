"""
summit.engine.streaks — Streak Tracker
=======================================

Pure state machine for consecutive-day activity streaks.
No database I/O; :mod:`summit.services.streak_service` persists the result.

Transition on recording activity for ``today``::

    last == today        → unchanged
    last == today - 1    → current + 1
    anything else        → current = 1

``longest_streak`` is a running maximum of every ``current_streak``.

"today" is always derived from a trusted clock (the server's UTC time)
converted into the member's time zone; clients never supply the date.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

__all__ = ["StreakState", "advance_streak", "displayed_streak", "local_today"]


@dataclass(frozen=True, slots=True)
class StreakState:
    """Snapshot of one member's streak."""

    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None


def resolve_zone(tz_name: str | None) -> ZoneInfo:
    """Return the :class:`ZoneInfo` for *tz_name*, falling back to UTC."""
    if not tz_name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, using UTC", tz_name)
        return ZoneInfo("UTC")


def local_today(now: datetime | None = None, tz_name: str | None = "UTC") -> date:
    """Calendar date of *now* (default: current UTC time) in *tz_name*.

    Naive datetimes are taken to be UTC.
    """
    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(resolve_zone(tz_name)).date()


def advance_streak(
    state: StreakState | None, today: date
) -> tuple[StreakState, bool]:
    """Return ``(new_state, changed)`` after recording activity on *today*.

    A missing *state* is the member's first-ever activity and yields
    ``current = longest = 1``.  Any date other than today or yesterday,
    including one in the future, resets the run.
    """
    if state is None:
        return StreakState(1, 1, today), True

    last = state.last_activity_date
    if last == today:
        return state, False

    if last is not None and last == today - timedelta(days=1):
        current = state.current_streak + 1
    else:
        current = 1

    longest = max(state.longest_streak, current)
    return StreakState(current, longest, today), True


def displayed_streak(state: StreakState | None, today: date) -> StreakState:
    """Read-only view: a streak whose last activity is before yesterday
    has lapsed and shows ``current_streak = 0``.
    """
    if state is None:
        return StreakState()
    last = state.last_activity_date
    if last is None or last < today - timedelta(days=1):
        return StreakState(0, state.longest_streak, last)
    return state
