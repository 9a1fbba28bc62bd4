"""
summit.services.streak_service — Streak Persistence
====================================================

Records a member's daily activity against the pure state machine in
:mod:`summit.engine.streaks`.  "Today" comes from the server clock in the
member's profile time zone; the client never supplies a date.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from summit.database.engine import get_session, insert_if_absent
from summit.database.models import Profile, UserStreak
from summit.engine.changes import ChangeEvent, Operation, StreakRecorded
from summit.engine.streaks import StreakState, advance_streak, displayed_streak, local_today
from summit.services.badge_service import award_new_badges
from summit.services.context import MemberContext, require_member
from summit.services.member_service import get_or_create_profile

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from summit.engine.cache import CatalogCache
    from summit.engine.changes import ChangeFeed

logger = logging.getLogger(__name__)


def _state(row: UserStreak | None) -> StreakState | None:
    if row is None:
        return None
    return StreakState(
        current_streak=row.current_streak or 0,
        longest_streak=row.longest_streak or 0,
        last_activity_date=row.last_activity_date,
    )


def _lock_streak_row(session: Session, member_id: str) -> UserStreak | None:
    return session.get(
        UserStreak, member_id, with_for_update=True, populate_existing=True,
    )


def record_activity(
    engine: Engine,
    ctx: MemberContext | None,
    *,
    now: datetime | None = None,
    cache: CatalogCache | None = None,
    feed: ChangeFeed | None = None,
) -> StreakState:
    """Record today's activity for the acting member.

    Idempotent within a day: a second call on the same local date returns
    the stored state without writing.
    """
    ctx = require_member(ctx)
    events: list[ChangeEvent] = []

    with get_session(engine) as session:
        profile = get_or_create_profile(session, ctx)
        today = local_today(now, profile.timezone)

        op = Operation.UPDATE
        row = _lock_streak_row(session, ctx.member_id)
        state = _state(row)
        if row is None:
            # Another request may create the row between our read and insert
            if insert_if_absent(session, UserStreak, user_id=ctx.member_id):
                op = Operation.INSERT
            row = _lock_streak_row(session, ctx.member_id)
            if op is Operation.UPDATE:
                state = _state(row)

        new_state, changed = advance_streak(state, today)
        if not changed:
            return new_state

        row.current_streak = new_state.current_streak
        row.longest_streak = new_state.longest_streak
        row.last_activity_date = new_state.last_activity_date

        events.append(StreakRecorded(
            ctx.member_id,
            new_state.current_streak,
            new_state.longest_streak,
            today,
            op=op,
        ))
        _, badge_events = award_new_badges(
            session, ctx.member_id, today=today, cache=cache,
        )
        events.extend(badge_events)

    logger.info(
        "Streak for %s: current=%d longest=%d",
        ctx.member_id, new_state.current_streak, new_state.longest_streak,
    )
    if feed is not None:
        feed.publish_all(events)
    return new_state


def get_streak(
    engine: Engine, member_id: str, *, now: datetime | None = None,
) -> StreakState:
    """Read-only view; a lapsed streak shows ``current_streak = 0``."""
    with get_session(engine) as session:
        profile = session.get(Profile, member_id)
        tz_name = profile.timezone if profile is not None else "UTC"
        row = session.get(UserStreak, member_id)
        return displayed_streak(_state(row), local_today(now, tz_name))
