"""
summit.services.ledger_service — Point Ledger Persistence
==========================================================

Every credit, whatever its source, follows the same steps inside ONE
transaction:

  1. Lock the member's ``user_points`` row (``SELECT … FOR UPDATE``)
  2. Append a ``point_transactions`` row
  3. Apply the delta to total / weekly / monthly counters
  4. Evaluate badges against the new metrics
  5. Commit, then publish change events

There is no idempotency key: two calls record two transactions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from summit.database.engine import get_session, insert_if_absent
from summit.database.models import ActionType, PointTransaction, Profile, UserPoints
from summit.engine.changes import ChangeEvent, PointsUpdated, TransactionRecorded
from summit.engine.points import PointBalance, apply_credit, current_view, points_for_action
from summit.engine.streaks import local_today
from summit.services.badge_service import award_new_badges
from summit.services.context import MemberContext, require_member
from summit.services.member_service import get_or_create_profile

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from summit.engine.cache import CatalogCache
    from summit.engine.changes import ChangeFeed

logger = logging.getLogger(__name__)

# Profile counters bumped when the matching action is recorded
ACTION_COUNTERS: dict[ActionType, str] = {
    ActionType.ACHIEVEMENT_POSTED: "achievements_count",
    ActionType.DISCUSSION_CREATED: "discussions_count",
    ActionType.GOAL_COMPLETED: "goals_completed",
    ActionType.MEETING_ATTENDED: "meetings_attended",
}


@dataclass
class LedgerResult:
    balance: PointBalance
    points: int = 0
    badges_earned: list[int] = field(default_factory=list)


def _to_balance(row: UserPoints) -> PointBalance:
    return PointBalance(
        total_points=row.total_points or 0,
        weekly_points=row.weekly_points or 0,
        monthly_points=row.monthly_points or 0,
        week_key=row.week_key,
        month_key=row.month_key,
    )


def _select_points_row(session: Session, member_id: str) -> UserPoints | None:
    return session.scalar(
        select(UserPoints)
        .where(UserPoints.user_id == member_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def lock_points_row(session: Session, member_id: str) -> UserPoints:
    """Return the member's balance row, locked for update; create it if absent."""
    row = _select_points_row(session, member_id)
    if row is None:
        insert_if_absent(
            session, UserPoints,
            user_id=member_id, total_points=0, weekly_points=0, monthly_points=0,
        )
        row = _select_points_row(session, member_id)
    return row


def credit(
    session: Session,
    member_id: str,
    amount: int,
    action_type: ActionType | str,
    description: str | None = None,
    *,
    today: date,
) -> tuple[PointBalance, list[ChangeEvent]]:
    """Append a transaction and apply *amount* within the caller's transaction.

    Returns the new balance and the change events to publish after commit.
    """
    action = ActionType(action_type)
    row = lock_points_row(session, member_id)
    balance = apply_credit(_to_balance(row), amount, today)

    row.total_points = balance.total_points
    row.weekly_points = balance.weekly_points
    row.monthly_points = balance.monthly_points
    row.week_key = balance.week_key
    row.month_key = balance.month_key

    session.add(PointTransaction(
        user_id=member_id,
        points=amount,
        action_type=action.value,
        description=description,
    ))
    session.flush()

    logger.info(
        "Credited %d points to %s for %s (total=%d)",
        amount, member_id, action.value, balance.total_points,
    )
    events: list[ChangeEvent] = [
        TransactionRecorded(member_id, amount, action.value, description),
        PointsUpdated(
            member_id,
            balance.total_points,
            balance.weekly_points,
            balance.monthly_points,
        ),
    ]
    return balance, events


def credit_points(
    engine: Engine,
    ctx: MemberContext | None,
    amount: int,
    action_type: ActionType | str,
    description: str | None = None,
    *,
    now: datetime | None = None,
    cache: CatalogCache | None = None,
    feed: ChangeFeed | None = None,
) -> LedgerResult:
    """Credit the acting member and evaluate badges in one transaction."""
    ctx = require_member(ctx)

    with get_session(engine) as session:
        profile = get_or_create_profile(session, ctx)
        today = local_today(now, profile.timezone)
        balance, events = credit(
            session, ctx.member_id, amount, action_type, description, today=today,
        )
        earned, badge_events = award_new_badges(
            session, ctx.member_id, today=today, cache=cache,
        )
        events.extend(badge_events)

    if feed is not None:
        feed.publish_all(events)
    return LedgerResult(balance=balance, points=amount, badges_earned=earned)


def record_action(
    engine: Engine,
    ctx: MemberContext | None,
    action_type: ActionType | str,
    description: str | None = None,
    *,
    now: datetime | None = None,
    cache: CatalogCache | None = None,
    feed: ChangeFeed | None = None,
) -> LedgerResult:
    """Credit the configured value for a community action.

    Every community action except a manual award also bumps the profile
    counter that badge thresholds read.
    """
    ctx = require_member(ctx)
    action = ActionType(action_type)
    amount = points_for_action(action, cache)

    with get_session(engine) as session:
        profile = get_or_create_profile(session, ctx)
        today = local_today(now, profile.timezone)

        counter = ACTION_COUNTERS.get(action)
        if counter is not None:
            setattr(profile, counter, (getattr(profile, counter) or 0) + 1)

        events: list[ChangeEvent] = []
        balance = current_view(_to_balance(lock_points_row(session, ctx.member_id)), today)
        if amount:
            balance, events = credit(
                session, ctx.member_id, amount, action, description, today=today,
            )
        session.flush()
        earned, badge_events = award_new_badges(
            session, ctx.member_id, today=today, cache=cache,
        )
        events.extend(badge_events)

    if feed is not None:
        feed.publish_all(events)
    return LedgerResult(balance=balance, points=amount, badges_earned=earned)


def get_balance(
    engine: Engine, member_id: str, *, now: datetime | None = None,
) -> PointBalance:
    """Cached balance with stale weekly/monthly counters shown as 0."""
    with get_session(engine) as session:
        row = session.get(UserPoints, member_id)
        if row is None:
            return PointBalance()
        profile = session.get(Profile, member_id)
        tz_name = profile.timezone if profile is not None else "UTC"
        return current_view(_to_balance(row), local_today(now, tz_name))


def list_transactions(engine: Engine, member_id: str, *, limit: int = 30) -> list[dict]:
    """Newest-first ledger entries for *member_id*."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(PointTransaction)
            .where(PointTransaction.user_id == member_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .limit(limit)
        ).all()
        return [
            {
                "id": tx.id,
                "points": tx.points,
                "action_type": tx.action_type,
                "description": tx.description,
                "created_at": tx.created_at.isoformat() if tx.created_at else None,
            }
            for tx in rows
        ]
