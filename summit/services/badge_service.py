"""
summit.services.badge_service — Metric Assembly & Badge Awards
===============================================================

Badges are evaluated at write time: every mutation that can move a metric
(ledger credit, streak update, challenge completion) calls
:func:`award_new_badges` inside its own transaction.  :func:`evaluate_member`
is the same check as a standalone, idempotent call for metrics that were
changed outside this service.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from summit.constants import category_style, resolve_icon
from summit.database.engine import get_session, insert_if_absent
from summit.database.models import (
    Badge,
    ChallengeCompletion,
    Profile,
    UserBadge,
    UserPoints,
    UserStreak,
)
from summit.engine.badges import MemberMetrics, evaluate_badges
from summit.engine.changes import BadgeEarned, ChangeEvent
from summit.engine.points import PointBalance, current_view
from summit.engine.streaks import StreakState, displayed_streak, local_today
from summit.errors import NotFound
from summit.services.context import MemberContext, require_member

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from summit.engine.cache import CatalogCache
    from summit.engine.changes import ChangeFeed

logger = logging.getLogger(__name__)


def get_earned_badge_ids(session: Session, member_id: str) -> set[int]:
    rows = session.scalars(
        select(UserBadge.badge_id).where(UserBadge.user_id == member_id)
    ).all()
    return set(rows)


def build_metrics(session: Session, member_id: str, *, today: date) -> MemberMetrics:
    """Collect every metric a badge threshold can reference."""
    points = session.get(UserPoints, member_id)
    balance = PointBalance()
    if points is not None:
        balance = current_view(
            PointBalance(
                points.total_points or 0,
                points.weekly_points or 0,
                points.monthly_points or 0,
                points.week_key,
                points.month_key,
            ),
            today,
        )

    streak_row = session.get(UserStreak, member_id)
    streak = displayed_streak(
        StreakState(
            streak_row.current_streak,
            streak_row.longest_streak,
            streak_row.last_activity_date,
        ) if streak_row is not None else None,
        today,
    )

    challenges = session.scalar(
        select(func.count())
        .select_from(ChallengeCompletion)
        .where(ChallengeCompletion.user_id == member_id)
    ) or 0
    badges = session.scalar(
        select(func.count())
        .select_from(UserBadge)
        .where(UserBadge.user_id == member_id)
    ) or 0

    profile = session.get(Profile, member_id)
    return MemberMetrics(
        total_points=balance.total_points,
        weekly_points=balance.weekly_points,
        monthly_points=balance.monthly_points,
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        challenges_completed=challenges,
        achievements=(profile.achievements_count or 0) if profile else 0,
        goals_completed=(profile.goals_completed or 0) if profile else 0,
        discussions=(profile.discussions_count or 0) if profile else 0,
        meetings_attended=(profile.meetings_attended or 0) if profile else 0,
        badges=badges,
    )


def _catalog(session: Session, cache: CatalogCache | None) -> list[Badge]:
    if cache is not None:
        return cache.get_active_badges()
    return list(session.scalars(
        select(Badge)
        .where(Badge.active.is_(True))
        .order_by(Badge.requirement_value, Badge.id)
    ).all())


def award_new_badges(
    session: Session,
    member_id: str,
    *,
    today: date,
    cache: CatalogCache | None = None,
) -> tuple[list[int], list[ChangeEvent]]:
    """Insert ``user_badges`` rows for every newly qualified badge.

    Runs inside the caller's transaction.  Returns the awarded badge IDs and
    the :class:`BadgeEarned` events to publish after commit.
    """
    session.flush()
    catalog = _catalog(session, cache)
    if not catalog:
        return [], []

    earned = get_earned_badge_ids(session, member_id)
    metrics = build_metrics(session, member_id, today=today)
    new_ids = evaluate_badges(catalog, metrics, earned)

    names = {badge.id: badge.name for badge in catalog}
    awarded: list[int] = []
    events: list[ChangeEvent] = []
    for badge_id in new_ids:
        # A concurrent write for the same member may have awarded it already
        if not insert_if_absent(session, UserBadge, user_id=member_id, badge_id=badge_id):
            continue
        awarded.append(badge_id)
        events.append(BadgeEarned(member_id, badge_id, names[badge_id]))
        logger.info("Member %s earned badge %r", member_id, names[badge_id])
    return awarded, events


def evaluate_member(
    engine: Engine,
    ctx: MemberContext | None,
    *,
    now: datetime | None = None,
    cache: CatalogCache | None = None,
    feed: ChangeFeed | None = None,
) -> list[int]:
    """Standalone badge check for the acting member.  Idempotent."""
    ctx = require_member(ctx)
    with get_session(engine) as session:
        profile = session.get(Profile, ctx.member_id)
        if profile is None:
            return []
        new_ids, events = award_new_badges(
            session,
            ctx.member_id,
            today=local_today(now, profile.timezone),
            cache=cache,
        )
    if feed is not None:
        feed.publish_all(events)
    return new_ids


def grant_badge_in_session(
    session: Session,
    member_id: str,
    badge_id: int,
    *,
    granted_by: str,
) -> tuple[bool, str, list[ChangeEvent]]:
    """Manually grant *badge_id* regardless of its threshold.

    Returns ``(granted, message, events)``.
    """
    if session.get(Profile, member_id) is None:
        raise NotFound("Member not found.")
    badge = session.get(Badge, badge_id)
    if badge is None:
        raise NotFound("Badge not found.")

    if not insert_if_absent(
        session, UserBadge, user_id=member_id, badge_id=badge_id, granted_by=granted_by,
    ):
        return False, "Member has already earned this badge.", []
    return True, f"Badge '{badge.name}' granted.", [
        BadgeEarned(member_id, badge.id, badge.name),
    ]


def badge_dict(badge: Badge, earned_at: datetime | None = None) -> dict:
    """Catalog entry with its resolved icon and category presentation."""
    return {
        "id": badge.id,
        "name": badge.name,
        "description": badge.description,
        "icon": resolve_icon(badge.icon_name).value,
        **category_style(badge.category),
        "requirement_type": badge.requirement_type,
        "requirement_value": badge.requirement_value,
        "earned": earned_at is not None,
        "earned_at": earned_at.isoformat() if earned_at else None,
    }


def list_member_badges(session: Session, member_id: str) -> list[dict]:
    rows = session.execute(
        select(Badge, UserBadge.earned_at)
        .join(UserBadge, UserBadge.badge_id == Badge.id)
        .where(UserBadge.user_id == member_id)
        .order_by(UserBadge.earned_at, Badge.id)
    ).all()
    return [badge_dict(badge, earned_at) for badge, earned_at in rows]


def list_catalog(session: Session, member_id: str | None = None) -> list[dict]:
    """Every active badge, flagged with the member's earned date when given."""
    earned: dict[int, datetime] = {}
    if member_id is not None:
        earned = dict(session.execute(
            select(UserBadge.badge_id, UserBadge.earned_at)
            .where(UserBadge.user_id == member_id)
        ).all())
    badges = session.scalars(
        select(Badge)
        .where(Badge.active.is_(True))
        .order_by(Badge.requirement_value, Badge.id)
    ).all()
    return [badge_dict(badge, earned.get(badge.id)) for badge in badges]
