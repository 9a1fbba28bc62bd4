"""
summit.services.member_service — Profiles & Leaderboard Reads
==============================================================
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import case, select
from sqlalchemy.orm import Session

from summit.database.engine import insert_if_absent
from summit.database.models import Profile, UserPoints
from summit.engine.points import period_keys
from summit.errors import NotFound
from summit.services.context import MemberContext

logger = logging.getLogger(__name__)


def get_or_create_profile(session: Session, ctx: MemberContext) -> Profile:
    """Fetch or insert the Profile row for the acting member.

    A first sighting stores the context's time zone; later calls keep the
    zone on record so "today" stays stable for the member.
    """
    profile = session.get(Profile, ctx.member_id)
    if profile is None:
        created = insert_if_absent(
            session, Profile,
            id=ctx.member_id,
            username=ctx.display_name or ctx.member_id[:8],
            timezone=ctx.timezone or "UTC",
        )
        profile = session.get(Profile, ctx.member_id, populate_existing=True)
        if created:
            logger.info("Created profile for member %s", ctx.member_id)
            return profile
    if ctx.display_name and profile.username != ctx.display_name:
        profile.username = ctx.display_name
    return profile


def get_profile(session: Session, member_id: str) -> Profile:
    profile = session.get(Profile, member_id)
    if profile is None:
        raise NotFound("Member not found.")
    return profile


def get_leaderboard(
    session: Session,
    period: str,
    *,
    today: date,
    limit: int = 100,
) -> list[dict]:
    """Rank members by total, weekly or monthly points.

    Weekly/monthly counters left over from an earlier period count as 0.
    """
    week_key, month_key = period_keys(today)
    weekly = case(
        (UserPoints.week_key == week_key, UserPoints.weekly_points), else_=0,
    )
    monthly = case(
        (UserPoints.month_key == month_key, UserPoints.monthly_points), else_=0,
    )
    order_col = {
        "total": UserPoints.total_points,
        "weekly": weekly,
        "monthly": monthly,
    }.get(period, UserPoints.total_points)

    rows = session.execute(
        select(
            Profile,
            UserPoints.total_points,
            weekly.label("weekly_points"),
            monthly.label("monthly_points"),
        )
        .join(UserPoints, UserPoints.user_id == Profile.id)
        .order_by(order_col.desc(), Profile.id)
        .limit(limit)
    ).all()

    entries = []
    for rank, (profile, total, week_pts, month_pts) in enumerate(rows, start=1):
        entries.append({
            "rank": rank,
            "member_id": profile.id,
            "username": profile.username,
            "full_name": profile.full_name,
            "avatar_url": profile.avatar_url,
            "member_tier": profile.member_tier,
            "total_points": total,
            "weekly_points": week_pts,
            "monthly_points": month_pts,
        })
    return entries
