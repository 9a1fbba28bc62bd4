"""
summit.api.routes.public — Read-only public endpoints
=======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from summit.api.deps import get_cache, get_engine, get_session
from summit.constants import LEADERBOARD_PERIODS, RANK_BADGES
from summit.engine.cache import CatalogCache
from summit.engine.streaks import local_today
from summit.errors import NotFound
from summit.services import badge_service, ledger_service, member_service, streak_service

router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# GET /leaderboard/{period}
# ---------------------------------------------------------------------------
@router.get("/leaderboard/{period}")
def get_leaderboard(
    period: str,
    session: Session = Depends(get_session),
    cache: CatalogCache = Depends(get_cache),
):
    """Top members by total, weekly or monthly points."""
    if period not in LEADERBOARD_PERIODS:
        raise NotFound(f"Unknown leaderboard period: {period}")

    entries = member_service.get_leaderboard(
        session,
        period,
        today=local_today(),
        limit=cache.get_int("leaderboard.size", 100),
    )
    for entry in entries:
        rank = entry["rank"]
        entry["rank_badge"] = RANK_BADGES[rank - 1] if rank <= len(RANK_BADGES) else None
    return {"period": period, "entries": entries}


# ---------------------------------------------------------------------------
# GET /badges
# ---------------------------------------------------------------------------
@router.get("/badges")
def get_badges(session: Session = Depends(get_session)):
    """Active badge catalog with icon and category presentation."""
    return {"badges": badge_service.list_catalog(session)}


# ---------------------------------------------------------------------------
# GET /members/{member_id}
# ---------------------------------------------------------------------------
@router.get("/members/{member_id}")
def get_member(
    member_id: str,
    session: Session = Depends(get_session),
    engine=Depends(get_engine),
):
    """Public profile card: balance, read-only streak and earned badges."""
    profile = member_service.get_profile(session, member_id)
    balance = ledger_service.get_balance(engine, member_id)
    streak = streak_service.get_streak(engine, member_id)
    return {
        "id": profile.id,
        "username": profile.username,
        "full_name": profile.full_name,
        "avatar_url": profile.avatar_url,
        "member_tier": profile.member_tier,
        "joined_at": profile.joined_at.isoformat() if profile.joined_at else None,
        "points": {
            "total_points": balance.total_points,
            "weekly_points": balance.weekly_points,
            "monthly_points": balance.monthly_points,
        },
        "streak": {
            "current_streak": streak.current_streak,
            "longest_streak": streak.longest_streak,
            "last_activity_date": (
                streak.last_activity_date.isoformat()
                if streak.last_activity_date else None
            ),
        },
        "badges": badge_service.list_member_badges(session, member_id),
    }
