"""
summit.api.routes.me — Signed-in member endpoints
===================================================

Every route acts on the member named by the bearer token; the member id
is never taken from the request body.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from summit.api.deps import get_cache, get_engine, get_feed, get_member_context
from summit.database.engine import get_session
from summit.database.models import ActionType
from summit.engine.cache import CatalogCache
from summit.engine.changes import ChangeFeed
from summit.engine.points import PointBalance
from summit.engine.streaks import StreakState
from summit.services import badge_service, challenge_service, ledger_service, streak_service
from summit.services.context import MemberContext

router = APIRouter(tags=["member"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ActionRecord(BaseModel):
    action_type: ActionType
    description: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _streak_dict(state: StreakState) -> dict:
    return {
        "current_streak": state.current_streak,
        "longest_streak": state.longest_streak,
        "last_activity_date": (
            state.last_activity_date.isoformat() if state.last_activity_date else None
        ),
    }


def _balance_dict(balance: PointBalance) -> dict:
    return {
        "total_points": balance.total_points,
        "weekly_points": balance.weekly_points,
        "monthly_points": balance.monthly_points,
    }


# ---------------------------------------------------------------------------
# Streak
# ---------------------------------------------------------------------------
@router.get("/me/streak")
def get_my_streak(
    member: MemberContext = Depends(get_member_context),
    engine=Depends(get_engine),
    cache: CatalogCache = Depends(get_cache),
    feed: ChangeFeed = Depends(get_feed),
):
    """Record today's visit and return the updated streak."""
    state = streak_service.record_activity(engine, member, cache=cache, feed=feed)
    return _streak_dict(state)


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------
@router.get("/me/points")
def get_my_points(
    member: MemberContext = Depends(get_member_context),
    engine=Depends(get_engine),
):
    return _balance_dict(ledger_service.get_balance(engine, member.member_id))


@router.get("/me/transactions")
def get_my_transactions(
    limit: int = Query(30, ge=1, le=100),
    member: MemberContext = Depends(get_member_context),
    engine=Depends(get_engine),
):
    return {
        "transactions": ledger_service.list_transactions(
            engine, member.member_id, limit=limit,
        ),
    }


@router.post("/me/actions", status_code=201)
def record_my_action(
    body: ActionRecord,
    member: MemberContext = Depends(get_member_context),
    engine=Depends(get_engine),
    cache: CatalogCache = Depends(get_cache),
    feed: ChangeFeed = Depends(get_feed),
):
    """Credit a community action (achievement, discussion, goal, meeting)."""
    try:
        result = ledger_service.record_action(
            engine, member, body.action_type, body.description,
            cache=cache, feed=feed,
        )
    except ValueError as exc:
        raise HTTPException(422, str(exc)) from exc
    return {
        "points": result.points,
        **_balance_dict(result.balance),
        "badges_earned": result.badges_earned,
    }


# ---------------------------------------------------------------------------
# Daily challenge
# ---------------------------------------------------------------------------
@router.get("/challenges/today")
def get_todays_challenge(
    member: MemberContext = Depends(get_member_context),
    engine=Depends(get_engine),
):
    challenge, completed = challenge_service.get_todays_challenge(engine, member)
    return {"challenge": challenge, "completed": completed}


@router.post("/challenges/{challenge_id}/complete")
def complete_challenge(
    challenge_id: int,
    member: MemberContext = Depends(get_member_context),
    engine=Depends(get_engine),
    cache: CatalogCache = Depends(get_cache),
    feed: ChangeFeed = Depends(get_feed),
):
    result = challenge_service.complete_challenge(
        engine, member, challenge_id, cache=cache, feed=feed,
    )
    return {
        "challenge_id": result.challenge_id,
        "points_awarded": result.points_awarded,
        "badges_earned": result.badges_earned,
    }


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------
@router.get("/me/badges")
def get_my_badges(
    member: MemberContext = Depends(get_member_context),
    engine=Depends(get_engine),
):
    with get_session(engine) as session:
        return {"badges": badge_service.list_member_badges(session, member.member_id)}


@router.post("/me/badges/evaluate")
def evaluate_my_badges(
    member: MemberContext = Depends(get_member_context),
    engine=Depends(get_engine),
    cache: CatalogCache = Depends(get_cache),
    feed: ChangeFeed = Depends(get_feed),
):
    """Catch up on badges for metrics changed outside this service."""
    earned = badge_service.evaluate_member(engine, member, cache=cache, feed=feed)
    return {"badges_earned": earned}
