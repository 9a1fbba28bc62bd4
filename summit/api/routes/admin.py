"""
summit.api.routes.admin — Admin endpoints (JWT-protected)
===========================================================
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from summit.api.deps import get_cache, get_current_admin, get_engine, get_feed
from summit.engine.cache import CatalogCache
from summit.engine.changes import ChangeFeed
from summit.services import admin_service
from summit.services.context import MemberContext
from summit.services.reconciliation_service import reconcile_point_totals

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PointAward(BaseModel):
    member_id: str
    amount: int
    reason: str | None = None

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("amount must be non-zero")
        return value


class BadgeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    icon_name: str = "award"
    category: str = "other"
    requirement_type: str
    requirement_value: int = Field(ge=0)
    reason: str | None = None


class BadgeGrant(BaseModel):
    member_id: str
    reason: str | None = None


class ChallengeCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    challenge_type: str = "general"
    points_reward: int | None = Field(default=None, ge=0)
    active_date: date
    reason: str | None = None


class SettingValue(BaseModel):
    value: Any
    category: str = "general"
    description: str | None = None
    reason: str | None = None


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------
@router.post("/points/award")
def award_points(
    body: PointAward,
    admin: MemberContext = Depends(get_current_admin),
    engine=Depends(get_engine),
    cache: CatalogCache = Depends(get_cache),
    feed: ChangeFeed = Depends(get_feed),
):
    return admin_service.award_points(
        engine,
        actor_id=admin.member_id,
        member_id=body.member_id,
        amount=body.amount,
        reason=body.reason,
        cache=cache,
        feed=feed,
    )


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------
@router.post("/badges", status_code=201)
def create_badge(
    body: BadgeCreate,
    admin: MemberContext = Depends(get_current_admin),
    engine=Depends(get_engine),
    feed: ChangeFeed = Depends(get_feed),
):
    try:
        return admin_service.create_badge(
            engine,
            actor_id=admin.member_id,
            name=body.name,
            description=body.description,
            icon_name=body.icon_name,
            category=body.category,
            requirement_type=body.requirement_type,
            requirement_value=body.requirement_value,
            reason=body.reason,
            feed=feed,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc


@router.post("/badges/{badge_id}/grant")
def grant_badge(
    badge_id: int,
    body: BadgeGrant,
    admin: MemberContext = Depends(get_current_admin),
    engine=Depends(get_engine),
    feed: ChangeFeed = Depends(get_feed),
):
    granted, msg = admin_service.grant_badge(
        engine,
        actor_id=admin.member_id,
        member_id=body.member_id,
        badge_id=badge_id,
        reason=body.reason,
        feed=feed,
    )
    if not granted:
        raise HTTPException(400, msg)
    return {"message": msg}


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
@router.post("/challenges", status_code=201)
def create_challenge(
    body: ChallengeCreate,
    admin: MemberContext = Depends(get_current_admin),
    engine=Depends(get_engine),
    feed: ChangeFeed = Depends(get_feed),
):
    try:
        return admin_service.create_challenge(
            engine,
            actor_id=admin.member_id,
            title=body.title,
            description=body.description,
            challenge_type=body.challenge_type,
            points_reward=body.points_reward,
            active_date=body.active_date,
            reason=body.reason,
            feed=feed,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
@router.put("/settings/{key}")
def update_setting(
    key: str,
    body: SettingValue,
    admin: MemberContext = Depends(get_current_admin),
    engine=Depends(get_engine),
    feed: ChangeFeed = Depends(get_feed),
):
    return admin_service.upsert_setting(
        engine,
        actor_id=admin.member_id,
        key=key,
        value=body.value,
        category=body.category,
        description=body.description,
        reason=body.reason,
        feed=feed,
    )


# ---------------------------------------------------------------------------
# Audit Log
# ---------------------------------------------------------------------------
@router.get("/audit")
def get_audit_log(
    limit: int = Query(50, ge=1, le=200),
    target_table: str | None = None,
    admin: MemberContext = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    """Newest-first admin audit log."""
    return {
        "entries": admin_service.list_audit(engine, limit=limit, target_table=target_table),
    }


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------
@router.post("/reconcile")
def run_reconciliation(
    admin: MemberContext = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    """Re-derive cached point totals from the ledger now."""
    return reconcile_point_totals(engine)
