"""
summit.services.admin_service — Audited Admin Mutations
========================================================

Every admin write follows the pattern:
  1. Begin transaction
  2. Read "before" snapshot
  3. Apply change
  4. Write admin_log with before/after JSON snapshots
  5. Commit
  6. Publish the change on the ChangeFeed (catalog caches reload)
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from summit.constants import parse_category, resolve_icon
from summit.database.engine import get_session
from summit.database.models import (
    ActionType,
    AdminLog,
    Badge,
    DailyChallenge,
    Profile,
    RequirementType,
    Setting,
)
from summit.engine.changes import CatalogChanged, ChangeEvent, Operation
from summit.engine.streaks import local_today
from summit.errors import NotFound
from summit.services.badge_service import award_new_badges, badge_dict, grant_badge_in_session
from summit.services.challenge_service import challenge_dict
from summit.services.ledger_service import credit

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from summit.engine.cache import CatalogCache
    from summit.engine.changes import ChangeFeed

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------

def _row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, (datetime, date)):
            val = val.isoformat()
        result[col.name] = val
    return result


def _log_admin_action(
    session: Session,
    *,
    actor_id: str,
    action_type: str,
    target_table: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type,
        target_table=target_table,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def _publish(feed: ChangeFeed | None, events: list[ChangeEvent]) -> None:
    if feed is not None:
        feed.publish_all(events)


# ---------------------------------------------------------------------------
# Badge catalog
# ---------------------------------------------------------------------------

def create_badge(
    engine: Engine,
    *,
    actor_id: str,
    name: str,
    requirement_type: str,
    requirement_value: int,
    description: str | None = None,
    icon_name: str = "award",
    category: str = "other",
    reason: str | None = None,
    feed: ChangeFeed | None = None,
) -> dict:
    """Add a badge to the catalog.

    Raises ``ValueError`` for an unknown requirement type, a negative
    threshold or a duplicate name.  Icon and category are normalised to their known variants.
    """
    req = RequirementType(requirement_type)
    if requirement_value < 0:
        raise ValueError("requirement_value must be >= 0")

    with get_session(engine) as session:
        if session.scalar(select(Badge.id).where(Badge.name == name)) is not None:
            raise ValueError(f"A badge named {name!r} already exists")
        badge = Badge(
            name=name,
            description=description,
            icon_name=resolve_icon(icon_name).value,
            category=parse_category(category).value,
            requirement_type=req.value,
            requirement_value=requirement_value,
            active=True,
        )
        session.add(badge)
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="CREATE",
            target_table="badges",
            target_id=str(badge.id),
            before=None,
            after=_row_to_dict(badge),
            reason=reason,
        )
        result = badge_dict(badge)

    logger.info("Admin %s created badge %r", actor_id, name)
    _publish(feed, [CatalogChanged("badges", Operation.INSERT)])
    return result


def grant_badge(
    engine: Engine,
    *,
    actor_id: str,
    member_id: str,
    badge_id: int,
    reason: str | None = None,
    feed: ChangeFeed | None = None,
) -> tuple[bool, str]:
    """Manually grant a badge.  Returns ``(granted, message)``."""
    with get_session(engine) as session:
        granted, message, events = grant_badge_in_session(
            session, member_id, badge_id, granted_by=actor_id,
        )
        if granted:
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type="GRANT",
                target_table="user_badges",
                target_id=f"{member_id}:{badge_id}",
                before=None,
                after={"user_id": member_id, "badge_id": badge_id},
                reason=reason,
            )

    _publish(feed, events)
    return granted, message


# ---------------------------------------------------------------------------
# Daily challenges
# ---------------------------------------------------------------------------

def create_challenge(
    engine: Engine,
    *,
    actor_id: str,
    title: str,
    active_date: date,
    challenge_type: str = "general",
    description: str | None = None,
    points_reward: int | None = None,
    reason: str | None = None,
    feed: ChangeFeed | None = None,
) -> dict:
    """Schedule the challenge for *active_date* (one per date)."""
    with get_session(engine) as session:
        existing = session.scalar(
            select(DailyChallenge).where(DailyChallenge.active_date == active_date)
        )
        if existing is not None:
            raise ValueError(f"A challenge is already scheduled for {active_date}")

        challenge = DailyChallenge(
            title=title,
            description=description,
            challenge_type=challenge_type,
            points_reward=points_reward,
            active_date=active_date,
        )
        session.add(challenge)
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="CREATE",
            target_table="daily_challenges",
            target_id=str(challenge.id),
            before=None,
            after=_row_to_dict(challenge),
            reason=reason,
        )
        result = challenge_dict(challenge)

    _publish(feed, [CatalogChanged("daily_challenges", Operation.INSERT)])
    return result


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def upsert_setting(
    engine: Engine,
    *,
    actor_id: str,
    key: str,
    value: Any,
    category: str = "general",
    description: str | None = None,
    reason: str | None = None,
    feed: ChangeFeed | None = None,
) -> dict:
    """Create or update a settings row (value stored as JSON)."""
    with get_session(engine) as session:
        row = session.get(Setting, key)
        before = _row_to_dict(row)
        if row is None:
            row = Setting(
                key=key,
                value_json=json.dumps(value),
                category=category,
                description=description,
            )
            session.add(row)
            op = Operation.INSERT
        else:
            row.value_json = json.dumps(value)
            if description is not None:
                row.description = description
            op = Operation.UPDATE
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="CREATE" if before is None else "UPDATE",
            target_table="settings",
            target_id=key,
            before=before,
            after=_row_to_dict(row),
            reason=reason,
        )
        result = {"key": row.key, "value": value, "category": row.category}

    _publish(feed, [CatalogChanged("settings", op)])
    return result


# ---------------------------------------------------------------------------
# Manual point awards
# ---------------------------------------------------------------------------

def award_points(
    engine: Engine,
    *,
    actor_id: str,
    member_id: str,
    amount: int,
    reason: str | None = None,
    now: datetime | None = None,
    cache: CatalogCache | None = None,
    feed: ChangeFeed | None = None,
) -> dict:
    """Credit *amount* to *member_id* as a ``manual_award`` transaction.

    Negative amounts are debits.  The award and its audit row commit
    together with any badges it unlocks.
    """
    with get_session(engine) as session:
        profile = session.get(Profile, member_id)
        if profile is None:
            raise NotFound("Member not found.")
        today = local_today(now, profile.timezone)
        balance, events = credit(
            session,
            member_id,
            amount,
            ActionType.MANUAL_AWARD,
            reason or "Manual award",
            today=today,
        )
        earned, badge_events = award_new_badges(
            session, member_id, today=today, cache=cache,
        )
        events.extend(badge_events)
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="AWARD",
            target_table="point_transactions",
            target_id=member_id,
            before=None,
            after={"points": amount, "total_points": balance.total_points},
            reason=reason,
        )

    _publish(feed, events)
    return {
        "member_id": member_id,
        "points": amount,
        "total_points": balance.total_points,
        "badges_earned": earned,
    }


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------

def list_audit(
    engine: Engine,
    *,
    limit: int = 50,
    target_table: str | None = None,
) -> list[dict]:
    """Newest-first admin_log entries."""
    with get_session(engine) as session:
        q = select(AdminLog).order_by(AdminLog.timestamp.desc(), AdminLog.id.desc())
        if target_table:
            q = q.where(AdminLog.target_table == target_table)
        rows = session.scalars(q.limit(limit)).all()
        return [_row_to_dict(row) for row in rows]
