"""
summit.services.challenge_service — Daily Challenge Completion
===============================================================

One challenge is active per calendar date.  Completing it follows the
same single-transaction pattern as the ledger:

  1. Resolve the member's local "today" and check the challenge is active
  2. Insert the ``user_challenge_completions`` row (composite PK)
  3. Credit ``points_reward`` as a ``daily_challenge`` transaction
  4. Evaluate badges
  5. Commit, then publish change events

A second completion of the same challenge raises
:class:`~summit.errors.AlreadyCompleted` and writes nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from summit.database.engine import get_session
from summit.database.models import ActionType, ChallengeCompletion, DailyChallenge
from summit.engine.changes import ChallengeCompleted, ChangeEvent
from summit.engine.streaks import local_today
from summit.errors import AlreadyCompleted, NotFound
from summit.services.badge_service import award_new_badges
from summit.services.context import MemberContext, require_member
from summit.services.ledger_service import credit
from summit.services.member_service import get_or_create_profile

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from summit.engine.cache import CatalogCache
    from summit.engine.changes import ChangeFeed

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    challenge_id: int
    points_awarded: int = 0
    badges_earned: list[int] = field(default_factory=list)


def challenge_dict(challenge: DailyChallenge) -> dict:
    return {
        "id": challenge.id,
        "title": challenge.title,
        "description": challenge.description,
        "challenge_type": challenge.challenge_type,
        "points_reward": challenge.points_reward or 0,
        "active_date": challenge.active_date.isoformat(),
    }


def challenge_for_date(session, day: date) -> DailyChallenge | None:
    return session.scalar(
        select(DailyChallenge).where(DailyChallenge.active_date == day)
    )


def get_todays_challenge(
    engine: Engine,
    ctx: MemberContext | None = None,
    *,
    now: datetime | None = None,
) -> tuple[dict | None, bool]:
    """Return ``(challenge, completed)`` for the caller's local today.

    Anonymous callers see the UTC day's challenge with ``completed=False``.
    """
    tz_name = ctx.timezone if ctx is not None else "UTC"
    with get_session(engine) as session:
        if ctx is not None:
            tz_name = get_or_create_profile(session, ctx).timezone
        challenge = challenge_for_date(session, local_today(now, tz_name))
        if challenge is None:
            return None, False
        completed = ctx is not None and session.get(
            ChallengeCompletion, (ctx.member_id, challenge.id),
        ) is not None
        return challenge_dict(challenge), completed


def complete_challenge(
    engine: Engine,
    ctx: MemberContext | None,
    challenge_id: int,
    *,
    now: datetime | None = None,
    cache: CatalogCache | None = None,
    feed: ChangeFeed | None = None,
) -> CompletionResult:
    """Mark *challenge_id* complete for the acting member and credit its reward.

    Raises
    ------
    AuthRequired
        If *ctx* carries no member.
    NotFound
        If the challenge does not exist or is not active on the member's today.
    AlreadyCompleted
        If the member already completed it.  Nothing is written.
    """
    ctx = require_member(ctx)

    with get_session(engine) as session:
        profile = get_or_create_profile(session, ctx)
        today = local_today(now, profile.timezone)

        challenge = session.get(DailyChallenge, challenge_id)
        if challenge is None or challenge.active_date != today:
            raise NotFound("No such challenge is active today.")

        if session.get(ChallengeCompletion, (ctx.member_id, challenge_id)) is not None:
            raise AlreadyCompleted()

        session.add(ChallengeCompletion(user_id=ctx.member_id, challenge_id=challenge_id))
        try:
            session.flush()
        except IntegrityError:
            # A concurrent request inserted the same completion first
            raise AlreadyCompleted() from None

        reward = challenge.points_reward or 0
        events: list[ChangeEvent] = []
        if reward:
            _, events = credit(
                session,
                ctx.member_id,
                reward,
                ActionType.DAILY_CHALLENGE,
                f"Completed: {challenge.title}",
                today=today,
            )
        events.insert(0, ChallengeCompleted(ctx.member_id, challenge_id, reward))

        earned, badge_events = award_new_badges(
            session, ctx.member_id, today=today, cache=cache,
        )
        events.extend(badge_events)

    logger.info(
        "Member %s completed challenge %d (+%d points)",
        ctx.member_id, challenge_id, reward,
    )
    if feed is not None:
        feed.publish_all(events)
    return CompletionResult(challenge_id, reward, earned)
