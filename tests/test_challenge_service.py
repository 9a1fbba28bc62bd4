"""
tests/test_challenge_service.py — Daily Challenge Completion Tests
===================================================================
"""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from conftest import NOW
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from summit.database.models import (
    ChallengeCompletion,
    DailyChallenge,
    PointTransaction,
    UserPoints,
)
from summit.engine.changes import ChallengeCompleted, ChangeFeed, Operation
from summit.errors import AlreadyCompleted, AuthRequired, NotFound
from summit.services import challenge_service


def _add_challenge(engine, *, day: date = date(2024, 1, 2), reward: int | None = 20) -> int:
    with Session(engine) as session:
        challenge = DailyChallenge(
            title="Write 500 words",
            challenge_type="writing",
            points_reward=reward,
            active_date=day,
        )
        session.add(challenge)
        session.commit()
        return challenge.id


def _count(engine, model) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(model))


class TestCompleteChallenge:
    def test_completion_credits_reward(self, db_engine, member):
        challenge_id = _add_challenge(db_engine)
        result = challenge_service.complete_challenge(db_engine, member, challenge_id, now=NOW)

        assert result.points_awarded == 20
        with Session(db_engine) as session:
            tx = session.scalars(select(PointTransaction)).one()
            assert tx.action_type == "daily_challenge"
            assert tx.description == "Completed: Write 500 words"
            assert session.get(UserPoints, member.member_id).total_points == 20

    def test_second_completion_rejected_without_second_credit(self, db_engine, member):
        challenge_id = _add_challenge(db_engine)
        challenge_service.complete_challenge(db_engine, member, challenge_id, now=NOW)

        with pytest.raises(AlreadyCompleted):
            challenge_service.complete_challenge(db_engine, member, challenge_id, now=NOW)

        assert _count(db_engine, ChallengeCompletion) == 1
        assert _count(db_engine, PointTransaction) == 1
        with Session(db_engine) as session:
            assert session.get(UserPoints, member.member_id).total_points == 20

    def test_racing_insert_surfaces_as_already_completed(self, db_engine, member, monkeypatch):
        challenge_id = _add_challenge(db_engine)

        def _flush_conflict(self, *args, **kwargs):
            if any(isinstance(obj, ChallengeCompletion) for obj in self.new):
                raise IntegrityError("INSERT", {}, Exception("duplicate key"))
            return original_flush(self, *args, **kwargs)

        original_flush = Session.flush
        monkeypatch.setattr(Session, "flush", _flush_conflict)

        with pytest.raises(AlreadyCompleted):
            challenge_service.complete_challenge(db_engine, member, challenge_id, now=NOW)

        monkeypatch.undo()
        assert _count(db_engine, PointTransaction) == 0
        assert _count(db_engine, ChallengeCompletion) == 0

    def test_challenge_not_active_today(self, db_engine, member):
        challenge_id = _add_challenge(db_engine, day=date(2024, 1, 1))
        with pytest.raises(NotFound):
            challenge_service.complete_challenge(db_engine, member, challenge_id, now=NOW)

    def test_unknown_challenge(self, db_engine, member):
        with pytest.raises(NotFound):
            challenge_service.complete_challenge(db_engine, member, 404, now=NOW)

    def test_requires_member(self, db_engine):
        with pytest.raises(AuthRequired):
            challenge_service.complete_challenge(db_engine, None, 1, now=NOW)

    def test_no_reward_records_completion_only(self, db_engine, member):
        challenge_id = _add_challenge(db_engine, reward=None)
        feed = ChangeFeed()
        received = []
        feed.subscribe("*", Operation.ALL, received.append)

        result = challenge_service.complete_challenge(
            db_engine, member, challenge_id, now=NOW, feed=feed,
        )
        assert result.points_awarded == 0
        assert _count(db_engine, ChallengeCompletion) == 1
        assert _count(db_engine, PointTransaction) == 0
        assert received == [ChallengeCompleted(member.member_id, challenge_id, 0)]

    def test_events_lead_with_completion(self, db_engine, member):
        challenge_id = _add_challenge(db_engine)
        feed = ChangeFeed()
        received = []
        feed.subscribe("*", Operation.ALL, received.append)

        challenge_service.complete_challenge(db_engine, member, challenge_id, now=NOW, feed=feed)
        assert [e.table for e in received] == [
            "user_challenge_completions", "point_transactions", "user_points",
        ]


class TestTodaysChallenge:
    def test_reports_completion_state(self, db_engine, member):
        challenge_id = _add_challenge(db_engine)
        challenge, completed = challenge_service.get_todays_challenge(db_engine, member, now=NOW)
        assert challenge["id"] == challenge_id
        assert challenge["active_date"] == "2024-01-02"
        assert completed is False

        challenge_service.complete_challenge(db_engine, member, challenge_id, now=NOW)
        _, completed = challenge_service.get_todays_challenge(db_engine, member, now=NOW)
        assert completed is True

    def test_none_scheduled(self, db_engine, member):
        assert challenge_service.get_todays_challenge(db_engine, member, now=NOW) == (None, False)

    def test_anonymous_sees_utc_day(self, db_engine):
        _add_challenge(db_engine)
        challenge, completed = challenge_service.get_todays_challenge(
            db_engine, None, now=datetime(2024, 1, 2, 1, 0, tzinfo=UTC),
        )
        assert challenge is not None
        assert completed is False
