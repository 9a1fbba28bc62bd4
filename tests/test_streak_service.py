"""
tests/test_streak_service.py — Streak Persistence Integration Tests
====================================================================
"""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from sqlalchemy.orm import Session

from summit.database.models import Badge, Profile, UserBadge, UserStreak
from summit.engine.changes import ChangeFeed, Operation, StreakRecorded
from summit.engine.streaks import StreakState
from summit.errors import AuthRequired
from summit.services import streak_service
from summit.services.context import MemberContext


def _at(day: date, hour: int = 12) -> datetime:
    return datetime(day.year, day.month, day.day, hour, 0, tzinfo=UTC)


def _seed_streak(engine, member_id: str, current: int, longest: int, last: date) -> None:
    with Session(engine) as session:
        session.add(Profile(id=member_id, username="seed"))
        session.add(UserStreak(
            user_id=member_id,
            current_streak=current,
            longest_streak=longest,
            last_activity_date=last,
        ))
        session.commit()


class TestRecordActivity:
    def test_consecutive_then_gap(self, db_engine, member):
        _seed_streak(db_engine, member.member_id, 3, 5, date(2024, 1, 1))

        state = streak_service.record_activity(db_engine, member, now=_at(date(2024, 1, 2)))
        assert state == StreakState(4, 5, date(2024, 1, 2))

        state = streak_service.record_activity(db_engine, member, now=_at(date(2024, 1, 5)))
        assert state == StreakState(1, 5, date(2024, 1, 5))

        with Session(db_engine) as session:
            row = session.get(UserStreak, member.member_id)
            assert (row.current_streak, row.longest_streak, row.last_activity_date) == (
                1, 5, date(2024, 1, 5),
            )

    def test_first_activity_creates_row(self, db_engine, member):
        feed = ChangeFeed()
        received = []
        feed.subscribe("user_streaks", Operation.ALL, received.append)

        state = streak_service.record_activity(
            db_engine, member, now=_at(date(2024, 1, 2)), feed=feed,
        )
        assert state == StreakState(1, 1, date(2024, 1, 2))
        assert received == [
            StreakRecorded(member.member_id, 1, 1, date(2024, 1, 2), op=Operation.INSERT),
        ]

    def test_same_day_is_idempotent(self, db_engine, member):
        feed = ChangeFeed()
        received = []
        feed.subscribe("*", Operation.ALL, received.append)

        streak_service.record_activity(db_engine, member, now=_at(date(2024, 1, 2), 8), feed=feed)
        state = streak_service.record_activity(
            db_engine, member, now=_at(date(2024, 1, 2), 20), feed=feed,
        )
        assert state.current_streak == 1
        assert len(received) == 1

    def test_uses_member_time_zone(self, db_engine):
        # 03:00 UTC on Jan 2 is still Jan 1 in New York
        ny = MemberContext(member_id="member-ny", timezone="America/New_York")
        _seed_streak(db_engine, ny.member_id, 2, 2, date(2023, 12, 31))
        with Session(db_engine) as session:
            session.get(Profile, ny.member_id).timezone = "America/New_York"
            session.commit()

        state = streak_service.record_activity(
            db_engine, ny, now=datetime(2024, 1, 2, 3, 0, tzinfo=UTC),
        )
        assert state == StreakState(3, 3, date(2024, 1, 1))

    def test_requires_member(self, db_engine):
        with pytest.raises(AuthRequired):
            streak_service.record_activity(db_engine, None)

    def test_future_last_date_resets(self, db_engine, member):
        _seed_streak(db_engine, member.member_id, 5, 7, date(2024, 1, 10))
        state = streak_service.record_activity(db_engine, member, now=_at(date(2024, 1, 9)))
        assert state == StreakState(1, 7, date(2024, 1, 9))
        with Session(db_engine) as session:
            assert session.get(UserStreak, member.member_id).last_activity_date == date(2024, 1, 9)

    def test_row_created_concurrently_is_advanced(self, db_engine, member, monkeypatch):
        _seed_streak(db_engine, member.member_id, 3, 5, date(2024, 1, 1))
        original = streak_service._lock_streak_row
        reads = []

        def _stale_first_read(session, member_id):
            reads.append(member_id)
            if len(reads) == 1:
                return None
            return original(session, member_id)

        monkeypatch.setattr(streak_service, "_lock_streak_row", _stale_first_read)
        feed = ChangeFeed()
        received = []
        feed.subscribe("user_streaks", Operation.ALL, received.append)

        state = streak_service.record_activity(
            db_engine, member, now=_at(date(2024, 1, 2)), feed=feed,
        )

        assert state == StreakState(4, 5, date(2024, 1, 2))
        assert received[0].op is Operation.UPDATE

    def test_streak_badge_awarded(self, db_engine, member):
        _seed_streak(db_engine, member.member_id, 6, 6, date(2024, 1, 1))
        with Session(db_engine) as session:
            session.add(Badge(name="On Fire", requirement_type="streak", requirement_value=7))
            session.commit()

        streak_service.record_activity(db_engine, member, now=_at(date(2024, 1, 2)))
        with Session(db_engine) as session:
            assert session.get(UserBadge, (member.member_id, 1)) is not None


class TestGetStreak:
    def test_read_does_not_write(self, db_engine, member):
        _seed_streak(db_engine, member.member_id, 4, 5, date(2024, 1, 1))
        shown = streak_service.get_streak(
            db_engine, member.member_id, now=_at(date(2024, 1, 10)),
        )
        assert shown.current_streak == 0
        assert shown.longest_streak == 5
        with Session(db_engine) as session:
            assert session.get(UserStreak, member.member_id).current_streak == 4

    def test_active_streak(self, db_engine, member):
        _seed_streak(db_engine, member.member_id, 4, 5, date(2024, 1, 1))
        shown = streak_service.get_streak(db_engine, member.member_id, now=_at(date(2024, 1, 2)))
        assert shown == StreakState(4, 5, date(2024, 1, 1))

    def test_unknown_member(self, db_engine):
        assert streak_service.get_streak(db_engine, "nobody") == StreakState()
