"""
tests/test_changes.py — Change Events & ChangeFeed Unit Tests
==============================================================
"""

from __future__ import annotations

import threading
from datetime import date
from unittest.mock import MagicMock

import pytest

from summit.engine.changes import (
    BadgeEarned,
    CatalogChanged,
    ChangeFeed,
    Operation,
    PointsUpdated,
    StreakRecorded,
    TransactionRecorded,
    event_from_payload,
    event_to_payload,
)


class TestPayloads:
    def test_streak_payload_serialises_date(self):
        event = StreakRecorded("m1", 4, 5, date(2024, 1, 2))
        payload = event_to_payload(event)
        assert payload == {
            "member_id": "m1",
            "current_streak": 4,
            "longest_streak": 5,
            "last_activity_date": "2024-01-02",
            "op": "UPDATE",
            "table": "user_streaks",
        }
        assert event_from_payload(payload) == event

    def test_catalog_payload_has_no_member(self):
        payload = event_to_payload(CatalogChanged("badges", Operation.INSERT))
        assert payload == {"table": "badges", "op": "INSERT"}

    def test_origin_is_ignored(self):
        payload = event_to_payload(BadgeEarned("m1", 3, "On Fire"))
        payload["origin"] = "abc"
        assert event_from_payload(payload) == BadgeEarned("m1", 3, "On Fire")

    def test_unknown_table_rejected(self):
        with pytest.raises(ValueError, match="Unknown table"):
            event_from_payload({"table": "messages", "op": "INSERT"})

    def test_unknown_op_rejected(self):
        with pytest.raises(ValueError, match="Unknown operation"):
            event_from_payload({"table": "badges", "op": "TRUNCATE"})

    def test_missing_fields_rejected(self):
        with pytest.raises(ValueError, match="Malformed"):
            event_from_payload({"table": "user_points", "op": "UPDATE", "member_id": "m1"})


class TestChangeFeed:
    def test_subscribe_by_table_and_mask(self):
        feed = ChangeFeed()
        on_points = MagicMock()
        on_inserts = MagicMock()
        feed.subscribe("user_points", Operation.UPDATE, on_points)
        feed.subscribe("user_points", Operation.INSERT, on_inserts)

        event = PointsUpdated("m1", 15, 15, 15)
        assert feed.publish(event) == 1
        on_points.assert_called_once_with(event)
        on_inserts.assert_not_called()

    def test_wildcard_receives_everything(self):
        feed = ChangeFeed()
        received = []
        feed.subscribe("*", Operation.ALL, received.append)
        events = [
            TransactionRecorded("m1", 10, "goal_completed"),
            PointsUpdated("m1", 10, 10, 10),
            CatalogChanged("settings"),
        ]
        assert feed.publish_all(events) == 3
        assert received == events

    def test_unsubscribe(self):
        feed = ChangeFeed()
        callback = MagicMock()
        handle = feed.subscribe("user_points", Operation.ALL, callback)
        assert feed.subscriber_count == 1
        assert feed.unsubscribe(handle) is True
        assert feed.unsubscribe(handle) is False
        feed.publish(PointsUpdated("m1", 1, 1, 1))
        callback.assert_not_called()

    def test_failing_subscriber_does_not_block_others(self, caplog):
        feed = ChangeFeed()
        good = MagicMock()
        feed.subscribe("*", Operation.ALL, MagicMock(side_effect=RuntimeError("boom")))
        feed.subscribe("*", Operation.ALL, good)
        feed.publish(PointsUpdated("m1", 1, 1, 1))
        good.assert_called_once()
        assert "Change subscriber failed" in caplog.text

    def test_forwarder_gets_local_batches_only(self):
        feed = ChangeFeed()
        forwarder = MagicMock()
        feed.set_forwarder(forwarder)
        event = PointsUpdated("m1", 1, 1, 1)

        feed.publish(event)
        feed.publish(event, forward=False)
        forwarder.assert_called_once_with([event])

    def test_concurrent_subscribe_gets_unique_handles(self):
        feed = ChangeFeed()
        handles: list[int] = []
        lock = threading.Lock()

        def _subscribe():
            handle = feed.subscribe("*", Operation.ALL, lambda e: None)
            with lock:
                handles.append(handle)

        threads = [threading.Thread(target=_subscribe) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(set(handles)) == 20
        assert feed.subscriber_count == 20
