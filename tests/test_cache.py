"""
tests/test_cache.py — CatalogCache Unit Tests
==============================================

Tests change routing to the correct reload method (no DB needed) and
cache loading against the in-memory SQLite database.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.orm import Session

from summit.database.engine import init_db
from summit.database.models import Badge, Setting
from summit.database.seed import DEFAULT_BADGES
from summit.engine.cache import CatalogCache
from summit.engine.changes import CatalogChanged, ChangeFeed, Operation, PointsUpdated


class TestChangeRouting:
    """Catalog changes route to the correct reload method."""

    @pytest.fixture
    def cache(self):
        return CatalogCache(MagicMock())

    @pytest.mark.parametrize(
        "table_name, expected_method",
        [
            ("badges", "_load_badges"),
            ("settings", "_load_settings"),
            (" Settings ", "_load_settings"),
        ],
    )
    def test_change_routes_to_correct_reload(self, cache, table_name, expected_method):
        with patch.object(cache, expected_method) as mock_method:
            cache.handle_change(table_name)
            mock_method.assert_called_once()

    def test_untracked_table_ignored(self, cache):
        with (
            patch.object(cache, "_load_badges") as mock_badges,
            patch.object(cache, "_load_settings") as mock_settings,
        ):
            cache.handle_change("daily_challenges")
            mock_badges.assert_not_called()
            mock_settings.assert_not_called()

    def test_attach_reloads_on_feed_events(self, cache):
        feed = ChangeFeed()
        cache.attach(feed)
        with patch.object(cache, "_load_settings") as mock_settings:
            feed.publish(CatalogChanged("settings", Operation.UPDATE))
            feed.publish(PointsUpdated("m1", 1, 1, 1))
            mock_settings.assert_called_once()

        cache.detach(feed)
        assert feed.subscriber_count == 0


class TestCacheLoading:
    def test_loads_seeded_catalog(self, db_engine):
        init_db(db_engine)
        cache = CatalogCache(db_engine)
        cache.load_all()

        badges = cache.get_active_badges()
        assert len(badges) == len(DEFAULT_BADGES)
        values = [b.requirement_value for b in badges]
        assert values == sorted(values)
        assert cache.get_int("points.goal_completed") == 25
        assert cache.get_int("leaderboard.size") == 100

    def test_inactive_badges_excluded(self, db_engine):
        with Session(db_engine) as session:
            session.add(Badge(name="Live", requirement_type="points", requirement_value=1))
            session.add(Badge(
                name="Retired", requirement_type="points", requirement_value=2, active=False,
            ))
            session.commit()

        cache = CatalogCache(db_engine)
        cache.load_all()
        assert [b.name for b in cache.get_active_badges()] == ["Live"]

    def test_typed_getters(self, db_engine):
        with Session(db_engine) as session:
            session.add(Setting(key="a.int", value_json=json.dumps(7)))
            session.add(Setting(key="a.text", value_json="not json"))
            session.commit()

        cache = CatalogCache(db_engine)
        cache.load_all()
        assert cache.get_int("a.int") == 7
        assert cache.get_setting("a.text") == "not json"
        assert cache.get_int("a.text", default=3) == 3
        assert cache.get_int("missing", default=5) == 5

    def test_reload_picks_up_setting_change(self, db_engine):
        init_db(db_engine)
        cache = CatalogCache(db_engine)
        cache.load_all()

        with Session(db_engine) as session:
            session.get(Setting, "leaderboard.size").value_json = "25"
            session.commit()

        assert cache.get_int("leaderboard.size") == 100
        cache.handle_change("settings")
        assert cache.get_int("leaderboard.size") == 25
