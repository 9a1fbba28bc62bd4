"""
summit.engine.cache — In-Memory Badge Catalog & Settings Cache
===============================================================

The badge catalog and the settings table change rarely and are read on
every bookkeeping write, so both are cached in memory.  Invalidation rides
on the :class:`~summit.engine.changes.ChangeFeed`: admin mutations publish
:class:`~summit.engine.changes.CatalogChanged` and the cache reloads the
affected partition.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from summit.database.models import Badge, Setting
from summit.engine.changes import CatalogChanged, ChangeEvent, ChangeFeed, Operation

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class CatalogCache:
    """Thread-safe in-memory cache for active badges and settings.

    Usage:
        cache = CatalogCache(engine)
        cache.load_all()
        cache.attach(feed)

        badges = cache.get_active_badges()
        per_goal = cache.get_int("points.goal_completed", default=25)
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()

        # Active badges ordered by requirement_value
        self._badges: list[Badge] = []
        # key → parsed JSON value
        self._settings: dict[str, Any] = {}

        self._handles: list[int] = []

    # -------------------------------------------------------------------
    # Cache loading (synchronous — called via run_db or directly)
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load all partitions from the DB.  Call on startup."""
        self._load_badges()
        self._load_settings()
        logger.info(
            "CatalogCache loaded: %d badges, %d settings",
            len(self._badges), len(self._settings),
        )

    def _load_badges(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(
                select(Badge)
                .where(Badge.active.is_(True))
                .order_by(Badge.requirement_value, Badge.id)
            ).all()
            for badge in rows:
                session.expunge(badge)
        with self._lock:
            self._badges = list(rows)

    def _load_settings(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(select(Setting)).all()
            parsed: dict[str, Any] = {}
            for row in rows:
                try:
                    parsed[row.key] = json.loads(row.value_json)
                except (json.JSONDecodeError, TypeError):
                    parsed[row.key] = row.value_json

        with self._lock:
            self._settings = parsed

    # -------------------------------------------------------------------
    # Cache reads (thread-safe)
    # -------------------------------------------------------------------
    def get_active_badges(self) -> list[Badge]:
        with self._lock:
            return list(self._badges)

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Return the parsed JSON value for *key*, or *default*."""
        with self._lock:
            return self._settings.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return int(val)
        except (TypeError, ValueError):
            return default

    # -------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------
    def handle_change(self, table_name: str) -> None:
        """Reload the partition backing *table_name*."""
        table_name = table_name.strip().lower()
        logger.info("Catalog cache invalidation for table: %s", table_name)

        if table_name == "badges":
            self._load_badges()
        elif table_name == "settings":
            self._load_settings()
        else:
            logger.debug("Table %s is not cached — ignoring", table_name)

    def _on_change(self, event: ChangeEvent) -> None:
        if isinstance(event, CatalogChanged):
            self.handle_change(event.table)

    def attach(self, feed: ChangeFeed) -> None:
        """Subscribe to catalog changes on *feed*."""
        for table in ("badges", "settings"):
            self._handles.append(feed.subscribe(table, Operation.ALL, self._on_change))

    def detach(self, feed: ChangeFeed) -> None:
        for handle in self._handles:
            feed.unsubscribe(handle)
        self._handles.clear()
