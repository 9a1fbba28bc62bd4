"""
summit.engine.changes — Change Events & In-Process ChangeFeed
==============================================================

Every committed bookkeeping write is announced as a typed change event.
Events form a discriminated union tagged by ``table`` and ``op``::

    PointsUpdated        user_points                 UPDATE
    TransactionRecorded  point_transactions          INSERT
    StreakRecorded       user_streaks                INSERT | UPDATE
    ChallengeCompleted   user_challenge_completions  INSERT
    BadgeEarned          user_badges                 INSERT
    CatalogChanged       badges | daily_challenges | settings

:class:`ChangeFeed` is the subscribe/unsubscribe surface.  Services publish
*after* their transaction commits; subscribers receive events on the
publishing thread.  Cross-process delivery is layered on top by
:mod:`summit.services.realtime` through the feed's forwarder hook.
"""

from __future__ import annotations

import enum
import itertools
import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from datetime import date

logger = logging.getLogger(__name__)

__all__ = [
    "BadgeEarned",
    "CATALOG_TABLES",
    "CatalogChanged",
    "ChallengeCompleted",
    "ChangeEvent",
    "ChangeFeed",
    "Operation",
    "PointsUpdated",
    "StreakRecorded",
    "TransactionRecorded",
    "event_from_payload",
    "event_to_payload",
]


class Operation(enum.Flag):
    INSERT = 1
    UPDATE = 2
    DELETE = 4
    ALL = 7


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PointsUpdated:
    member_id: str
    total_points: int
    weekly_points: int
    monthly_points: int
    op: Operation = Operation.UPDATE
    table: str = field(default="user_points", init=False)


@dataclass(frozen=True, slots=True)
class TransactionRecorded:
    member_id: str
    points: int
    action_type: str
    description: str | None = None
    op: Operation = Operation.INSERT
    table: str = field(default="point_transactions", init=False)


@dataclass(frozen=True, slots=True)
class StreakRecorded:
    member_id: str
    current_streak: int
    longest_streak: int
    last_activity_date: date
    op: Operation = Operation.UPDATE
    table: str = field(default="user_streaks", init=False)


@dataclass(frozen=True, slots=True)
class ChallengeCompleted:
    member_id: str
    challenge_id: int
    points_awarded: int
    op: Operation = Operation.INSERT
    table: str = field(default="user_challenge_completions", init=False)


@dataclass(frozen=True, slots=True)
class BadgeEarned:
    member_id: str
    badge_id: int
    badge_name: str
    op: Operation = Operation.INSERT
    table: str = field(default="user_badges", init=False)


@dataclass(frozen=True, slots=True)
class CatalogChanged:
    """A shared table changed; carries no member."""

    table: str
    op: Operation = Operation.UPDATE
    member_id: None = None


ChangeEvent = (
    PointsUpdated
    | TransactionRecorded
    | StreakRecorded
    | ChallengeCompleted
    | BadgeEarned
    | CatalogChanged
)

CATALOG_TABLES: frozenset[str] = frozenset({"badges", "daily_challenges", "settings"})

_MEMBER_EVENT_TYPES: dict[str, type] = {
    "user_points": PointsUpdated,
    "point_transactions": TransactionRecorded,
    "user_streaks": StreakRecorded,
    "user_challenge_completions": ChallengeCompleted,
    "user_badges": BadgeEarned,
}


# ---------------------------------------------------------------------------
# JSON-safe payload conversion
# ---------------------------------------------------------------------------
def event_to_payload(event: ChangeEvent) -> dict:
    """Flatten *event* into a JSON-serialisable dict."""
    data = asdict(event)
    data["op"] = event.op.name
    for key, value in data.items():
        if isinstance(value, date):
            data[key] = value.isoformat()
    if isinstance(event, CatalogChanged):
        data.pop("member_id", None)
    return data


def event_from_payload(payload: dict) -> ChangeEvent:
    """Rebuild a change event from :func:`event_to_payload` output.

    Raises
    ------
    ValueError
        If the table or operation is unknown, or fields don't match.
    """
    data = dict(payload)
    table = data.pop("table", None)
    op_name = data.pop("op", None)
    data.pop("origin", None)
    try:
        op = Operation[op_name]
    except KeyError:
        raise ValueError(f"Unknown operation in change payload: {op_name!r}") from None

    if table in CATALOG_TABLES:
        return CatalogChanged(table=table, op=op)

    cls = _MEMBER_EVENT_TYPES.get(table)
    if cls is None:
        raise ValueError(f"Unknown table in change payload: {table!r}")

    if cls is StreakRecorded and isinstance(data.get("last_activity_date"), str):
        data["last_activity_date"] = date.fromisoformat(data["last_activity_date"])
    try:
        return cls(op=op, **data)
    except TypeError as exc:
        raise ValueError(f"Malformed {table} payload: {exc}") from exc


# ---------------------------------------------------------------------------
# ChangeFeed — subscribe(table, mask, callback) → handle
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class _Subscription:
    table: str
    mask: Operation
    callback: Callable[[ChangeEvent], None]


class ChangeFeed:
    """Thread-safe in-process pub/sub keyed by table name and operation.

    Usage::

        feed = ChangeFeed()
        handle = feed.subscribe("user_points", Operation.UPDATE, on_points)
        feed.publish(PointsUpdated("m1", 15, 15, 15))
        feed.unsubscribe(handle)

    ``table="*"`` subscribes to every table.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[int, _Subscription] = {}
        self._ids = itertools.count(1)
        self._forwarder: Callable[[list[ChangeEvent]], None] | None = None
        # Tags forwarded payloads so a process can skip its own echoes
        self.origin = uuid.uuid4().hex

    def subscribe(
        self,
        table: str,
        mask: Operation,
        callback: Callable[[ChangeEvent], None],
    ) -> int:
        handle = next(self._ids)
        with self._lock:
            self._subscriptions[handle] = _Subscription(table, mask, callback)
        logger.debug("Subscription %d on %s (%s)", handle, table, mask)
        return handle

    def unsubscribe(self, handle: int) -> bool:
        """Cancel *handle*.  Returns False if it was not active."""
        with self._lock:
            return self._subscriptions.pop(handle, None) is not None

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def set_forwarder(self, forwarder: Callable[[list[ChangeEvent]], None] | None) -> None:
        """Install a hook that receives every locally published batch."""
        self._forwarder = forwarder

    def publish(self, event: ChangeEvent, *, forward: bool = True) -> int:
        """Deliver *event* to matching subscribers.  Returns delivery count."""
        return self.publish_all([event], forward=forward)

    def publish_all(self, events: Iterable[ChangeEvent], *, forward: bool = True) -> int:
        batch = list(events)
        if not batch:
            return 0

        with self._lock:
            subscriptions = list(self._subscriptions.values())

        delivered = 0
        for event in batch:
            for sub in subscriptions:
                if sub.table not in ("*", event.table):
                    continue
                if not (sub.mask & event.op):
                    continue
                try:
                    sub.callback(event)
                    delivered += 1
                except Exception:
                    logger.exception(
                        "Change subscriber failed on %s %s", event.table, event.op.name,
                    )

        forwarder = self._forwarder
        if forward and forwarder is not None:
            try:
                forwarder(batch)
            except Exception:
                logger.exception("Change forwarder failed for %d events", len(batch))

        return delivered
