"""
summit.services.realtime — Cross-Process ChangeFeed over PG LISTEN/NOTIFY
==========================================================================

The in-process :class:`~summit.engine.changes.ChangeFeed` only reaches
subscribers in the publishing process.  When several API workers run
against one database, this module bridges them:

- :func:`send_change_notify` is installed as the feed's forwarder and
  sends every locally published event as a ``NOTIFY summit_changes``
  JSON payload tagged with the feed's origin.
- :class:`PgChangeListener` LISTENs on the same channel in a background
  thread and republishes events from *other* origins locally (without
  forwarding them again).

Enabled with ``realtime_pg_notify: true`` in ``config.yaml``.
"""

from __future__ import annotations

import json
import logging
import random
import select as _select
import threading
from typing import TYPE_CHECKING

from sqlalchemy import text

from summit.engine.changes import ChangeEvent, event_from_payload, event_to_payload

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from summit.engine.changes import ChangeFeed

logger = logging.getLogger(__name__)

# The PG channel carrying change events between processes
NOTIFY_CHANNEL = "summit_changes"

# PostgreSQL rejects NOTIFY payloads of 8000 bytes or more
MAX_PAYLOAD_BYTES = 7999


def build_notify_payload(event: ChangeEvent, origin: str) -> str:
    data = event_to_payload(event)
    data["origin"] = origin
    return json.dumps(data, default=str)


def send_change_notify(engine: Engine, events: list[ChangeEvent], origin: str) -> None:
    """Send one NOTIFY per event on :data:`NOTIFY_CHANNEL` (separate connection)."""
    with engine.connect() as conn:
        for event in events:
            raw = build_notify_payload(event, origin)
            if len(raw.encode("utf-8")) > MAX_PAYLOAD_BYTES:
                logger.warning(
                    "Change payload for %s too large to NOTIFY (%d bytes)",
                    event.table, len(raw),
                )
                continue
            conn.execute(
                text("SELECT pg_notify(:channel, :payload)"),
                {"channel": NOTIFY_CHANNEL, "payload": raw},
            )
        conn.commit()


class PgChangeListener:
    """Background LISTEN thread that republishes remote change events.

    Usage:
        listener = PgChangeListener(engine, feed)
        listener.attach()     # forward local events over NOTIFY
        listener.start()
        ...
        listener.stop()
    """

    def __init__(self, engine: Engine, feed: ChangeFeed) -> None:
        self._engine = engine
        self._feed = feed
        self._shutdown_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._healthy = False
        self._failed = False

    # -------------------------------------------------------------------
    # Forwarding
    # -------------------------------------------------------------------
    def attach(self) -> None:
        """Install the NOTIFY forwarder on the feed."""
        self._feed.set_forwarder(self._forward)

    def _forward(self, events: list[ChangeEvent]) -> None:
        send_change_notify(self._engine, events, self._feed.origin)

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def dispatch(self, raw_payload: str) -> bool:
        """Parse one NOTIFY payload and republish it locally.

        Returns True if an event was published.  Our own echoes and
        malformed payloads are dropped.
        """
        try:
            data = json.loads(raw_payload)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Invalid change payload (not JSON): %s", raw_payload)
            return False
        if not isinstance(data, dict):
            logger.warning("Change payload is not an object: %s", raw_payload)
            return False
        if data.get("origin") == self._feed.origin:
            return False

        try:
            event = event_from_payload(data)
        except ValueError:
            logger.warning("Dropping malformed change payload: %s", raw_payload)
            return False

        self._feed.publish(event, forward=False)
        return True

    # -------------------------------------------------------------------
    # Listener thread
    # -------------------------------------------------------------------
    @property
    def healthy(self) -> bool:
        """Return True if the LISTEN thread is alive and connected."""
        return self._healthy and not self._failed

    @property
    def failed(self) -> bool:
        """Return True if the listener exhausted reconnect attempts."""
        return self._failed

    def stop(self) -> None:
        """Signal the listener thread to stop and wait for it to exit."""
        self._shutdown_event.set()
        self._feed.set_forwarder(None)
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=5)
            logger.info("PG change listener thread stopped")

    def start(self) -> None:
        """Start a background thread that LISTENs on :data:`NOTIFY_CHANNEL`.

        Uses a raw psycopg2 connection + select() so the asyncio loop never
        blocks.  Reconnects with exponential backoff + jitter and gives up
        after ``max_reconnect_attempts`` consecutive failures.
        """
        import psycopg2

        max_backoff = 60.0
        base_backoff = 1.0
        max_reconnect_attempts = 10

        def _listen_thread() -> None:
            # str(engine.url) hides the password; psycopg2 needs the real one
            raw_url = self._engine.url.render_as_string(hide_password=False)
            dsn = raw_url.replace("postgresql+psycopg2://", "postgresql://")
            attempt = 0

            while not self._shutdown_event.is_set():
                conn = None
                try:
                    conn = psycopg2.connect(dsn)
                    conn.set_isolation_level(0)  # autocommit
                    cur = conn.cursor()
                    cur.execute(f"LISTEN {NOTIFY_CHANNEL};")
                    logger.info("PG LISTEN started on channel '%s'", NOTIFY_CHANNEL)

                    attempt = 0
                    self._healthy = True

                    while not self._shutdown_event.is_set():
                        if _select.select([conn], [], [], 5.0) == ([], [], []):
                            continue
                        conn.poll()
                        while conn.notifies:
                            notify = conn.notifies.pop(0)
                            logger.debug("NOTIFY received: %s", notify.payload)
                            try:
                                self.dispatch(notify.payload or "")
                            except Exception:
                                logger.exception(
                                    "Error handling change NOTIFY: %s", notify.payload,
                                )

                except Exception:
                    self._healthy = False
                    attempt += 1

                    if attempt >= max_reconnect_attempts:
                        logger.critical(
                            "PG LISTEN exhausted %d retries. "
                            "Cross-process change events disabled.",
                            max_reconnect_attempts,
                        )
                        self._failed = True
                        break

                    backoff = min(base_backoff * (2 ** (attempt - 1)), max_backoff)
                    wait = backoff + random.uniform(0, backoff * 0.5)
                    logger.exception(
                        "PG LISTEN connection lost (attempt %d/%d). "
                        "Reconnecting in %.1fs…",
                        attempt, max_reconnect_attempts, wait,
                    )
                    # Exits early on shutdown
                    if self._shutdown_event.wait(timeout=wait):
                        break
                finally:
                    if conn is not None:
                        try:
                            conn.close()
                        except Exception:
                            logger.debug("Error closing LISTEN connection", exc_info=True)

        thread = threading.Thread(
            target=_listen_thread, daemon=True, name="pg-change-listener",
        )
        self._thread = thread
        thread.start()
        logger.info("PG change listener thread started")
