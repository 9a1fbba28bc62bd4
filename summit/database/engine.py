"""
summit.database.engine — Database Connection, Sessions & Async Helper
======================================================================

SQLAlchemy + psycopg2 is **synchronous**.  FastAPI already runs plain
``def`` endpoints on its threadpool, so services stay synchronous and
open one :class:`Session` per bookkeeping operation.  Async code (the
reconciliation loop, the realtime WebSocket) reaches the database through
:func:`run_db`, which ships the call to a worker thread.

Usage::

    from summit.database.engine import create_db_engine, get_session, init_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    with get_session(engine) as session:
        session.add(Profile(id=member_id, username="drew"))
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from summit.database.models import Base
from summit.errors import StorageError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine() -> Engine:
    """Build a SQLAlchemy :class:`Engine` from the ``DATABASE_URL`` env var.

    Raises
    ------
    RuntimeError
        If ``DATABASE_URL`` is not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,   # Reconnect stale connections automatically
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables, then seed default settings and the badge catalog.

    Safe to call on every startup.  In production the schema is managed by
    Alembic (``alembic upgrade head``); ``create_all`` is kept for dev/test.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    from summit.database.seed import seed_default_badges, seed_default_settings

    seed_default_settings(engine)
    seed_default_badges(engine)


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Yield a :class:`Session` that commits on success and rolls back on error.

    Any :class:`SQLAlchemyError` escaping the block is logged and re-raised
    as :class:`~summit.errors.StorageError`.  Domain errors raised inside
    the block propagate unchanged (after rollback).

    Instances stay readable after the block (``expire_on_commit=False``)
    so services can build return values from them.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Storage operation failed")
        raise StorageError() from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# First-row inserts
# ---------------------------------------------------------------------------
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def insert_if_absent(session: Session, model: type[Base], **values) -> bool:
    """``INSERT … ON CONFLICT DO NOTHING`` one row of *model*.

    Two transactions creating the same member's first row both get past a
    ``SELECT … FOR UPDATE`` that found nothing; the loser's insert becomes a
    no-op here instead of aborting its transaction.  Callers re-select the
    row (with a lock) afterwards.

    Returns True if this call inserted the row.
    """
    dialect = session.get_bind().dialect.name
    try:
        insert = _UPSERT_INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Unsupported database dialect: {dialect}") from None
    result = session.execute(insert(model).values(**values).on_conflict_do_nothing())
    return result.rowcount == 1


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    ``result = await run_db(reconcile_point_totals, engine)``
    """
    return await asyncio.to_thread(func, *args, **kwargs)
