"""
summit.api.main — FastAPI application entry point
===================================================

Run with::

    uvicorn summit.api.main:app --reload --port 8000

or ``python -m summit``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from summit import __version__  # noqa: E402
from summit.api.deps import get_cache, get_config, get_engine, get_feed  # noqa: E402
from summit.api.routes.admin import router as admin_router  # noqa: E402
from summit.api.routes.me import router as me_router  # noqa: E402
from summit.api.routes.public import router as public_router  # noqa: E402
from summit.api.routes.realtime import router as realtime_router  # noqa: E402
from summit.database.engine import init_db, run_db  # noqa: E402
from summit.errors import SummitError  # noqa: E402
from summit.services.realtime import PgChangeListener  # noqa: E402
from summit.services.reconciliation_service import reconcile_point_totals  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


async def _reconcile_loop(engine, interval_minutes: int) -> None:
    """Run point reconciliation every *interval_minutes* until cancelled."""
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            await run_db(reconcile_point_totals, engine)
        except Exception:
            logger.exception("Scheduled point reconciliation failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: schema, catalog cache, realtime bridge."""
    cfg = get_config()
    engine = get_engine()
    feed = get_feed()
    cache = get_cache()

    await run_db(init_db, engine)
    await run_db(cache.load_all)
    cache.attach(feed)

    listener = None
    if cfg.realtime_pg_notify:
        listener = PgChangeListener(engine, feed)
        listener.attach()
        listener.start()

    reconcile_task = None
    if cfg.reconcile_interval_minutes > 0:
        reconcile_task = asyncio.create_task(
            _reconcile_loop(engine, cfg.reconcile_interval_minutes)
        )

    logger.info(
        "Summit API started for %s (%s)", cfg.community_name, engine.url.database,
    )
    yield

    logger.info("Summit API shutting down")
    if reconcile_task is not None:
        reconcile_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reconcile_task
    if listener is not None:
        listener.stop()
    cache.detach(feed)


app = FastAPI(
    title="Summit Gamification API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SummitError)
async def summit_error_handler(request: Request, exc: SummitError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Mount routers
app.include_router(public_router, prefix="/api")
app.include_router(me_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(realtime_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
