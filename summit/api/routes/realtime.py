"""
summit.api.routes.realtime — Change-event WebSocket
=====================================================

``WS /api/realtime?token=<jwt>`` streams the caller's own change events
(points, transactions, streak, completions, badges) plus catalog changes
as JSON payloads.  Browsers cannot set headers on a WebSocket handshake,
so the bearer token travels in the query string.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from summit.api.deps import get_config, get_feed, member_from_token
from summit.config import SummitConfig
from summit.engine.changes import ChangeEvent, ChangeFeed, Operation, event_to_payload
from summit.errors import AuthRequired

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

# Application close code for a rejected token
WS_CLOSE_UNAUTHORIZED = 4401

# Events buffered per connection before new ones are dropped
QUEUE_SIZE = 256


@router.websocket("/realtime")
async def realtime(
    websocket: WebSocket,
    token: str = Query(""),
    feed: ChangeFeed = Depends(get_feed),
    cfg: SummitConfig = Depends(get_config),
):
    try:
        member = member_from_token(token, cfg.default_timezone)
    except AuthRequired:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)

    def _enqueue(event: ChangeEvent) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Realtime queue full for %s, dropping %s event",
                member.member_id, event.table,
            )

    # Runs on the publishing thread
    def _on_change(event: ChangeEvent) -> None:
        if event.member_id not in (None, member.member_id):
            return
        loop.call_soon_threadsafe(_enqueue, event)

    async def _pump() -> None:
        while True:
            event = await queue.get()
            await websocket.send_json(event_to_payload(event))

    handle = feed.subscribe("*", Operation.ALL, _on_change)
    await websocket.accept()
    logger.info("Realtime connection opened for %s", member.member_id)
    pump = asyncio.create_task(_pump())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Realtime connection closed for %s", member.member_id)
    finally:
        feed.unsubscribe(handle)
        pump.cancel()
        # A send racing the disconnect fails with one of these
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            await pump
