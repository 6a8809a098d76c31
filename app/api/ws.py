"""WebSocket endpoint for stranger and friend chat."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, status
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.config import get_settings
from tandem.realtime.connection import safe_send_json
from tandem.realtime.engine import MalformedEventError, parse_handshake
from tandem.realtime.managers import get_chat_engine

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

PING_FRAME: Dict[str, Any] = {"type": "ping"}


async def receive_with_keepalive(
    websocket: WebSocket,
    *,
    timeout_seconds: float | None,
    ping_interval_seconds: float | None,
) -> AsyncIterator[str]:
    """Yield text frames, pinging the client whenever it stays silent for *timeout_seconds*."""

    timeout = timeout_seconds or None
    interval = ping_interval_seconds or 0.0
    last_ping = float("-inf")

    while True:
        try:
            message = await asyncio.wait_for(websocket.receive_text(), timeout=timeout)
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                return
            now = time.monotonic()
            if now - last_ping < interval:
                continue
            if not await safe_send_json(websocket, PING_FRAME):
                return
            last_ping = now
            continue
        except (RuntimeError, WebSocketDisconnect):
            return
        yield message


@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket) -> None:
    """Bind a client to its user id and apply its events until it disconnects."""

    try:
        handshake = parse_handshake(websocket.query_params)
    except MalformedEventError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing userId")
        return

    engine = get_chat_engine()
    # a client that sees the handshake complete is already addressable
    connection = await engine.connect(websocket, handshake)
    try:
        await websocket.accept()
        async for raw_message in receive_with_keepalive(
            websocket,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            if not raw_message:
                continue
            await engine.dispatch(connection, raw_message)
    finally:
        await engine.disconnect(connection)
