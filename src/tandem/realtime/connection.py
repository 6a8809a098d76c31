"""Connection handles wrapping live WebSocket sessions."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState


logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


def build_event(event: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return the wire envelope for a server to client event."""

    return {"type": event, "data": data or {}}


class Connection:
    """A single live transport session bound to a user identifier."""

    __slots__ = ("id", "user_id", "websocket", "closed")

    def __init__(self, websocket: WebSocket, user_id: str, *, connection_id: str | None = None) -> None:
        self.id = connection_id or uuid.uuid4().hex
        self.user_id = user_id
        self.websocket = websocket
        self.closed = False

    @property
    def is_live(self) -> bool:
        if self.closed:
            return False
        return self.websocket.application_state == WebSocketState.CONNECTED

    async def emit(self, event: str, data: dict[str, Any] | None = None) -> bool:
        if self.closed:
            return False
        return await safe_send_json(self.websocket, build_event(event, data))

    async def send_raw(self, payload: dict[str, Any]) -> bool:
        if self.closed:
            return False
        return await safe_send_json(self.websocket, payload)

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self.user_id!r})"
