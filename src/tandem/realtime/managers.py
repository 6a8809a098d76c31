"""Process-wide realtime state and its lifecycle hooks."""

from __future__ import annotations

import logging

from fastapi import status

from app.config import get_settings

from .engine import ChatEngine
from .friends import FriendGraph
from .matchmaking import MatchmakingQueue
from .presence import PresenceRegistry
from .relay import MessageRelay
from .rooms import RoomManager


logger = logging.getLogger(__name__)


def build_engine(settings=None) -> ChatEngine:
    """Wire a fresh engine with empty registries."""

    settings = settings or get_settings()
    presence = PresenceRegistry(
        default_nickname=settings.default_nickname,
        default_age=settings.default_age,
        default_avatar_seed=settings.default_avatar_seed,
    )
    rooms = RoomManager(presence, stranger_nickname=settings.stranger_nickname)
    queue = MatchmakingQueue(rooms)
    relay = MessageRelay(presence, rooms)
    friends = FriendGraph(presence)
    return ChatEngine(presence, queue, rooms, relay, friends)


# ---------------------------------------------------------------------------
# Module level lifecycle helpers
# ---------------------------------------------------------------------------


chat_engine = build_engine()


async def startup_realtime() -> None:
    logger.info("Realtime engine ready; all state is held in memory")


async def shutdown_realtime() -> None:
    connections = chat_engine.presence.online_connections()
    for connection in connections:
        try:
            await connection.websocket.close(code=status.WS_1001_GOING_AWAY)
        except RuntimeError:
            continue
    logger.info("Realtime engine stopped", extra={"closed_connections": len(connections)})


def reset_realtime() -> ChatEngine:
    """Replace the shared engine with an empty one and return it."""

    global chat_engine
    chat_engine = build_engine()
    return chat_engine


# Convenience accessors exposed to the FastAPI layer ----------------------


def get_chat_engine() -> ChatEngine:
    return chat_engine


__all__ = [
    "ChatEngine",
    "build_engine",
    "startup_realtime",
    "shutdown_realtime",
    "reset_realtime",
    "get_chat_engine",
]
