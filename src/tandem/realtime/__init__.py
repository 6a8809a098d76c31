"""Realtime pairing, presence and relay engine."""

from .managers import (  # noqa: F401
    ChatEngine,
    build_engine,
    get_chat_engine,
    reset_realtime,
    shutdown_realtime,
    startup_realtime,
)
from .presence import PresenceRegistry, UserRecord  # noqa: F401
from .matchmaking import MatchmakingQueue  # noqa: F401
from .rooms import Room, RoomManager  # noqa: F401
from .relay import MessageRelay  # noqa: F401
from .friends import FriendGraph  # noqa: F401

__all__ = [
    "build_engine",
    "startup_realtime",
    "shutdown_realtime",
    "reset_realtime",
    "get_chat_engine",
    "ChatEngine",
    "FriendGraph",
    "MatchmakingQueue",
    "MessageRelay",
    "PresenceRegistry",
    "Room",
    "RoomManager",
    "UserRecord",
]
