"""Presence registry mapping user identifiers to their live connections."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, Mapping, Set

from app.monitoring.metrics import realtime_connections, realtime_events_total

from .connection import Connection


logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("nickname", "age", "avatar_seed")


@dataclass
class UserRecord:
    """Live profile of a user; survives disconnects for the process lifetime."""

    id: str
    nickname: str
    age: str
    avatar_seed: str
    friends: Set[str] = field(default_factory=set)

    def to_profile(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "nickname": self.nickname,
            "age": self.age,
            "avatarSeed": self.avatar_seed,
        }

    def merge(self, fields: Mapping[str, Any]) -> bool:
        """Apply non-empty profile fields, returning True when anything changed."""

        changed = False
        for name in PROFILE_FIELDS:
            value = fields.get(name)
            if value is None or value == "":
                continue
            value = str(value)
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed = True
        return changed


class PresenceRegistry:
    """Track users and group their connections into per-user channels."""

    def __init__(
        self,
        *,
        default_nickname: str = "Anonymous",
        default_age: str = "?",
        default_avatar_seed: str = "unknown",
    ) -> None:
        self._defaults = {
            "nickname": default_nickname,
            "age": default_age,
            "avatar_seed": default_avatar_seed,
        }
        self._users: Dict[str, UserRecord] = {}
        self._channels: Dict[str, Set[Connection]] = defaultdict(set)
        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    async def register(self, connection: Connection, fields: Mapping[str, Any] | None = None) -> UserRecord:
        fields = fields or {}
        user_id = connection.user_id
        async with self._lock:
            record = self._users.get(user_id)
            if record is None:
                record = UserRecord(
                    id=user_id,
                    nickname=str(fields.get("nickname") or self._defaults["nickname"]),
                    age=str(fields.get("age") or self._defaults["age"]),
                    avatar_seed=str(fields.get("avatar_seed") or self._defaults["avatar_seed"]),
                )
                self._users[user_id] = record
                logger.info("Registered new user", extra={"user_id": user_id})
            else:
                record.merge(fields)
            channel = self._channels[user_id]
            if connection not in channel:
                channel.add(connection)
                realtime_connections.labels("chat").inc()
        return record

    async def unregister(self, connection: Connection) -> None:
        connection.closed = True
        async with self._lock:
            channel = self._channels.get(connection.user_id)
            if not channel or connection not in channel:
                return
            channel.discard(connection)
            realtime_connections.labels("chat").dec()
            if not channel:
                self._channels.pop(connection.user_id, None)

    async def update_profile(self, user_id: str, fields: Mapping[str, Any]) -> UserRecord | None:
        async with self._lock:
            record = self._users.get(user_id)
            if record is None:
                return None
            record.merge(fields)
            return record

    def lookup(self, user_id: str) -> UserRecord | None:
        return self._users.get(user_id)

    def connections_for(self, user_id: str) -> Set[Connection]:
        return {conn for conn in self._channels.get(user_id, ()) if conn.is_live}

    def online_connections(self) -> list[Connection]:
        return [conn for channel in list(self._channels.values()) for conn in channel if conn.is_live]

    def is_online(self, user_id: str) -> bool:
        return bool(self.connections_for(user_id))

    @contextlib.asynccontextmanager
    async def user_lock(self, *user_ids: str) -> AsyncIterator[None]:
        """Hold the locks of every given user, acquired in sorted order."""

        locks = [self._user_locks.setdefault(uid, asyncio.Lock()) for uid in sorted(set(user_ids))]
        async with contextlib.AsyncExitStack() as stack:
            for lock in locks:
                await stack.enter_async_context(lock)
            yield

    async def send_to_user(
        self,
        user_id: str,
        event: str,
        data: dict[str, Any] | None = None,
        *,
        exclude: Iterable[Connection] | None = None,
    ) -> int:
        """Deliver an event to every live connection of a user.

        Returns the number of connections reached; zero means the user is
        offline and the event was dropped.
        """

        async with self._lock:
            targets = list(self._channels.get(user_id, ()))
        exclude_set = set(exclude or ())
        delivered = 0
        for connection in targets:
            if connection in exclude_set or not connection.is_live:
                continue
            if await connection.emit(event, data):
                delivered += 1
        if delivered:
            realtime_events_total.labels(event, "out").inc(delivered)
        else:
            logger.debug("Dropped %s for offline user", event, extra={"user_id": user_id})
        return delivered
