"""Ephemeral one-to-one stranger rooms."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict

from app.monitoring.metrics import active_rooms

from .connection import Connection
from .presence import PresenceRegistry


logger = logging.getLogger(__name__)


class RoomMembershipError(RuntimeError):
    """Raised when pairing a connection that already belongs to a room."""


@dataclass(frozen=True, slots=True)
class Room:
    id: str
    members: tuple[Connection, Connection]

    def partner_of(self, connection: Connection) -> Connection | None:
        first, second = self.members
        if connection is first:
            return second
        if connection is second:
            return first
        return None


class RoomManager:
    """Track connection to room mappings and tear rooms down."""

    def __init__(self, presence: PresenceRegistry, *, stranger_nickname: str = "Stranger") -> None:
        self._presence = presence
        self._stranger_nickname = stranger_nickname
        self._rooms: Dict[str, Room] = {}
        self._membership: Dict[Connection, str] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    async def create_room(self, first: Connection, second: Connection) -> Room:
        if first is second:
            raise RoomMembershipError("A connection cannot be paired with itself")
        async with self._lock:
            for member in (first, second):
                if member in self._membership:
                    raise RoomMembershipError(f"{member!r} already belongs to a room")
            room = Room(id=str(uuid.uuid4()), members=(first, second))
            self._rooms[room.id] = room
            self._membership[first] = room.id
            self._membership[second] = room.id
            active_rooms.set(len(self._rooms))
        return room

    async def start_session(self, room: Room) -> None:
        """Announce the session to both members and exchange partner profiles."""

        first, second = room.members
        for member in room.members:
            await member.emit("chat_start", {"roomId": room.id})
        await first.emit("partner_info", self._partner_info(second))
        await second.emit("partner_info", self._partner_info(first))

    async def teardown(self, connection: Connection) -> Room | None:
        """Destroy the connection's room and tell the remaining member.

        Both members' mappings are cleared before the notification is sent.
        """

        async with self._lock:
            room_id = self._membership.pop(connection, None)
            if room_id is None:
                return None
            room = self._rooms.pop(room_id, None)
            if room is None:
                return None
            partner = room.partner_of(connection)
            if partner is not None:
                self._membership.pop(partner, None)
            active_rooms.set(len(self._rooms))

        if partner is not None and partner.is_live:
            await partner.emit("partner_disconnected")
        logger.info("Room closed", extra={"room_id": room.id, "connection_id": connection.id})
        return room

    def room_of(self, connection: Connection) -> str | None:
        return self._membership.get(connection)

    def partner_of(self, connection: Connection) -> Connection | None:
        room_id = self._membership.get(connection)
        if room_id is None:
            return None
        room = self._rooms.get(room_id)
        if room is None:
            return None
        return room.partner_of(connection)

    def _partner_info(self, partner: Connection) -> dict[str, Any]:
        record = self._presence.lookup(partner.user_id)
        return {
            "partnerUserId": partner.user_id,
            "nickname": record.nickname if record else self._stranger_nickname,
            "age": record.age if record else "?",
            "avatarSeed": record.avatar_seed if record else "unknown",
        }
