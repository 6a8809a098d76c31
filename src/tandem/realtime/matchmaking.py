"""Matchmaking queue pairing strangers into rooms."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from app.monitoring.metrics import matchmaking_queue_depth, relay_dropped_total

from .connection import Connection
from .rooms import Room, RoomManager, RoomMembershipError


logger = logging.getLogger(__name__)


class MatchmakingQueue:
    """Pool of connections waiting for a stranger partner.

    Waiting connections are popped from the tail, so a new arrival is paired
    with the most recently enqueued one. Stale entries are only discovered
    when popped.
    """

    def __init__(self, rooms: RoomManager) -> None:
        self._rooms = rooms
        self._waiting: List[Connection] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._waiting)

    def __contains__(self, connection: object) -> bool:
        return connection in self._waiting

    def snapshot(self) -> list[Connection]:
        return list(self._waiting)

    async def enqueue(self, connection: Connection) -> Room | None:
        """Pair the arrival with a waiting connection or park it in the queue.

        Returns the created room, or None when the arrival is left waiting
        (including the no-op cases of an already queued or already paired
        connection). Waiters belonging to the arrival's own user are skipped.
        """

        async with self._lock:
            if connection in self._waiting or self._rooms.room_of(connection) is not None:
                return None
            index = self._partner_index_locked(connection)
            if index is None:
                self._park_locked(connection)
                return None

            partner = self._waiting.pop(index)
            if not partner.is_live:
                relay_dropped_total.labels("stale_queue_entry").inc()
                logger.debug("Discarded stale queue entry", extra={"connection_id": partner.id})
                self._park_locked(connection)
                return None

            try:
                room = await self._rooms.create_room(connection, partner)
            except RoomMembershipError:
                self._waiting.insert(index, partner)
                logger.warning(
                    "Pairing rejected, waiter kept in queue",
                    extra={"connection_id": connection.id, "partner_id": partner.id},
                )
                return None
            matchmaking_queue_depth.set(len(self._waiting))
        logger.info(
            "Matched connections",
            extra={"room_id": room.id, "connection_id": connection.id, "partner_id": partner.id},
        )
        return room

    async def discard(self, connection: Connection) -> bool:
        async with self._lock:
            if connection not in self._waiting:
                return False
            self._waiting = [entry for entry in self._waiting if entry is not connection]
            matchmaking_queue_depth.set(len(self._waiting))
            return True

    def _park_locked(self, connection: Connection) -> None:
        self._waiting.append(connection)
        matchmaking_queue_depth.set(len(self._waiting))

    def _partner_index_locked(self, connection: Connection) -> int | None:
        for index in range(len(self._waiting) - 1, -1, -1):
            if self._waiting[index].user_id != connection.user_id:
                return index
        return None
