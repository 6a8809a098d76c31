"""Routing of chat payloads and delivery status updates."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from app.monitoring.metrics import relay_dropped_total

from .connection import Connection
from .events import ChatMessage, MessageStatus
from .presence import PresenceRegistry
from .rooms import RoomManager


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRelay:
    """Deliver messages to a friend's channel or the sender's room partner."""

    def __init__(
        self,
        presence: PresenceRegistry,
        rooms: RoomManager,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._presence = presence
        self._rooms = rooms
        self._clock = clock

    async def send(self, sender: Connection, message: ChatMessage) -> dict[str, Any] | None:
        """Relay *message* and return the acknowledgement for the sender.

        None means the message had no resolvable destination and was dropped.
        """

        payload = message.to_wire()
        payload["senderId"] = sender.user_id
        payload["status"] = MessageStatus.SENT.value
        payload["timestamp"] = self._clock().isoformat()

        if message.to_user_id:
            await self._presence.send_to_user(message.to_user_id, "receive_message", payload)
            return {"status": MessageStatus.SENT.value, "msgId": message.msg_id}

        partner = self._live_partner(sender)
        if partner is None:
            relay_dropped_total.labels("no_room").inc()
            logger.debug("Dropped room message without partner", extra={"msg_id": message.msg_id})
            return None
        if not await partner.emit("receive_message", payload):
            relay_dropped_total.labels("send_failed").inc()
            return None
        return {"status": MessageStatus.SENT.value, "msgId": message.msg_id}

    async def update_status(
        self,
        sender: Connection,
        msg_id: str,
        status: MessageStatus,
        recipient: str | None = None,
    ) -> bool:
        data = {"msgId": msg_id, "status": status.value}
        if recipient:
            return bool(await self._presence.send_to_user(recipient, "message_status_update", data))

        partner = self._live_partner(sender)
        if partner is None:
            relay_dropped_total.labels("no_room").inc()
            return False
        return await partner.emit("message_status_update", data)

    def _live_partner(self, sender: Connection) -> Connection | None:
        partner = self._rooms.partner_of(sender)
        if partner is None:
            return None
        if not partner.is_live:
            relay_dropped_total.labels("stale_partner").inc()
            logger.debug("Room partner is no longer connected", extra={"connection_id": partner.id})
            return None
        return partner
