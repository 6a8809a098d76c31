"""Per-event dispatcher binding the realtime modules together."""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping

from fastapi.websockets import WebSocket
from pydantic import ValidationError

from app.monitoring.metrics import realtime_events_total

from .connection import Connection
from .events import (
    ChatMessage,
    ClientEvent,
    FriendRemoval,
    FriendRequest,
    FriendResponse,
    Handshake,
    ProfileUpdate,
    StatusUpdate,
)
from .friends import FriendGraph, UnknownUserError
from .matchmaking import MatchmakingQueue
from .presence import PresenceRegistry
from .relay import MessageRelay
from .rooms import RoomManager


logger = logging.getLogger(__name__)


class MalformedEventError(ValueError):
    """Raised when a client frame cannot be turned into an operation."""


EventHandler = Callable[[Connection, Dict[str, Any], Any], Awaitable[None]]


def _describe_validation_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid payload"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "__root__")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def parse_handshake(params: Mapping[str, Any]) -> Handshake:
    """Validate handshake query parameters, raising ``MalformedEventError``."""

    try:
        return Handshake.model_validate(dict(params))
    except ValidationError as exc:
        raise MalformedEventError(_describe_validation_error(exc)) from exc


class ChatEngine:
    """Apply client events to the presence, queue, room, relay and friend state."""

    def __init__(
        self,
        presence: PresenceRegistry,
        queue: MatchmakingQueue,
        rooms: RoomManager,
        relay: MessageRelay,
        friends: FriendGraph,
    ) -> None:
        self.presence = presence
        self.queue = queue
        self.rooms = rooms
        self.relay = relay
        self.friends = friends
        self._handlers: Dict[str, EventHandler] = {
            ClientEvent.JOIN_QUEUE.value: self._on_join_queue,
            ClientEvent.NEXT_PARTNER.value: self._on_next_partner,
            ClientEvent.SEND_MESSAGE.value: self._on_send_message,
            ClientEvent.MESSAGE_STATUS_UPDATE.value: self._on_status_update,
            ClientEvent.SEND_FRIEND_REQUEST.value: self._on_send_friend_request,
            ClientEvent.RESPOND_FRIEND_REQUEST.value: self._on_respond_friend_request,
            ClientEvent.REMOVE_FRIEND.value: self._on_remove_friend,
            ClientEvent.UPDATE_PROFILE.value: self._on_update_profile,
            ClientEvent.PING.value: self._on_ping,
            ClientEvent.PONG.value: self._on_pong,
        }

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    async def connect(self, websocket: WebSocket, handshake: Handshake | Mapping[str, Any]) -> Connection:
        """Register a new connection under the identity asserted at handshake."""

        if not isinstance(handshake, Handshake):
            handshake = parse_handshake(handshake)
        connection = Connection(websocket, handshake.user_id)
        await self.presence.register(connection, handshake.profile_fields())
        logger.info(
            "User connected",
            extra={"connection_id": connection.id, "user_id": connection.user_id},
        )
        return connection

    async def disconnect(self, connection: Connection) -> None:
        connection.closed = True
        await self.queue.discard(connection)
        await self.rooms.teardown(connection)
        await self.presence.unregister(connection)
        logger.info(
            "User disconnected",
            extra={"connection_id": connection.id, "user_id": connection.user_id},
        )

    # ------------------------------------------------------------------
    # Event dispatch
    # ------------------------------------------------------------------
    async def dispatch(self, connection: Connection, raw_message: str) -> None:
        """Handle one client frame; failures only produce an error frame."""

        try:
            event, data, ack = self._decode(raw_message)
            handler = self._handlers.get(event)
            if handler is None:
                raise MalformedEventError(f"Unknown event '{event}'")
            realtime_events_total.labels(event, "in").inc()
            await handler(connection, data, ack)
        except MalformedEventError as exc:
            await self._send_error(connection, str(exc))
        except ValidationError as exc:
            await self._send_error(connection, _describe_validation_error(exc))
        except UnknownUserError as exc:
            await self._send_error(connection, str(exc))
        except Exception:
            logger.exception(
                "Unhandled error while processing realtime event",
                extra={"connection_id": connection.id},
            )
            await self._send_error(connection, "Internal error")

    @staticmethod
    def _decode(raw_message: str) -> tuple[str, Dict[str, Any], Any]:
        try:
            payload = json.loads(raw_message)
        except json.JSONDecodeError as exc:
            raise MalformedEventError("Invalid message format") from exc
        if not isinstance(payload, dict):
            raise MalformedEventError("Message payload must be a JSON object")

        event = payload.get("type")
        if not isinstance(event, str) or not event:
            raise MalformedEventError("Message payload must include 'type'")

        if "data" in payload:
            data = payload["data"]
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise MalformedEventError("'data' must be a JSON object")
        else:
            data = {key: value for key, value in payload.items() if key not in {"type", "ack"}}
        return event, data, payload.get("ack")

    async def _send_error(self, connection: Connection, detail: str) -> None:
        await connection.send_raw({"type": "error", "detail": detail})

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    async def _on_join_queue(self, connection: Connection, data: Dict[str, Any], ack: Any) -> None:
        partner = self.rooms.partner_of(connection)
        if partner is not None and partner.is_live:
            return
        await self._requeue(connection)

    async def _on_next_partner(self, connection: Connection, data: Dict[str, Any], ack: Any) -> None:
        await self._requeue(connection)

    async def _requeue(self, connection: Connection) -> None:
        await self.rooms.teardown(connection)
        room = await self.queue.enqueue(connection)
        if room is not None:
            await self.rooms.start_session(room)
        elif connection in self.queue:
            await connection.emit("searching")

    async def _on_send_message(self, connection: Connection, data: Dict[str, Any], ack: Any) -> None:
        message = ChatMessage.model_validate(data)
        receipt = await self.relay.send(connection, message)
        if receipt is not None:
            await connection.send_raw(
                {"type": "ack", "event": ClientEvent.SEND_MESSAGE.value, "ack": ack, "data": receipt}
            )

    async def _on_status_update(self, connection: Connection, data: Dict[str, Any], ack: Any) -> None:
        update = StatusUpdate.model_validate(data)
        await self.relay.update_status(connection, update.msg_id, update.status, update.to_user_id)

    async def _on_send_friend_request(self, connection: Connection, data: Dict[str, Any], ack: Any) -> None:
        request = FriendRequest.model_validate(data)
        await self.friends.send_request(connection.user_id, request.to_user_id)

    async def _on_respond_friend_request(
        self, connection: Connection, data: Dict[str, Any], ack: Any
    ) -> None:
        response = FriendResponse.model_validate(data)
        await self.friends.respond_request(connection.user_id, response.from_user_id, response.accepted)

    async def _on_remove_friend(self, connection: Connection, data: Dict[str, Any], ack: Any) -> None:
        removal = FriendRemoval.model_validate(data)
        await self.friends.remove_friend(connection.user_id, removal.friend_id)

    async def _on_update_profile(self, connection: Connection, data: Dict[str, Any], ack: Any) -> None:
        update = ProfileUpdate.model_validate(data)
        await self.presence.update_profile(connection.user_id, update.profile_fields())

    async def _on_ping(self, connection: Connection, data: Dict[str, Any], ack: Any) -> None:
        await connection.send_raw({"type": "pong"})

    async def _on_pong(self, connection: Connection, data: Dict[str, Any], ack: Any) -> None:
        # reply to a server keepalive ping; receiving it already reset the idle timer
        return None
