"""Unit tests for message routing and status propagation."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.monitoring.metrics import relay_dropped_total
from tandem.realtime.events import ChatMessage, MessageStatus
from tandem.realtime.presence import PresenceRegistry
from tandem.realtime.relay import MessageRelay
from tandem.realtime.rooms import RoomManager

pytestmark = pytest.mark.anyio

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def presence() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture()
def rooms(presence) -> RoomManager:
    return RoomManager(presence)


@pytest.fixture()
def relay(presence, rooms) -> MessageRelay:
    return MessageRelay(presence, rooms, clock=lambda: FIXED_NOW)


async def test_direct_message_reaches_every_recipient_connection(presence, relay, make_connection):
    sender = make_connection("alice")
    tabs = [make_connection("bob"), make_connection("bob")]
    await presence.register(sender)
    for tab in tabs:
        await presence.register(tab)

    receipt = await relay.send(
        sender, ChatMessage.model_validate({"msgId": "m1", "message": "hi", "toUserId": "bob"})
    )

    assert receipt == {"status": "sent", "msgId": "m1"}
    for tab in tabs:
        (payload,) = tab.websocket.events("receive_message")
        assert payload["msgId"] == "m1"
        assert payload["senderId"] == "alice"
        assert payload["status"] == "sent"
        assert payload["timestamp"] == FIXED_NOW.isoformat()
    assert sender.websocket.sent == []


async def test_direct_message_to_offline_user_still_acknowledged(presence, relay, make_connection):
    sender = make_connection("alice")
    await presence.register(sender)

    receipt = await relay.send(sender, ChatMessage.model_validate({"msgId": "m1", "toUserId": "bob"}))

    assert receipt == {"status": "sent", "msgId": "m1"}


async def test_room_message_goes_to_partner_only(rooms, relay, make_connection):
    sender, partner, bystander = make_connection("a"), make_connection("b"), make_connection("c")
    await rooms.create_room(sender, partner)

    receipt = await relay.send(
        sender,
        ChatMessage.model_validate(
            {"msgId": "m2", "type": "file", "message": "cat.png", "url": "http://x/cat.png", "fileType": "image/png"}
        ),
    )

    assert receipt == {"status": "sent", "msgId": "m2"}
    (payload,) = partner.websocket.events("receive_message")
    assert payload["url"] == "http://x/cat.png"
    assert payload["fileType"] == "image/png"
    assert payload["type"] == "file"
    assert bystander.websocket.sent == []


async def test_room_message_without_room_is_dropped(relay, make_connection):
    sender = make_connection("a")

    assert await relay.send(sender, ChatMessage.model_validate({"msgId": "m3"})) is None
    assert relay_dropped_total.value("no_room") == 1


async def test_room_message_to_dead_partner_is_dropped(rooms, relay, make_connection):
    sender, partner = make_connection("a"), make_connection("b")
    await rooms.create_room(sender, partner)
    partner.websocket.drop()

    assert await relay.send(sender, ChatMessage.model_validate({"msgId": "m4"})) is None
    assert relay_dropped_total.value("stale_partner") == 1


async def test_sender_id_cannot_be_spoofed(rooms, relay, make_connection):
    sender, partner = make_connection("a"), make_connection("b")
    await rooms.create_room(sender, partner)

    await relay.send(
        sender,
        ChatMessage.model_validate({"msgId": "m5", "senderId": "mallory", "status": "seen"}),
    )

    (payload,) = partner.websocket.events("receive_message")
    assert payload["senderId"] == "a"
    assert payload["status"] == "sent"


async def test_status_updates_follow_the_same_route(presence, rooms, relay, make_connection):
    sender, partner = make_connection("a"), make_connection("b")
    await presence.register(sender)
    await presence.register(partner)
    await rooms.create_room(sender, partner)

    assert await relay.update_status(partner, "m1", MessageStatus.DELIVERED)
    assert await relay.update_status(partner, "m1", MessageStatus.SEEN, recipient="a")

    assert sender.websocket.events("message_status_update") == [
        {"msgId": "m1", "status": "delivered"},
        {"msgId": "m1", "status": "seen"},
    ]


async def test_status_update_without_destination_is_dropped(relay, make_connection):
    assert not await relay.update_status(make_connection("a"), "m1", MessageStatus.SEEN)
    assert not await relay.update_status(make_connection("a"), "m1", MessageStatus.SEEN, recipient="nobody")
