"""Unit tests for stranger room lifecycle."""

from __future__ import annotations

import pytest

from app.monitoring.metrics import active_rooms
from tandem.realtime.presence import PresenceRegistry
from tandem.realtime.rooms import RoomManager, RoomMembershipError

pytestmark = pytest.mark.anyio


@pytest.fixture()
def presence() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture()
def rooms(presence) -> RoomManager:
    return RoomManager(presence)


async def test_start_session_sends_chat_start_then_partner_info(presence, rooms, make_connection):
    first, second = make_connection("a"), make_connection("b")
    await presence.register(first, {"nickname": "Ada", "age": "30", "avatar_seed": "seed-a"})
    await presence.register(second, {"nickname": "Bob"})

    room = await rooms.create_room(first, second)
    await rooms.start_session(room)

    assert first.websocket.events() == ["chat_start", "partner_info"]
    assert first.websocket.events("chat_start") == [{"roomId": room.id}]
    assert first.websocket.events("partner_info") == [
        {"partnerUserId": "b", "nickname": "Bob", "age": "?", "avatarSeed": "unknown"}
    ]
    assert second.websocket.events("partner_info") == [
        {"partnerUserId": "a", "nickname": "Ada", "age": "30", "avatarSeed": "seed-a"}
    ]
    assert active_rooms.value() == 1


async def test_partner_without_profile_is_a_stranger(rooms, make_connection):
    first, second = make_connection("a"), make_connection("b")
    room = await rooms.create_room(first, second)

    await rooms.start_session(room)

    assert first.websocket.events("partner_info")[0]["nickname"] == "Stranger"


async def test_teardown_notifies_partner_once_and_clears_both(rooms, make_connection):
    first, second = make_connection("a"), make_connection("b")
    await rooms.create_room(first, second)

    room = await rooms.teardown(first)

    assert room is not None
    assert second.websocket.events() == ["partner_disconnected"]
    assert first.websocket.events() == []
    assert rooms.room_of(first) is None
    assert rooms.room_of(second) is None
    assert await rooms.teardown(second) is None
    assert second.websocket.events() == ["partner_disconnected"]
    assert active_rooms.value() == 0


async def test_teardown_skips_dead_partner(rooms, make_connection):
    first, second = make_connection("a"), make_connection("b")
    await rooms.create_room(first, second)
    second.websocket.drop()

    await rooms.teardown(first)

    assert second.websocket.sent == []


async def test_connection_cannot_join_two_rooms(rooms, make_connection):
    first, second, third = make_connection("a"), make_connection("b"), make_connection("c")
    await rooms.create_room(first, second)

    with pytest.raises(RoomMembershipError):
        await rooms.create_room(third, first)
    with pytest.raises(RoomMembershipError):
        await rooms.create_room(third, third)
    assert len(rooms) == 1
    assert rooms.partner_of(first) is second
