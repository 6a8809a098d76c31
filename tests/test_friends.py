"""Unit tests for friend requests and the friend relation."""

from __future__ import annotations

import asyncio

import pytest

from app.monitoring.metrics import friend_graph_mutations_total
from tandem.realtime.friends import FriendGraph, UnknownUserError
from tandem.realtime.presence import PresenceRegistry

pytestmark = pytest.mark.anyio


@pytest.fixture()
def presence() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture()
def graph(presence) -> FriendGraph:
    return FriendGraph(presence)


@pytest.fixture()
async def users(presence, make_connection, anyio_backend):
    alice, bob = make_connection("alice"), make_connection("bob")
    await presence.register(alice, {"nickname": "Alice", "age": "28", "avatar_seed": "a1"})
    await presence.register(bob, {"nickname": "Bob", "avatar_seed": "b1"})
    return alice, bob


async def test_request_notifies_target_with_requester_profile(graph, users):
    alice, bob = users

    assert await graph.send_request("alice", "bob")

    assert bob.websocket.events("incoming_friend_request") == [
        {"fromUserId": "alice", "nickname": "Alice", "age": "28", "avatarSeed": "a1"}
    ]
    assert alice.websocket.sent == []


async def test_repeated_request_renotifies(graph, users):
    _, bob = users

    await graph.send_request("alice", "bob")
    await graph.send_request("alice", "bob")

    assert len(bob.websocket.events("incoming_friend_request")) == 2


async def test_request_to_existing_friend_or_self_is_ignored(graph, presence, users):
    _, bob = users
    presence.lookup("alice").friends.add("bob")
    presence.lookup("bob").friends.add("alice")

    assert not await graph.send_request("alice", "bob")
    assert not await graph.send_request("alice", "alice")
    assert bob.websocket.sent == []


async def test_accept_links_both_users_and_notifies(graph, users):
    alice, bob = users

    assert await graph.respond_request("bob", "alice", accepted=True)

    assert graph.friends_of("alice") == {"bob"}
    assert graph.friends_of("bob") == {"alice"}
    assert alice.websocket.events("friend_request_accepted") == [
        {"friendId": "bob", "nickname": "Bob", "age": "?", "avatarSeed": "b1"}
    ]
    assert bob.websocket.events("friend_added") == [
        {"friendId": "alice", "nickname": "Alice", "age": "28", "avatarSeed": "a1"}
    ]
    assert friend_graph_mutations_total.value("add") == 1


async def test_accept_twice_is_a_no_op(graph, users):
    alice, _ = users
    await graph.respond_request("bob", "alice", accepted=True)

    assert not await graph.respond_request("bob", "alice", accepted=True)
    assert len(alice.websocket.events("friend_request_accepted")) == 1


async def test_decline_is_silent(graph, users):
    alice, bob = users

    assert not await graph.respond_request("bob", "alice", accepted=False)

    assert graph.friends_of("alice") == set()
    assert alice.websocket.sent == []
    assert bob.websocket.sent == []


async def test_accept_from_unknown_requester_raises(graph, users):
    with pytest.raises(UnknownUserError):
        await graph.respond_request("bob", "ghost", accepted=True)
    assert graph.friends_of("bob") == set()


async def test_remove_friend_is_symmetric_and_idempotent(graph, users):
    alice, bob = users
    await graph.respond_request("bob", "alice", accepted=True)
    alice.websocket.clear()
    bob.websocket.clear()

    assert await graph.remove_friend("alice", "bob")

    assert not graph.are_friends("alice", "bob")
    assert not graph.are_friends("bob", "alice")
    assert alice.websocket.events("friend_removed") == [{"friendId": "bob"}]
    assert bob.websocket.events("friend_removed") == [{"friendId": "alice"}]

    assert not await graph.remove_friend("alice", "bob")
    assert len(alice.websocket.events("friend_removed")) == 1


async def test_remove_repairs_one_sided_edge(graph, presence, users):
    presence.lookup("alice").friends.add("bob")

    assert await graph.remove_friend("bob", "alice")
    assert graph.friends_of("alice") == set()


async def test_concurrent_accepts_and_removals_keep_edges_symmetric(graph, users):
    operations = []
    for _ in range(10):
        operations.append(graph.respond_request("bob", "alice", accepted=True))
        operations.append(graph.respond_request("alice", "bob", accepted=True))
        operations.append(graph.remove_friend("alice", "bob"))
        operations.append(graph.remove_friend("bob", "alice"))

    await asyncio.gather(*operations)

    assert graph.are_friends("alice", "bob") == graph.are_friends("bob", "alice")
    added = friend_graph_mutations_total.value("add")
    removed = friend_graph_mutations_total.value("remove")
    assert added - removed == (1 if graph.are_friends("alice", "bob") else 0)


async def test_concurrent_accepts_add_a_single_edge(graph, users):
    alice, bob = users

    results = await asyncio.gather(
        *(graph.respond_request("bob", "alice", accepted=True) for _ in range(5)),
        *(graph.respond_request("alice", "bob", accepted=True) for _ in range(5)),
    )

    assert results.count(True) == 1
    assert graph.friends_of("alice") == {"bob"}
    assert graph.friends_of("bob") == {"alice"}
    assert len(alice.websocket.events("friend_request_accepted")) + len(
        alice.websocket.events("friend_added")
    ) == 1
