"""Friend requests and the symmetric friend relation.

Pending requests are not stored: a request exists only as the
``incoming_friend_request`` notification, so sending it twice notifies twice
and a response is accepted for any known requester. Declines are silent.
"""

from __future__ import annotations

import logging

from app.monitoring.metrics import friend_graph_mutations_total

from .presence import PresenceRegistry, UserRecord


logger = logging.getLogger(__name__)


class UnknownUserError(LookupError):
    """Raised when a friend operation names a user the registry never saw."""


class FriendGraph:
    """Mutate the friend sets held on presence user records."""

    def __init__(self, presence: PresenceRegistry) -> None:
        self._presence = presence

    def friends_of(self, user_id: str) -> set[str]:
        record = self._presence.lookup(user_id)
        return set(record.friends) if record else set()

    def are_friends(self, first: str, second: str) -> bool:
        return second in self.friends_of(first)

    async def send_request(self, requester_id: str, target_id: str) -> bool:
        """Notify the target of a request; returns False for guarded no-ops."""

        if requester_id == target_id:
            return False
        requester = self._require(requester_id)
        if target_id in requester.friends:
            logger.debug("Ignored friend request between existing friends")
            return False
        await self._presence.send_to_user(
            target_id,
            "incoming_friend_request",
            {
                "fromUserId": requester.id,
                "nickname": requester.nickname,
                "age": requester.age,
                "avatarSeed": requester.avatar_seed,
            },
        )
        return True

    async def respond_request(self, target_id: str, requester_id: str, accepted: bool) -> bool:
        """Apply the target's answer; returns True when a new edge was added."""

        if not accepted:
            logger.debug("Friend request declined", extra={"requester_id": requester_id})
            return False
        if target_id == requester_id:
            return False
        target = self._require(target_id)
        requester = self._require(requester_id)

        async with self._presence.user_lock(target_id, requester_id):
            if requester_id in target.friends and target_id in requester.friends:
                return False
            target.friends.add(requester_id)
            requester.friends.add(target_id)
        friend_graph_mutations_total.labels("add").inc()

        await self._presence.send_to_user(
            requester_id,
            "friend_request_accepted",
            {"friendId": target.id, **_profile_fields(target)},
        )
        await self._presence.send_to_user(
            target_id,
            "friend_added",
            {"friendId": requester.id, **_profile_fields(requester)},
        )
        return True

    async def remove_friend(self, user_id: str, friend_id: str) -> bool:
        """Drop the relation in both directions; returns False if none existed."""

        if user_id == friend_id:
            return False
        user = self._presence.lookup(user_id)
        friend = self._presence.lookup(friend_id)

        async with self._presence.user_lock(user_id, friend_id):
            removed = False
            if user is not None and friend_id in user.friends:
                user.friends.discard(friend_id)
                removed = True
            if friend is not None and user_id in friend.friends:
                friend.friends.discard(user_id)
                removed = True
        if not removed:
            return False
        friend_graph_mutations_total.labels("remove").inc()

        await self._presence.send_to_user(user_id, "friend_removed", {"friendId": friend_id})
        await self._presence.send_to_user(friend_id, "friend_removed", {"friendId": user_id})
        return True

    def _require(self, user_id: str) -> UserRecord:
        record = self._presence.lookup(user_id)
        if record is None:
            raise UnknownUserError(f"Unknown user '{user_id}'")
        return record


def _profile_fields(record: UserRecord) -> dict[str, str]:
    return {"nickname": record.nickname, "age": record.age, "avatarSeed": record.avatar_seed}
