"""Inbound event payloads and wire enums for the chat engine."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class MessageStatus(str, Enum):
    """Delivery states a message advances through."""

    SENT = "sent"
    DELIVERED = "delivered"
    SEEN = "seen"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER[self]


_STATUS_ORDER = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.SEEN: 2,
}


class ClientEvent(str, Enum):
    """Event names accepted from clients."""

    JOIN_QUEUE = "join_queue"
    NEXT_PARTNER = "next_partner"
    SEND_MESSAGE = "send_message"
    MESSAGE_STATUS_UPDATE = "message_status_update"
    SEND_FRIEND_REQUEST = "send_friend_request"
    RESPOND_FRIEND_REQUEST = "respond_friend_request"
    REMOVE_FRIEND = "remove_friend"
    UPDATE_PROFILE = "update_profile"
    PING = "ping"
    PONG = "pong"


def _strip_required(value: Any) -> str:
    if value is None:
        raise ValueError("Identifier is required")
    text = str(value).strip()
    if not text:
        raise ValueError("Identifier must not be empty")
    return text


class Handshake(BaseModel):
    """Identity asserted by the client when opening the socket."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(validation_alias=AliasChoices("userId", "user_id"))
    nickname: str | None = None
    age: str | None = None
    avatar_seed: str | None = Field(
        default=None, validation_alias=AliasChoices("avatarSeed", "avatar_seed")
    )

    @field_validator("user_id", mode="before")
    @classmethod
    def require_user_id(cls, value: Any) -> str:
        return _strip_required(value)

    def profile_fields(self) -> dict[str, str | None]:
        return {"nickname": self.nickname, "age": self.age, "avatar_seed": self.avatar_seed}


class ProfileUpdate(BaseModel):
    """Explicit profile edit sent after the handshake."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    nickname: str | None = None
    age: str | None = None
    avatar_seed: str | None = Field(
        default=None, validation_alias=AliasChoices("avatarSeed", "avatar_seed")
    )

    @field_validator("age", mode="before")
    @classmethod
    def coerce_age(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value)

    def profile_fields(self) -> dict[str, str | None]:
        return {"nickname": self.nickname, "age": self.age, "avatar_seed": self.avatar_seed}


class ChatMessage(BaseModel):
    """A chat payload relayed between participants.

    Extra client fields (such as local rendering hints) are preserved and
    forwarded untouched.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    msg_id: str = Field(serialization_alias="msgId", validation_alias=AliasChoices("msgId", "msg_id"))
    message: str = ""
    type: Literal["text", "file"] = "text"
    to_user_id: str | None = Field(
        default=None,
        serialization_alias="toUserId",
        validation_alias=AliasChoices("toUserId", "recipientUserID", "to_user_id"),
    )
    url: str | None = None
    file_type: str | None = Field(
        default=None,
        serialization_alias="fileType",
        validation_alias=AliasChoices("fileType", "mimeType", "file_type"),
    )

    @field_validator("msg_id", mode="before")
    @classmethod
    def require_msg_id(cls, value: Any) -> str:
        return _strip_required(value)

    @field_validator("to_user_id", mode="before")
    @classmethod
    def blank_recipient_is_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @model_validator(mode="after")
    def file_requires_url(self) -> "ChatMessage":
        if self.type == "file" and not self.url:
            raise ValueError("File messages must carry an upload url")
        return self

    def to_wire(self) -> dict[str, Any]:
        payload = self.model_dump(by_alias=True, exclude_none=True)
        # client supplied sender/status/timestamp are replaced by the relay
        for key in ("senderId", "status", "timestamp"):
            payload.pop(key, None)
        return payload


class StatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    msg_id: str = Field(validation_alias=AliasChoices("msgId", "msg_id"))
    status: MessageStatus
    to_user_id: str | None = Field(
        default=None, validation_alias=AliasChoices("toUserId", "recipientUserID", "to_user_id")
    )

    @field_validator("msg_id", mode="before")
    @classmethod
    def require_msg_id(cls, value: Any) -> str:
        return _strip_required(value)

    @field_validator("to_user_id", mode="before")
    @classmethod
    def blank_recipient_is_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class FriendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to_user_id: str = Field(validation_alias=AliasChoices("toUserId", "targetUserId", "to_user_id"))

    @field_validator("to_user_id", mode="before")
    @classmethod
    def require_target(cls, value: Any) -> str:
        return _strip_required(value)


class FriendResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_user_id: str = Field(validation_alias=AliasChoices("fromUserId", "from_user_id"))
    accepted: bool = False

    @field_validator("from_user_id", mode="before")
    @classmethod
    def require_requester(cls, value: Any) -> str:
        return _strip_required(value)


class FriendRemoval(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    friend_id: str = Field(validation_alias=AliasChoices("friendId", "friend_id"))

    @field_validator("friend_id", mode="before")
    @classmethod
    def require_friend(cls, value: Any) -> str:
        return _strip_required(value)
