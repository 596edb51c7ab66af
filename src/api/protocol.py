"""
Collaboration Wire Protocol
===========================
Typed models for every frame exchanged on the collaboration WebSocket.

Frames are UTF-8 JSON objects tagged by "type". Inbound frames
(join/leave/cursor/update/heartbeat) are parsed into a discriminated union;
outbound frames (joined/user-joined/user-left/cursor-update/schema-update)
are built as models and serialized once with camelCase keys.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

from ..core.exceptions import MessageValidationError


class MessageType(str, Enum):
    """Supported collaboration message types"""

    # Client -> Server
    JOIN = "join"
    LEAVE = "leave"
    CURSOR = "cursor"
    UPDATE = "update"
    HEARTBEAT = "heartbeat"

    # Server -> Client
    JOINED = "joined"
    USER_JOINED = "user-joined"
    USER_LEFT = "user-left"
    CURSOR_UPDATE = "cursor-update"
    SCHEMA_UPDATE = "schema-update"


INBOUND_TYPES = frozenset({
    MessageType.JOIN,
    MessageType.LEAVE,
    MessageType.CURSOR,
    MessageType.UPDATE,
    MessageType.HEARTBEAT,
})

_INBOUND_VALUES = frozenset(t.value for t in INBOUND_TYPES)


class ProtocolModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    @property
    def message_type(self) -> MessageType:
        return MessageType(self.type)


class UserSummary(ProtocolModel):
    user_id: str
    username: str


# === INBOUND ===

class JoinMessage(ProtocolModel):
    type: Literal["join"] = "join"
    project_id: str = Field(min_length=1, max_length=200)
    user_id: str = Field(min_length=1, max_length=200)
    username: str = Field(min_length=1, max_length=200)


class LeaveMessage(ProtocolModel):
    type: Literal["leave"] = "leave"


class CursorMessage(ProtocolModel):
    type: Literal["cursor"] = "cursor"
    data: Any = None


class UpdateMessage(ProtocolModel):
    type: Literal["update"] = "update"
    data: Any = None


class HeartbeatMessage(ProtocolModel):
    type: Literal["heartbeat"] = "heartbeat"
    data: Any = None

    @property
    def has_cursor(self) -> bool:
        return isinstance(self.data, dict) and self.data.get("cursor") is not None

    @property
    def cursor(self) -> Any:
        return self.data.get("cursor") if isinstance(self.data, dict) else None


InboundMessage = Annotated[
    Union[JoinMessage, LeaveMessage, CursorMessage, UpdateMessage, HeartbeatMessage],
    Field(discriminator="type"),
]


# === OUTBOUND ===

class JoinedMessage(ProtocolModel):
    type: Literal["joined"] = "joined"
    session_id: str
    active_users: List[UserSummary]


class UserJoinedMessage(ProtocolModel):
    type: Literal["user-joined"] = "user-joined"
    user: UserSummary
    active_users: List[UserSummary]


class UserLeftMessage(ProtocolModel):
    type: Literal["user-left"] = "user-left"
    user: UserSummary


class CursorUpdateMessage(ProtocolModel):
    type: Literal["cursor-update"] = "cursor-update"
    user_id: str
    username: str
    cursor: Any = None


class SchemaUpdateMessage(ProtocolModel):
    type: Literal["schema-update"] = "schema-update"
    user_id: str
    username: str
    changes: Any = None


_INBOUND_ADAPTER: TypeAdapter = TypeAdapter(InboundMessage)


def _format_errors(error: ValidationError) -> List[str]:
    formatted = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part not in _INBOUND_VALUES)
        formatted.append(f"{location or 'message'}: {item.get('msg', 'invalid')}")
    return formatted


def parse_inbound(raw: Union[str, bytes]) -> InboundMessage:
    """
    Parse one raw frame into a typed inbound message.

    Raises:
        MessageValidationError: unparseable JSON, non-object frame, missing or
            unknown type, or missing/invalid required fields
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MessageValidationError([f"Invalid JSON: {e}"]) from e

    if not isinstance(payload, dict):
        raise MessageValidationError([f"Message must be a JSON object, got {type(payload).__name__}"])

    message_type = payload.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise MessageValidationError(["Missing required field: type"])
    if message_type not in _INBOUND_VALUES:
        raise MessageValidationError([f"Unknown message type: {message_type}"], message_type=message_type)

    try:
        return _INBOUND_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise MessageValidationError(_format_errors(e), message_type=message_type) from e


def encode_message(message: ProtocolModel) -> str:
    """Serialize an outbound model to its wire form."""
    return message.model_dump_json(by_alias=True)


def user_summary(user_id: str, username: str) -> UserSummary:
    return UserSummary(user_id=user_id, username=username)


__all__ = [
    "MessageType",
    "INBOUND_TYPES",
    "InboundMessage",
    "JoinMessage",
    "LeaveMessage",
    "CursorMessage",
    "UpdateMessage",
    "HeartbeatMessage",
    "JoinedMessage",
    "UserJoinedMessage",
    "UserLeftMessage",
    "CursorUpdateMessage",
    "SchemaUpdateMessage",
    "UserSummary",
    "parse_inbound",
    "encode_message",
    "user_summary",
]
