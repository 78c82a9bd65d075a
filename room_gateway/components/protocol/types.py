"""
Wire protocol message catalog.

Every frame is a single JSON object with a mandatory ``type`` discriminator
plus type-specific fields. Outbound frames always carry a server
``timestamp`` (milliseconds since the epoch).
"""

from __future__ import annotations

import json
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Self

from room_gateway.components.core.errors import ProtocolError


class MessageType(str, Enum):
    """Message types understood or emitted by the gateway."""

    # Connection
    WELCOME = "welcome"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"

    # Room management
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    ROOM_CREATED = "room_created"
    ROOM_JOINED = "room_joined"
    ROOM_LEFT = "room_left"
    ROOM_STATE = "room_state"
    ROOM_CLOSED = "room_closed"

    # Public rooms / lobby
    SET_ROOM_PUBLIC = "set_room_public"
    GET_PUBLIC_ROOMS = "get_public_rooms"
    LOBBY_INFO = "lobby_info"
    PUBLIC_ROOMS_UPDATE = "public_rooms_update"

    # Player events
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    PLAYER_UPDATE = "player_update"
    PLAYER_NAME_UPDATE = "player_name_update"

    # Vehicle
    VEHICLE_CONFIG = "vehicle_config"
    VEHICLE_RESET = "vehicle_reset"

    # Chat
    CHAT_MESSAGE = "chat_message"


# Set for O(1) lookup
VALID_MESSAGE_TYPES: frozenset[str] = frozenset(m.value for m in MessageType)


def now_ms() -> int:
    """Current server time in epoch milliseconds."""
    return int(time.time() * 1000)


def create_message(message_type: MessageType, **payload: Any) -> dict[str, Any]:
    """
    Build an outbound frame.

    The server timestamp is added unless the payload already carries one
    (transform updates forward the sender's own update time).
    """
    message: dict[str, Any] = {"type": message_type.value}
    message.update(payload)
    message.setdefault("timestamp", now_ms())
    return message


def encode_message(message: Mapping[str, Any]) -> str:
    """Serialize an outbound frame to text."""
    return json.dumps(message, separators=(",", ":"), allow_nan=False)


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """
    Immutable view of a parsed inbound frame.

    Attributes:
        type: Raw type discriminator as sent by the client.
        data: All fields of the frame (including ``type``), read-only.
    """

    type: str
    data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_dict(cls, data: Any) -> Self:
        """
        Build a message from decoded JSON.

        Raises:
            ProtocolError: If the frame is not an object or has no usable type.
        """
        if not isinstance(data, dict):
            raise ProtocolError("Message must be a JSON object")

        message_type = data.get("type")
        if not isinstance(message_type, str) or not message_type:
            raise ProtocolError("Message type is required")

        return cls(type=message_type, data=MappingProxyType(dict(data)))

    @property
    def message_type(self) -> MessageType | None:
        """Known MessageType, or None for unrecognized types."""
        if self.type in VALID_MESSAGE_TYPES:
            return MessageType(self.type)
        return None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self.data


def _reject_constant(name: str) -> float:
    raise ValueError(f"Non-finite number {name} is not allowed")


def _parse_finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError("Number out of range")
    return value


def parse_message(raw: str | bytes) -> InboundMessage:
    """
    Parse a text frame into an InboundMessage.

    NaN, Infinity and overflowing literals are rejected here so no
    non-finite number can reach stored state or outbound frames. Nesting
    deep enough to exhaust the decoder is reported as invalid JSON.

    Raises:
        ProtocolError: If the frame is not valid JSON or lacks a type.
    """
    try:
        decoded = json.loads(
            raw,
            parse_constant=_reject_constant,
            parse_float=_parse_finite_float,
        )
    except (ValueError, UnicodeDecodeError, RecursionError) as e:
        raise ProtocolError("Invalid JSON", reason=type(e).__name__) from None
    return InboundMessage.from_dict(decoded)
