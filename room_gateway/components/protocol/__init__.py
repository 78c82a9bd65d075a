"""
Wire protocol: message catalog, payload validation and routing.
"""

from room_gateway.components.protocol.types import (
    InboundMessage,
    MessageType,
    create_message,
    encode_message,
    parse_message,
)
from room_gateway.components.protocol.validator import PayloadValidator, ValidationResult
from room_gateway.components.protocol.router import ProtocolRouter

__all__ = [
    "InboundMessage",
    "MessageType",
    "create_message",
    "encode_message",
    "parse_message",
    "PayloadValidator",
    "ValidationResult",
    "ProtocolRouter",
]
