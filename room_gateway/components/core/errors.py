"""
Gateway error taxonomy.

Every error a client can see is identified by an ErrorCode and reported as a
single ERROR frame to the originating connection. Nothing here closes a
connection.

Usage:
    from room_gateway.components.core.errors import SessionError, ErrorCode

    raise SessionError(ErrorCode.ROOM_FULL, room_id=room_id)
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from room_gateway.config.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(str, Enum):
    """Coarse error classes, used for logging and metrics."""

    PROTOCOL = "PROTOCOL"
    VALIDATION = "VALIDATION"
    RATE_LIMITED = "RATE_LIMITED"
    SESSION = "SESSION"
    INTERNAL = "INTERNAL"


class ErrorCode(str, Enum):
    """Machine-readable error codes sent in ERROR frames."""

    # Protocol
    INVALID_MESSAGE = "INVALID_MESSAGE"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Abuse limiting
    RATE_LIMITED = "RATE_LIMITED"

    # Session lifecycle
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    ROOM_FULL = "ROOM_FULL"
    ALREADY_IN_ROOM = "ALREADY_IN_ROOM"
    NOT_IN_ROOM = "NOT_IN_ROOM"
    INVALID_ROOM_CODE = "INVALID_ROOM_CODE"
    NOT_HOST = "NOT_HOST"
    ROOM_EXISTS = "ROOM_EXISTS"

    # Internal
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]

    @property
    def default_message(self) -> str:
        return _MESSAGES[self]


_CATEGORIES: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.INVALID_MESSAGE: ErrorCategory.PROTOCOL,
    ErrorCode.VALIDATION_ERROR: ErrorCategory.VALIDATION,
    ErrorCode.RATE_LIMITED: ErrorCategory.RATE_LIMITED,
    ErrorCode.ROOM_NOT_FOUND: ErrorCategory.SESSION,
    ErrorCode.ROOM_FULL: ErrorCategory.SESSION,
    ErrorCode.ALREADY_IN_ROOM: ErrorCategory.SESSION,
    ErrorCode.NOT_IN_ROOM: ErrorCategory.SESSION,
    ErrorCode.INVALID_ROOM_CODE: ErrorCategory.SESSION,
    ErrorCode.NOT_HOST: ErrorCategory.SESSION,
    ErrorCode.ROOM_EXISTS: ErrorCategory.SESSION,
    ErrorCode.INTERNAL_ERROR: ErrorCategory.INTERNAL,
}

_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_MESSAGE: "Invalid message.",
    ErrorCode.VALIDATION_ERROR: "Invalid payload.",
    ErrorCode.RATE_LIMITED: "Too many messages, please slow down.",
    ErrorCode.ROOM_NOT_FOUND: "Room not found. Check the room code and try again.",
    ErrorCode.ROOM_FULL: "Room is full. Try joining a different room.",
    ErrorCode.ALREADY_IN_ROOM: "You are already in a room. Leave first to join another.",
    ErrorCode.NOT_IN_ROOM: "You are not in a room.",
    ErrorCode.INVALID_ROOM_CODE: "Invalid room code.",
    ErrorCode.NOT_HOST: "Only the room host can do that.",
    ErrorCode.ROOM_EXISTS: "A room with that code already exists.",
    ErrorCode.INTERNAL_ERROR: "An error occurred. Please try again.",
}


class GatewayError(Exception):
    """
    Base exception with automatic logging.

    Carries the ErrorCode and human message that end up in the ERROR frame,
    plus an optional list of field-level errors (validation failures).
    """

    log_level = "info"

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        errors: list[str] | None = None,
        **log_context: Any,
    ):
        self.code = code
        self.message = message or code.default_message
        self.errors = errors

        log_fn = getattr(logger, self.log_level, logger.info)
        log_fn(
            self.message,
            code=code.value,
            category=code.category.value,
            **log_context,
        )

        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        """Fields of the ERROR frame (without type/timestamp)."""
        payload: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.errors is not None:
            payload["errors"] = list(self.errors)
        return payload


class ProtocolError(GatewayError):
    """Malformed frame or unknown message type."""

    def __init__(self, message: str, **log_context: Any):
        super().__init__(ErrorCode.INVALID_MESSAGE, message, **log_context)


class PayloadValidationError(GatewayError):
    """Payload failed a shape or bounds check."""

    def __init__(self, message: str, errors: list[str], **log_context: Any):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, errors=errors, **log_context)


class SessionError(GatewayError):
    """Room lifecycle failure (not found, full, already in room, ...)."""


class RoomCodeExhaustedError(GatewayError):
    """No collision-free room code could be generated."""

    log_level = "error"

    def __init__(self, attempts: int, **log_context: Any):
        super().__init__(
            ErrorCode.INTERNAL_ERROR,
            "Failed to generate room code",
            attempts=attempts,
            **log_context,
        )
