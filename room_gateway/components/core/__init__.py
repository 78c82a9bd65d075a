"""
Core components: constants, error taxonomy and log sanitising.
"""

from room_gateway.components.core.constants import ROOM_CODE_ALPHABET, WSCloseCode, WSConstants
from room_gateway.components.core.context import sanitize_log_data
from room_gateway.components.core.errors import (
    ErrorCategory,
    ErrorCode,
    GatewayError,
    PayloadValidationError,
    ProtocolError,
    RoomCodeExhaustedError,
    SessionError,
)

__all__ = [
    "ROOM_CODE_ALPHABET",
    "WSCloseCode",
    "WSConstants",
    "sanitize_log_data",
    "ErrorCategory",
    "ErrorCode",
    "GatewayError",
    "PayloadValidationError",
    "ProtocolError",
    "RoomCodeExhaustedError",
    "SessionError",
]
