"""
Room Gateway Constants.

Protocol limits and operational values that are not worth exposing as
settings. Configurable values live in room_gateway.config.settings.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "ROOM_CODE_ALPHABET",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    Custom codes (4000-4999) for application-specific closures.
    """

    # Standard codes (RFC 6455)
    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down
    POLICY_VIOLATION = 1008  # Generic policy violation
    MESSAGE_TOO_BIG = 1009  # Message too large to process
    SERVER_ERROR = 1011  # Unexpected server error

    # Custom application codes
    HEARTBEAT_TIMEOUT = 4008  # No frames received within connection_timeout


# Excludes I, O, 0 and 1 so codes can be read aloud and typed without mistakes
ROOM_CODE_ALPHABET: Final[str] = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


class WSConstants:
    """Room gateway operational constants."""

    # ==========================================================================
    # Room code generation
    # ==========================================================================

    # Attempts before code generation gives up. With 32^8 codes a collision
    # streak this long means the code space is effectively exhausted.
    MAX_ROOM_CODE_ATTEMPTS: Final[int] = 100

    # ==========================================================================
    # Payload limits
    # ==========================================================================

    MAX_PLAYER_NAME_LENGTH: Final[int] = 20
    MAX_CHAT_LENGTH: Final[int] = 200

    # Quaternion components are ~[-1, 1]; allow normalization drift
    MAX_ROTATION_COMPONENT: Final[float] = 1.1

    # rad/s
    MAX_ANGULAR_VELOCITY: Final[float] = 100.0

    MAX_STEERING: Final[float] = 1.0
    MAX_ENGINE_RPM: Final[float] = 10000.0
    IDLE_ENGINE_RPM: Final[float] = 850.0

    WHEEL_COUNT: Final[int] = 4

    # ==========================================================================
    # Transport
    # ==========================================================================

    # Seconds to wait for the handshake before giving up on a connection
    WS_ACCEPT_TIMEOUT: Final[float] = 5.0

    # Seconds to wait for pending frames to flush when a connection closes
    WS_CLOSE_FLUSH_TIMEOUT: Final[float] = 1.0

    # Log every Nth dropped outbound frame per connection
    DROP_LOG_INTERVAL: Final[int] = 100

    # ==========================================================================
    # Messages
    # ==========================================================================

    ROOM_CLOSED_TIMEOUT_REASON: Final[str] = "Room timed out due to inactivity"
    ROOM_CLOSED_SHUTDOWN_REASON: Final[str] = "Server shutting down"
