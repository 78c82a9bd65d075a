"""
Connection components.

Handles the per-connection side: outbound transport, heartbeat, rate limiting.
"""

from room_gateway.components.connection.heartbeat import HeartbeatTracker
from room_gateway.components.connection.rate_limiter import FixedWindowRateLimiter
from room_gateway.components.connection.transport import Transport, WebSocketTransport, is_ws_connected

__all__ = [
    "HeartbeatTracker",
    "FixedWindowRateLimiter",
    "Transport",
    "WebSocketTransport",
    "is_ws_connected",
]
