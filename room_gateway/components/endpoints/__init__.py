"""
WebSocket endpoints.
"""

from room_gateway.components.endpoints.player import PlayerEndpoint

__all__ = ["PlayerEndpoint"]
