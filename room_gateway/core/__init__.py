"""
Composed gateway helpers.
"""

from room_gateway.core.stats import GatewayStats

__all__ = ["GatewayStats"]
