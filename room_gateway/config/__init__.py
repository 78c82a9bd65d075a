"""
Configuration module: settings and logging.
"""

from room_gateway.config.settings import Settings, get_settings
from room_gateway.config.logging import get_logger, setup_logging

__all__ = [
    # settings
    "Settings",
    "get_settings",
    # logging
    "get_logger",
    "setup_logging",
]
