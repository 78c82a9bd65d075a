"""
Room Gateway.

Real-time multiplayer room server: rooms of bounded size, transform and
vehicle configuration relay, a persistent public lobby and room lifecycle
(join-or-create, host succession, idle expiry), all in memory.
"""

# Installs the structured logger class before any gateway logger is created
from room_gateway.config import logging as _logging  # noqa: F401

__version__ = "0.1.0"
