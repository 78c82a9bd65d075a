"""
Heartbeat Tracker for the room gateway.

Identifies connections that have gone silent. Liveness is the player's
``last_ping`` timestamp, refreshed by every inbound frame.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from room_gateway.components.session.participant import Participant


class HeartbeatTracker:
    """
    Decides which players are stale.

    A player is stale when no frame has been received from it for longer
    than ``timeout_seconds``. The tracker holds no per-player state of its
    own; it reads ``Participant.last_ping``.
    """

    def __init__(self, timeout_seconds: float = 30.0):
        """
        Initialize heartbeat tracker.

        Args:
            timeout_seconds: Seconds without activity before a connection is stale.
        """
        self._timeout = timeout_seconds

    @property
    def timeout(self) -> float:
        """Get the heartbeat timeout in seconds."""
        return self._timeout

    def is_stale(self, participant: "Participant", now: float | None = None) -> bool:
        """
        Check if a player has been silent longer than the timeout.

        Args:
            participant: The player to check.
            now: Optional Unix timestamp. If None, uses current time.
        """
        if now is None:
            now = time.time()
        return now - participant.last_ping > self._timeout

    def collect_stale(
        self,
        participants: Iterable["Participant"],
        now: float | None = None,
    ) -> list["Participant"]:
        """Return every stale player (the iterable is copied first)."""
        if now is None:
            now = time.time()
        return [p for p in list(participants) if self.is_stale(p, now)]

    def get_stats(self, participants: Iterable["Participant"]) -> dict[str, float | int]:
        """Get heartbeat statistics over the given players."""
        now = time.time()
        ages = [now - p.last_ping for p in participants]

        return {
            "tracked_connections": len(ages),
            "timeout_seconds": self._timeout,
            "oldest_heartbeat_age": max(ages) if ages else 0,
            "newest_heartbeat_age": min(ages) if ages else 0,
            "average_heartbeat_age": sum(ages) / len(ages) if ages else 0,
        }
