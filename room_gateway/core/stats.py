"""
Gateway Statistics.

Aggregates statistics from the gateway components: registry, membership
index, heartbeat tracker, router and the per-connection transports.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Iterable

if TYPE_CHECKING:
    from room_gateway.components.connection.heartbeat import HeartbeatTracker
    from room_gateway.components.protocol.router import ProtocolRouter
    from room_gateway.components.session.participant import Participant
    from room_gateway.components.session.registry import SessionRegistry


class GatewayStats:
    """
    Aggregates gateway statistics from components.

    - get_summary(): the public stats shape ({roomCount, playerCount, totalConnections})
    - get_stats(): detailed breakdown for the detailed health endpoint
    """

    def __init__(
        self,
        registry: "SessionRegistry",
        router: "ProtocolRouter",
        heartbeat_tracker: "HeartbeatTracker",
        get_participants: Callable[[], Iterable["Participant"]],
        get_accepted_total: Callable[[], int],
    ) -> None:
        """
        Initialize stats aggregator with dependencies.

        Args:
            registry: Session registry
            router: Protocol router (message counters)
            heartbeat_tracker: Liveness tracking
            get_participants: Callback returning the live players
            get_accepted_total: Callback returning connections accepted since start
        """
        self._registry = registry
        self._router = router
        self._heartbeat_tracker = heartbeat_tracker
        self._get_participants = get_participants
        self._get_accepted_total = get_accepted_total
        self._started_at = time.time()

    def get_summary(self) -> dict[str, int]:
        """Session count, in-room player count and live connection count."""
        registry_stats = self._registry.get_stats()
        return {
            "roomCount": registry_stats["roomCount"],
            "playerCount": registry_stats["playerCount"],
            "totalConnections": len(list(self._get_participants())),
        }

    def get_stats(self) -> dict[str, Any]:
        """Detailed statistics, including per-component breakdowns."""
        participants = list(self._get_participants())
        lobby = self._registry.lobby

        dropped = 0
        for participant in participants:
            transport_stats = getattr(participant.transport, "get_stats", None)
            if transport_stats is not None:
                dropped += transport_stats().get("dropped", 0)

        return {
            **self.get_summary(),
            "uptime_seconds": round(time.time() - self._started_at, 1),
            "accepted_connections": self._get_accepted_total(),
            "lobby": {
                "id": lobby.id,
                "player_count": lobby.player_count,
                "max_players": lobby.max_players,
            },
            "public_rooms": len(self._registry.get_public_rooms()),
            "index": self._registry.index.get_stats(),
            "heartbeat": self._heartbeat_tracker.get_stats(participants),
            "messages": self._router.get_stats(),
            "dropped_frames": dropped,
        }
