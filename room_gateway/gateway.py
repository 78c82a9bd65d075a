"""
Room Gateway.

Thin orchestrator that composes the session components:
- SessionRegistry: rooms, membership and the public lobby
- ProtocolRouter: rate limiting and message dispatch
- HeartbeatTracker: silent connection detection
- GatewayStats: statistics aggregation

One ConnectionGateway is built per application (see main.create_app) and
owned by it; nothing here is module-level state, so tests can build as many
independent gateways as they need.
"""

from __future__ import annotations

import uuid
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from room_gateway.components.connection.heartbeat import HeartbeatTracker
from room_gateway.components.core.constants import WSCloseCode
from room_gateway.components.core.errors import ProtocolError
from room_gateway.components.protocol.router import ProtocolRouter
from room_gateway.components.protocol.types import (
    MessageType,
    create_message,
    encode_message,
    now_ms,
    parse_message,
)
from room_gateway.components.protocol.validator import PayloadValidator
from room_gateway.components.session.participant import Participant
from room_gateway.components.session.registry import SessionRegistry
from room_gateway.config.logging import audit_ws_connection, get_logger
from room_gateway.config.settings import get_settings
from room_gateway.core.stats import GatewayStats

if TYPE_CHECKING:
    from room_gateway.components.connection.transport import Transport
    from room_gateway.config.settings import Settings

logger = get_logger(__name__)


class ConnectionGateway:
    """
    Accepts players, turns frames into routed messages and runs the
    periodic heartbeat and idle sweep.

    All methods are synchronous; the endpoint loop and the background tasks
    in main.py are the only places that await.
    """

    def __init__(self, settings: "Settings | None" = None) -> None:
        self._settings = settings or get_settings()
        self._participants: dict[str, Participant] = {}
        self._accepted_total = 0
        self._is_shutting_down = False

        self._registry = SessionRegistry(self._settings, on_lobby_change=self.broadcast_public_rooms)
        self._validator = PayloadValidator(self._settings)
        self._router = ProtocolRouter(self._registry, self._validator, self._settings)
        self._heartbeat_tracker = HeartbeatTracker(timeout_seconds=self._settings.connection_timeout)
        self._stats = GatewayStats(
            registry=self._registry,
            router=self._router,
            heartbeat_tracker=self._heartbeat_tracker,
            get_participants=lambda: self._participants.values(),
            get_accepted_total=lambda: self._accepted_total,
        )

    # =========================================================================
    # Public properties
    # =========================================================================

    @property
    def settings(self) -> "Settings":
        return self._settings

    @property
    def participants(self) -> MappingProxyType[str, Participant]:
        """Live players indexed by id (immutable view)."""
        return MappingProxyType(self._participants)

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def router(self) -> ProtocolRouter:
        return self._router

    @property
    def total_connections(self) -> int:
        return len(self._participants)

    @property
    def is_shutting_down(self) -> bool:
        return self._is_shutting_down

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def connect(
        self,
        transport: "Transport",
        participant_id: str | None = None,
        now: float | None = None,
    ) -> Participant:
        """
        Register a new player on an accepted transport.

        Sends WELCOME with the issued id, followed by the current lobby info.
        """
        participant_id = participant_id or str(uuid.uuid4())
        participant = Participant(participant_id, transport, self._settings, now)
        self._participants[participant_id] = participant
        self._accepted_total += 1

        participant.send(create_message(MessageType.WELCOME, playerId=participant_id, serverTime=now_ms()))
        participant.send(create_message(MessageType.LOBBY_INFO, **self._registry.get_lobby_info()))

        logger.debug("Player connected", player_id=participant_id, total=len(self._participants))
        return participant

    def disconnect(self, participant: Participant, now: float | None = None) -> bool:
        """
        Remove a player: implicit leave, then close its transport.

        Idempotent; returns False if the player was already gone.
        """
        if self._participants.pop(participant.id, None) is None:
            return False

        self._router.handle_disconnect(participant, now)
        participant.close(WSCloseCode.NORMAL)

        logger.debug("Player disconnected", player_id=participant.id, total=len(self._participants))
        return True

    def handle_frame(self, participant: Participant, raw: str | bytes, now: float | None = None) -> None:
        """
        Process one inbound frame.

        Any frame counts as liveness. Oversized or unparseable frames get an
        INVALID_MESSAGE reply; everything else goes to the router.
        """
        participant.touch(now)

        size = len(raw.encode("utf-8", "surrogatepass")) if isinstance(raw, str) else len(raw)
        if size > self._settings.max_message_size:
            if participant.check_rate_limit(now):
                self._router.send_error(
                    participant,
                    ProtocolError("Message too large", player_id=participant.id, size=size),
                )
            return

        try:
            message = parse_message(raw)
        except ProtocolError as e:
            # Malformed frames count against the quota too, but are never answered past it
            if participant.check_rate_limit(now):
                self._router.send_error(participant, e)
            return

        self._router.handle(participant, message, now)

    # =========================================================================
    # Lobby broadcast
    # =========================================================================

    def broadcast_public_rooms(self) -> int:
        """Send PUBLIC_ROOMS_UPDATE to every player that is not in a room."""
        text = encode_message(
            create_message(MessageType.PUBLIC_ROOMS_UPDATE, **self._registry.get_lobby_info())
        )
        sent = 0
        for participant in list(self._participants.values()):
            if participant.room_id is None and participant.send_text(text):
                sent += 1
        return sent

    # =========================================================================
    # Periodic work
    # =========================================================================

    def heartbeat_tick(self, now: float | None = None) -> list[str]:
        """
        Close silent connections, then ping the rest.

        Returns:
            Ids of the players that were timed out.
        """
        stale = self._heartbeat_tracker.collect_stale(self._participants.values(), now)
        for participant in stale:
            audit_ws_connection(
                event_type="TIMEOUT",
                endpoint="/ws",
                player_id=participant.id,
                room_id=participant.room_id,
                reason="heartbeat_timeout",
            )
            participant.close(WSCloseCode.HEARTBEAT_TIMEOUT, "Connection timeout")
            self.disconnect(participant, now)

        for participant in list(self._participants.values()):
            participant.transport.ping()

        if stale:
            logger.info("Timed out silent connections", count=len(stale))
        return [participant.id for participant in stale]

    def sweep_idle_rooms(self, now: float | None = None) -> list[str]:
        """Close rooms idle beyond room_timeout (the lobby is exempt)."""
        return self._registry.sweep_idle(now)

    def shutdown(self) -> int:
        """
        Notify every room member and close every connection with GOING_AWAY.

        Returns:
            Number of connections closed.
        """
        self._is_shutting_down = True
        self._registry.shutdown()

        participants = list(self._participants.values())
        self._participants.clear()
        for participant in participants:
            participant.close(WSCloseCode.GOING_AWAY, "Server shutting down")

        logger.info("Gateway shut down", closed_connections=len(participants))
        return len(participants)

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, int]:
        """{roomCount, playerCount, totalConnections}."""
        return self._stats.get_summary()

    def get_detailed_stats(self) -> dict[str, Any]:
        return self._stats.get_stats()
