"""
Participant (player) state.

One Participant exists per accepted connection. It owns the player's
synchronized vehicle state and its message rate limiter; room membership
is written only by Session/SessionRegistry.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from room_gateway.components.connection.rate_limiter import FixedWindowRateLimiter
from room_gateway.components.core.constants import WSCloseCode, WSConstants
from room_gateway.components.protocol.types import encode_message

if TYPE_CHECKING:
    from room_gateway.components.connection.transport import Transport
    from room_gateway.config.settings import Settings


def _to_ms(timestamp: float) -> int:
    return int(timestamp * 1000)


@dataclass
class Transform:
    """Rigid body snapshot: position, quaternion rotation and velocities."""

    position: list[float] = field(default_factory=lambda: [0.0, 1.0, 0.0])
    rotation: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0, 1.0])
    velocity: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    angular_velocity: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])

    def to_dict(self) -> dict[str, list[float]]:
        return {
            "position": list(self.position),
            "rotation": list(self.rotation),
            "velocity": list(self.velocity),
            "angularVelocity": list(self.angular_velocity),
        }


@dataclass
class VehicleTelemetry:
    """Auxiliary vehicle state used by remote clients for rendering and audio."""

    wheel_rotations: list[float] = field(default_factory=lambda: [0.0] * WSConstants.WHEEL_COUNT)
    wheel_y_positions: list[float] = field(default_factory=lambda: [0.0] * WSConstants.WHEEL_COUNT)
    steering: float = 0.0
    engine_rpm: float = WSConstants.IDLE_ENGINE_RPM
    horn_active: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "wheelRotations": list(self.wheel_rotations),
            "wheelYPositions": list(self.wheel_y_positions),
            "steering": self.steering,
            "engineRpm": self.engine_rpm,
            "hornActive": self.horn_active,
        }


# Wire field -> attribute name
_TRANSFORM_FIELDS: dict[str, str] = {
    "position": "position",
    "rotation": "rotation",
    "velocity": "velocity",
    "angularVelocity": "angular_velocity",
}
_VECTOR_TELEMETRY_FIELDS: dict[str, str] = {
    "wheelRotations": "wheel_rotations",
    "wheelYPositions": "wheel_y_positions",
}
_SCALAR_TELEMETRY_FIELDS: dict[str, str] = {
    "steering": "steering",
    "engineRpm": "engine_rpm",
    "hornActive": "horn_active",
}


class Participant:
    """
    A connected player.

    Attributes:
        id: Opaque server-issued identifier.
        transport: Outbound connection primitives.
        name: Display name (1-20 characters).
        room_id: Id of the room this player belongs to, or None.
        vehicle_config: Opaque configuration blob (shape-validated only).
        transform: Latest synchronized transform.
        telemetry: Latest wheel/steering/engine/horn state.
        last_update: Unix time of the last state change.
        last_ping: Unix time of the last inbound frame.
    """

    def __init__(
        self,
        participant_id: str,
        transport: "Transport",
        settings: "Settings",
        now: float | None = None,
    ) -> None:
        if now is None:
            now = time.time()

        self.id = participant_id
        self.transport = transport
        self.name = f"Player {participant_id[:4]}"
        self.room_id: str | None = None

        self.vehicle_config: dict[str, Any] | None = None
        self.transform = Transform()
        self.telemetry = VehicleTelemetry()

        self.connected_at = now
        self.last_update = now
        self.last_ping = now

        self._rate_limiter = FixedWindowRateLimiter(
            max_messages=settings.max_messages_per_window,
            window_seconds=settings.rate_limit_window,
            now=now,
        )

    def __repr__(self) -> str:
        return f"Participant(id={self.id!r}, name={self.name!r}, room_id={self.room_id!r})"

    @property
    def rate_limiter(self) -> FixedWindowRateLimiter:
        return self._rate_limiter

    # =========================================================================
    # Mutators
    # =========================================================================

    def update_transform(self, data: Mapping[str, Any], now: float | None = None) -> None:
        """
        Merge the transform/telemetry fields present in ``data``.

        Fields that are absent keep their stored value. Callers validate
        first; this method only copies.
        """
        for wire_name, attr in _TRANSFORM_FIELDS.items():
            if wire_name in data:
                setattr(self.transform, attr, list(data[wire_name]))

        for wire_name, attr in _VECTOR_TELEMETRY_FIELDS.items():
            if wire_name in data:
                setattr(self.telemetry, attr, list(data[wire_name]))

        for wire_name, attr in _SCALAR_TELEMETRY_FIELDS.items():
            if wire_name in data:
                setattr(self.telemetry, attr, data[wire_name])

        self.last_update = now if now is not None else time.time()

    def update_vehicle_config(self, config: Mapping[str, Any], now: float | None = None) -> None:
        """Replace the stored vehicle configuration wholesale."""
        self.vehicle_config = copy.deepcopy(dict(config))
        self.last_update = now if now is not None else time.time()

    def set_name(self, name: Any) -> bool:
        """
        Set the display name if it is a 1-20 character string after trimming.

        Returns:
            True if the name was accepted, False if it was ignored.
        """
        if not isinstance(name, str):
            return False
        trimmed = name.strip()
        if not 0 < len(trimmed) <= WSConstants.MAX_PLAYER_NAME_LENGTH:
            return False
        self.name = trimmed
        return True

    def check_rate_limit(self, now: float | None = None) -> bool:
        """Count an inbound message; False when over the window's quota."""
        return self._rate_limiter.is_allowed(now)

    def touch(self, now: float | None = None) -> None:
        """Record inbound activity for the heartbeat."""
        self.last_ping = now if now is not None else time.time()

    # =========================================================================
    # Transport
    # =========================================================================

    def send(self, message: Mapping[str, Any]) -> bool:
        """Queue a message for this player only."""
        return self.transport.send_text(encode_message(message))

    def send_text(self, text: str) -> bool:
        """Queue an already encoded frame (used by broadcasts)."""
        return self.transport.send_text(text)

    def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None:
        self.transport.close(code, reason)

    # =========================================================================
    # Projections
    # =========================================================================

    def get_public_data(self) -> dict[str, Any]:
        """Broadcast-safe view of the player for room state and join notices."""
        return {
            "id": self.id,
            "name": self.name,
            "vehicleConfig": copy.deepcopy(self.vehicle_config),
            "transform": self.transform.to_dict(),
            **self.telemetry.to_dict(),
            "lastUpdate": _to_ms(self.last_update),
        }

    def get_transform_data(self) -> dict[str, Any]:
        """Payload of a PLAYER_UPDATE relay."""
        return {
            "playerId": self.id,
            **self.transform.to_dict(),
            **self.telemetry.to_dict(),
            "timestamp": _to_ms(self.last_update),
        }
