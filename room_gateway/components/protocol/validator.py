"""
Payload Validation.

Pure, stateless shape and bounds checks for client payloads. Nothing here
checks catalog legality of body/addon identifiers; clients load those from
the vehicle catalog and the gateway only relays them.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Mapping, Self

from room_gateway.components.core.constants import ROOM_CODE_ALPHABET, WSConstants

if TYPE_CHECKING:
    from room_gateway.config.settings import Settings

__all__ = [
    "ValidationResult",
    "PayloadValidator",
    "is_valid_vector",
    "is_valid_room_code",
    "is_valid_text",
    "VEHICLE_CONFIG_NUMERIC_FIELDS",
]

# Optional numeric tuning fields of a vehicle configuration
VEHICLE_CONFIG_NUMERIC_FIELDS: tuple[str, ...] = (
    "roughness",
    "lift",
    "wheel_offset",
    "rim_diameter",
    "rim_width",
    "tire_diameter",
    "tire_muddiness",
)

# Optional string fields of a vehicle configuration
VEHICLE_CONFIG_STRING_FIELDS: tuple[str, ...] = ("rim", "rim_color", "tire")


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a payload check with a human-readable error per failure."""

    valid: bool
    errors: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_errors(cls, errors: list[str]) -> Self:
        return cls(valid=not errors, errors=tuple(errors))

    def __bool__(self) -> bool:
        return self.valid


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return True


def is_valid_vector(value: Any, arity: int, limit: float | None = None) -> bool:
    """
    Check a numeric vector.

    Args:
        value: Candidate list.
        arity: Exact number of components required.
        limit: Maximum absolute value of each component (None for unbounded).
    """
    if not isinstance(value, list) or len(value) != arity:
        return False
    for component in value:
        if not _is_number(component):
            return False
        if limit is not None and abs(component) > limit:
            return False
    return True


@lru_cache(maxsize=8)
def _room_code_pattern(length: int) -> re.Pattern[str]:
    return re.compile(f"^[{re.escape(ROOM_CODE_ALPHABET)}]{{{length}}}$")


def is_valid_room_code(code: Any, length: int) -> bool:
    """Room codes are exactly ``length`` characters from ROOM_CODE_ALPHABET."""
    if not isinstance(code, str):
        return False
    return _room_code_pattern(length).fullmatch(code) is not None


def is_valid_text(value: Any, max_length: int) -> bool:
    """A string that is non-empty after trimming and within ``max_length``."""
    if not isinstance(value, str):
        return False
    trimmed = value.strip()
    return 0 < len(trimmed) <= max_length


class PayloadValidator:
    """
    Validators bound to the configured magnitude limits.

    Usage:
        validator = PayloadValidator(settings)
        result = validator.validate_player_update(message.data)
        if not result:
            return  # drop silently
    """

    def __init__(self, settings: "Settings") -> None:
        self.max_position = settings.max_position_value
        self.max_velocity = settings.max_velocity_value
        self.room_code_length = settings.room_code_length

    # =========================================================================
    # Transform vectors
    # =========================================================================

    def is_valid_position(self, position: Any) -> bool:
        return is_valid_vector(position, 3, self.max_position)

    def is_valid_rotation(self, rotation: Any) -> bool:
        return is_valid_vector(rotation, 4, WSConstants.MAX_ROTATION_COMPONENT)

    def is_valid_velocity(self, velocity: Any) -> bool:
        return is_valid_vector(velocity, 3, self.max_velocity)

    def is_valid_angular_velocity(self, angular_velocity: Any) -> bool:
        return is_valid_vector(angular_velocity, 3, WSConstants.MAX_ANGULAR_VELOCITY)

    def is_valid_wheel_values(self, values: Any) -> bool:
        return is_valid_vector(values, WSConstants.WHEEL_COUNT)

    # =========================================================================
    # Message payloads
    # =========================================================================

    def validate_player_update(self, data: Mapping[str, Any]) -> ValidationResult:
        """
        Validate the fields of a PLAYER_UPDATE that are present.

        Absent fields are not errors; updates are partial.
        """
        errors = []

        if "position" in data and not self.is_valid_position(data["position"]):
            errors.append("Invalid position")

        if "rotation" in data and not self.is_valid_rotation(data["rotation"]):
            errors.append("Invalid rotation")

        if "velocity" in data and not self.is_valid_velocity(data["velocity"]):
            errors.append("Invalid velocity")

        if "angularVelocity" in data and not self.is_valid_angular_velocity(data["angularVelocity"]):
            errors.append("Invalid angular velocity")

        if "wheelRotations" in data and not self.is_valid_wheel_values(data["wheelRotations"]):
            errors.append("Invalid wheel rotations")

        if "wheelYPositions" in data and not self.is_valid_wheel_values(data["wheelYPositions"]):
            errors.append("Invalid wheel Y positions")

        if "steering" in data:
            steering = data["steering"]
            if not _is_number(steering) or abs(steering) > WSConstants.MAX_STEERING:
                errors.append("Invalid steering")

        if "engineRpm" in data:
            rpm = data["engineRpm"]
            if not _is_number(rpm) or rpm < 0 or rpm > WSConstants.MAX_ENGINE_RPM:
                errors.append("Invalid engine RPM")

        if "hornActive" in data and not isinstance(data["hornActive"], bool):
            errors.append("Invalid horn state")

        return ValidationResult.from_errors(errors)

    def validate_vehicle_config(self, config: Any) -> ValidationResult:
        """
        Check presence and type of the vehicle configuration fields.

        ``body`` and ``color`` are required strings; tuning fields are
        optional but must be numbers when present.
        """
        if not isinstance(config, dict):
            return ValidationResult.from_errors(["Config must be an object"])

        errors = []

        if not isinstance(config.get("body"), str):
            errors.append("Invalid body type")

        if not isinstance(config.get("color"), str):
            errors.append("Invalid color")

        for name in VEHICLE_CONFIG_NUMERIC_FIELDS:
            if name in config and not _is_number(config[name]):
                errors.append(f"Invalid {name}")

        for name in VEHICLE_CONFIG_STRING_FIELDS:
            if name in config and not isinstance(config[name], str):
                errors.append(f"Invalid {name}")

        if "addons" in config and not isinstance(config["addons"], dict):
            errors.append("Invalid addons")

        if "spare" in config and not isinstance(config["spare"], bool):
            errors.append("Invalid spare")

        return ValidationResult.from_errors(errors)

    def validate_vehicle_reset(self, data: Mapping[str, Any]) -> ValidationResult:
        """Reset payloads carry an optional position and rotation."""
        errors = []
        if "position" in data and not self.is_valid_position(data["position"]):
            errors.append("Invalid position")
        if "rotation" in data and not self.is_valid_rotation(data["rotation"]):
            errors.append("Invalid rotation")
        return ValidationResult.from_errors(errors)

    # =========================================================================
    # Identifiers and text
    # =========================================================================

    def is_valid_room_code(self, code: Any) -> bool:
        return is_valid_room_code(code, self.room_code_length)

    def is_valid_player_name(self, name: Any) -> bool:
        return is_valid_text(name, WSConstants.MAX_PLAYER_NAME_LENGTH)

    def is_valid_chat_text(self, text: Any) -> bool:
        return is_valid_text(text, WSConstants.MAX_CHAT_LENGTH)
