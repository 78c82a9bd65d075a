"""
Tests for payload validation.
"""

import math

import pytest

from room_gateway.components.core.constants import ROOM_CODE_ALPHABET
from room_gateway.components.protocol.validator import (
    PayloadValidator,
    ValidationResult,
    is_valid_room_code,
    is_valid_text,
    is_valid_vector,
)
from room_gateway.config.settings import Settings


def valid_config(**overrides):
    config = {"body": "toyota_4runner_5g", "color": "#A83232", "lift": 2, "addons": {}}
    config.update(overrides)
    return config


class TestVectors:
    """Arity, finiteness and magnitude checks."""

    def test_position_component_over_max_is_rejected(self, validator, settings):
        assert not validator.is_valid_position([settings.max_position_value + 1, 0, 0])

    def test_position_at_max_is_accepted(self, validator, settings):
        assert validator.is_valid_position([settings.max_position_value, -settings.max_position_value, 0])

    def test_rotation_must_have_four_components(self, validator):
        assert not validator.is_valid_rotation([0, 0, 1])
        assert not validator.is_valid_rotation([0, 0, 0, 1, 0])
        assert validator.is_valid_rotation([0, 0, 0, 1])

    def test_rotation_tolerates_normalization_drift(self, validator):
        assert validator.is_valid_rotation([0, 0, 0, 1.05])
        assert not validator.is_valid_rotation([0, 0, 0, 1.2])

    def test_zero_velocity_is_accepted(self, validator):
        assert validator.is_valid_velocity([0, 0, 0])

    def test_velocity_over_max_is_rejected(self, validator, settings):
        assert not validator.is_valid_velocity([0, settings.max_velocity_value * 2, 0])

    def test_angular_velocity_is_bounded(self, validator):
        assert validator.is_valid_angular_velocity([100, -100, 0])
        assert not validator.is_valid_angular_velocity([100.5, 0, 0])

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf, "1", None, True])
    def test_non_finite_or_non_numeric_components_are_rejected(self, bad):
        assert not is_valid_vector([0, bad, 0], 3)

    def test_not_a_list_is_rejected(self):
        assert not is_valid_vector((0, 0, 0), 3)
        assert not is_valid_vector({"x": 0}, 3)

    def test_custom_limits_come_from_settings(self):
        validator = PayloadValidator(Settings(_env_file=None, max_position_value=10))
        assert validator.is_valid_position([10, 0, 0])
        assert not validator.is_valid_position([10.5, 0, 0])


class TestPlayerUpdate:
    """Partial transform and telemetry updates."""

    def test_empty_update_is_valid(self, validator):
        assert validator.validate_player_update({})

    def test_full_update_is_valid(self, validator):
        result = validator.validate_player_update(
            {
                "position": [1, 2, 3],
                "rotation": [0, 0.7071, 0, 0.7071],
                "velocity": [10, 0, 5],
                "angularVelocity": [0, 1, 0],
                "wheelRotations": [0.1, 0.2, 0.3, 0.4],
                "wheelYPositions": [0, 0, 0, 0],
                "steering": -0.5,
                "engineRpm": 3200,
                "hornActive": True,
            }
        )
        assert result.valid
        assert result.errors == ()

    def test_each_bad_field_is_reported(self, validator):
        result = validator.validate_player_update(
            {
                "position": [1, 2],
                "wheelRotations": [0, 0, 0],
                "steering": 1.5,
                "engineRpm": -1,
                "hornActive": "yes",
            }
        )
        assert not result
        assert set(result.errors) == {
            "Invalid position",
            "Invalid wheel rotations",
            "Invalid steering",
            "Invalid engine RPM",
            "Invalid horn state",
        }


class TestVehicleConfig:
    """Shape checks only; catalog identifiers are not verified."""

    def test_valid_config(self, validator):
        assert validator.validate_vehicle_config(valid_config())

    def test_unknown_body_identifier_is_not_checked(self, validator):
        assert validator.validate_vehicle_config(valid_config(body="not_in_any_catalog"))

    def test_missing_color_is_reported(self, validator):
        config = valid_config()
        del config["color"]
        result = validator.validate_vehicle_config(config)
        assert not result.valid
        assert any("color" in error for error in result.errors)

    def test_missing_body_is_reported(self, validator):
        config = valid_config()
        del config["body"]
        assert "Invalid body type" in validator.validate_vehicle_config(config).errors

    def test_numeric_tuning_fields_must_be_numbers(self, validator):
        result = validator.validate_vehicle_config(valid_config(lift="high", tire_diameter=math.inf))
        assert set(result.errors) == {"Invalid lift", "Invalid tire_diameter"}

    def test_non_object_config(self, validator):
        assert validator.validate_vehicle_config(["body"]).errors == ("Config must be an object",)
        assert not validator.validate_vehicle_config(None)


class TestVehicleReset:
    def test_reset_without_fields_is_valid(self, validator):
        assert validator.validate_vehicle_reset({})

    def test_reset_with_bad_rotation(self, validator):
        assert not validator.validate_vehicle_reset({"position": [0, 1, 0], "rotation": [0, 0]})


class TestRoomCodes:
    def test_generated_shape_is_valid(self):
        assert is_valid_room_code("ABCD2345", 8)

    def test_wrong_length(self):
        assert not is_valid_room_code("ABCD234", 8)
        assert not is_valid_room_code("ABCD23456", 8)

    @pytest.mark.parametrize("char", ["I", "O", "0", "1", "a", "-"])
    def test_excluded_characters(self, char):
        assert char not in ROOM_CODE_ALPHABET
        assert not is_valid_room_code(f"ABCD234{char}", 8)

    def test_non_string(self):
        assert not is_valid_room_code(12345678, 8)
        assert not is_valid_room_code(None, 8)


class TestText:
    def test_trimmed_length_is_checked(self):
        assert is_valid_text("  hi  ", 2)
        assert not is_valid_text("   ", 20)
        assert not is_valid_text("x" * 21, 20)

    def test_player_name_limit(self, validator):
        assert validator.is_valid_player_name("x" * 20)
        assert not validator.is_valid_player_name("x" * 21)

    def test_chat_limit(self, validator):
        assert validator.is_valid_chat_text("x" * 200)
        assert not validator.is_valid_chat_text("x" * 201)
        assert not validator.is_valid_chat_text(42)


def test_validation_result_truthiness():
    assert ValidationResult.from_errors([])
    assert not ValidationResult.from_errors(["Invalid color"])
