"""
Tests for frame parsing, outbound message construction and the error
taxonomy.
"""

import json

import pytest

from room_gateway.components.core.context import sanitize_log_data
from room_gateway.components.core.errors import (
    ErrorCategory,
    ErrorCode,
    PayloadValidationError,
    ProtocolError,
    SessionError,
)
from room_gateway.components.protocol.types import (
    MessageType,
    create_message,
    encode_message,
    parse_message,
)


class TestParseMessage:
    def test_valid_frame(self):
        message = parse_message('{"type":"join_room","roomId":"ABCD2345"}')
        assert message.type == "join_room"
        assert message.message_type is MessageType.JOIN_ROOM
        assert message.get("roomId") == "ABCD2345"
        assert "roomId" in message

    def test_bytes_frame(self):
        assert parse_message(b'{"type":"ping"}').message_type is MessageType.PING

    def test_unknown_type_is_kept_raw(self):
        message = parse_message('{"type":"teleport"}')
        assert message.type == "teleport"
        assert message.message_type is None

    def test_message_data_is_read_only(self):
        message = parse_message('{"type":"ping"}')
        with pytest.raises(TypeError):
            message.data["type"] = "pong"

    @pytest.mark.parametrize("raw", ["not json", "{", "", '{"type": }'])
    def test_invalid_json(self, raw):
        with pytest.raises(ProtocolError) as exc_info:
            parse_message(raw)
        assert exc_info.value.code == ErrorCode.INVALID_MESSAGE
        assert exc_info.value.message == "Invalid JSON"

    @pytest.mark.parametrize(
        "raw",
        [
            '{"type":"player_update","position":[NaN,0,0]}',
            '{"type":"player_update","position":[Infinity,0,0]}',
            '{"type":"player_update","position":[-Infinity,0,0]}',
            '{"type":"player_update","position":[1e400,0,0]}',
        ],
    )
    def test_non_finite_numbers_are_rejected(self, raw):
        with pytest.raises(ProtocolError):
            parse_message(raw)

    def test_deep_nesting_is_invalid_json(self):
        with pytest.raises(ProtocolError) as exc_info:
            parse_message("[" * 30000 + "]" * 30000)
        assert exc_info.value.code == ErrorCode.INVALID_MESSAGE
        assert exc_info.value.message == "Invalid JSON"

    @pytest.mark.parametrize("raw", ["[]", '"ping"', "42", "null"])
    def test_non_object(self, raw):
        with pytest.raises(ProtocolError) as exc_info:
            parse_message(raw)
        assert exc_info.value.message == "Message must be a JSON object"

    @pytest.mark.parametrize("raw", ["{}", '{"type":""}', '{"type":7}'])
    def test_missing_type(self, raw):
        with pytest.raises(ProtocolError) as exc_info:
            parse_message(raw)
        assert exc_info.value.message == "Message type is required"


class TestOutboundMessages:
    def test_create_message_adds_timestamp(self):
        message = create_message(MessageType.PONG, clientTime=1)
        assert message["type"] == "pong"
        assert isinstance(message["timestamp"], int)

    def test_create_message_keeps_explicit_timestamp(self):
        assert create_message(MessageType.PLAYER_UPDATE, timestamp=42)["timestamp"] == 42

    def test_encode_is_compact_json(self):
        text = encode_message({"type": "ping", "serverTime": 1})
        assert text == '{"type":"ping","serverTime":1}'
        assert json.loads(text) == {"type": "ping", "serverTime": 1}

    def test_encode_refuses_nan(self):
        with pytest.raises(ValueError):
            encode_message({"type": "ping", "value": float("nan")})


class TestErrors:
    def test_error_payload(self):
        error = SessionError(ErrorCode.ROOM_FULL, room_id="ABCD2345")
        assert error.to_payload() == {
            "code": "ROOM_FULL",
            "message": ErrorCode.ROOM_FULL.default_message,
        }

    def test_validation_error_carries_errors(self):
        error = PayloadValidationError("Invalid vehicle configuration", ["Invalid color"])
        assert error.to_payload()["errors"] == ["Invalid color"]
        assert error.code.category is ErrorCategory.VALIDATION

    @pytest.mark.parametrize("code", list(ErrorCode))
    def test_every_code_has_category_and_message(self, code):
        assert isinstance(code.category, ErrorCategory)
        assert code.default_message


class TestSanitizeLogData:
    def test_control_characters_are_removed(self):
        assert sanitize_log_data("bad\nline\x00") == "badline"

    def test_bidi_overrides_are_removed(self):
        assert sanitize_log_data("abc\u202edef") == "abcdef"

    def test_quotes_are_escaped(self):
        assert sanitize_log_data('say "hi"') == 'say \\"hi\\"'

    def test_truncation(self):
        assert sanitize_log_data("x" * 150, max_length=10) == "x" * 10 + "..."
