"""
Protocol Router.

Dispatches parsed inbound messages to handlers. Each handler validates,
mutates through SessionRegistry/Participant and fans out through
Session.broadcast(), all within one synchronous call.

Error policy:
- session and validation failures are reported to the sender only, as a
  single ERROR frame, and never close the connection
- malformed high-frequency updates and membership-requiring messages from
  players without a room are dropped silently
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from room_gateway.components.core.context import sanitize_log_data
from room_gateway.components.core.errors import (
    ErrorCode,
    GatewayError,
    PayloadValidationError,
    ProtocolError,
    SessionError,
)
from room_gateway.components.protocol.types import InboundMessage, MessageType, create_message, now_ms
from room_gateway.components.protocol.validator import PayloadValidator
from room_gateway.config.logging import audit_rate_limit_event, get_logger
from room_gateway.config.settings import get_settings

if TYPE_CHECKING:
    from room_gateway.components.session.participant import Participant
    from room_gateway.components.session.registry import LeaveResult, SessionRegistry
    from room_gateway.components.session.session import Session
    from room_gateway.config.settings import Settings

logger = get_logger(__name__)

Handler = Callable[["Participant", InboundMessage, "float | None"], None]


def create_error_message(
    code: ErrorCode,
    message: str | None = None,
    errors: list[str] | None = None,
) -> dict[str, Any]:
    """Build an ERROR frame without raising (hot paths such as rate limiting)."""
    payload: dict[str, Any] = {"code": code.value, "message": message or code.default_message}
    if errors is not None:
        payload["errors"] = list(errors)
    return create_message(MessageType.ERROR, **payload)


class ProtocolRouter:
    """
    Routes inbound messages for every connection.

    The rate limiter is consulted before dispatch for every message type.
    """

    def __init__(
        self,
        registry: "SessionRegistry",
        validator: PayloadValidator | None = None,
        settings: "Settings | None" = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._registry = registry
        self._validator = validator or PayloadValidator(self._settings)

        self._handlers: dict[MessageType, Handler] = {
            MessageType.PING: self._handle_ping,
            MessageType.CREATE_ROOM: self._handle_create_room,
            MessageType.JOIN_ROOM: self._handle_join_room,
            MessageType.LEAVE_ROOM: self._handle_leave_room,
            MessageType.PLAYER_UPDATE: self._handle_player_update,
            MessageType.VEHICLE_CONFIG: self._handle_vehicle_config,
            MessageType.VEHICLE_RESET: self._handle_vehicle_reset,
            MessageType.PLAYER_NAME_UPDATE: self._handle_name_update,
            MessageType.CHAT_MESSAGE: self._handle_chat_message,
            MessageType.SET_ROOM_PUBLIC: self._handle_set_room_public,
            MessageType.GET_PUBLIC_ROOMS: self._handle_get_public_rooms,
        }

        self._messages_handled = 0
        self._messages_rate_limited = 0
        self._errors_sent = 0

    # =========================================================================
    # Entry points
    # =========================================================================

    def handle(self, participant: "Participant", message: InboundMessage, now: float | None = None) -> None:
        """
        Rate-limit, dispatch and run the handler for one inbound message.

        GatewayError raised by a handler becomes an ERROR frame for the
        sender. Any other exception propagates to the connection loop.
        """
        if not participant.check_rate_limit(now):
            self._reject_rate_limited(participant)
            return

        self._messages_handled += 1

        handler = None
        message_type = message.message_type
        if message_type is not None:
            handler = self._handlers.get(message_type)

        try:
            if handler is None:
                raise ProtocolError(
                    f"Unknown message type: {sanitize_log_data(message.type, 50)}",
                    player_id=participant.id,
                )
            handler(participant, message, now)
        except GatewayError as e:
            self.send_error(participant, e)

    def handle_disconnect(self, participant: "Participant", now: float | None = None) -> None:
        """Implicit leave when a connection goes away."""
        self._leave(participant, now)

    def send_error(self, participant: "Participant", error: GatewayError) -> None:
        self._errors_sent += 1
        participant.send(create_message(MessageType.ERROR, **error.to_payload()))

    def _reject_rate_limited(self, participant: "Participant") -> None:
        self._messages_rate_limited += 1
        limiter = participant.rate_limiter

        # Audit once per window, not once per rejected frame
        if limiter.message_count == limiter.max_messages + 1:
            audit_rate_limit_event(
                "ws_message",
                participant.id,
                limiter.max_messages,
                limiter.window_seconds,
                room_id=participant.room_id,
            )

        self._errors_sent += 1
        participant.send(create_error_message(ErrorCode.RATE_LIMITED))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _session_of(self, participant: "Participant") -> "Session | None":
        return self._registry.get_session_for_participant(participant.id)

    def _ensure_not_in_room(self, participant: "Participant") -> None:
        current = self._session_of(participant)
        if current is not None:
            raise SessionError(ErrorCode.ALREADY_IN_ROOM, player_id=participant.id, room_id=current.id)

    def _apply_profile(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        """Optional playerName/vehicleConfig sent with create/join; bad values are ignored."""
        name = message.get("playerName")
        if name:
            participant.set_name(name)

        config = message.get("vehicleConfig")
        if config and self._validator.validate_vehicle_config(config):
            participant.update_vehicle_config(config, now)

    def _parse_room_id(self, raw: Any) -> str | None:
        """
        Normalize the roomId of a JOIN_ROOM.

        Returns:
            Upper-cased room id, or None to create a room with a generated code.
        """
        if raw is None:
            return None
        if not isinstance(raw, str):
            raise SessionError(ErrorCode.INVALID_ROOM_CODE, reason="not a string")

        room_id = raw.strip().upper()
        if not room_id:
            return None
        if room_id != self._registry.lobby.id and not self._validator.is_valid_room_code(room_id):
            raise SessionError(ErrorCode.INVALID_ROOM_CODE, room_id=sanitize_log_data(room_id, 20))
        return room_id

    def _leave(self, participant: "Participant", now: float | None) -> "LeaveResult | None":
        """Remove membership and tell the remaining members."""
        result = self._registry.leave_session(participant.id, now)
        if result is None:
            return None

        session = result.session
        if not session.is_empty():
            session.broadcast(
                create_message(
                    MessageType.PLAYER_LEFT,
                    playerId=participant.id,
                    newHost=session.host if result.host_changed else None,
                )
            )
            session.broadcast(create_message(MessageType.ROOM_STATE, roomState=session.get_state()))
        return result

    # =========================================================================
    # Connection
    # =========================================================================

    def _handle_ping(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        participant.send(
            create_message(
                MessageType.PONG,
                clientTime=message.get("clientTime"),
                serverTime=now_ms(),
            )
        )

    # =========================================================================
    # Room management
    # =========================================================================

    def _handle_create_room(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        self._ensure_not_in_room(participant)
        self._apply_profile(participant, message, now)

        session = self._registry.create_session(participant, now=now)
        participant.send(
            create_message(
                MessageType.ROOM_CREATED,
                roomId=session.id,
                isHost=True,
                roomState=session.get_state(),
            )
        )

    def _handle_join_room(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        room_id = self._parse_room_id(message.get("roomId"))
        self._ensure_not_in_room(participant)
        self._apply_profile(participant, message, now)

        result = self._registry.join_session(room_id, participant, now)
        session = result.session

        if not result.created:
            session.broadcast(
                create_message(MessageType.PLAYER_JOINED, player=participant.get_public_data()),
                exclude=participant,
            )

        participant.send(
            create_message(
                MessageType.ROOM_JOINED,
                roomId=session.id,
                isHost=session.is_host(participant.id),
                roomState=session.get_state(),
            )
        )

    def _handle_leave_room(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        result = self._leave(participant, now)
        if result is None:
            raise SessionError(ErrorCode.NOT_IN_ROOM, player_id=participant.id)
        participant.send(create_message(MessageType.ROOM_LEFT, roomId=result.session.id))

    def _handle_set_room_public(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        is_public = message.get("isPublic")
        if not isinstance(is_public, bool):
            raise PayloadValidationError(
                "Invalid room visibility",
                ["isPublic must be a boolean"],
                player_id=participant.id,
            )

        session = self._registry.set_public(participant.id, is_public)
        session.touch(now)
        session.broadcast(create_message(MessageType.ROOM_STATE, roomState=session.get_state()))

    def _handle_get_public_rooms(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        participant.send(create_message(MessageType.LOBBY_INFO, **self._registry.get_lobby_info()))

    # =========================================================================
    # In-room relays (silently dropped for players without a room)
    # =========================================================================

    def _handle_player_update(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        session = self._session_of(participant)
        if session is None:
            return
        if not self._validator.validate_player_update(message.data):
            return

        participant.update_transform(message.data, now)
        session.touch(now)
        session.broadcast(
            create_message(MessageType.PLAYER_UPDATE, **participant.get_transform_data()),
            exclude=participant,
        )

    def _handle_vehicle_config(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        session = self._session_of(participant)
        if session is None:
            return

        config = message.get("config")
        result = self._validator.validate_vehicle_config(config)
        if not result:
            raise PayloadValidationError(
                "Invalid vehicle configuration",
                list(result.errors),
                player_id=participant.id,
                room_id=session.id,
            )

        participant.update_vehicle_config(config, now)
        session.touch(now)
        session.broadcast(
            create_message(
                MessageType.VEHICLE_CONFIG,
                playerId=participant.id,
                config=participant.vehicle_config,
            ),
            exclude=participant,
        )

    def _handle_vehicle_reset(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        session = self._session_of(participant)
        if session is None:
            return
        if not self._validator.validate_vehicle_reset(message.data):
            return

        payload = {key: message.data[key] for key in ("position", "rotation") if key in message}
        session.touch(now)
        session.broadcast(
            create_message(MessageType.VEHICLE_RESET, playerId=participant.id, **payload),
            exclude=participant,
        )

    def _handle_name_update(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        session = self._session_of(participant)
        if session is None:
            return
        if not participant.set_name(message.get("name")):
            return

        session.touch(now)
        session.broadcast(
            create_message(MessageType.PLAYER_NAME_UPDATE, playerId=participant.id, name=participant.name)
        )

    def _handle_chat_message(self, participant: "Participant", message: InboundMessage, now: float | None) -> None:
        session = self._session_of(participant)
        if session is None:
            return

        text = message.get("text")
        if not self._validator.is_valid_chat_text(text):
            return

        session.touch(now)
        session.broadcast(
            create_message(
                MessageType.CHAT_MESSAGE,
                playerId=participant.id,
                playerName=participant.name,
                text=text.strip(),
            )
        )

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self) -> dict[str, int]:
        return {
            "messages_handled": self._messages_handled,
            "messages_rate_limited": self._messages_rate_limited,
            "errors_sent": self._errors_sent,
        }
