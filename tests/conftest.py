"""
Pytest configuration and fixtures for room gateway tests.

Every test builds its own object graph (settings, registry, router,
gateway) so tests never share room state.
"""

import itertools
import json

import pytest
from fastapi.testclient import TestClient

from room_gateway.components.core.constants import WSCloseCode
from room_gateway.components.protocol.router import ProtocolRouter
from room_gateway.components.protocol.types import InboundMessage, MessageType, create_message, encode_message
from room_gateway.components.protocol.validator import PayloadValidator
from room_gateway.components.session.participant import Participant
from room_gateway.components.session.registry import SessionRegistry
from room_gateway.config.settings import Settings
from room_gateway.gateway import ConnectionGateway
from room_gateway.main import create_app


class FakeTransport:
    """
    In-memory transport that records every outbound frame, decoded.
    """

    def __init__(self):
        self.frames: list[dict] = []
        self.closed = False
        self.close_code: int | None = None
        self.close_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return not self.closed

    def send_text(self, text: str) -> bool:
        if self.closed:
            return False
        self.frames.append(json.loads(text))
        return True

    def ping(self) -> bool:
        return self.send_text(encode_message(create_message(MessageType.PING, serverTime=0)))

    def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self.close_reason = reason

    # Test helpers

    def of_type(self, message_type: MessageType) -> list[dict]:
        return [f for f in self.frames if f["type"] == message_type.value]

    def last(self, message_type: MessageType | None = None) -> dict:
        frames = self.frames if message_type is None else self.of_type(message_type)
        assert frames, f"no {message_type} frame received"
        return frames[-1]

    def types(self) -> list[str]:
        return [f["type"] for f in self.frames]

    def clear(self) -> None:
        self.frames.clear()


@pytest.fixture
def settings():
    """Isolated settings (no .env file, defaults unless a test overrides)."""
    return Settings(_env_file=None, environment="test", debug=False)


@pytest.fixture
def validator(settings):
    return PayloadValidator(settings)


@pytest.fixture
def registry(settings):
    return SessionRegistry(settings)


@pytest.fixture
def router(registry, validator, settings):
    return ProtocolRouter(registry, validator, settings)


@pytest.fixture
def make_participant(settings):
    """Factory for players on a FakeTransport with sequential ids."""
    counter = itertools.count(1)

    def _make(player_id: str | None = None, now: float | None = None) -> Participant:
        player_id = player_id or f"player-{next(counter):04d}"
        return Participant(player_id, FakeTransport(), settings, now=now)

    return _make


@pytest.fixture
def send(router):
    """Route a message built from keyword fields: send(player, MessageType.X, field=value)."""

    def _send(participant: Participant, message_type: MessageType | str, now: float | None = None, **fields):
        type_value = message_type.value if isinstance(message_type, MessageType) else message_type
        router.handle(participant, InboundMessage.from_dict({"type": type_value, **fields}), now)

    return _send


@pytest.fixture
def gateway(settings):
    return ConnectionGateway(settings)


@pytest.fixture
def client(settings):
    """Test client with the lifespan running (gateway on app.state)."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
