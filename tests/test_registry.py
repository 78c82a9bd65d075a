"""
Tests for the session registry: codes, join-or-create, host succession,
the public lobby and the idle sweep.
"""

import pytest
from hypothesis import given, settings as hypothesis_settings, strategies as st

from room_gateway.components.core.constants import ROOM_CODE_ALPHABET, WSConstants
from room_gateway.components.core.errors import ErrorCode, RoomCodeExhaustedError, SessionError
from room_gateway.components.protocol.types import MessageType
from room_gateway.components.session.index import MembershipError, MembershipIndex
from room_gateway.components.session.registry import SessionRegistry
from room_gateway.config.settings import Settings


class TestRoomCodes:
    """Generated codes: length and alphabet, never colliding with a live room."""

    @given(length=st.integers(min_value=4, max_value=12))
    @hypothesis_settings(max_examples=25, deadline=None)
    def test_generated_code_shape(self, length):
        registry = SessionRegistry(Settings(_env_file=None, room_code_length=length))
        code = registry.generate_room_code()
        assert len(code) == length
        assert set(code) <= set(ROOM_CODE_ALPHABET)

    def test_live_rooms_never_share_a_code(self, registry, make_participant):
        ids = {registry.create_session(make_participant()).id for _ in range(200)}
        assert len(ids) == 200
        assert registry.check_invariants() == []

    def test_exhaustion_is_an_internal_error(self, registry, make_participant, monkeypatch):
        registry.create_session(make_participant(), explicit_id="AAAAAAAA")
        monkeypatch.setattr(
            "room_gateway.components.session.registry.secrets.choice",
            lambda alphabet: "A",
        )
        with pytest.raises(RoomCodeExhaustedError) as exc_info:
            registry.create_session(make_participant())
        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
        assert len(registry) == 2


class TestCreateAndJoin:
    def test_join_without_id_creates_room_with_sole_host(self, registry, make_participant):
        host = make_participant()
        result = registry.join_session(None, host)

        assert result.created is True
        assert result.session.host == host.id
        assert list(result.session.members) == [host.id]
        assert host.room_id == result.session.id
        assert registry.index.room_of(host.id) == result.session.id

    def test_join_existing_room_keeps_host(self, registry, make_participant):
        host, guest = make_participant(), make_participant()
        session = registry.join_session(None, host).session

        result = registry.join_session(session.id, guest)

        assert result.created is False
        assert result.session is session
        assert session.host == host.id
        assert session.player_count == 2
        assert registry.check_invariants() == []

    def test_join_unknown_code_creates_it(self, registry, make_participant):
        player = make_participant()
        result = registry.join_session("ZZZZ2222", player)
        assert result.created is True
        assert result.session.id == "ZZZZ2222"
        assert result.session.host == player.id

    def test_join_full_room(self, make_participant):
        registry = SessionRegistry(Settings(_env_file=None, max_players_per_room=2))
        session = registry.join_session(None, make_participant()).session
        registry.join_session(session.id, make_participant())

        late = make_participant()
        with pytest.raises(SessionError) as exc_info:
            registry.join_session(session.id, late)
        assert exc_info.value.code == ErrorCode.ROOM_FULL
        assert late.room_id is None
        assert session.player_count == 2

    def test_already_in_room(self, registry, make_participant):
        player = make_participant()
        registry.join_session(None, player)
        other = registry.join_session(None, make_participant()).session

        with pytest.raises(SessionError) as exc_info:
            registry.join_session(other.id, player)
        assert exc_info.value.code == ErrorCode.ALREADY_IN_ROOM

        with pytest.raises(SessionError) as exc_info:
            registry.create_session(player)
        assert exc_info.value.code == ErrorCode.ALREADY_IN_ROOM

    def test_explicit_id_taken(self, registry, make_participant):
        registry.create_session(make_participant(), explicit_id="ABCD2345")
        with pytest.raises(SessionError) as exc_info:
            registry.create_session(make_participant(), explicit_id="ABCD2345")
        assert exc_info.value.code == ErrorCode.ROOM_EXISTS


class TestLeave:
    def test_non_host_leaving_keeps_host(self, registry, make_participant):
        host, guest = make_participant(), make_participant()
        session = registry.join_session(None, host).session
        registry.join_session(session.id, guest)

        result = registry.leave_session(guest.id)

        assert result.host_changed is False
        assert result.deleted is False
        assert session.host == host.id
        assert guest.room_id is None
        assert guest.id not in registry.index

    def test_host_leaving_promotes_exactly_one_member(self, registry, make_participant):
        host, a, b = make_participant(), make_participant(), make_participant()
        session = registry.join_session(None, host).session
        registry.join_session(session.id, a)
        registry.join_session(session.id, b)

        result = registry.leave_session(host.id)

        assert result.host_changed is True
        assert session.host in {a.id, b.id}
        assert session.host in session.members
        assert registry.check_invariants() == []

    def test_last_member_leaving_destroys_room(self, registry, make_participant):
        player = make_participant()
        session = registry.join_session(None, player).session

        result = registry.leave_session(player.id)

        assert result.deleted is True
        assert session.host is None
        assert registry.get_session(session.id) is None

    def test_leave_when_not_in_room(self, registry, make_participant):
        assert registry.leave_session(make_participant().id) is None


class TestLobby:
    def test_lobby_is_registered_from_the_start(self, registry, settings):
        lobby = registry.get_session(settings.lobby_room_id)
        assert lobby is registry.lobby
        assert lobby.is_public and lobby.is_lobby
        assert lobby.host is None
        assert lobby.max_players == settings.lobby_max_players

    def test_lobby_survives_last_member_leaving(self, registry, make_participant, settings):
        player = make_participant()
        result = registry.join_session(settings.lobby_room_id, player)
        assert result.created is False
        assert registry.lobby.host is None

        left = registry.leave_session(player.id)

        assert left.deleted is False
        assert registry.get_session(settings.lobby_room_id) is registry.lobby
        assert registry.lobby.player_count == 0
        assert registry.check_invariants() == []

    def test_lobby_membership_changes_notify(self, settings, make_participant):
        calls = []
        registry = SessionRegistry(settings, on_lobby_change=lambda: calls.append(1))
        player = make_participant()

        registry.join_session(None, make_participant())
        assert calls == []

        registry.join_session(settings.lobby_room_id, player)
        registry.leave_session(player.id)
        assert len(calls) == 2

    def test_lobby_cannot_be_toggled(self, registry, make_participant, settings):
        player = make_participant()
        registry.join_session(settings.lobby_room_id, player)
        with pytest.raises(SessionError) as exc_info:
            registry.set_public(player.id, False)
        assert exc_info.value.code == ErrorCode.NOT_HOST


class TestPublicVisibility:
    def test_only_host_may_toggle(self, registry, make_participant):
        host, guest = make_participant(), make_participant()
        session = registry.join_session(None, host).session
        registry.join_session(session.id, guest)

        with pytest.raises(SessionError) as exc_info:
            registry.set_public(guest.id, True)
        assert exc_info.value.code == ErrorCode.NOT_HOST

        registry.set_public(host.id, True)
        assert session.is_public is True

    def test_toggle_outside_room(self, registry, make_participant):
        with pytest.raises(SessionError) as exc_info:
            registry.set_public(make_participant().id, True)
        assert exc_info.value.code == ErrorCode.NOT_IN_ROOM

    def test_listing_contains_only_public_rooms_with_space(self, make_participant):
        registry = SessionRegistry(Settings(_env_file=None, max_players_per_room=2))
        open_host, full_host, private_host = make_participant(), make_participant(), make_participant()

        open_room = registry.join_session(None, open_host).session
        full_room = registry.join_session(None, full_host).session
        registry.join_session(None, private_host)
        registry.join_session(full_room.id, make_participant())
        registry.set_public(open_host.id, True)
        registry.set_public(full_host.id, True)

        listed = {room["id"]: room for room in registry.get_public_rooms()}

        assert set(listed) == {registry.lobby.id, open_room.id}
        assert listed[open_room.id] == {
            "id": open_room.id,
            "playerCount": 1,
            "maxPlayers": 2,
            "isLobby": False,
        }

    def test_toggle_notifies_once_per_change(self, settings, make_participant):
        calls = []
        registry = SessionRegistry(settings, on_lobby_change=lambda: calls.append(1))
        host = make_participant()
        registry.join_session(None, host)

        registry.set_public(host.id, True)
        registry.set_public(host.id, True)
        registry.set_public(host.id, False)
        assert len(calls) == 2


class TestIdleSweep:
    def test_idle_room_is_closed_and_members_notified(self, registry, make_participant, settings):
        host, guest = make_participant(), make_participant()
        session = registry.join_session(None, host, now=1000.0).session
        registry.join_session(session.id, guest, now=1000.0)
        lobby_player = make_participant()
        registry.join_session(settings.lobby_room_id, lobby_player, now=1000.0)

        closed = registry.sweep_idle(now=1000.0 + settings.room_timeout + 1)

        assert closed == [session.id]
        for player in (host, guest):
            notice = player.transport.last(MessageType.ROOM_CLOSED)
            assert notice["roomId"] == session.id
            assert notice["reason"] == WSConstants.ROOM_CLOSED_TIMEOUT_REASON
            assert player.room_id is None
            assert player.id not in registry.index
        assert registry.get_session(session.id) is None

        # The lobby is exempt and keeps its members
        assert registry.get_session(settings.lobby_room_id) is registry.lobby
        assert lobby_player.room_id == settings.lobby_room_id
        assert lobby_player.transport.of_type(MessageType.ROOM_CLOSED) == []
        assert registry.check_invariants() == []

    def test_recent_activity_keeps_room_open(self, registry, make_participant, settings):
        session = registry.join_session(None, make_participant(), now=1000.0).session
        session.touch(now=1000.0 + settings.room_timeout)

        assert registry.sweep_idle(now=1000.0 + settings.room_timeout + 1) == []
        assert registry.get_session(session.id) is session

    def test_shutdown_notifies_everyone_and_keeps_empty_lobby(self, registry, make_participant, settings):
        in_room, in_lobby = make_participant(), make_participant()
        registry.join_session(None, in_room)
        registry.join_session(settings.lobby_room_id, in_lobby)

        assert registry.shutdown() == 2
        for player in (in_room, in_lobby):
            assert player.transport.last(MessageType.ROOM_CLOSED)["reason"] == WSConstants.ROOM_CLOSED_SHUTDOWN_REASON
        assert registry.get_stats() == {"roomCount": 1, "playerCount": 0}
        assert registry.check_invariants() == []


class TestMembershipIndex:
    def test_assign_is_exclusive(self):
        index = MembershipIndex()
        index.assign("p1", "ROOM")
        with pytest.raises(MembershipError):
            index.assign("p1", "OTHER")

    def test_release_drops_empty_rooms(self):
        index = MembershipIndex()
        index.assign("p1", "ROOM")
        index.assign("p2", "ROOM")
        assert index.room_count == 1

        assert index.release("p1") == "ROOM"
        assert index.room_members("ROOM") == frozenset({"p2"})
        index.release("p2")
        assert index.room_count == 0
        assert index.release("p2") is None

    def test_release_room(self):
        index = MembershipIndex()
        index.assign("p1", "ROOM")
        index.assign("p2", "ROOM")
        assert index.release_room("ROOM") == frozenset({"p1", "p2"})
        assert len(index) == 0
