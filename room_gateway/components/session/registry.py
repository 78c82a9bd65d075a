"""
Session Registry.

Owns every Session and the global player -> room index. All room lifecycle
operations go through here: creation (explicit or join-or-create), leaving
with host succession, the persistent public lobby, public visibility and
the idle sweep.

Every operation runs to completion synchronously on the event loop, so a
room is never observed half-updated.
"""

from __future__ import annotations

import secrets
import time
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, NamedTuple

from room_gateway.components.core.constants import ROOM_CODE_ALPHABET, WSConstants
from room_gateway.components.core.errors import ErrorCode, RoomCodeExhaustedError, SessionError
from room_gateway.components.protocol.types import MessageType, create_message
from room_gateway.components.session.index import MembershipIndex
from room_gateway.components.session.session import Session
from room_gateway.config.logging import get_logger
from room_gateway.config.settings import get_settings

if TYPE_CHECKING:
    from room_gateway.components.session.participant import Participant
    from room_gateway.config.settings import Settings

logger = get_logger(__name__)

LobbyChangeCallback = Callable[[], None]


class JoinResult(NamedTuple):
    """Outcome of join_session()."""

    session: Session
    created: bool


class LeaveResult(NamedTuple):
    """Outcome of leave_session()."""

    session: Session
    participant: "Participant"
    deleted: bool
    host_changed: bool


class SessionRegistry:
    """
    Registry of live sessions.

    Invariants:
    - a non-lobby session with members has a host that is one of them
    - member count never exceeds a session's capacity
    - the membership index mirrors session membership exactly
    - the public lobby stays registered, without a host, even when empty

    Usage:
        registry = SessionRegistry(settings, on_lobby_change=gateway.broadcast_public_rooms)
        result = registry.join_session(None, participant)
    """

    def __init__(
        self,
        settings: "Settings | None" = None,
        on_lobby_change: LobbyChangeCallback | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._on_lobby_change = on_lobby_change
        self._sessions: dict[str, Session] = {}
        self._index = MembershipIndex()

        self._lobby = Session(
            self._settings.lobby_room_id.strip().upper(),
            max_players=self._settings.lobby_max_players,
            is_public=True,
            is_lobby=True,
        )
        self._sessions[self._lobby.id] = self._lobby

    def set_lobby_change_callback(self, callback: LobbyChangeCallback | None) -> None:
        self._on_lobby_change = callback

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def lobby(self) -> Session:
        return self._lobby

    @property
    def sessions(self) -> MappingProxyType[str, Session]:
        """Room id -> Session (immutable view)."""
        return MappingProxyType(self._sessions)

    @property
    def index(self) -> MembershipIndex:
        return self._index

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._sessions

    def get_session(self, room_id: str) -> Session | None:
        return self._sessions.get(room_id)

    def get_session_for_participant(self, player_id: str) -> Session | None:
        room_id = self._index.room_of(player_id)
        if room_id is None:
            return None
        return self._sessions.get(room_id)

    # =========================================================================
    # Code generation
    # =========================================================================

    def generate_room_code(self) -> str:
        """
        Draw an unused room code.

        Raises:
            RoomCodeExhaustedError: If every attempt collided with a live room.
        """
        length = self._settings.room_code_length
        for _ in range(WSConstants.MAX_ROOM_CODE_ATTEMPTS):
            code = "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))
            if code not in self._sessions:
                return code
        raise RoomCodeExhaustedError(
            WSConstants.MAX_ROOM_CODE_ATTEMPTS,
            room_count=len(self._sessions),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_session(
        self,
        host: "Participant",
        explicit_id: str | None = None,
        now: float | None = None,
    ) -> Session:
        """
        Create a session with ``host`` as its sole member and host.

        Raises:
            SessionError: ALREADY_IN_ROOM if the host is in a session,
                ROOM_EXISTS if ``explicit_id`` is taken.
            RoomCodeExhaustedError: If no free code could be generated.
        """
        if host.id in self._index:
            raise SessionError(
                ErrorCode.ALREADY_IN_ROOM,
                player_id=host.id,
                room_id=self._index.room_of(host.id),
            )

        if explicit_id is not None:
            if explicit_id in self._sessions:
                raise SessionError(ErrorCode.ROOM_EXISTS, room_id=explicit_id)
            room_id = explicit_id
        else:
            room_id = self.generate_room_code()

        session = Session(room_id, max_players=self._settings.max_players_per_room, now=now)
        session.add_member(host, now)
        session.host = host.id

        self._sessions[room_id] = session
        self._index.assign(host.id, room_id)

        logger.info("Room created", room_id=room_id, host=host.id, explicit=explicit_id is not None)

        if session.is_public:
            self._notify_lobby_change()
        return session

    def join_session(
        self,
        room_id: str | None,
        participant: "Participant",
        now: float | None = None,
    ) -> JoinResult:
        """
        Join-or-create.

        - ``room_id`` None: create a session with a generated code
        - unknown ``room_id``: create it with ``participant`` as host
        - known ``room_id`` with capacity: add ``participant``

        Raises:
            SessionError: ALREADY_IN_ROOM or ROOM_FULL.
        """
        if participant.id in self._index:
            raise SessionError(
                ErrorCode.ALREADY_IN_ROOM,
                player_id=participant.id,
                room_id=self._index.room_of(participant.id),
            )

        if room_id is None:
            return JoinResult(self.create_session(participant, now=now), created=True)

        session = self._sessions.get(room_id)
        if session is None:
            return JoinResult(self.create_session(participant, room_id, now=now), created=True)

        if session.is_full():
            raise SessionError(
                ErrorCode.ROOM_FULL,
                room_id=room_id,
                player_count=session.player_count,
            )

        session.add_member(participant, now)
        self._index.assign(participant.id, room_id)
        if session.host is None and not session.is_lobby:
            session.host = participant.id

        logger.info(
            "Player joined room",
            room_id=room_id,
            player_id=participant.id,
            player_count=session.player_count,
        )

        if session.is_public:
            self._notify_lobby_change()
        return JoinResult(session, created=False)

    def leave_session(self, player_id: str, now: float | None = None) -> LeaveResult | None:
        """
        Remove a player from its session.

        The host role passes to a remaining member; an emptied session is
        deleted unless it is the public lobby.

        Returns:
            LeaveResult, or None if the player was not in a session.
        """
        room_id = self._index.release(player_id)
        if room_id is None:
            return None

        session = self._sessions[room_id]
        participant = session.remove_member(player_id, now)
        if participant is None:
            raise RuntimeError(f"Index listed {player_id} in {room_id} but the room did not")

        host_changed = False
        if session.host == player_id:
            session.host = next(iter(session.members), None)
            host_changed = True

        deleted = False
        if session.is_empty() and not session.is_lobby:
            del self._sessions[room_id]
            deleted = True

        logger.info(
            "Player left room",
            room_id=room_id,
            player_id=player_id,
            new_host=session.host if host_changed else None,
            deleted=deleted,
        )

        if session.is_public:
            self._notify_lobby_change()
        return LeaveResult(session, participant, deleted, host_changed)

    def set_public(self, player_id: str, is_public: bool) -> Session:
        """
        Toggle a session's public visibility.

        Raises:
            SessionError: NOT_IN_ROOM if the player has no session, NOT_HOST
                if it is not the host (the lobby has none).
        """
        session = self.get_session_for_participant(player_id)
        if session is None:
            raise SessionError(ErrorCode.NOT_IN_ROOM, player_id=player_id)
        if session.is_lobby or not session.is_host(player_id):
            raise SessionError(ErrorCode.NOT_HOST, player_id=player_id, room_id=session.id)

        if session.is_public != is_public:
            session.is_public = is_public
            logger.info("Room visibility changed", room_id=session.id, is_public=is_public)
            self._notify_lobby_change()
        return session

    # =========================================================================
    # Lobby listings
    # =========================================================================

    def get_public_rooms(self) -> list[dict[str, Any]]:
        """Id and occupancy of every public session with a free slot."""
        return [
            session.get_listing()
            for session in self._sessions.values()
            if session.is_public and not session.is_full()
        ]

    def get_lobby_info(self) -> dict[str, Any]:
        """Payload of a LOBBY_INFO frame."""
        return {
            "lobbyRoomId": self._lobby.id,
            "playerCount": self._lobby.player_count,
            "maxPlayers": self._lobby.max_players,
            "publicRooms": self.get_public_rooms(),
        }

    def _notify_lobby_change(self) -> None:
        if self._on_lobby_change is not None:
            self._on_lobby_change()

    # =========================================================================
    # Closure
    # =========================================================================

    def _close_session(self, session: Session, reason: str) -> list["Participant"]:
        """Notify members, drop their membership and unregister the session."""
        session.broadcast(create_message(MessageType.ROOM_CLOSED, roomId=session.id, reason=reason))
        self._index.release_room(session.id)
        members = session.clear_members()
        if not session.is_lobby:
            self._sessions.pop(session.id, None)
        return members

    def sweep_idle(self, now: float | None = None) -> list[str]:
        """
        Close every non-lobby session idle for longer than room_timeout.

        Returns:
            Ids of the closed sessions.
        """
        if now is None:
            now = time.time()

        timeout = self._settings.room_timeout
        expired = [
            session
            for session in self._sessions.values()
            if not session.is_lobby and session.idle_for(now) > timeout
        ]

        public_closed = False
        for session in expired:
            members = self._close_session(session, WSConstants.ROOM_CLOSED_TIMEOUT_REASON)
            public_closed = public_closed or session.is_public
            logger.info(
                "Room closed (inactive)",
                room_id=session.id,
                idle_seconds=round(session.idle_for(now)),
                player_count=len(members),
            )

        if public_closed:
            self._notify_lobby_change()
        return [session.id for session in expired]

    def shutdown(self) -> int:
        """
        Close every session for server shutdown.

        The lobby stays registered, empty.

        Returns:
            Number of players that were notified.
        """
        notified = 0
        for session in list(self._sessions.values()):
            notified += len(self._close_session(session, WSConstants.ROOM_CLOSED_SHUTDOWN_REASON))
        self._index.clear()
        logger.info("Registry shut down", notified_players=notified)
        return notified

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def get_stats(self) -> dict[str, int]:
        return {
            "roomCount": len(self._sessions),
            "playerCount": len(self._index),
        }

    def check_invariants(self) -> list[str]:
        """
        Verify registry bookkeeping.

        Returns:
            Violations found. Empty list means the registry is consistent.
        """
        violations = []

        if self._sessions.get(self._lobby.id) is not self._lobby:
            violations.append("lobby is not registered")
        if self._lobby.host is not None:
            violations.append("lobby has a host")

        indexed = 0
        for room_id, session in self._sessions.items():
            if session.player_count > session.max_players:
                violations.append(f"{room_id} exceeds capacity")
            if not session.is_lobby:
                if session.is_empty():
                    violations.append(f"{room_id} is empty but registered")
                elif session.host not in session.members:
                    violations.append(f"{room_id} host {session.host} is not a member")
            if self._index.room_members(room_id) != frozenset(session.members):
                violations.append(f"{room_id} membership differs from index")
            for participant in session.members.values():
                if participant.room_id != room_id:
                    violations.append(f"{participant.id} back-reference is {participant.room_id}")
            indexed += session.player_count

        if indexed != len(self._index):
            violations.append("index lists players outside registered sessions")

        return violations
