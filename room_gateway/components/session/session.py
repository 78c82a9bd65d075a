"""
Session (room) entity.

A bounded group of players sharing synchronized vehicle state. Membership is
changed only through SessionRegistry, which keeps the global membership
index in step; broadcast() is the single fan-out primitive.
"""

from __future__ import annotations

import time
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

from room_gateway.components.protocol.types import encode_message

if TYPE_CHECKING:
    from room_gateway.components.session.participant import Participant


class Session:
    """
    A room of up to ``max_players`` players.

    Attributes:
        id: Generated room code, explicit client code, or the lobby id.
        host: Player id with authority over room settings (None only for the
            public lobby or an empty room).
        is_public: Whether the room is advertised to players in the lobby.
        is_lobby: True for the single persistent public lobby.
        created_at / last_activity: Unix timestamps.
    """

    def __init__(
        self,
        room_id: str,
        max_players: int,
        is_public: bool = False,
        is_lobby: bool = False,
        now: float | None = None,
    ) -> None:
        if now is None:
            now = time.time()

        self.id = room_id
        self.max_players = max_players
        self.is_public = is_public
        self.is_lobby = is_lobby
        self.host: str | None = None
        self.created_at = now
        self.last_activity = now
        self._members: dict[str, "Participant"] = {}

    def __repr__(self) -> str:
        return (
            f"Session(id={self.id!r}, host={self.host!r}, "
            f"players={len(self._members)}/{self.max_players}, public={self.is_public})"
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def members(self) -> MappingProxyType[str, "Participant"]:
        """Player id -> Participant (immutable view)."""
        return MappingProxyType(self._members)

    @property
    def player_count(self) -> int:
        return len(self._members)

    def is_full(self) -> bool:
        return len(self._members) >= self.max_players

    def is_empty(self) -> bool:
        return not self._members

    def has_member(self, player_id: str) -> bool:
        return player_id in self._members

    def get_member(self, player_id: str) -> "Participant | None":
        return self._members.get(player_id)

    def is_host(self, player_id: str) -> bool:
        return self.host is not None and self.host == player_id

    def idle_for(self, now: float | None = None) -> float:
        """Seconds since the last activity in this room."""
        if now is None:
            now = time.time()
        return now - self.last_activity

    # =========================================================================
    # Mutations (SessionRegistry only)
    # =========================================================================

    def touch(self, now: float | None = None) -> None:
        """Record room activity (keeps the room out of the idle sweep)."""
        self.last_activity = now if now is not None else time.time()

    def add_member(self, participant: "Participant", now: float | None = None) -> None:
        self._members[participant.id] = participant
        participant.room_id = self.id
        self.touch(now)

    def remove_member(self, player_id: str, now: float | None = None) -> "Participant | None":
        participant = self._members.pop(player_id, None)
        if participant is not None:
            participant.room_id = None
            self.touch(now)
        return participant

    def clear_members(self) -> list["Participant"]:
        """Drop every member (room closure) and return them."""
        removed = list(self._members.values())
        for participant in removed:
            participant.room_id = None
        self._members.clear()
        self.host = None
        return removed

    # =========================================================================
    # Fan-out
    # =========================================================================

    def broadcast(
        self,
        message: Mapping[str, Any],
        exclude: "Participant | str | None" = None,
    ) -> int:
        """
        Send a message to every member, optionally skipping one player.

        The frame is encoded once and queued on each member's transport.

        Args:
            message: Outbound frame.
            exclude: Participant (or player id) that must not receive it.

        Returns:
            Number of members the frame was queued for.
        """
        exclude_id = exclude.id if hasattr(exclude, "id") else exclude
        text = encode_message(message)
        sent = 0
        for player_id, participant in list(self._members.items()):
            if player_id == exclude_id:
                continue
            if participant.send_text(text):
                sent += 1
        return sent

    # =========================================================================
    # Projections
    # =========================================================================

    def get_state(self) -> dict[str, Any]:
        """Full room snapshot sent on join and after membership changes."""
        return {
            "id": self.id,
            "host": self.host,
            "isPublic": self.is_public,
            "playerCount": len(self._members),
            "maxPlayers": self.max_players,
            "players": [p.get_public_data() for p in self._members.values()],
        }

    def get_listing(self) -> dict[str, Any]:
        """Entry of the public room listing."""
        return {
            "id": self.id,
            "playerCount": len(self._members),
            "maxPlayers": self.max_players,
            "isLobby": self.is_lobby,
        }
