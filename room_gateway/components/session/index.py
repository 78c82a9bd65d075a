"""
Membership Index.

Global player -> room mapping kept in lockstep with room membership.
SessionRegistry is the only writer; everything else gets read-only views.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterator


class MembershipError(RuntimeError):
    """Raised when an index write would break exclusive membership."""


class MembershipIndex:
    """
    Exclusive player -> room mapping with a reverse room -> players index.

    Invariants:
    - a player id maps to at most one room id
    - ``room_members(room_id)`` is exactly the set of players mapped to it
    - empty reverse entries are dropped, so ``room_count`` counts occupied rooms

    Mutations raise MembershipError instead of silently overwriting.
    """

    def __init__(self) -> None:
        self._room_by_player: dict[str, str] = {}
        self._players_by_room: dict[str, set[str]] = {}

    # =========================================================================
    # Immutable views
    # =========================================================================

    @property
    def room_by_player(self) -> MappingProxyType[str, str]:
        """Player id -> room id (immutable view)."""
        return MappingProxyType(self._room_by_player)

    def __len__(self) -> int:
        return len(self._room_by_player)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._room_by_player

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._room_by_player))

    @property
    def room_count(self) -> int:
        """Number of rooms with at least one indexed player."""
        return len(self._players_by_room)

    # =========================================================================
    # Queries
    # =========================================================================

    def room_of(self, player_id: str) -> str | None:
        """Room id of a player, or None if the player is not in a room."""
        return self._room_by_player.get(player_id)

    def room_members(self, room_id: str) -> frozenset[str]:
        """Player ids indexed under a room (copy)."""
        return frozenset(self._players_by_room.get(room_id, ()))

    # =========================================================================
    # Mutations (SessionRegistry only)
    # =========================================================================

    def assign(self, player_id: str, room_id: str) -> None:
        """Record that a player joined a room."""
        current = self._room_by_player.get(player_id)
        if current is not None:
            raise MembershipError(
                f"Player {player_id} is already indexed in room {current}"
            )
        self._room_by_player[player_id] = room_id
        self._players_by_room.setdefault(room_id, set()).add(player_id)

    def release(self, player_id: str) -> str | None:
        """
        Remove a player's membership.

        Returns:
            The room id the player was in, or None if not indexed.
        """
        room_id = self._room_by_player.pop(player_id, None)
        if room_id is None:
            return None
        members = self._players_by_room.get(room_id)
        if members is not None:
            members.discard(player_id)
            if not members:
                del self._players_by_room[room_id]
        return room_id

    def release_room(self, room_id: str) -> frozenset[str]:
        """Remove every player indexed under a room and return their ids."""
        members = self._players_by_room.pop(room_id, set())
        for player_id in members:
            self._room_by_player.pop(player_id, None)
        return frozenset(members)

    def clear(self) -> None:
        self._room_by_player.clear()
        self._players_by_room.clear()

    def get_stats(self) -> dict[str, int]:
        return {
            "indexed_players": len(self._room_by_player),
            "occupied_rooms": len(self._players_by_room),
        }
