"""
Session components: players, rooms, membership index and registry.
"""

from room_gateway.components.session.index import MembershipError, MembershipIndex
from room_gateway.components.session.participant import Participant
from room_gateway.components.session.registry import JoinResult, LeaveResult, SessionRegistry
from room_gateway.components.session.session import Session

__all__ = [
    "MembershipError",
    "MembershipIndex",
    "Participant",
    "JoinResult",
    "LeaveResult",
    "SessionRegistry",
    "Session",
]
