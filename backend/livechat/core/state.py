# backend/livechat/core/state.py
"""Session lifecycle: waiting -> active -> closed.

    waiting --claim--> active
    waiting --close--> closed
    active  --close--> closed
    closed  --close--> closed   (no-op)

Disconnects are not transitions. Everything else is rejected.
"""
from dataclasses import replace
from enum import Enum
from typing import Optional

from ..errors import AlreadyClaimed, InvalidTransition
from .domain import Room, RoomState, utcnow


class Transition(str, Enum):
    claim = "claim"
    close = "close"


TRANSITIONS = {
    (RoomState.waiting, Transition.claim): RoomState.active,
    (RoomState.waiting, Transition.close): RoomState.closed,
    (RoomState.active, Transition.close): RoomState.closed,
    (RoomState.closed, Transition.close): RoomState.closed,
}


def can_apply(state: RoomState, transition: Transition) -> bool:
    return (state, transition) in TRANSITIONS


def apply_claim(room: Room, agent_id: str, agent_name: Optional[str] = None) -> Room:
    if room.state is RoomState.active:
        raise AlreadyClaimed(f"Chat {room.room_id} is already assigned")
    if not can_apply(room.state, Transition.claim):
        raise InvalidTransition(f"Cannot claim a {room.state.value} chat")
    now = utcnow()
    return replace(
        room,
        state=TRANSITIONS[(room.state, Transition.claim)],
        agent_id=agent_id,
        agent_name=agent_name or agent_id,
        claimed_at=now,
        last_activity_at=now,
    )


def apply_close(room: Room, actor_id: str) -> Room:
    """Return the closed room; closing a closed room returns it unchanged."""
    if room.state is RoomState.closed:
        return room
    if not can_apply(room.state, Transition.close):
        raise InvalidTransition(f"Cannot close a {room.state.value} chat")
    now = utcnow()
    return replace(
        room,
        state=RoomState.closed,
        closed_at=now,
        closed_by=actor_id,
        last_activity_at=now,
    )


def apply_activity(room: Room) -> Room:
    if room.state is RoomState.closed:
        raise InvalidTransition("Closed chats do not accept activity")
    return replace(room, last_activity_at=utcnow())
