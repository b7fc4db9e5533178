import pytest

from livechat.core.domain import Room, RoomState
from livechat.core.state import Transition, apply_activity, apply_claim, apply_close, can_apply
from livechat.errors import AlreadyClaimed, InvalidTransition


def make_room(**kwargs):
    return Room(room_id="room_1", customer_id="cust-1", **kwargs)


def test_claim_moves_waiting_to_active():
    room = apply_claim(make_room(), "agent-1", "Alice")
    assert room.state is RoomState.active
    assert room.agent_id == "agent-1"
    assert room.agent_name == "Alice"
    assert room.claimed_at is not None


def test_claim_on_active_room_is_already_claimed():
    room = apply_claim(make_room(), "agent-1")
    with pytest.raises(AlreadyClaimed):
        apply_claim(room, "agent-2")


def test_claim_on_closed_room_is_invalid():
    room = apply_close(make_room(), "cust-1")
    with pytest.raises(InvalidTransition):
        apply_claim(room, "agent-1")


def test_close_from_waiting_and_active():
    waiting = apply_close(make_room(), "cust-1")
    assert waiting.state is RoomState.closed
    assert waiting.agent_id is None
    assert waiting.closed_by == "cust-1"

    active = apply_close(apply_claim(make_room(), "agent-1"), "agent-1")
    assert active.state is RoomState.closed
    assert active.agent_id == "agent-1"


def test_close_is_idempotent():
    closed = apply_close(make_room(), "cust-1")
    assert apply_close(closed, "agent-1") is closed


def test_activity_rejected_after_close():
    closed = apply_close(make_room(), "cust-1")
    with pytest.raises(InvalidTransition):
        apply_activity(closed)


@pytest.mark.parametrize("state,transition,allowed", [
    (RoomState.waiting, Transition.claim, True),
    (RoomState.waiting, Transition.close, True),
    (RoomState.active, Transition.claim, False),
    (RoomState.active, Transition.close, True),
    (RoomState.closed, Transition.claim, False),
    (RoomState.closed, Transition.close, True),
])
def test_transition_table(state, transition, allowed):
    assert can_apply(state, transition) is allowed
