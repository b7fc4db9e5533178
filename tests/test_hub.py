import pytest

from livechat.config import Settings
from livechat.core.domain import Role
from livechat.errors import RoomNotFound
from livechat.hub import ChatHub

from conftest import FakeConnection


def make_hub(**overrides):
    settings = Settings(archive_enabled=False, **overrides)
    return ChatHub(settings)


@pytest.mark.asyncio
async def test_sweep_closes_idle_chats_and_purges_them():
    hub = make_hub(chat_inactive_days=0, closed_room_grace_seconds=0)
    agent = FakeConnection("agent-1", Role.agent)
    await hub.gateway.connect(agent)
    room = await hub.store.create_room("cust-1")

    await hub.sweep()

    assert agent.of("chat_closed")[0]["closedBy"] == "system"
    with pytest.raises(RoomNotFound):
        hub.store.get(room.room_id)


@pytest.mark.asyncio
async def test_sweep_keeps_recent_chats():
    hub = make_hub(chat_inactive_days=3, closed_room_grace_seconds=300)
    room = await hub.store.create_room("cust-1")
    closed = await hub.store.create_room("cust-2")
    await hub.store.close(closed.room_id, "cust-2")

    await hub.sweep()

    assert hub.store.get(room.room_id).is_open
    assert not hub.store.get(closed.room_id).is_open


@pytest.mark.asyncio
async def test_start_and_stop_without_collaborators():
    hub = make_hub()
    await hub.start()
    await hub.stop()
    assert hub.archive is None and hub.presence is None and hub.notifier is None
