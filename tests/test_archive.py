import pytest

from livechat.archive import ArchiveWriter
from livechat.core.domain import Role, RoomState


@pytest.fixture
def archive(tmp_path):
    writer = ArchiveWriter.from_url(f"sqlite:///{tmp_path / 'archive.db'}")
    yield writer
    if writer.engine is not None:
        writer.engine.dispose()


@pytest.mark.asyncio
async def test_closed_rooms_are_archived_in_the_background(store, bus, archive):
    archive.attach(bus)
    archive.start()

    room = await store.create_room("cust-1", {"customer_name": "Ann", "department": "sales"})
    await store.claim(room.room_id, "agent-1", "Alice")
    await store.append(room.room_id, "cust-1", Role.customer, "hello")
    await store.append(room.room_id, "agent-1", Role.agent, "hi there", sender_name="Alice")
    await store.close(room.room_id, "agent-1")
    await archive.stop()

    loaded, messages = archive.load_transcript(room.room_id)
    assert loaded.state is RoomState.closed
    assert loaded.agent_id == "agent-1"
    assert loaded.department == "sales"
    assert loaded.closed_by == "agent-1"
    assert [(m.id, m.sender_role, m.body) for m in messages] == [
        (1, Role.customer, "hello"),
        (2, Role.agent, "hi there"),
    ]


@pytest.mark.asyncio
async def test_archiving_twice_is_harmless(store, bus, archive):
    seen = []
    bus.subscribe("room_closed", seen.append)
    room = await store.create_room("cust-1")
    await store.close(room.room_id, "cust-1")

    archive.write(seen[0])
    archive.write(seen[0])
    loaded, messages = archive.load_transcript(room.room_id)
    assert loaded.room_id == room.room_id
    assert messages == []


def test_unknown_transcript(archive):
    assert archive.load_transcript("room_missing") is None
