# backend/livechat/archive.py
import asyncio
import logging
from typing import List, Optional, Tuple

from .core.domain import Message, Role, Room, RoomState
from .core.events import ROOM_CLOSED
from .core.rooms import RoomClosedEvent
from .database import Base, make_engine, make_session_factory
from .models import ChatMessageRecord, ChatRoomRecord

logger = logging.getLogger(__name__)


class ArchiveWriter:
    """Write-behind archive of closed chats.

    Closed rooms are queued from the event bus and written by a background
    task; live traffic never waits for the database.
    """

    def __init__(self, session_factory, engine=None, max_pending: int = 1000):
        self.SessionLocal = session_factory
        self.engine = engine
        self._queue: "asyncio.Queue[Optional[RoomClosedEvent]]" = asyncio.Queue(maxsize=max_pending)
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_url(cls, url: str) -> "ArchiveWriter":
        engine = make_engine(url)
        Base.metadata.create_all(bind=engine)
        return cls(make_session_factory(engine), engine=engine)

    def attach(self, bus):
        return bus.subscribe(ROOM_CLOSED, self.enqueue)

    def enqueue(self, event: RoomClosedEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Archive queue full, chat %s will not be archived", event.room.room_id)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        self._task = asyncio.create_task(self._run())

    async def stop(self, timeout: float = 10) -> None:
        if self._task is None:
            return
        await self._queue.put(None)
        try:
            await asyncio.wait_for(self._task, timeout)
        except asyncio.TimeoutError:
            logger.warning("Archive writer did not drain in %ss, %d chats lost", timeout, self.pending)
            self._task.cancel()
        self._task = None
        if self.engine is not None:
            self.engine.dispose()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            try:
                await asyncio.to_thread(self.write, event)
            except Exception:
                logger.exception("Failed to archive chat %s", event.room.room_id)

    def write(self, event: RoomClosedEvent) -> None:
        room = event.room
        with self.SessionLocal() as db:
            exists = db.query(ChatRoomRecord).filter(ChatRoomRecord.room_id == room.room_id).first()
            if exists:
                logger.debug("Chat %s already archived", room.room_id)
                return
            db.add(ChatRoomRecord(
                room_id=room.room_id,
                customer_id=room.customer_id,
                customer_name=room.customer_name,
                agent_id=room.agent_id,
                agent_name=room.agent_name,
                department=room.department,
                is_guest=room.is_guest,
                organization_id=room.organization_id,
                state=room.state.value,
                created_at=room.created_at,
                claimed_at=room.claimed_at,
                closed_at=room.closed_at,
                closed_by=room.closed_by,
            ))
            db.flush()
            for message in event.messages:
                db.add(ChatMessageRecord(
                    room_id=room.room_id,
                    seq=message.id,
                    sender_id=message.sender_id,
                    sender_role=message.sender_role.value,
                    sender_name=message.sender_name,
                    body=message.body,
                    created_at=message.created_at,
                ))
            db.commit()
        logger.info("Archived chat %s with %d messages", room.room_id, len(event.messages))

    def load_transcript(self, room_id: str) -> Optional[Tuple[Room, List[Message]]]:
        with self.SessionLocal() as db:
            record = db.query(ChatRoomRecord).filter(ChatRoomRecord.room_id == room_id).first()
            if not record:
                return None
            rows = (
                db.query(ChatMessageRecord)
                .filter(ChatMessageRecord.room_id == room_id)
                .order_by(ChatMessageRecord.seq)
                .all()
            )
            room = Room(
                room_id=record.room_id,
                customer_id=record.customer_id,
                state=RoomState(record.state),
                agent_id=record.agent_id,
                agent_name=record.agent_name,
                customer_name=record.customer_name or record.customer_id,
                department=record.department or "general",
                is_guest=bool(record.is_guest),
                organization_id=record.organization_id,
                created_at=record.created_at,
                last_activity_at=record.closed_at or record.created_at,
                claimed_at=record.claimed_at,
                closed_at=record.closed_at,
                closed_by=record.closed_by,
            )
            messages = [
                Message(
                    id=row.seq,
                    room_id=row.room_id,
                    sender_id=row.sender_id,
                    sender_role=Role(row.sender_role),
                    body=row.body,
                    sender_name=row.sender_name or "",
                    created_at=row.created_at,
                )
                for row in rows
            ]
        return room, messages
