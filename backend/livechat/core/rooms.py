# backend/livechat/core/rooms.py
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

from ..errors import (
    DuplicateActiveSession,
    Forbidden,
    InvalidEvent,
    RoomClosed,
    RoomNotFound,
)
from .domain import Message, Role, Room, RoomState, utcnow
from .events import (
    MESSAGE_APPENDED,
    ROOM_CLAIMED,
    ROOM_CLOSED,
    ROOM_CREATED,
    ROOM_PURGED,
    EventBus,
)
from .messages import History, MessageLog
from .state import apply_activity, apply_claim, apply_close

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageAppended:
    room: Room
    message: Message


@dataclass(frozen=True)
class RoomClosedEvent:
    room: Room
    messages: Tuple[Message, ...]


class _Entry:
    __slots__ = ("room", "log", "lock")

    def __init__(self, room: Room):
        self.room = room
        self.log = MessageLog(room.room_id)
        self.lock = asyncio.Lock()


class RoomStore:
    """Owns every room and its message log.

    All mutations of one room go through that room's lock, so claims are
    first-writer-wins and message ids follow commit order. Events are
    published inside the lock, which makes subscriber order match commit
    order too.
    """

    def __init__(self, bus: Optional[EventBus] = None, max_message_length: int = 4000):
        self.bus = bus or EventBus()
        self.max_message_length = max_message_length
        self._entries: Dict[str, _Entry] = {}
        self._waiting: "OrderedDict[str, None]" = OrderedDict()
        self._open_by_customer: Dict[str, str] = {}
        self._create_lock = asyncio.Lock()

    # reads

    def get(self, room_id: str) -> Room:
        return self._entry(room_id).room

    def list_waiting(self) -> List[Room]:
        return [self._entries[room_id].room for room_id in self._waiting]

    def open_room_for(self, customer_id: str) -> Optional[Room]:
        room_id = self._open_by_customer.get(customer_id)
        if room_id is None or room_id not in self._entries:
            return None
        room = self._entries[room_id].room
        return room if room.is_open else None

    def active_rooms_for(self, agent_id: str) -> List[Room]:
        rooms = [
            e.room for e in self._entries.values()
            if e.room.state is RoomState.active and e.room.agent_id == agent_id
        ]
        return sorted(rooms, key=lambda r: r.created_at)

    def rooms(self) -> List[Room]:
        return [e.room for e in self._entries.values()]

    def idle_rooms(self, older_than: timedelta) -> List[Room]:
        cutoff = utcnow() - older_than
        return [
            e.room for e in self._entries.values()
            if e.room.is_open and e.room.last_activity_at < cutoff
        ]

    def history(self, room_id: str, since_id: Optional[int] = None) -> History:
        return self._entry(room_id).log.history(since_id)

    # mutations

    async def create_room(self, customer_id: str, metadata: Optional[Mapping[str, Any]] = None) -> Room:
        metadata = dict(metadata or {})
        is_guest = bool(metadata.get("is_guest", False))
        async with self._create_lock:
            existing = self.open_room_for(customer_id)
            if existing is not None:
                raise DuplicateActiveSession(existing)

            room = Room(
                room_id=f"{'guest' if is_guest else 'room'}_{uuid4().hex}",
                customer_id=customer_id,
                customer_name=metadata.get("customer_name") or customer_id,
                department=metadata.get("department") or "general",
                is_guest=is_guest,
                organization_id=metadata.get("organization_id"),
            )
            self._entries[room.room_id] = _Entry(room)
            self._waiting[room.room_id] = None
            self._open_by_customer[customer_id] = room.room_id
            logger.info("Chat %s created for %s (%s)", room.room_id, customer_id, room.department)
            self.bus.publish(ROOM_CREATED, room)
        return room

    async def claim(self, room_id: str, agent_id: str, agent_name: Optional[str] = None) -> Room:
        entry = self._entry(room_id)
        async with entry.lock:
            self._ensure_current(room_id, entry)
            if entry.room.state is RoomState.closed:
                raise RoomNotFound(f"Chat {room_id} is no longer available")
            room = apply_claim(entry.room, agent_id, agent_name)
            entry.room = room
            self._waiting.pop(room_id, None)
            logger.info("Chat %s accepted by %s", room_id, agent_id)
            self.bus.publish(ROOM_CLAIMED, room)
        return room

    async def close(
        self,
        room_id: str,
        actor_id: str,
        authorize: Optional[Callable[[Room], None]] = None,
    ) -> Room:
        """Close a room; closing an already closed room returns it unchanged.

        `authorize` runs under the room lock against the current snapshot of an
        open room and may raise to refuse the close.
        """
        entry = self._entry(room_id)
        async with entry.lock:
            self._ensure_current(room_id, entry)
            previous = entry.room
            if previous.state is RoomState.closed:
                return previous
            if authorize is not None:
                authorize(previous)
            room = apply_close(previous, actor_id)
            entry.room = room
            self._waiting.pop(room_id, None)
            if self._open_by_customer.get(room.customer_id) == room_id:
                del self._open_by_customer[room.customer_id]
            logger.info("Chat %s closed by %s", room_id, actor_id)
            self.bus.publish(ROOM_CLOSED, RoomClosedEvent(room, tuple(entry.log.history())))
        return room

    async def append(
        self,
        room_id: str,
        sender_id: str,
        sender_role: Role,
        body: str,
        sender_name: str = "",
    ) -> Message:
        body = (body or "").strip()
        if not body:
            raise InvalidEvent("Message content is required")
        if len(body) > self.max_message_length:
            raise InvalidEvent(f"Message is longer than {self.max_message_length} characters")

        entry = self._entry(room_id)
        async with entry.lock:
            self._ensure_current(room_id, entry)
            if entry.room.state is RoomState.closed:
                raise RoomClosed(f"Chat {room_id} is closed")
            if sender_id not in entry.room.participants():
                raise Forbidden(f"{sender_id} is not a participant of chat {room_id}")
            message = entry.log.append(sender_id, sender_role, body, sender_name)
            entry.room = apply_activity(entry.room)
            self.bus.publish(MESSAGE_APPENDED, MessageAppended(entry.room, message))
        return message

    async def purge_closed(self, older_than: timedelta) -> List[str]:
        """Evict closed rooms whose close is older than the grace period."""
        cutoff = utcnow() - older_than
        purged = []
        for room_id, entry in list(self._entries.items()):
            async with entry.lock:
                room = entry.room
                if room.state is not RoomState.closed or room.closed_at is None:
                    continue
                if room.closed_at > cutoff:
                    continue
                if self._entries.get(room_id) is entry:
                    del self._entries[room_id]
                    purged.append(room_id)
                    self.bus.publish(ROOM_PURGED, room_id)
        if purged:
            logger.info("Purged %d closed chats", len(purged))
        return purged

    def _entry(self, room_id: str) -> _Entry:
        entry = self._entries.get(room_id)
        if entry is None:
            raise RoomNotFound(f"Chat {room_id} not found")
        return entry

    def _ensure_current(self, room_id: str, entry: _Entry) -> None:
        # the room may have been purged while we waited for its lock
        if self._entries.get(room_id) is not entry:
            raise RoomNotFound(f"Chat {room_id} not found")
