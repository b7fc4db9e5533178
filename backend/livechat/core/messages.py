# backend/livechat/core/messages.py
from typing import Iterator, List, Optional

from .domain import Message, Role, utcnow


class History:
    """Lazy view over a room's log.

    Iterating twice yields the same messages again. The upper bound is fixed
    when the view is created, so a replay never chases messages appended
    during iteration.
    """

    def __init__(self, entries: List[Message], since_id: Optional[int] = None):
        self._entries = entries
        self._since_id = since_id or 0
        self._stop = len(entries)

    def __iter__(self) -> Iterator[Message]:
        # ids are 1-based and dense, so id n lives at index n - 1
        start = min(self._since_id, self._stop)
        for index in range(start, self._stop):
            yield self._entries[index]

    def __len__(self) -> int:
        return max(self._stop - min(self._since_id, self._stop), 0)


class MessageLog:
    """Append-only message sequence of one room.

    Callers hold the room's lock; ids are 1, 2, 3, ... in append order.
    """

    def __init__(self, room_id: str):
        self.room_id = room_id
        self._entries: List[Message] = []

    def append(self, sender_id: str, sender_role: Role, body: str, sender_name: str = "") -> Message:
        message = Message(
            id=len(self._entries) + 1,
            room_id=self.room_id,
            sender_id=sender_id,
            sender_role=sender_role,
            body=body,
            sender_name=sender_name,
            created_at=utcnow(),
        )
        self._entries.append(message)
        return message

    def history(self, since_id: Optional[int] = None) -> History:
        return History(self._entries, since_id)
