# backend/livechat/core/events.py
import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

ROOM_CREATED = "room_created"
ROOM_CLAIMED = "room_claimed"
MESSAGE_APPENDED = "message_appended"
ROOM_CLOSED = "room_closed"
ROOM_PURGED = "room_purged"

Subscriber = Callable[[Any], None]


class EventBus:
    """In-process publish/subscribe.

    Subscribers run synchronously, in subscription order, on the publisher's
    stack. They must not block; anything slow belongs in a task or a queue.
    """

    def __init__(self):
        self._subscribers: DefaultDict[str, List[Subscriber]] = defaultdict(list)

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        self._subscribers[topic].append(callback)

        def unsubscribe():
            try:
                self._subscribers[topic].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, topic: str, payload: Any) -> None:
        for callback in list(self._subscribers.get(topic, ())):
            try:
                callback(payload)
            except Exception:
                logger.exception("Subscriber %r failed on %s", callback, topic)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))
