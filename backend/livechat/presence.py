# backend/livechat/presence.py
import json
import logging
from datetime import datetime, timezone

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

ONLINE_TTL = 35
TYPING_TTL = 3


class Presence:
    """Online and typing flags mirrored into Redis for other processes.

    Purely advisory: the in-process registry stays authoritative and every
    Redis failure is logged and ignored.
    """

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "Presence":
        return cls(redis.from_url(url, decode_responses=True))

    async def mark_online(self, participant_id: str, role) -> None:
        status = {
            "role": getattr(role, "value", role),
            "last_seen": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self.client.setex(f"online:{participant_id}", ONLINE_TTL, json.dumps(status))
        except RedisError as e:
            logger.warning("Presence update failed for %s: %s", participant_id, e)

    async def mark_offline(self, participant_id: str) -> None:
        try:
            await self.client.delete(f"online:{participant_id}")
        except RedisError as e:
            logger.warning("Presence cleanup failed for %s: %s", participant_id, e)

    async def is_online(self, participant_id: str) -> bool:
        if not participant_id:
            return False
        try:
            return bool(await self.client.exists(f"online:{participant_id}"))
        except RedisError as e:
            logger.warning("Presence lookup failed for %s: %s", participant_id, e)
            return False

    async def set_typing(self, room_id: str, participant_id: str, is_typing: bool) -> None:
        key = f"typing:{room_id}:{participant_id}"
        try:
            if is_typing:
                await self.client.setex(key, TYPING_TTL, "1")
            else:
                await self.client.delete(key)
        except RedisError as e:
            logger.warning("Typing flag update failed for %s: %s", key, e)

    async def is_typing(self, room_id: str, participant_id: str) -> bool:
        try:
            return bool(await self.client.exists(f"typing:{room_id}:{participant_id}"))
        except RedisError as e:
            logger.warning("Typing lookup failed: %s", e)
            return False

    async def close(self) -> None:
        await self.client.aclose()
