# backend/livechat/hub.py
import asyncio
import logging
from datetime import timedelta
from typing import List

from .api.auth import ApiKeyAuthenticator
from .config import Settings
from .core.domain import Identity, Role
from .core.events import EventBus
from .core.gateway import EventGateway
from .core.registry import ConnectionRegistry
from .core.rooms import RoomStore
from .errors import ChatError

logger = logging.getLogger(__name__)

SYSTEM = Identity(participant_id="system", role=Role.admin, display_name="System")


class ChatHub:
    """Everything one server process needs, with an explicit start/stop.

    Collaborators (archive, presence, telegram) are optional and plug into
    the event bus; the chat core runs the same without them.
    """

    def __init__(
        self,
        settings: Settings,
        authenticator=None,
        archive=None,
        presence=None,
        notifier=None,
    ):
        self.settings = settings
        self.bus = EventBus()
        self.registry = ConnectionRegistry()
        self.store = RoomStore(self.bus, max_message_length=settings.max_message_length)
        self.authenticator = authenticator or ApiKeyAuthenticator.from_settings(settings)
        self.presence = presence
        self.gateway = EventGateway(self.store, self.registry, presence=presence)
        self.archive = archive
        self.notifier = notifier
        self._tasks: List[asyncio.Task] = []

        if archive is not None:
            archive.attach(self.bus)
        if notifier is not None:
            notifier.attach(self.bus)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatHub":
        archive = presence = None
        if settings.archive_enabled and settings.database_url:
            from .archive import ArchiveWriter
            archive = ArchiveWriter.from_url(settings.database_url)
        if settings.redis_url:
            from .presence import Presence
            presence = Presence.from_url(settings.redis_url)
        hub = cls(settings, archive=archive, presence=presence)
        if settings.telegram_bot_token:
            from .bot.telegram_bot import TelegramNotifier
            hub.notifier = TelegramNotifier(
                settings.telegram_bot_token,
                settings.operator_chat_ids,
                settings.webhook_host,
                store=hub.store,
            )
            hub.notifier.attach(hub.bus)
        return hub

    async def start(self, sweep: bool = True) -> None:
        if self.archive is not None:
            self.archive.start()
        if self.notifier is not None:
            self._tasks.append(asyncio.create_task(self.notifier.start_polling()))
        if sweep:
            self._tasks.append(asyncio.create_task(self._sweep_forever()))
        logger.info("Chat hub started")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Background task failed during shutdown")
        self._tasks = []
        if self.notifier is not None:
            await self.notifier.close()
        if self.archive is not None:
            await self.archive.stop()
        if self.presence is not None:
            await self.presence.close()
        logger.info("Chat hub stopped")

    async def sweep(self) -> None:
        """Close idle chats and evict closed ones past their grace period."""
        idle_after = timedelta(days=self.settings.chat_inactive_days)
        for room in self.store.idle_rooms(idle_after):
            try:
                await self.gateway.close_room(room.room_id, SYSTEM)
                logger.info("Closed idle chat %s", room.room_id)
            except ChatError as e:
                logger.debug("Idle chat %s not closed: %s", room.room_id, e.code)
        await self.store.purge_closed(timedelta(seconds=self.settings.closed_room_grace_seconds))

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval_seconds)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Chat sweep failed")
