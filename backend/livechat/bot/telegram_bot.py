import asyncio
import html
import logging
from typing import Iterable

from aiogram import Bot, Dispatcher, types
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo

from ..core.domain import Room
from ..core.events import ROOM_CREATED

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Pings operators on Telegram when a customer starts waiting."""

    def __init__(self, token: str, operator_chat_ids: Iterable[int], webhook_host: str, store=None):
        self.bot = Bot(token=token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
        self.dp = Dispatcher()
        self.operator_chat_ids = list(operator_chat_ids)
        self.webhook_host = webhook_host.rstrip("/")
        self.store = store
        self._tasks = set()

        self.dp.message(Command("waiting"))(self.cmd_waiting)
        self.dp.message()(self.cmd_start)

    def attach(self, bus):
        return bus.subscribe(ROOM_CREATED, self._on_room_created)

    def _on_room_created(self, room: Room) -> None:
        task = asyncio.create_task(self.notify_new_chat(room))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def cmd_start(self, message: types.Message):
        await message.answer("✅ Support bot is running. Send /waiting to see the queue.")

    async def cmd_waiting(self, message: types.Message):
        waiting = self.store.list_waiting() if self.store is not None else []
        if not waiting:
            await message.answer("No customers are waiting.")
            return
        lines = [f"⏳ {len(waiting)} waiting:"]
        for room in waiting[:20]:
            lines.append(f"• {html.escape(room.customer_name)} ({html.escape(room.department)})")
        await message.answer("\n".join(lines))

    async def notify_new_chat(self, room: Room):
        # link to the operator console
        web_app_url = f"{self.webhook_host}/operator?room_id={room.room_id}"
        keyboard = InlineKeyboardMarkup(inline_keyboard=[
            [InlineKeyboardButton(
                text="💬 Open chat",
                web_app=WebAppInfo(url=web_app_url)
            )]
        ])
        text = (
            f"📩 New chat request\n\n"
            f"Customer: {html.escape(room.customer_name)}\n"
            f"Department: {html.escape(room.department)}\n"
            f"Chat ID: {room.room_id}"
        )
        for op_id in self.operator_chat_ids:
            try:
                await self.bot.send_message(op_id, text, reply_markup=keyboard)
            except TelegramAPIError as e:
                logger.warning("Telegram notify to %s failed: %s", op_id, e)

    async def start_polling(self):
        await self.dp.start_polling(self.bot, handle_signals=False)

    async def close(self):
        for task in list(self._tasks):
            task.cancel()
        await self.bot.session.close()
