"""
Outbound side of the bot.

The store, daemon, dispatcher and resolver only talk to a ``Notifier``;
``TelegramNotifier`` is the production implementation, tests use a fake.
"""
from __future__ import annotations

import logging
from typing import Protocol, Sequence

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup

from .constants import POLL_CALLBACK_PREFIX

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send_text(self, channel_id: str, text: str) -> str: ...

    async def send_poll_prompt(
        self,
        channel_id: str,
        text: str,
        option_emojis: Sequence[str],
    ) -> str: ...

    async def send_attachment(self, channel_id: str, filename: str, data: bytes) -> None: ...


def poll_keyboard(option_emojis: Sequence[str]) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(emoji, callback_data=f"{POLL_CALLBACK_PREFIX}{emoji}") for emoji in option_emojis]]
    )


class TelegramNotifier:
    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def send_text(self, channel_id: str, text: str) -> str:
        message = await self.bot.send_message(chat_id=channel_id, text=text)
        return str(message.message_id)

    async def send_poll_prompt(
        self,
        channel_id: str,
        text: str,
        option_emojis: Sequence[str],
    ) -> str:
        message = await self.bot.send_message(
            chat_id=channel_id,
            text=text,
            reply_markup=poll_keyboard(option_emojis),
        )
        logger.info("Sent sleep poll %s to chat %s", message.message_id, channel_id)
        return str(message.message_id)

    async def send_attachment(self, channel_id: str, filename: str, data: bytes) -> None:
        await self.bot.send_document(chat_id=channel_id, document=data, filename=filename)
