from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Sequence

from telegram.ext import ContextTypes

from .constants import GOOD_MORNING_TEXT, POLL_PROMPT_TEMPLATE
from .models import SleepSession
from .notifier import Notifier
from .store import (
    NoPendingSessionError,
    PollAlreadyAttachedError,
    SessionStore,
    StoreError,
    utc_now,
)

logger = logging.getLogger(__name__)


class PollDaemon:
    """Turns sleep sessions older than ``threshold`` into quality polls.

    Sending a poll and recording its id are two steps; a crash between them
    (or before the next successful save) means the poll is sent again after
    restart. Delivery is at-least-once.
    """

    def __init__(
        self,
        store: SessionStore,
        notifier: Notifier,
        emojis: Sequence[str],
        threshold: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.emojis = list(emojis)
        self.threshold = threshold
        self.clock = clock
        self._delivery_lock = asyncio.Lock()

    def prompt_text(self) -> str:
        return POLL_PROMPT_TEMPLATE.format(low=1, high=len(self.emojis))

    def is_due(self, session: SleepSession, now: datetime) -> bool:
        return now - session.start >= self.threshold

    async def deliver_poll(self, session: SleepSession) -> str:
        channel_id = session.channel_id
        async with self._delivery_lock:
            current = self.store.pending_session(channel_id)
            if current is None:
                raise NoPendingSessionError(channel_id)
            if current.poll_message_id:
                raise PollAlreadyAttachedError(channel_id, current.poll_message_id)

            await self.notifier.send_text(channel_id, GOOD_MORNING_TEXT)
            message_id = await self.notifier.send_poll_prompt(channel_id, self.prompt_text(), self.emojis)
            self.store.attach_poll(channel_id, message_id)
            return message_id

    async def tick(self, now: datetime | None = None) -> int:
        now = now or self.clock()
        delivered = 0

        for session in self.store.pending_without_poll():
            if not self.is_due(session, now):
                continue
            try:
                await self.deliver_poll(session)
            except StoreError as exc:
                # Cancelled or answered via /stop while the sweep was running.
                logger.info("Skip poll for chat %s: %s", session.channel_id, exc)
            except Exception:
                logger.exception("Failed to deliver sleep poll to chat %s", session.channel_id)
            else:
                delivered += 1

        try:
            self.store.persist()
        except StoreError as exc:
            logger.error("Periodic save failed, will retry on next tick: %s", exc)

        if delivered:
            logger.info("Poll daemon delivered %s poll(s)", delivered)
        return delivered

    async def run_job(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self.tick()
