from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Sequence

from .constants import REACTION_ERROR_TEXT, SLEPT_FOR_TEMPLATE
from .models import ReactionAdded, SleepSession
from .notifier import Notifier
from .store import NoPendingSessionError, SessionStore, utc_now

logger = logging.getLogger(__name__)


def split_duration(duration: timedelta) -> tuple[int, int]:
    # A skewed clock can put the end before the start.
    total_minutes = int(max(duration, timedelta(0)).total_seconds() // 60)
    hours = total_minutes // 60
    return hours, total_minutes - 60 * hours


class ReactionResolver:
    def __init__(
        self,
        store: SessionStore,
        notifier: Notifier,
        emojis: Sequence[str],
        clock: Callable[[], datetime] = utc_now,
        self_id: str | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.emojis = list(emojis)
        self.clock = clock
        self.self_id = self_id

    def quality_for(self, emoji: str) -> int | None:
        for idx, candidate in enumerate(self.emojis):
            if candidate == emoji:
                return idx + 1
        return None

    async def resolve(self, event: ReactionAdded) -> SleepSession | None:
        if self.self_id is not None and event.actor_id == self.self_id:
            return None
        if not self.store.is_poll_active(event.message_id, event.channel_id):
            return None

        quality = self.quality_for(event.emoji)
        if quality is None:
            return None

        try:
            session = self.store.close_session(event.channel_id, self.clock(), quality, {})
        except NoPendingSessionError:
            # Another reaction closed the session first.
            return None
        except Exception:
            logger.exception("Error closing sleep session for poll %s", event.message_id)
            await self.notifier.send_text(event.channel_id, REACTION_ERROR_TEXT)
            return None

        hours, minutes = split_duration(session.duration)
        logger.info(
            "Closed sleep session in chat %s: %sh%02dm, quality %s",
            event.channel_id,
            hours,
            minutes,
            quality,
        )
        await self.notifier.send_text(
            event.channel_id,
            SLEPT_FOR_TEMPLATE.format(hours=hours, minutes=minutes),
        )
        return session
