from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from .constants import (
    ALREADY_SLEEPING_TEXT,
    CANCELLED_TEXT,
    EXPORT_FILENAME,
    HELP_TITLE,
    INTERNAL_ERROR_TEXT,
    NOT_SLEEPING_TEXT,
    POLL_ALREADY_SENT_TEXT,
    PONG_TEXT,
    PRIVATE_ONLY_TEXT,
    SLEEP_STARTED_TEXT,
)
from .daemon import PollDaemon
from .models import MessageReceived
from .notifier import Notifier
from .store import (
    AlreadyPendingError,
    NoPendingSessionError,
    PollAlreadyAttachedError,
    SessionStore,
    session_to_record,
    utc_now,
)

logger = logging.getLogger(__name__)

CommandFunc = Callable[[MessageReceived, str], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class BotCommand:
    name: str
    doc: str
    func: CommandFunc


class CommandDispatcher:
    def __init__(
        self,
        store: SessionStore,
        notifier: Notifier,
        daemon: PollDaemon,
        prefix: str,
        clock: Callable[[], datetime] = utc_now,
        self_id: str | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.daemon = daemon
        self.prefix = prefix
        self.clock = clock
        self.self_id = self_id

        self.commands: dict[str, BotCommand] = {
            cmd.name: cmd
            for cmd in (
                BotCommand("ping", "🏓 check that I'm awake", self.ping),
                BotCommand("sleep", "💤 start a sleep period", self.start_sleeping),
                BotCommand("stop", "☀️ wake up and rate your sleep now", self.stop_sleeping),
                BotCommand("cancel", "🛑 drop the current sleep period", self.cancel_period),
                BotCommand("data", "📦 download your sleep data as JSON", self.export_data),
                BotCommand("help", "❓ list commands", self.help),
            )
        }

    def parse(self, text: str) -> tuple[str, str] | None:
        if not text.startswith(self.prefix):
            return None

        parts = text[len(self.prefix):].split(" ", 1)
        command_id = parts[0].strip().lower()
        # Telegram appends the bot username in groups: /sleep@my_bot
        command_id = command_id.split("@", 1)[0]
        args = parts[1].strip() if len(parts) > 1 else ""
        return command_id, args

    async def reply(self, event: MessageReceived, text: str) -> None:
        await self.notifier.send_text(event.channel_id, text)

    async def dispatch(self, event: MessageReceived) -> None:
        if self.self_id is not None and event.author_id == self.self_id:
            return

        parsed = self.parse(event.text)
        if parsed is None:
            return
        command_id, args = parsed

        if not event.is_private:
            await self.reply(event, PRIVATE_ONLY_TEXT)
            return

        command = self.commands.get(command_id)
        if command is None:
            return

        try:
            await command.func(event, args)
        except Exception:
            logger.exception("Error running command %r in chat %s", event.text, event.channel_id)
            await self.reply(event, INTERNAL_ERROR_TEXT)

    async def ping(self, event: MessageReceived, _args: str) -> None:
        await self.reply(event, PONG_TEXT)

    async def start_sleeping(self, event: MessageReceived, _args: str) -> None:
        try:
            self.store.start_session(event.channel_id, self.clock(), {})
        except AlreadyPendingError:
            await self.reply(event, ALREADY_SLEEPING_TEXT)
            return
        logger.info("Started sleep session in chat %s", event.channel_id)
        await self.reply(event, SLEEP_STARTED_TEXT)

    async def stop_sleeping(self, event: MessageReceived, _args: str) -> None:
        session = self.store.pending_session(event.channel_id)
        if session is None:
            await self.reply(event, NOT_SLEEPING_TEXT)
            return

        try:
            await self.daemon.deliver_poll(session)
        except NoPendingSessionError:
            await self.reply(event, NOT_SLEEPING_TEXT)
        except PollAlreadyAttachedError:
            await self.reply(event, POLL_ALREADY_SENT_TEXT)

    async def cancel_period(self, event: MessageReceived, _args: str) -> None:
        try:
            self.store.cancel_pending(event.channel_id)
        except NoPendingSessionError:
            await self.reply(event, NOT_SLEEPING_TEXT)
            return
        except PollAlreadyAttachedError:
            await self.reply(event, POLL_ALREADY_SENT_TEXT)
            return
        logger.info("Cancelled pending sleep session in chat %s", event.channel_id)
        await self.reply(event, CANCELLED_TEXT)

    async def export_data(self, event: MessageReceived, _args: str) -> None:
        sessions = self.store.all_sessions(channel_id=event.channel_id)
        payload = json.dumps(
            [session_to_record(s) for s in sessions],
            ensure_ascii=False,
            indent=2,
        )
        await self.notifier.send_attachment(event.channel_id, EXPORT_FILENAME, payload.encode("utf-8"))

    def help_text(self) -> str:
        lines = [HELP_TITLE, "", "Commands:"]
        for name, command in self.commands.items():
            lines.append(f"- {self.prefix}{name}: {command.doc}")
        return "\n".join(lines)

    async def help(self, event: MessageReceived, _args: str) -> None:
        await self.reply(event, self.help_text())
