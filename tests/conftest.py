"""
Pytest configuration and fixtures for testing.
"""
import json
from datetime import datetime, timedelta, timezone

import pytest

from sleepbot.commands import CommandDispatcher
from sleepbot.daemon import PollDaemon
from sleepbot.reactions import ReactionResolver
from sleepbot.store import SessionStore


EMOJIS = ["😫", "😕", "😐", "🙂", "😄"]
THRESHOLD = timedelta(hours=6)
T0 = datetime(2026, 3, 1, 22, 0, tzinfo=timezone.utc)
BOT_ID = "999"


class FakeClock:
    """Settable clock passed wherever production code takes ``clock``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class FakeNotifier:
    """Records outbound messages instead of talking to Telegram."""

    def __init__(self):
        self.texts = []
        self.polls = []
        self.attachments = []
        self.failing_channels = set()
        self._next_id = 100

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    async def send_text(self, channel_id, text):
        self.texts.append((channel_id, text))
        return self._new_id()

    async def send_poll_prompt(self, channel_id, text, option_emojis):
        if channel_id in self.failing_channels:
            raise ConnectionError(f"cannot reach chat {channel_id}")
        message_id = self._new_id()
        self.polls.append((channel_id, message_id, list(option_emojis)))
        return message_id

    async def send_attachment(self, channel_id, filename, data):
        self.attachments.append((channel_id, filename, data))

    def texts_for(self, channel_id):
        return [text for cid, text in self.texts if cid == channel_id]

    def polls_for(self, channel_id):
        return [message_id for cid, message_id, _ in self.polls if cid == channel_id]


@pytest.fixture
def store_path(tmp_path):
    path = tmp_path / "sleep_sessions.json"
    path.write_text(json.dumps({"sleep-sessions": []}), encoding="utf-8")
    return path


@pytest.fixture
def store(store_path):
    return SessionStore(store_path)


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def daemon(store, notifier, clock):
    return PollDaemon(store=store, notifier=notifier, emojis=EMOJIS, threshold=THRESHOLD, clock=clock)


@pytest.fixture
def dispatcher(store, notifier, daemon, clock):
    return CommandDispatcher(
        store=store,
        notifier=notifier,
        daemon=daemon,
        prefix="/",
        clock=clock,
        self_id=BOT_ID,
    )


@pytest.fixture
def resolver(store, notifier, clock):
    return ReactionResolver(store=store, notifier=notifier, emojis=EMOJIS, clock=clock, self_id=BOT_ID)
