from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass(slots=True)
class SleepSession:
    channel_id: str
    start: datetime
    end: datetime | None = None
    duration: timedelta = field(default_factory=timedelta)
    quality: int = 0
    additional_fields: dict[str, str] = field(default_factory=dict)
    poll_message_id: str = ""
    pending: bool = True


@dataclass(frozen=True, slots=True)
class MessageReceived:
    channel_id: str
    author_id: str
    text: str
    is_private: bool = True


@dataclass(frozen=True, slots=True)
class ReactionAdded:
    message_id: str
    channel_id: str
    emoji: str
    actor_id: str
