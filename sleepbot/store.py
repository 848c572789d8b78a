from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .constants import STORE_DOCUMENT_KEY
from .models import SleepSession

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StoreError(RuntimeError):
    pass


class AlreadyPendingError(StoreError):
    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Channel {channel_id} already has a pending sleep session")
        self.channel_id = channel_id


class NoPendingSessionError(StoreError):
    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Channel {channel_id} has no pending sleep session")
        self.channel_id = channel_id


class NotPollingError(NoPendingSessionError):
    def __init__(self, channel_id: str) -> None:
        StoreError.__init__(self, f"Pending session of channel {channel_id} has no poll yet")
        self.channel_id = channel_id


class PollAlreadyAttachedError(StoreError):
    def __init__(self, channel_id: str, poll_message_id: str) -> None:
        super().__init__(
            f"Pending session of channel {channel_id} already has poll {poll_message_id}"
        )
        self.channel_id = channel_id
        self.poll_message_id = poll_message_id


class StoreUnavailableError(StoreError):
    pass


class CorruptStoreError(StoreError):
    pass


def duration_to_nanoseconds(duration: timedelta) -> int:
    return ((duration.days * 86400 + duration.seconds) * 1_000_000 + duration.microseconds) * 1000


def nanoseconds_to_duration(value: int) -> timedelta:
    return timedelta(microseconds=value // 1000)


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_time(raw: Any) -> datetime | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise TypeError(f"Timestamp must be a string, got {type(raw).__name__}")
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def session_to_record(session: SleepSession) -> dict[str, Any]:
    return {
        "start": _format_time(session.start),
        "end": _format_time(session.end),
        "duration": duration_to_nanoseconds(session.duration),
        "quality": session.quality,
        "additional-fields": dict(session.additional_fields),
        "channel-id": session.channel_id,
        "poll-message-id": session.poll_message_id,
        "pending": session.pending,
    }


def record_to_session(record: Any) -> SleepSession:
    if not isinstance(record, dict):
        raise TypeError("Session record must be an object")

    start = _parse_time(record["start"])
    if start is None:
        raise ValueError("Session record has no start time")

    duration_raw = record.get("duration", 0)
    if isinstance(duration_raw, bool) or not isinstance(duration_raw, int):
        raise TypeError("Session duration must be an integer number of nanoseconds")

    quality = record.get("quality", 0)
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise TypeError("Session quality must be an integer")

    fields = record.get("additional-fields") or {}
    if not isinstance(fields, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in fields.items()
    ):
        raise TypeError("Session additional-fields must map strings to strings")

    channel_id = record["channel-id"]
    poll_message_id = record.get("poll-message-id", "")
    pending = record["pending"]
    if not isinstance(channel_id, str) or not isinstance(poll_message_id, str):
        raise TypeError("Session channel-id and poll-message-id must be strings")
    if not isinstance(pending, bool):
        raise TypeError("Session pending flag must be a boolean")

    return SleepSession(
        channel_id=channel_id,
        start=start,
        end=_parse_time(record.get("end")),
        duration=nanoseconds_to_duration(duration_raw),
        quality=quality,
        additional_fields=dict(fields),
        poll_message_id=poll_message_id,
        pending=pending,
    )


def _copy(session: SleepSession) -> SleepSession:
    return replace(session, additional_fields=dict(session.additional_fields))


class SessionStore:
    """Sleep sessions of every chat, kept in memory and mirrored to one JSON file.

    The collection is guarded by a single lock; every lookup is a linear scan,
    which is fine for the handful of sessions pending at any time.
    """

    def __init__(self, path: Path, allow_cancel_after_poll: bool = False) -> None:
        self.path = path
        self.allow_cancel_after_poll = allow_cancel_after_poll
        self._lock = threading.RLock()
        self._sessions: list[SleepSession] = []
        self.load()

    @staticmethod
    def init_file(path: Path) -> None:
        """Create an empty store document if nothing exists at ``path`` yet."""
        if path.exists():
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({STORE_DOCUMENT_KEY: []}), encoding="utf-8")
        logger.info("Created empty session store at %s", path)

    def _pending_index(self, channel_id: str) -> int | None:
        for idx, session in enumerate(self._sessions):
            if session.channel_id == channel_id and session.pending:
                return idx
        return None

    def _require_pending_index(self, channel_id: str) -> int:
        idx = self._pending_index(channel_id)
        if idx is None:
            raise NoPendingSessionError(channel_id)
        return idx

    def start_session(
        self,
        channel_id: str,
        start_time: datetime,
        fields: dict[str, str] | None = None,
    ) -> SleepSession:
        with self._lock:
            if self._pending_index(channel_id) is not None:
                raise AlreadyPendingError(channel_id)
            session = SleepSession(
                channel_id=channel_id,
                start=start_time,
                additional_fields=dict(fields or {}),
            )
            self._sessions.append(session)
            return _copy(session)

    def attach_poll(self, channel_id: str, poll_message_id: str) -> None:
        with self._lock:
            session = self._sessions[self._require_pending_index(channel_id)]
            if session.poll_message_id:
                raise PollAlreadyAttachedError(channel_id, session.poll_message_id)
            session.poll_message_id = poll_message_id

    def close_session(
        self,
        channel_id: str,
        end_time: datetime,
        quality: int,
        extra_fields: dict[str, str] | None = None,
    ) -> SleepSession:
        with self._lock:
            session = self._sessions[self._require_pending_index(channel_id)]
            if not session.poll_message_id:
                raise NotPollingError(channel_id)
            session.additional_fields = {**session.additional_fields, **(extra_fields or {})}
            session.end = end_time
            session.duration = end_time - session.start
            session.quality = quality
            session.pending = False
            return _copy(session)

    def cancel_pending(self, channel_id: str) -> None:
        with self._lock:
            idx = self._require_pending_index(channel_id)
            session = self._sessions[idx]
            if session.poll_message_id and not self.allow_cancel_after_poll:
                raise PollAlreadyAttachedError(channel_id, session.poll_message_id)
            # Swap-remove: the last session takes the cancelled one's slot.
            last = self._sessions.pop()
            if idx < len(self._sessions):
                self._sessions[idx] = last

    def pending_session(self, channel_id: str) -> SleepSession | None:
        with self._lock:
            idx = self._pending_index(channel_id)
            return _copy(self._sessions[idx]) if idx is not None else None

    def is_poll_active(self, poll_message_id: str, channel_id: str | None = None) -> bool:
        # Telegram message ids are only unique within one chat.
        if not poll_message_id:
            return False
        with self._lock:
            return any(
                s.pending
                and s.poll_message_id == poll_message_id
                and (channel_id is None or s.channel_id == channel_id)
                for s in self._sessions
            )

    def pending_without_poll(self) -> list[SleepSession]:
        with self._lock:
            return [_copy(s) for s in self._sessions if s.pending and not s.poll_message_id]

    def all_sessions(self, channel_id: str | None = None) -> list[SleepSession]:
        with self._lock:
            return [
                _copy(s)
                for s in self._sessions
                if channel_id is None or s.channel_id == channel_id
            ]

    def persist(self) -> None:
        with self._lock:
            document = {STORE_DOCUMENT_KEY: [session_to_record(s) for s in self._sessions]}
            payload = json.dumps(document, ensure_ascii=True, indent=2, sort_keys=True)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                tmp_path.write_text(payload, encoding="utf-8")
                os.replace(tmp_path, self.path)
            except OSError as exc:
                raise StoreUnavailableError(f"Cannot write session store {self.path}: {exc}") from exc

    def load(self) -> None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot read session store {self.path}: {exc}") from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptStoreError(f"Session store {self.path} is not valid JSON: {exc}") from exc

        if isinstance(payload, dict):
            if STORE_DOCUMENT_KEY not in payload:
                raise CorruptStoreError(f"Session store {self.path} has no '{STORE_DOCUMENT_KEY}' key")
            records = payload[STORE_DOCUMENT_KEY]
            if records is None:
                records = []
        else:
            records = payload

        if not isinstance(records, list):
            raise CorruptStoreError(f"Session store {self.path} must hold a list of sessions")

        try:
            sessions = [record_to_session(record) for record in records]
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptStoreError(f"Invalid session record in {self.path}: {exc}") from exc

        with self._lock:
            self._sessions = sessions
        logger.info("Loaded %s sleep sessions from %s", len(sessions), self.path)
