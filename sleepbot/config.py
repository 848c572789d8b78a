from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .constants import (
    DEFAULT_COMMAND_PREFIX,
    DEFAULT_DAEMON_INTERVAL_MINUTES,
    DEFAULT_POLL_EMOJIS,
    DEFAULT_SLEEP_PERIOD_MIN_MINUTES,
    MAX_SCALE_SIZE,
    MIN_SCALE_SIZE,
)
from .store import SessionStore


BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"
DEFAULT_DATAFILE_NAME = "sleep_sessions.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _resolve_path(raw_path: str | None, default_path: Path) -> Path:
    if not raw_path:
        return default_path
    path = Path(raw_path).expanduser()
    if path.is_absolute():
        return path
    return (BASE_DIR / path).resolve()


@dataclass(frozen=True)
class AppConfig:
    telegram_bot_token: str
    command_prefix: str = DEFAULT_COMMAND_PREFIX
    poll_emojis: tuple[str, ...] = field(default_factory=lambda: tuple(DEFAULT_POLL_EMOJIS))
    daemon_interval_minutes: float = DEFAULT_DAEMON_INTERVAL_MINUTES
    sleep_period_min_minutes: float = DEFAULT_SLEEP_PERIOD_MIN_MINUTES
    data_dir: Path = DEFAULT_DATA_DIR
    datafile: Path = DEFAULT_DATA_DIR / DEFAULT_DATAFILE_NAME
    allow_cancel_after_poll: bool = False


class ConfigError(RuntimeError):
    pass


def _parse_minutes(name: str, raw: str, allow_zero: bool) -> float:
    try:
        value = float(raw)
        if value < 0 or (value == 0 and not allow_zero):
            raise ValueError
    except ValueError as exc:
        bound = ">= 0" if allow_zero else "> 0"
        raise ConfigError(f"{name} must be a number of minutes {bound}") from exc
    return value


def _parse_emojis(raw: str) -> tuple[str, ...]:
    emojis = tuple(item.strip() for item in raw.split(",") if item.strip())
    if len(emojis) < MIN_SCALE_SIZE or len(emojis) > MAX_SCALE_SIZE:
        raise ConfigError(
            f"POLL_EMOJIS must list between {MIN_SCALE_SIZE} and {MAX_SCALE_SIZE} comma-separated emojis"
        )
    if len(set(emojis)) != len(emojis):
        raise ConfigError("POLL_EMOJIS must not contain duplicates")
    return emojis


def _parse_bool(name: str, raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean (true/false)")


def load_config() -> AppConfig:
    load_dotenv()

    telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    if not telegram_bot_token:
        raise ConfigError("Missing TELEGRAM_BOT_TOKEN in environment/.env")

    command_prefix = os.getenv("COMMAND_PREFIX", DEFAULT_COMMAND_PREFIX).strip()
    if not command_prefix or " " in command_prefix:
        raise ConfigError("COMMAND_PREFIX must be a non-empty string without spaces")

    poll_emojis = _parse_emojis(os.getenv("POLL_EMOJIS", ",".join(DEFAULT_POLL_EMOJIS)))
    daemon_interval_minutes = _parse_minutes(
        "DAEMON_INTERVAL_MINUTES",
        os.getenv("DAEMON_INTERVAL_MINUTES", str(DEFAULT_DAEMON_INTERVAL_MINUTES)).strip(),
        allow_zero=False,
    )
    sleep_period_min_minutes = _parse_minutes(
        "SLEEP_PERIOD_MIN_MINUTES",
        os.getenv("SLEEP_PERIOD_MIN_MINUTES", str(DEFAULT_SLEEP_PERIOD_MIN_MINUTES)).strip(),
        allow_zero=True,
    )
    allow_cancel_after_poll = _parse_bool(
        "ALLOW_CANCEL_AFTER_POLL",
        os.getenv("ALLOW_CANCEL_AFTER_POLL", "false"),
    )

    data_dir = _resolve_path(os.getenv("DATA_DIR"), DEFAULT_DATA_DIR)
    datafile = _resolve_path(os.getenv("DATAFILE"), data_dir / DEFAULT_DATAFILE_NAME)

    return AppConfig(
        telegram_bot_token=telegram_bot_token,
        command_prefix=command_prefix,
        poll_emojis=poll_emojis,
        daemon_interval_minutes=daemon_interval_minutes,
        sleep_period_min_minutes=sleep_period_min_minutes,
        data_dir=data_dir,
        datafile=datafile,
        allow_cancel_after_poll=allow_cancel_after_poll,
    )


def ensure_data_dirs(config: AppConfig) -> None:
    config.data_dir.mkdir(parents=True, exist_ok=True)
    config.datafile.parent.mkdir(parents=True, exist_ok=True)

    # First run on an empty volume: seed an empty store document.
    SessionStore.init_file(config.datafile)
