"""
Tests for environment-driven configuration.
"""
import pytest

from sleepbot import config as config_module
from sleepbot.config import ConfigError, ensure_data_dirs, load_config
from sleepbot.constants import DEFAULT_POLL_EMOJIS
from sleepbot.store import SessionStore

ENV_KEYS = [
    "TELEGRAM_BOT_TOKEN",
    "COMMAND_PREFIX",
    "POLL_EMOJIS",
    "DAEMON_INTERVAL_MINUTES",
    "SLEEP_PERIOD_MIN_MINUTES",
    "DATA_DIR",
    "DATAFILE",
    "ALLOW_CANCEL_AFTER_POLL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # Keep a developer's .env out of the tests.
    monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")


def test_defaults():
    config = load_config()

    assert config.telegram_bot_token == "123:abc"
    assert config.command_prefix == "/"
    assert config.poll_emojis == tuple(DEFAULT_POLL_EMOJIS)
    assert config.daemon_interval_minutes == 1.0
    assert config.sleep_period_min_minutes == 360.0
    assert config.allow_cancel_after_poll is False
    assert config.datafile == config.data_dir / "sleep_sessions.json"


def test_missing_token(monkeypatch):
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN")

    with pytest.raises(ConfigError):
        load_config()


def test_custom_values(monkeypatch, tmp_path):
    monkeypatch.setenv("COMMAND_PREFIX", "!")
    monkeypatch.setenv("POLL_EMOJIS", "👎, 👍")
    monkeypatch.setenv("DAEMON_INTERVAL_MINUTES", "0.5")
    monkeypatch.setenv("SLEEP_PERIOD_MIN_MINUTES", "0")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("ALLOW_CANCEL_AFTER_POLL", "yes")

    config = load_config()

    assert config.command_prefix == "!"
    assert config.poll_emojis == ("👎", "👍")
    assert config.daemon_interval_minutes == 0.5
    assert config.sleep_period_min_minutes == 0.0
    assert config.datafile == tmp_path / "sleep_sessions.json"
    assert config.allow_cancel_after_poll is True


@pytest.mark.parametrize(
    "key, value",
    [
        ("POLL_EMOJIS", "😀"),
        ("POLL_EMOJIS", "😀,😀,😐"),
        ("DAEMON_INTERVAL_MINUTES", "0"),
        ("DAEMON_INTERVAL_MINUTES", "soon"),
        ("SLEEP_PERIOD_MIN_MINUTES", "-5"),
        ("ALLOW_CANCEL_AFTER_POLL", "maybe"),
        ("COMMAND_PREFIX", "   "),
    ],
)
def test_invalid_values(monkeypatch, key, value):
    monkeypatch.setenv(key, value)

    with pytest.raises(ConfigError):
        load_config()


def test_ensure_data_dirs_seeds_store(monkeypatch, tmp_path):
    datafile = tmp_path / "state" / "sessions.json"
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("DATAFILE", str(datafile))

    ensure_data_dirs(load_config())

    assert (tmp_path / "data").is_dir()
    assert SessionStore(datafile).all_sessions() == []
