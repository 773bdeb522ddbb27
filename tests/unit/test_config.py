"""
Tests for environment-driven configuration.
"""

import pytest
from pydantic import ValidationError

from scheduler.config import (
    AppConfig,
    DispatcherConfig,
    SchedulerConfig,
    get_config,
    load_config_from_env,
)

ENV_NAMES = [
    "CHECKUP_LOCK_TIMEOUT_SECONDS",
    "CHECKUP_AUTO_CONFIRM",
    "CHECKUP_NOTIFY_MAX_ATTEMPTS",
    "CHECKUP_NOTIFY_BASE_DELAY_SECONDS",
    "CHECKUP_NOTIFY_MAX_DELAY_SECONDS",
    "CHECKUP_NOTIFY_POLL_INTERVAL_SECONDS",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_defaults() -> None:
    config = load_config_from_env()
    assert isinstance(config, AppConfig)
    assert config.scheduler.lock_timeout_seconds == 5.0
    assert config.scheduler.auto_confirm is True
    assert config.dispatcher.max_attempts == 5
    assert config.logging.level == "INFO"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHECKUP_LOCK_TIMEOUT_SECONDS", "0.25")
    monkeypatch.setenv("CHECKUP_AUTO_CONFIRM", "no")
    monkeypatch.setenv("CHECKUP_NOTIFY_MAX_ATTEMPTS", "2")
    monkeypatch.setenv("CHECKUP_NOTIFY_BASE_DELAY_SECONDS", "1")
    monkeypatch.setenv("CHECKUP_NOTIFY_MAX_DELAY_SECONDS", "4")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_config_from_env()
    assert config.scheduler.lock_timeout_seconds == 0.25
    assert config.scheduler.auto_confirm is False
    assert config.dispatcher.max_attempts == 2
    assert config.dispatcher.backoff(5) == 4.0
    assert config.logging.level == "DEBUG"


def test_invalid_values_fail_validation(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHECKUP_NOTIFY_MAX_ATTEMPTS", "0")
    with pytest.raises(ValidationError):
        load_config_from_env()


def test_unknown_log_level_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    with pytest.raises(ValidationError):
        load_config_from_env()


def test_get_config_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_config()
    monkeypatch.setenv("CHECKUP_AUTO_CONFIRM", "false")
    assert get_config() is first

    get_config.cache_clear()
    assert get_config().scheduler.auto_confirm is False


def test_delay_ceiling_below_base_rejected() -> None:
    with pytest.raises(ValidationError, match="max_delay_seconds"):
        DispatcherConfig(base_delay_seconds=5.0, max_delay_seconds=1.0)


def test_lock_timeout_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        SchedulerConfig(lock_timeout_seconds=0)
