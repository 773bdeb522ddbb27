"""
Configuration management with environment variable support and validation.

Values come from the process environment, optionally seeded from a .env
file, and are validated once at startup.
"""

import os
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class SchedulerConfig(BaseModel):
    """Booking engine behaviour."""

    lock_timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Upper bound on waiting for slot/individual locks"
    )
    auto_confirm: bool = Field(
        default=True, description="Confirm bookings immediately instead of leaving them Pending"
    )


class DispatcherConfig(BaseModel):
    """Notification retry policy."""

    max_attempts: int = Field(default=5, ge=1, description="Delivery attempts per drain cycle")
    base_delay_seconds: float = Field(
        default=0.5, ge=0.0, description="First backoff delay; doubles on every failure"
    )
    max_delay_seconds: float = Field(default=30.0, ge=0.0, description="Backoff ceiling")
    poll_interval_seconds: float = Field(
        default=1.0, gt=0.0, description="Idle wait between background drain cycles"
    )

    @model_validator(mode="after")
    def validate_delays(self):
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return self

    def backoff(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based)."""
        return min(self.base_delay_seconds * (2 ** attempt), self.max_delay_seconds)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="logging.basicConfig format string"
    )


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    dispatcher: DispatcherConfig = Field(default_factory=DispatcherConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_config_from_env() -> AppConfig:
    """Build and validate an AppConfig from environment variables."""
    scheduler_kwargs = {}
    if "CHECKUP_LOCK_TIMEOUT_SECONDS" in os.environ:
        scheduler_kwargs["lock_timeout_seconds"] = float(os.environ["CHECKUP_LOCK_TIMEOUT_SECONDS"])
    if "CHECKUP_AUTO_CONFIRM" in os.environ:
        scheduler_kwargs["auto_confirm"] = _parse_bool(os.environ["CHECKUP_AUTO_CONFIRM"])

    dispatcher_kwargs = {}
    env_map = {
        "CHECKUP_NOTIFY_MAX_ATTEMPTS": ("max_attempts", int),
        "CHECKUP_NOTIFY_BASE_DELAY_SECONDS": ("base_delay_seconds", float),
        "CHECKUP_NOTIFY_MAX_DELAY_SECONDS": ("max_delay_seconds", float),
        "CHECKUP_NOTIFY_POLL_INTERVAL_SECONDS": ("poll_interval_seconds", float),
    }
    for env_name, (field_name, cast) in env_map.items():
        if env_name in os.environ:
            dispatcher_kwargs[field_name] = cast(os.environ[env_name])

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    return AppConfig(
        scheduler=SchedulerConfig(**scheduler_kwargs),
        dispatcher=DispatcherConfig(**dispatcher_kwargs),
        logging=LoggingConfig(level=log_level),
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Cached application configuration."""
    return load_config_from_env()
