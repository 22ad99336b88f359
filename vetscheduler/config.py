"""
Centralized configuration with environment variable overrides.

Scheduling bounds, timezone policy and storage settings live here.
Nothing is hardcoded in the scheduling or store logic.
"""

import logging
import os
from dataclasses import dataclass, field

import pytz
from dotenv import load_dotenv

from vetscheduler.logging_context import install_request_id_filter

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class SchedulingConfig:
    """Slot generation and booking window settings."""

    timezone: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")
    min_slot_interval_minutes: int = _safe_int("MIN_SLOT_INTERVAL_MINUTES", "10")
    max_slot_interval_minutes: int = _safe_int("MAX_SLOT_INTERVAL_MINUTES", "120")
    default_slot_interval_minutes: int = _safe_int("DEFAULT_SLOT_INTERVAL_MINUTES", "30")


@dataclass(frozen=True)
class HorizonConfig:
    """Date range the presentation layer offers for browsing slots."""

    past_days: int = _safe_int("BOOKING_HORIZON_PAST_DAYS", "1")
    future_days: int = _safe_int("BOOKING_HORIZON_FUTURE_DAYS", "30")


@dataclass(frozen=True)
class StoreConfig:
    """Record store settings. An empty URL selects the in-memory store."""

    database_url: str = os.getenv("DATABASE_URL", "")
    echo_sql: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    horizon: HorizonConfig = field(default_factory=HorizonConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "vetscheduler")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    sched = config.scheduling
    if sched.timezone not in pytz.all_timezones_set:
        raise ValueError(f"SCHEDULER_TIMEZONE is not a known timezone: {sched.timezone!r}")
    if sched.min_slot_interval_minutes < 1:
        raise ValueError(
            f"MIN_SLOT_INTERVAL_MINUTES must be >= 1, got {sched.min_slot_interval_minutes}"
        )
    if sched.max_slot_interval_minutes < sched.min_slot_interval_minutes:
        raise ValueError(
            "MAX_SLOT_INTERVAL_MINUTES must be >= MIN_SLOT_INTERVAL_MINUTES, "
            f"got {sched.max_slot_interval_minutes} < {sched.min_slot_interval_minutes}"
        )
    if not (
        sched.min_slot_interval_minutes
        <= sched.default_slot_interval_minutes
        <= sched.max_slot_interval_minutes
    ):
        raise ValueError(
            "DEFAULT_SLOT_INTERVAL_MINUTES must be within the allowed interval range, "
            f"got {sched.default_slot_interval_minutes}"
        )

    for name, value in [
        ("BOOKING_HORIZON_PAST_DAYS", config.horizon.past_days),
        ("BOOKING_HORIZON_FUTURE_DAYS", config.horizon.future_days),
    ]:
        if value < 0:
            raise ValueError(f"{name} must be >= 0, got {value}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_request_id_filter()
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
