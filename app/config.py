"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ImportPipelineSettings:
    """
    Runtime settings for import scheduling and batch processing.
    """

    event_source: str = "foodrank.import"
    batch_size: int = 100
    claim_ttl_seconds: int = 900
    default_confidence_score: float = 100.0
    default_match_method: str = "EXACT"


@dataclass(frozen=True)
class ConsumerSettings:
    """
    Queue consumer concurrency and timeout settings.
    """

    max_workers: int = 1
    message_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class AnalyticsSettings:
    """
    Analytics recorder settings.
    """

    ttl_days: int = 90
    event_source: str = "foodrank.analytics"
    realtime_ttl_hours: int = 24


@dataclass(frozen=True)
class EventBusSettings:
    """
    HTTP event bus client settings.
    """

    url: str | None = None
    bus_name: str = "default"
    timeout_seconds: float = 10.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class OutboxRelaySettings:
    """
    Outbox relay scheduling settings.
    """

    interval_seconds: int = 30
    batch_size: int = 100
    max_attempts: int = 5


@lru_cache(maxsize=1)
def get_import_pipeline_settings() -> ImportPipelineSettings:
    """
    Return cached import pipeline settings from environment variables.
    """

    return ImportPipelineSettings(
        event_source=_get_str_env("IMPORT_EVENT_SOURCE", "foodrank.import"),
        batch_size=max(1, _get_int_env("IMPORT_BATCH_SIZE", 100)),
        claim_ttl_seconds=max(1, _get_int_env("IMPORT_BATCH_CLAIM_TTL_SECONDS", 900)),
        default_confidence_score=min(
            100.0,
            max(0.0, _get_float_env("IMPORT_DEFAULT_CONFIDENCE_SCORE", 100.0)),
        ),
        default_match_method=_get_str_env("IMPORT_DEFAULT_MATCH_METHOD", "EXACT").upper(),
    )


@lru_cache(maxsize=1)
def get_consumer_settings() -> ConsumerSettings:
    """
    Return cached consumer settings from environment variables.
    """

    return ConsumerSettings(
        max_workers=max(1, _get_int_env("CONSUMER_MAX_WORKERS", 1)),
        message_timeout_seconds=max(
            0.1,
            _get_float_env("CONSUMER_MESSAGE_TIMEOUT_SECONDS", 30.0),
        ),
    )


@lru_cache(maxsize=1)
def get_analytics_settings() -> AnalyticsSettings:
    return AnalyticsSettings(
        ttl_days=max(1, _get_int_env("ANALYTICS_TTL_DAYS", 90)),
        event_source=_get_str_env("ANALYTICS_EVENT_SOURCE", "foodrank.analytics"),
        realtime_ttl_hours=max(1, _get_int_env("ANALYTICS_REALTIME_TTL_HOURS", 24)),
    )


@lru_cache(maxsize=1)
def get_event_bus_settings() -> EventBusSettings:
    """
    Return event bus client settings from environment variables.
    """

    return EventBusSettings(
        url=_get_optional_str_env("EVENT_BUS_URL"),
        bus_name=_get_str_env("EVENT_BUS_NAME", "default"),
        timeout_seconds=max(1.0, _get_float_env("EVENT_BUS_TIMEOUT_SECONDS", 10.0)),
        max_retries=max(0, _get_int_env("EVENT_BUS_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EVENT_BUS_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EVENT_BUS_BACKOFF_MULTIPLIER", 2.0)),
    )


@lru_cache(maxsize=1)
def get_outbox_relay_settings() -> OutboxRelaySettings:
    return OutboxRelaySettings(
        interval_seconds=max(1, _get_int_env("OUTBOX_RELAY_INTERVAL_SECONDS", 30)),
        batch_size=max(1, _get_int_env("OUTBOX_RELAY_BATCH_SIZE", 100)),
        max_attempts=max(1, _get_int_env("OUTBOX_MAX_ATTEMPTS", 5)),
    )


def scheduler_enabled() -> bool:
    return _get_bool_env("SCHEDULER_ENABLED", True)
