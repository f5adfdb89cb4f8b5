"""Environment-driven settings for the read-later crawler."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from .errors import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}

__all__ = [
    "CrawlerSettings",
    "get_crawler_settings",
    "is_crawler_in_process_enabled",
    "is_create_all_enabled",
]


@dataclass(frozen=True)
class CrawlerSettings:
    download_timeout_seconds: float = 20.0
    max_download_bytes: int = 2 * 1024 * 1024
    max_download_attempts: int = 3
    batch_size: int = 20
    crawl_interval: timedelta = timedelta(minutes=5)
    retention_months: int = 6


def _read_flag(name: str) -> bool | None:
    """Return the parsed boolean value for ``name`` if explicitly set."""

    value = os.getenv(name)
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized.lower() in _TRUE_VALUES


def _read_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than zero")
    return value


def _read_positive_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than zero")
    return value


def _read_interval(name: str, default: timedelta) -> timedelta:
    """Accept plain seconds (``"300"``) or a frequency string (``"5m"``)."""

    from .jobs.scheduler import parse_frequency

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    cleaned = raw.strip()
    if cleaned.isdigit():
        seconds = int(cleaned)
        if seconds <= 0:
            raise ConfigurationError(f"{name} must be greater than zero")
        return timedelta(seconds=seconds)
    try:
        return parse_frequency(cleaned)
    except ValueError as exc:
        raise ConfigurationError(f"{name}: {exc}") from exc


@lru_cache(maxsize=1)
def get_crawler_settings() -> CrawlerSettings:
    """Return crawler settings read from the environment.

    Raises :class:`ConfigurationError` when a variable is set to an invalid
    value; the worker treats that as a fatal startup error.
    """

    defaults = CrawlerSettings()
    return CrawlerSettings(
        download_timeout_seconds=_read_positive_float(
            "CONTENT_DOWNLOAD_TIMEOUT_SECONDS", defaults.download_timeout_seconds
        ),
        max_download_bytes=_read_positive_int(
            "CONTENT_DOWNLOAD_MAX_BYTES", defaults.max_download_bytes
        ),
        max_download_attempts=_read_positive_int(
            "CONTENT_DOWNLOAD_MAX_ATTEMPTS", defaults.max_download_attempts
        ),
        batch_size=_read_positive_int("CONTENT_DOWNLOAD_BATCH_SIZE", defaults.batch_size),
        crawl_interval=_read_interval("FEED_CRAWL_INTERVAL", defaults.crawl_interval),
        retention_months=_read_positive_int("FEED_RETENTION_MONTHS", defaults.retention_months),
    )


@lru_cache(maxsize=1)
def is_crawler_in_process_enabled() -> bool:
    """Return ``True`` when the API process should also run the crawler."""

    flag = _read_flag("CRAWLER_IN_PROCESS")
    if flag is None:
        return False
    return flag


@lru_cache(maxsize=1)
def is_create_all_enabled() -> bool:
    """Return ``True`` when tables should be created on startup (dev only)."""

    flag = _read_flag("SQLMODEL_CREATE_ALL")
    if flag is None:
        return False
    return flag
