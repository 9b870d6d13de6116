from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Optional


def _get_str_env(name: str, default: Optional[str]) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ScraperConfig:
    """Runtime settings, built once at process start and passed explicitly."""

    profiles_path: Optional[str] = None
    profiles_rest_url: Optional[str] = None
    performance_log_path: Optional[str] = "source_performance.jsonl"
    performance_rest_url: Optional[str] = None
    api_key: Optional[str] = None
    request_timeout_seconds: float = 15.0
    default_max_attempts: int = 3
    max_concurrency: int = 4
    log_level: str = "INFO"

    def with_overrides(self, **overrides: Any) -> "ScraperConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_config() -> ScraperConfig:
    """Read settings from COIN_SCRAPER_* environment variables."""
    defaults = ScraperConfig()
    return ScraperConfig(
        profiles_path=_get_str_env("COIN_SCRAPER_PROFILES_PATH", defaults.profiles_path),
        profiles_rest_url=_get_str_env("COIN_SCRAPER_PROFILES_URL", defaults.profiles_rest_url),
        performance_log_path=_get_str_env(
            "COIN_SCRAPER_PERFORMANCE_LOG", defaults.performance_log_path
        ),
        performance_rest_url=_get_str_env(
            "COIN_SCRAPER_PERFORMANCE_URL", defaults.performance_rest_url
        ),
        api_key=_get_str_env("COIN_SCRAPER_API_KEY", defaults.api_key),
        request_timeout_seconds=max(
            1.0, _get_float_env("COIN_SCRAPER_TIMEOUT_SECONDS", defaults.request_timeout_seconds)
        ),
        default_max_attempts=max(
            1, _get_int_env("COIN_SCRAPER_MAX_ATTEMPTS", defaults.default_max_attempts)
        ),
        max_concurrency=max(1, _get_int_env("COIN_SCRAPER_MAX_CONCURRENCY", defaults.max_concurrency)),
        log_level=_get_str_env("COIN_SCRAPER_LOG_LEVEL", defaults.log_level) or "INFO",
    )
