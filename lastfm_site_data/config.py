"""Settings for the Last.fm site-data feeds.

Settings are read once (environment first, then an optional ``.env`` file) and
passed explicitly into the pipeline.
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values

REQUIRED_ENV = ("LASTFM_API_KEY", "LASTFM_USERNAME")
DEFAULT_TTL_MINUTES = 15
DEFAULT_HISTORY_PAGES = 1
DEFAULT_RECENT_LIMIT = 20
DEFAULT_TOP_ALBUMS_PERIOD = "1month"
DEFAULT_TOP_ALBUMS_LIMIT = 10
DEFAULT_CACHE_DIR = ".cache"
DEFAULT_TIMEOUT_CONNECT = 10.0
DEFAULT_TIMEOUT_READ = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE_SECONDS = 1.0


@dataclass(frozen=True)
class Settings:
    api_key: str | None
    username: str | None
    ttl_minutes: float = DEFAULT_TTL_MINUTES
    history_pages: int = DEFAULT_HISTORY_PAGES
    recent_limit: int = DEFAULT_RECENT_LIMIT
    top_albums_period: str = DEFAULT_TOP_ALBUMS_PERIOD
    top_albums_limit: int = DEFAULT_TOP_ALBUMS_LIMIT
    cache_dir: Path = field(default_factory=lambda: Path(DEFAULT_CACHE_DIR))
    connect_timeout: float = DEFAULT_TIMEOUT_CONNECT
    read_timeout: float = DEFAULT_TIMEOUT_READ
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_base: float = DEFAULT_BACKOFF_BASE_SECONDS

    def missing(self) -> list[str]:
        values = {"LASTFM_API_KEY": self.api_key, "LASTFM_USERNAME": self.username}
        return [name for name in REQUIRED_ENV if not values[name]]

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)


def _positive_number(raw: str | None, default: float) -> float:
    try:
        value = float(raw) if raw is not None else 0.0
    except ValueError:
        return default
    # NaN and non-positive values fall back to the default.
    if not value > 0:
        return default
    return value


def _positive_int(raw: str | None, default: int) -> int:
    try:
        value = int(float(raw)) if raw is not None else 0
    except (ValueError, OverflowError):
        return default
    return value if value > 0 else default


def _merge_sources(environ: Mapping[str, str] | None, env_file: Path | None) -> dict[str, str]:
    values: dict[str, str] = {}
    if env_file is not None and env_file.is_file():
        values.update({key: value for key, value in dotenv_values(env_file).items() if value is not None})
    source = os.environ if environ is None else environ
    for key, value in source.items():
        if value:
            values[key] = value
    return values


def load_settings(
    environ: Mapping[str, str] | None = None,
    env_file: Path | str | None = ".env",
) -> Settings:
    """Build ``Settings`` from the environment, falling back to ``env_file``."""
    values = _merge_sources(environ, Path(env_file).expanduser() if env_file else None)

    return Settings(
        api_key=values.get("LASTFM_API_KEY") or None,
        username=values.get("LASTFM_USERNAME") or None,
        ttl_minutes=_positive_number(values.get("LASTFM_CACHE_MINUTES"), DEFAULT_TTL_MINUTES),
        history_pages=_positive_int(values.get("LASTFM_HISTORY_PAGES"), DEFAULT_HISTORY_PAGES),
        recent_limit=_positive_int(values.get("LASTFM_RECENT_LIMIT"), DEFAULT_RECENT_LIMIT),
        cache_dir=Path(values.get("LASTFM_CACHE_DIR") or DEFAULT_CACHE_DIR).expanduser(),
        read_timeout=_positive_number(values.get("LASTFM_TIMEOUT"), DEFAULT_TIMEOUT_READ),
        max_retries=_positive_int(values.get("LASTFM_MAX_RETRIES"), DEFAULT_MAX_RETRIES),
    )
