"""Cache-or-fetch pipeline shared by the recent tracks, history and top albums feeds.

Every call of :func:`run_feed` ends in one of these states:

* missing config: no request is made, an empty payload carries the error;
* fresh hit: the cached payload is returned untouched (``fresh=True``);
* refetch: the API is queried, the payload rebuilt and cached (``fresh=False``);
* degraded fallback: the refetch failed, the last cached payload is returned
  with a warning and the error message;
* hard fail: the refetch failed with nothing cached, an empty payload carries
  the error.

None of these raise; a site build always receives a well-formed view-model.
"""
from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from .cache import CacheEntry, FeedCache, is_fresh, now_millis
from .client import MAX_PAGE_LIMIT, LastfmClient
from .config import Settings
from .errors import ConfigError, RemoteRequestError
from .normalize import (
    dedupe_tracks,
    extract_items,
    extract_total_pages,
    normalize_album,
    normalize_track,
    sort_by_recency,
)

logger = logging.getLogger(__name__)

TRACKS_PER_PAGE = MAX_PAGE_LIMIT

Call = Callable[..., dict]


@dataclass(frozen=True)
class FeedSpec:
    name: str
    cache_key: str
    list_field: str
    label: str
    warning: str
    # collect(client, settings, call) -> raw API items; requests go through call(fn, **kwargs)
    collect: Callable[[LastfmClient, Settings, Call], list[dict]]
    # build(raw_items, settings) -> list field plus feed metadata
    build: Callable[[list[dict], Settings], dict[str, Any]]


def collect_recent_tracks(client: LastfmClient, settings: Settings, call: Call) -> list[dict]:
    response = call(client.recent_tracks, limit=settings.recent_limit)
    return extract_items(response, "recenttracks", "track")


def collect_history(client: LastfmClient, settings: Settings, call: Call) -> list[dict]:
    page_limit = max(1, settings.history_pages)
    total_pages = page_limit
    page = 1
    aggregated: list[dict] = []

    while page <= page_limit and page <= total_pages:
        response = call(client.recent_tracks, limit=TRACKS_PER_PAGE, page=page)
        tracks = extract_items(response, "recenttracks", "track")
        aggregated.extend(tracks)
        total_pages = extract_total_pages(response) or total_pages
        logger.debug("Fetched history page %d/%d, tracks=%d", page, total_pages, len(tracks))

        if not tracks or page >= total_pages:
            break
        page += 1

    return aggregated


def collect_top_albums(client: LastfmClient, settings: Settings, call: Call) -> list[dict]:
    response = call(client.top_albums, period=settings.top_albums_period, limit=settings.top_albums_limit)
    return extract_items(response, "topalbums", "album")


def build_recent_tracks(raw_items: list[dict], settings: Settings) -> dict[str, Any]:
    return {"tracks": [normalize_track(raw).to_dict() for raw in raw_items]}


def build_history(raw_items: list[dict], settings: Settings) -> dict[str, Any]:
    tracks = sort_by_recency([normalize_track(raw) for raw in dedupe_tracks(raw_items)])
    return {
        "total": len(tracks),
        "pageLimit": max(1, settings.history_pages),
        "tracksPerPage": TRACKS_PER_PAGE,
        "tracks": [track.to_dict() for track in tracks],
    }


def build_top_albums(raw_items: list[dict], settings: Settings) -> dict[str, Any]:
    return {
        "period": settings.top_albums_period,
        "limit": settings.top_albums_limit,
        "albums": [normalize_album(raw).to_dict() for raw in raw_items],
    }


RECENT_TRACKS = FeedSpec(
    name="recent-tracks",
    cache_key="recent-tracks",
    list_field="tracks",
    label="recent tracks",
    warning="Serving cached data due to fetch error.",
    collect=collect_recent_tracks,
    build=build_recent_tracks,
)

HISTORY = FeedSpec(
    name="history",
    cache_key="history",
    list_field="tracks",
    label="history",
    warning="Serving cached history due to fetch error.",
    collect=collect_history,
    build=build_history,
)

TOP_ALBUMS = FeedSpec(
    name="top-albums",
    cache_key="top-albums",
    list_field="albums",
    label="top albums",
    warning="Serving cached albums due to fetch error.",
    collect=collect_top_albums,
    build=build_top_albums,
)

FEEDS = {spec.name: spec for spec in (RECENT_TRACKS, HISTORY, TOP_ALBUMS)}


def iso_from_millis(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000, tz=UTC).isoformat(timespec="milliseconds")


def next_cached_at(previous: CacheEntry | None, now: int) -> int:
    """Timestamp for a new cache entry; never earlier than the entry it replaces."""
    if previous is not None and previous.cached_at and previous.cached_at > now:
        return previous.cached_at
    return now


def _with_retries(settings: Settings, sleep: Callable[[float], None]) -> Call:
    attempts = max(1, settings.max_retries)

    def call(fn: Callable[..., dict], **kwargs: Any) -> dict:
        attempt = 1
        while True:
            try:
                return fn(**kwargs)
            except RemoteRequestError as exc:
                if attempt >= attempts or not exc.retryable:
                    raise
                # Exponential backoff with jitter.
                delay = settings.backoff_base * (2 ** (attempt - 1)) + random.uniform(0, 0.3)
                logger.warning(
                    "Last.fm request failed (attempt %d/%d): %s. Retrying in %.2fs",
                    attempt,
                    attempts,
                    exc,
                    delay,
                )
                sleep(delay)
                attempt += 1

    return call


def _cache_info(ttl_minutes: float, fresh: bool, updated: str | None, **extra: str) -> dict[str, Any]:
    info: dict[str, Any] = {"ttlMinutes": ttl_minutes, "fresh": fresh, "updated": updated}
    info.update(extra)
    return info


def _empty_result(spec: FeedSpec, settings: Settings, error: str, username: str | None) -> dict[str, Any]:
    return {
        "error": error,
        "username": username,
        "updated": None,
        **spec.build([], settings),
        "cache": _cache_info(settings.ttl_minutes, False, None),
    }


def _fetch(spec: FeedSpec, settings: Settings, client: LastfmClient | None, call: Call) -> list[dict]:
    if client is not None:
        return spec.collect(client, settings, call)
    with LastfmClient(settings.api_key, settings.username, timeout=settings.timeout) as owned:
        return spec.collect(owned, settings, call)


def run_feed(
    spec: FeedSpec,
    settings: Settings,
    client: LastfmClient | None = None,
    cache: FeedCache | None = None,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Return the view-model for one feed, refetching only when the cache is stale."""
    ttl_minutes = settings.ttl_minutes

    missing = settings.missing()
    if missing:
        error = str(ConfigError(missing))
        logger.warning("Skipping Last.fm %s: %s", spec.label, error)
        return _empty_result(spec, settings, error, username=settings.username or "")

    cache = cache or FeedCache(settings.cache_dir)
    entry = cache.read(spec.cache_key)
    if is_fresh(entry, ttl_minutes, now=now_millis(clock)):
        logger.info("Using fresh Last.fm %s cache", spec.label)
        return {
            **entry.data,
            "cache": _cache_info(ttl_minutes, True, entry.data.get("updated")),
        }

    try:
        raw_items = _fetch(spec, settings, client, _with_retries(settings, sleep))
    except RemoteRequestError as exc:
        logger.error("Failed to fetch Last.fm %s: %s", spec.label, exc)
        if entry is None:
            return _empty_result(spec, settings, str(exc), username=settings.username)
        logger.warning("Serving stale Last.fm %s cache", spec.label)
        data = dict(entry.data)
        data.setdefault(spec.list_field, [])
        return {
            **data,
            "cache": _cache_info(
                ttl_minutes,
                False,
                data.get("updated"),
                warning=spec.warning,
                error=str(exc),
            ),
            "error": str(exc),
        }

    cached_at = next_cached_at(entry, now_millis(clock))
    data = {
        "username": settings.username,
        "updated": iso_from_millis(cached_at),
        **spec.build(raw_items, settings),
    }
    cache.write(spec.cache_key, CacheEntry(cached_at=cached_at, ttl_minutes=ttl_minutes, data=data))
    logger.info("Refreshed Last.fm %s, items=%d", spec.label, len(data[spec.list_field]))

    return {**data, "cache": _cache_info(ttl_minutes, False, data["updated"])}
