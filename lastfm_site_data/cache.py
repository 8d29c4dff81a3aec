"""One JSON file per feed, written atomically and read fail-soft."""
from __future__ import annotations

import contextlib
import json
import logging
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import CacheIOError

logger = logging.getLogger(__name__)

CACHE_FILES = {
    "recent-tracks": "lastfm.json",
    "history": "history.json",
    "top-albums": "top-albums.json",
}


@dataclass
class CacheEntry:
    cached_at: int | None
    ttl_minutes: float
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"cachedAt": self.cached_at, "ttlMinutes": self.ttl_minutes, "data": self.data}

    @classmethod
    def from_dict(cls, raw: Any) -> CacheEntry:
        if not isinstance(raw, dict) or not isinstance(raw.get("data"), dict):
            raise CacheIOError("cache document has no 'data' object")
        cached_at = raw.get("cachedAt")
        # json accepts NaN, Infinity and overflowing literals.
        if isinstance(cached_at, bool) or not isinstance(cached_at, (int, float)) or not math.isfinite(cached_at):
            cached_at = None
        return cls(
            cached_at=int(cached_at) if cached_at is not None else None,
            ttl_minutes=raw.get("ttlMinutes") or 0,
            data=raw["data"],
        )


def now_millis(clock=time.time) -> int:
    return int(clock() * 1000)


def is_fresh(entry: CacheEntry | None, ttl_minutes: float, now: int | None = None) -> bool:
    if entry is None or not entry.cached_at:
        return False
    current = now_millis() if now is None else now
    age_minutes = (current - entry.cached_at) / (1000 * 60)
    return age_minutes < ttl_minutes


class FeedCache:
    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def path_for(self, feed_key: str) -> Path:
        return self.directory / CACHE_FILES.get(feed_key, f"{feed_key}.json")

    def _load(self, path: Path) -> CacheEntry | None:
        try:
            with path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CacheIOError(f"unable to read {path}: {exc}") from exc
        return CacheEntry.from_dict(raw)

    def _save(self, path: Path, entry: CacheEntry) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(entry.to_dict(), handle, ensure_ascii=False, indent=2)
            tmp_path.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise CacheIOError(f"unable to write {path}: {exc}") from exc

    def read(self, feed_key: str) -> CacheEntry | None:
        try:
            return self._load(self.path_for(feed_key))
        except CacheIOError as exc:
            logger.warning("Ignoring Last.fm %s cache: %s", feed_key, exc)
            return None

    def write(self, feed_key: str, entry: CacheEntry) -> bool:
        try:
            self._save(self.path_for(feed_key), entry)
        except CacheIOError as exc:
            logger.warning("Unable to write Last.fm %s cache: %s", feed_key, exc)
            return False
        return True
