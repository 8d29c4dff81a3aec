"""Mapping of loosely-typed Last.fm JSON into track and album records.

Everything here is pure and tolerant: malformed input produces a best-effort
record (or an empty list) instead of an exception.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from .errors import MalformedResponseError

logger = logging.getLogger(__name__)


@dataclass
class Track:
    name: str | None
    artist: str | None
    album: str | None
    url: str | None
    image: str | None
    now_playing: bool
    uts: int | None
    played_at: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "artist": self.artist,
            "album": self.album,
            "url": self.url,
            "image": self.image,
            "nowPlaying": self.now_playing,
            "uts": self.uts,
            "playedAt": self.played_at,
        }


@dataclass
class Album:
    name: str | None
    artist: str | None
    playcount: int
    url: str | None
    image: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "artist": self.artist,
            "playcount": self.playcount,
            "url": self.url,
            "image": self.image,
        }


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _text(value: Any, *keys: str) -> str | None:
    """Return the text of a plain string or of the first present key of an object."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in keys or ("#text",):
            text = value.get(key)
            if isinstance(text, str):
                return text
    return None


def _to_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None


def pick_image(images: Any) -> str | None:
    """Return the largest image URL, skipping entries without one."""
    if not isinstance(images, list):
        return None
    for entry in reversed(images):
        url = _text(entry)
        if url:
            return url
    return None


def played_at_iso(uts: int | None) -> str | None:
    if uts is None:
        return None
    try:
        return datetime.fromtimestamp(uts, tz=UTC).isoformat(timespec="milliseconds")
    except (OverflowError, OSError, ValueError):
        return None


def track_uts(raw: Any) -> int | None:
    uts = _to_int(_as_dict(_as_dict(raw).get("date")).get("uts"))
    # A zero timestamp counts as missing.
    return uts or None


def normalize_track(raw: Any) -> Track:
    raw = _as_dict(raw)
    uts = track_uts(raw)
    return Track(
        name=_text(raw.get("name")),
        artist=_text(raw.get("artist"), "#text", "name"),
        album=_text(raw.get("album")),
        url=_text(raw.get("url")),
        image=pick_image(raw.get("image")),
        now_playing=_as_dict(raw.get("@attr")).get("nowplaying") == "true",
        uts=uts,
        played_at=played_at_iso(uts),
    )


def normalize_album(raw: Any) -> Album:
    raw = _as_dict(raw)
    playcount = _to_int(raw.get("playcount"))
    return Album(
        name=_text(raw.get("name")),
        artist=_text(raw.get("artist"), "name", "#text"),
        playcount=playcount if playcount and playcount > 0 else 0,
        url=_text(raw.get("url")),
        image=pick_image(raw.get("image")),
    )


def _strict_items(response: Any, root: str, key: str) -> list[dict]:
    container = response.get(root) if isinstance(response, dict) else None
    if not isinstance(container, dict):
        raise MalformedResponseError(f"response has no '{root}' object")
    items = container.get(key, [])
    # A single result comes back as an object instead of a one-element list.
    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, list):
        raise MalformedResponseError(f"'{root}.{key}' is not a list")
    return [item for item in items if isinstance(item, dict)]


def extract_items(response: Any, root: str, key: str) -> list[dict]:
    try:
        return _strict_items(response, root, key)
    except MalformedResponseError as exc:
        logger.debug("Treating malformed Last.fm response as empty: %s", exc)
        return []


def extract_total_pages(response: Any) -> int | None:
    container = _as_dict(_as_dict(response).get("recenttracks"))
    total = _to_int(_as_dict(container.get("@attr")).get("totalPages"))
    return total if total and total > 0 else None


def track_key(raw: dict) -> tuple[int | None, str | None, str | None]:
    return (track_uts(raw), _text(raw.get("name")), _text(raw.get("artist"), "#text", "name"))


def dedupe_tracks(raw_tracks: list[dict]) -> list[dict]:
    """Drop untimestamped tracks and repeats of the same (uts, name, artist)."""
    seen: set[tuple[int | None, str | None, str | None]] = set()
    out: list[dict] = []
    for raw in raw_tracks:
        key = track_key(raw)
        if key[0] is None or key in seen:
            continue
        seen.add(key)
        out.append(raw)
    return out


def sort_by_recency(tracks: list[Track]) -> list[Track]:
    return sorted(tracks, key=lambda track: track.uts or 0, reverse=True)
