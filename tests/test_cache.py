from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest import mock

import pytest

from lastfm_site_data.cache import CacheEntry, FeedCache, is_fresh

NOW = 1_700_000_000_000
MINUTE = 60 * 1000


def _entry(age_minutes: float | None, ttl: float = 15) -> CacheEntry:
    cached_at = None if age_minutes is None else int(NOW - age_minutes * MINUTE)
    return CacheEntry(cached_at=cached_at, ttl_minutes=ttl, data={"username": "listener", "tracks": []})


@pytest.mark.parametrize(
    ("age", "ttl", "expected"),
    [
        (0, 15, True),
        (14.9, 15, True),
        (15, 15, False),
        (60, 15, False),
        (59, 60, True),
    ],
)
def test_is_fresh_compares_age_against_ttl(age: float, ttl: float, expected: bool) -> None:
    assert is_fresh(_entry(age), ttl, now=NOW) is expected


def test_is_fresh_without_entry_or_timestamp() -> None:
    assert is_fresh(None, 15, now=NOW) is False
    assert is_fresh(_entry(None), 15, now=NOW) is False


def test_write_then_read_uses_one_file_per_feed(tmp_path: Path) -> None:
    cache = FeedCache(tmp_path / "cache")
    entry = CacheEntry(cached_at=NOW, ttl_minutes=15, data={"username": "listener", "albums": [{"name": "A"}]})

    assert cache.write("top-albums", entry) is True

    path = tmp_path / "cache" / "top-albums.json"
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "cachedAt": NOW,
        "ttlMinutes": 15,
        "data": {"username": "listener", "albums": [{"name": "A"}]},
    }
    assert cache.read("top-albums") == entry
    assert cache.read("history") is None
    assert cache.path_for("recent-tracks").name == "lastfm.json"
    assert not list((tmp_path / "cache").glob("*.tmp"))


def test_write_overwrites_wholesale(tmp_path: Path) -> None:
    cache = FeedCache(tmp_path)
    cache.write("history", CacheEntry(cached_at=NOW, ttl_minutes=15, data={"tracks": [1, 2], "total": 2}))
    cache.write("history", CacheEntry(cached_at=NOW + 1, ttl_minutes=15, data={"tracks": []}))

    assert cache.read("history").data == {"tracks": []}


@pytest.mark.parametrize(
    "content",
    [
        "{not-json",
        json.dumps(["a", "list"]),
        json.dumps({"cachedAt": NOW}),
        json.dumps({"cachedAt": NOW, "data": "nope"}),
    ],
)
def test_read_treats_corrupt_file_as_miss(tmp_path: Path, caplog: pytest.LogCaptureFixture, content: str) -> None:
    (tmp_path / "history.json").write_text(content, encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="lastfm_site_data.cache"):
        assert FeedCache(tmp_path).read("history") is None

    assert "Ignoring Last.fm history cache" in caplog.text


def test_read_tolerates_missing_timestamp(tmp_path: Path) -> None:
    (tmp_path / "history.json").write_text(json.dumps({"data": {"tracks": []}}), encoding="utf-8")

    entry = FeedCache(tmp_path).read("history")

    assert entry is not None
    assert entry.cached_at is None
    assert is_fresh(entry, 15, now=NOW) is False


def test_write_failure_is_logged_and_swallowed(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file in the way", encoding="utf-8")
    cache = FeedCache(blocker / "cache")

    with caplog.at_level(logging.WARNING, logger="lastfm_site_data.cache"):
        assert cache.write("history", _entry(0)) is False

    assert "Unable to write Last.fm history cache" in caplog.text


def test_interrupted_write_keeps_previous_file(tmp_path: Path) -> None:
    cache = FeedCache(tmp_path)
    original = CacheEntry(cached_at=NOW, ttl_minutes=15, data={"tracks": ["kept"]})
    cache.write("recent-tracks", original)

    with mock.patch("lastfm_site_data.cache.json.dump", side_effect=OSError("disk full")):
        assert cache.write("recent-tracks", CacheEntry(cached_at=NOW + 1, ttl_minutes=15, data={"tracks": []})) is False

    assert cache.read("recent-tracks") == original
    assert not list(tmp_path.glob("*.tmp"))


@pytest.mark.parametrize("cached_at", ["NaN", "Infinity", "-Infinity", "1e400"])
def test_read_treats_non_finite_timestamp_as_missing(tmp_path: Path, cached_at: str) -> None:
    (tmp_path / "lastfm.json").write_text(
        '{"cachedAt": %s, "ttlMinutes": 15, "data": {"tracks": []}}' % cached_at, encoding="utf-8"
    )

    entry = FeedCache(tmp_path).read("recent-tracks")

    assert entry is not None
    assert entry.cached_at is None
    assert entry.data == {"tracks": []}
    assert is_fresh(entry, 15, now=NOW) is False
