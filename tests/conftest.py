from __future__ import annotations

from pathlib import Path

import pytest

from lastfm_site_data.config import Settings
from lastfm_site_data.errors import RemoteRequestError


def raw_track(
    name: str,
    artist: str = "Artist",
    uts: int | None = None,
    now_playing: bool = False,
    image: str | None = None,
) -> dict:
    track: dict = {
        "name": name,
        "artist": {"#text": artist, "mbid": ""},
        "album": {"#text": f"{name} LP", "mbid": ""},
        "url": f"https://www.last.fm/music/{artist}/_/{name}",
        "image": [
            {"size": "small", "#text": ""},
            {"size": "large", "#text": image or ""},
        ],
    }
    if uts is not None:
        track["date"] = {"uts": str(uts), "#text": "01 Jan 2024, 00:00"}
    if now_playing:
        track["@attr"] = {"nowplaying": "true"}
    return track


def recent_response(tracks: list[dict], page: int = 1, total_pages: int = 1) -> dict:
    return {
        "recenttracks": {
            "track": tracks,
            "@attr": {
                "user": "listener",
                "page": str(page),
                "perPage": "200",
                "totalPages": str(total_pages),
                "total": str(len(tracks)),
            },
        }
    }


class FakeClient:
    """Stands in for LastfmClient; replays queued responses or errors per call."""

    def __init__(self, recent: list | None = None, albums: list | None = None) -> None:
        self.recent = list(recent or [])
        self.albums = list(albums or [])
        self.calls: list[tuple[str, dict]] = []
        self.closed = False

    def __enter__(self) -> FakeClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True

    def _next(self, queue: list):
        if not queue:
            raise RemoteRequestError(None, "Last.fm request failed: no more responses")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def recent_tracks(self, limit: int = 20, page: int = 1) -> dict:
        self.calls.append(("user.getrecenttracks", {"limit": limit, "page": page}))
        return self._next(self.recent)

    def top_albums(self, period: str = "1month", limit: int = 10) -> dict:
        self.calls.append(("user.gettopalbums", {"period": period, "limit": limit}))
        return self._next(self.albums)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        api_key="test-key",
        username="listener",
        cache_dir=tmp_path / ".cache",
        max_retries=1,
        backoff_base=0.0,
    )
