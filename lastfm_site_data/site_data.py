"""Async accessors a template layer calls to get each feed's view-model."""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from .cache import FeedCache
from .client import LastfmClient
from .config import Settings, load_settings
from .feeds import FEEDS, HISTORY, RECENT_TRACKS, TOP_ALBUMS, FeedSpec, run_feed

# Data-file names a static site generator looks the feeds up by.
DATA_NAMES = {
    RECENT_TRACKS.name: "lastfm",
    HISTORY.name: "history",
    TOP_ALBUMS.name: "topAlbums",
}


class SiteData:
    def __init__(
        self,
        settings: Settings,
        cache: FeedCache | None = None,
        client_factory: Callable[[Settings], LastfmClient] | None = None,
    ) -> None:
        self.settings = settings
        self.cache = cache or FeedCache(settings.cache_dir)
        self.client_factory = client_factory

    @classmethod
    def from_env(cls, env_file: str | None = ".env") -> SiteData:
        return cls(load_settings(env_file=env_file))

    def _run(self, spec: FeedSpec) -> dict[str, Any]:
        if self.client_factory is None or self.settings.missing():
            return run_feed(spec, self.settings, cache=self.cache)
        with self.client_factory(self.settings) as client:
            return run_feed(spec, self.settings, client=client, cache=self.cache)

    async def feed(self, name: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._run, FEEDS[name])

    async def recent_tracks(self) -> dict[str, Any]:
        return await self.feed(RECENT_TRACKS.name)

    async def history(self) -> dict[str, Any]:
        return await self.feed(HISTORY.name)

    async def top_albums(self) -> dict[str, Any]:
        return await self.feed(TOP_ALBUMS.name)

    async def all(self, names: list[str] | None = None) -> dict[str, dict[str, Any]]:
        names = names or list(FEEDS)
        results = await asyncio.gather(*(self.feed(name) for name in names))
        return dict(zip(names, results))


_default: SiteData | None = None


def default_site_data() -> SiteData:
    global _default
    if _default is None:
        _default = SiteData.from_env()
    return _default


async def recent_tracks() -> dict[str, Any]:
    return await default_site_data().recent_tracks()


async def history() -> dict[str, Any]:
    return await default_site_data().history()


async def top_albums() -> dict[str, Any]:
    return await default_site_data().top_albums()
