from .cache import CacheEntry, FeedCache, is_fresh
from .client import LastfmClient
from .config import Settings, load_settings
from .errors import CacheIOError, ConfigError, MalformedResponseError, RemoteRequestError
from .feeds import FEEDS, HISTORY, RECENT_TRACKS, TOP_ALBUMS, FeedSpec, run_feed
from .normalize import Album, Track, normalize_album, normalize_track
from .site_data import SiteData, history, recent_tracks, top_albums

__all__ = [
    "Album",
    "CacheEntry",
    "CacheIOError",
    "ConfigError",
    "FEEDS",
    "FeedCache",
    "FeedSpec",
    "HISTORY",
    "LastfmClient",
    "MalformedResponseError",
    "RECENT_TRACKS",
    "RemoteRequestError",
    "Settings",
    "SiteData",
    "TOP_ALBUMS",
    "Track",
    "history",
    "is_fresh",
    "load_settings",
    "normalize_album",
    "normalize_track",
    "recent_tracks",
    "run_feed",
    "top_albums",
]
