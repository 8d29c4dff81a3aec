from __future__ import annotations


class LastfmSiteDataError(RuntimeError):
    """Base class for errors raised by lastfm_site_data."""


class ConfigError(LastfmSiteDataError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            f"Missing Last.fm configuration: {', '.join(missing)}. Check your .env file."
        )
        self.missing = missing


class RemoteRequestError(LastfmSiteDataError):
    def __init__(self, status_code: int | None, message: str, status_text: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.status_text = status_text

    @property
    def retryable(self) -> bool:
        # Network failures have no status code.
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class CacheIOError(LastfmSiteDataError):
    pass


class MalformedResponseError(LastfmSiteDataError):
    pass
