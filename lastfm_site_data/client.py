from __future__ import annotations

from typing import Any

import requests

from .config import DEFAULT_TIMEOUT_CONNECT, DEFAULT_TIMEOUT_READ
from .errors import RemoteRequestError

API = "https://ws.audioscrobbler.com/2.0/"
MAX_PAGE_LIMIT = 200


def clamp_limit(limit: int) -> int:
    return max(1, min(int(limit), MAX_PAGE_LIMIT))


class LastfmClient:
    """Thin wrapper over the Last.fm 2.0 REST API for a single user."""

    def __init__(
        self,
        api_key: str,
        username: str,
        session: requests.Session | None = None,
        timeout: tuple[float, float] = (DEFAULT_TIMEOUT_CONNECT, DEFAULT_TIMEOUT_READ),
    ) -> None:
        self.api_key = api_key
        self.username = username
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or requests.Session()

    def __enter__(self) -> LastfmClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def build_params(self, method: str, params: dict[str, Any] | None = None) -> dict[str, str]:
        query = {
            "method": method,
            "user": self.username,
            "api_key": self.api_key,
            "format": "json",
        }
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = str(value)
        return query

    def fetch(self, method: str, params: dict[str, Any] | None = None) -> dict:
        try:
            response = self.session.get(API, params=self.build_params(method, params), timeout=self.timeout)
        except requests.RequestException as exc:
            raise RemoteRequestError(None, f"Last.fm request failed: {exc}") from exc

        if not response.ok:
            raise RemoteRequestError(
                response.status_code,
                f"Last.fm request failed: {response.status_code} {response.reason}",
                status_text=response.reason,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteRequestError(response.status_code, "Last.fm returned a non-JSON response") from exc

        if isinstance(payload, dict) and "error" in payload:
            message = payload.get("message") or "unknown error"
            raise RemoteRequestError(
                response.status_code,
                f"Last.fm API error {payload['error']}: {message}",
                status_text=str(message),
            )
        if not isinstance(payload, dict):
            # Shape problems are left to the normalizer; only dict bodies are passed on.
            return {}
        return payload

    def recent_tracks(self, limit: int = 20, page: int = 1) -> dict:
        return self.fetch("user.getrecenttracks", {"limit": clamp_limit(limit), "page": max(1, int(page))})

    def top_albums(self, period: str = "1month", limit: int = 10) -> dict:
        return self.fetch("user.gettopalbums", {"period": period, "limit": clamp_limit(limit)})
