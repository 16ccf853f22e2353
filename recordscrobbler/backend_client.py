"""
HTTP client for the collection backend (/api/v1).

Every response is wrapped as {"success": bool, "data": ..., "error": str}.
Lookups that come back 404 are empty states, not failures.
"""

from __future__ import annotations
import logging
from typing import Any, Sequence
from urllib.parse import quote

import requests

from recordscrobbler.artist_mappings import ArtistMapping
from recordscrobbler.errors import BackendError, NotFoundError, SessionNotFoundError
from recordscrobbler.history import AlbumHistory
from recordscrobbler.session import SessionStatus
from recordscrobbler.timing import ScrobbleEntry
from recordscrobbler.tracklist import Release

log = logging.getLogger("backend")

CONNECT_ERROR = "Unable to connect to server. Please ensure the backend is running."


def _segment(value: str) -> str:
    return quote(value, safe="")


class BackendClient:
    def __init__(self, base_url: str, timeout: float = 30, session: requests.Session | None = None):
        self.base = f"{base_url.rstrip('/')}/api/v1"
        self.timeout = timeout
        self.http = session or requests.Session()
        self.http.headers.update({"Content-Type": "application/json"})

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base}{path}"
        log.debug("API Request: %s %s", method, path)
        try:
            resp = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.ConnectionError as e:
            log.error("API connection error: %s", e)
            raise BackendError(CONNECT_ERROR) from e
        except requests.RequestException as e:
            log.error("API request error: %s", e)
            raise BackendError(str(e)) from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.status_code == 404:
            raise NotFoundError(body.get("error") or f"Not found: {path}")
        if resp.status_code >= 400 or body.get("success") is False:
            message = body.get("error") or f"HTTP {resp.status_code} from {path}"
            log.error("API response error: status=%s error=%s", resp.status_code, message)
            raise BackendError(message)
        return body.get("data")

    # -------- catalog --------
    def fetch_release(self, release_id: int | str) -> Release:
        data = self._request("GET", f"/collection/release/{_segment(str(release_id))}")
        if not data:
            raise BackendError(f"Release {release_id} returned no data")
        return Release.from_dict(data)

    def fetch_album_history(self, artist: str, album: str) -> AlbumHistory:
        try:
            data = self._request("GET", f"/suggestions/album-history/{_segment(artist)}/{_segment(album)}")
        except NotFoundError:
            return AlbumHistory.not_found()
        return AlbumHistory.from_dict(data)

    def lookup_artist_mapping(self, name: str) -> ArtistMapping:
        try:
            data = self._request("GET", f"/artist-mappings/lookup/{_segment(name)}")
        except NotFoundError:
            return ArtistMapping(has_mapping=False, lastfm_name=name)
        return ArtistMapping.from_dict(name, data)

    # -------- scrobbling --------
    def submit_scrobble_batch(self, batch: Sequence[ScrobbleEntry], release_context: dict[str, Any]) -> str:
        data = self._request("POST", "/scrobble/batch", json={
            "tracks": [entry.to_payload() for entry in batch],
            "releaseContext": release_context,
        }) or {}
        session_id = data.get("sessionId") or (data.get("results") or {}).get("sessionId")
        if not session_id:
            raise BackendError("Backend did not return a scrobble session id")
        return str(session_id)

    def get_scrobble_session_status(self, session_id: str) -> SessionStatus:
        try:
            data = self._request("GET", f"/scrobble/progress/{_segment(session_id)}")
        except NotFoundError as e:
            raise SessionNotFoundError(f"Scrobble session {session_id} not found") from e
        return SessionStatus.from_dict(session_id, data or {})
