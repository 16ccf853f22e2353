"""
Direct Last.fm scrobbling through pylast, for use without the backend.

LastFMScrobbleBackend behaves like the backend's batch endpoint: a batch
becomes a session processed on a worker thread, and its progress can be
polled by session id.
"""

from __future__ import annotations
import logging
import threading
import uuid
from typing import Any, Dict, Sequence

import pylast

from recordscrobbler.artist_mappings import ArtistMapping, ArtistMappingStore
from recordscrobbler.errors import (
    BatchValidationError,
    LastFMAuthError,
    LastFMNetworkError,
    LastFMRateLimitError,
    LastFMUnknownError,
    SessionNotFoundError,
)
from recordscrobbler.session import (
    COMPLETED,
    FAILED,
    IN_PROGRESS,
    PENDING,
    TERMINAL_STATUSES,
    ScrobbleProgress,
    SessionStatus,
)
from recordscrobbler.timing import ScrobbleEntry

log = logging.getLogger("lastfm")

AUTH_ERROR_CODES = (4, 9, 14)  # 4=Auth failed, 9=Invalid session, 14=Token expired
RATE_LIMIT_CODES = (29,)


def _error_code(e: pylast.WSError) -> int | None:
    try:
        return int(e.get_id())
    except (TypeError, ValueError):
        return None


class LastFMClient:
    """Thin wrapper over pylast for scrobbling."""

    def __init__(self, api_key: str, api_secret: str, session_key: str | None,
                 username: str | None, password_md5: str | None):
        if session_key:
            log.info("Using Last.fm session key auth")
            self.network = pylast.LastFMNetwork(
                api_key=api_key,
                api_secret=api_secret,
                session_key=session_key,
            )
        elif username and password_md5:
            log.info("Using Last.fm username + MD5 password auth")
            self.network = pylast.LastFMNetwork(
                api_key=api_key,
                api_secret=api_secret,
                username=username,
                password_hash=password_md5,
            )
        else:
            raise ValueError("Missing Last.fm credentials")

    def scrobble(self, *, artist: str, title: str, album: str | None, duration: int | None, timestamp: int):
        """Submit a scrobble to Last.fm with a start timestamp (unix seconds)."""
        try:
            self.network.scrobble(
                artist=artist, title=title, album=album, duration=duration, timestamp=timestamp
            )
        except pylast.WSError as e:
            code = _error_code(e)
            msg = str(e)
            if code in AUTH_ERROR_CODES:
                raise LastFMAuthError(msg) from e
            elif code in RATE_LIMIT_CODES:
                raise LastFMRateLimitError(msg) from e
            else:
                raise LastFMUnknownError(f"Last.fm API error {code}: {msg}") from e
        except (pylast.NetworkError, pylast.MalformedResponseError) as e:
            raise LastFMNetworkError(str(e)) from e


class _Session:
    def __init__(self, session_id: str, total: int):
        self.id = session_id
        self.status = PENDING
        self.progress = ScrobbleProgress(total=total)
        self.errors: list[str] = []


class LastFMScrobbleBackend:
    """Batch sessions on top of LastFMClient, with artist names run through the mapping store."""

    def __init__(self, client: LastFMClient, mappings: ArtistMappingStore):
        self.client = client
        self.mappings = mappings
        self._lock = threading.Lock()
        self._sessions: Dict[str, _Session] = {}

    def lookup_artist_mapping(self, name: str) -> ArtistMapping:
        return self.mappings.lookup(name)

    def submit_scrobble_batch(self, batch: Sequence[ScrobbleEntry], release_context: dict[str, Any]) -> str:
        if not batch:
            raise BatchValidationError("Tracks array is required and must not be empty")
        if any(not entry.artist or not entry.track for entry in batch):
            raise BatchValidationError("All tracks must have artist and track fields")

        session = _Session(uuid.uuid4().hex, len(batch))
        with self._lock:
            self._sessions[session.id] = session

        worker = threading.Thread(
            target=self._process,
            args=(session, list(batch)),
            name=f"scrobble-{session.id[:8]}",
            daemon=True,
        )
        worker.start()
        log.info("Session %s: scrobbling %s tracks from %s", session.id, len(batch),
                 release_context.get("album") or "release")
        return session.id

    def get_scrobble_session_status(self, session_id: str) -> SessionStatus:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(f"Scrobble session {session_id} not found")
            if session.status in TERMINAL_STATUSES:
                # final status is handed out once
                del self._sessions[session_id]
            return SessionStatus(
                session_id=session.id,
                status=session.status,
                progress=session.progress,
                error="; ".join(session.errors) or None,
            )

    def _process(self, session: _Session, batch: list[ScrobbleEntry]) -> None:
        success = failed = 0
        aborted: str | None = None
        finished = False

        try:
            for i, entry in enumerate(batch):
                artist = entry.artist
                if aborted is not None:
                    failed += 1
                else:
                    try:
                        artist = self.mappings.lastfm_name(entry.artist)
                        self.client.scrobble(
                            artist=artist, title=entry.track, album=entry.album or None,
                            duration=entry.duration, timestamp=entry.timestamp,
                        )
                        success += 1
                    except LastFMAuthError as e:
                        # No point continuing; the user must re-auth
                        log.error("Scrobble failed (auth): %s", e)
                        aborted = str(e)
                        failed += 1
                        self._add_error(session, f"{artist} - {entry.track}: {e}")
                    except (LastFMRateLimitError, LastFMNetworkError, LastFMUnknownError) as e:
                        log.warning("Scrobble failed: %s - %s: %s", artist, entry.track, e)
                        failed += 1
                        self._add_error(session, f"{artist} - {entry.track}: {e}")
                    except Exception as e:
                        log.exception("Unexpected error scrobbling %s - %s", artist, entry.track)
                        failed += 1
                        self._add_error(session, f"{artist} - {entry.track}: {e}")

                with self._lock:
                    session.status = IN_PROGRESS
                    session.progress = ScrobbleProgress(
                        current=i + 1, total=len(batch), success=success, failed=failed, ignored=0,
                    )
            finished = True
        except Exception as e:
            log.exception("Session %s aborted", session.id)
            self._add_error(session, f"Batch scrobble failed: {e}")
        finally:
            with self._lock:
                session.status = COMPLETED if finished and failed == 0 else FAILED
            log.info("Session %s %s: success=%s failed=%s", session.id, session.status, success, failed)

    def _add_error(self, session: _Session, message: str) -> None:
        with self._lock:
            session.errors.append(message)
