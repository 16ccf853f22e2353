from unittest.mock import MagicMock, patch

import pylast
import pytest

from recordscrobbler.artist_mappings import ArtistMappingStore
from recordscrobbler.errors import (
    BatchValidationError,
    LastFMAuthError,
    LastFMNetworkError,
    LastFMRateLimitError,
    LastFMUnknownError,
    SessionNotFoundError,
)
from recordscrobbler.lastfm_client import LastFMClient, LastFMScrobbleBackend
from recordscrobbler.orchestrator import ScrobbleOrchestrator, State
from recordscrobbler.timing import ScrobbleEntry


@pytest.fixture
def network():
    with patch("recordscrobbler.lastfm_client.pylast.LastFMNetwork") as cls:
        yield cls


def test_session_key_auth(network):
    LastFMClient("key", "secret", session_key="sk", username=None, password_md5=None)
    network.assert_called_once_with(api_key="key", api_secret="secret", session_key="sk")


def test_password_auth(network):
    LastFMClient("key", "secret", session_key=None, username="me", password_md5="abc")
    network.assert_called_once_with(api_key="key", api_secret="secret", username="me", password_hash="abc")


def test_missing_credentials(network):
    with pytest.raises(ValueError):
        LastFMClient("key", "secret", session_key=None, username="me", password_md5=None)


@pytest.mark.parametrize(
    "error, expected",
    [
        (pylast.WSError(None, "9", "Invalid session key"), LastFMAuthError),
        (pylast.WSError(None, "29", "Rate limit exceeded"), LastFMRateLimitError),
        (pylast.WSError(None, "6", "Track not found"), LastFMUnknownError),
        (pylast.NetworkError(None, OSError("down")), LastFMNetworkError),
    ],
)
def test_scrobble_errors_are_mapped(network, error, expected):
    client = LastFMClient("key", "secret", session_key="sk", username=None, password_md5=None)
    client.network.scrobble.side_effect = error
    with pytest.raises(expected):
        client.scrobble(artist="Boris", title="Pink", album=None, duration=None, timestamp=1)


def test_scrobble_passes_timestamp(network):
    client = LastFMClient("key", "secret", session_key="sk", username=None, password_md5=None)
    client.scrobble(artist="Boris", title="Pink", album="Pink", duration=300, timestamp=1_700_000_000)
    client.network.scrobble.assert_called_once_with(
        artist="Boris", title="Pink", album="Pink", duration=300, timestamp=1_700_000_000,
    )


# -------------------------
# Batch sessions
# -------------------------
def entries(*titles, artist="Boris (2)"):
    return [ScrobbleEntry(i, artist, t, "Pink", 1_700_000_000 + i * 200, 199) for i, t in enumerate(titles)]


@pytest.fixture
def store(tmp_path):
    return ArtistMappingStore(str(tmp_path / "mappings.json"))


def run(backend, batch):
    orch = ScrobbleOrchestrator(backend, poll_interval=0.01, initial_delay=0)
    return orch, orch.submit(batch, {"album": "Pink"})


def test_batch_session_completes_with_mapped_artist(store):
    store.set("Boris (2)", "Boris")
    client = MagicMock()
    backend = LastFMScrobbleBackend(client, store)

    orch, result = run(backend, entries("Farewell", "Pink"))

    assert orch.state == State.COMPLETED
    assert (result.success, result.failed, result.ignored) == (2, 0, 0)
    assert orch.progress.current == 2
    artists = [c.kwargs["artist"] for c in client.scrobble.call_args_list]
    assert artists == ["Boris", "Boris"]


def test_partial_failure_finishes_failed_with_errors(store):
    client = MagicMock()
    client.scrobble.side_effect = [None, LastFMUnknownError("Last.fm API error 6: Track not found"), None]
    backend = LastFMScrobbleBackend(client, store)

    orch, result = run(backend, entries("Farewell", "Nope", "Pink"))

    assert orch.state == State.FAILED
    assert (result.success, result.failed) == (2, 1)
    assert "Boris (2) - Nope: Last.fm API error 6: Track not found" in result.errors[0]


def test_auth_error_aborts_rest_of_batch(store):
    client = MagicMock()
    client.scrobble.side_effect = LastFMAuthError("Invalid session key")
    backend = LastFMScrobbleBackend(client, store)

    orch, result = run(backend, entries("A", "B", "C"))

    assert client.scrobble.call_count == 1
    assert (result.success, result.failed) == (0, 3)
    assert orch.progress.total == 3


def test_empty_batch_is_rejected(store):
    backend = LastFMScrobbleBackend(MagicMock(), store)
    with pytest.raises(BatchValidationError):
        backend.submit_scrobble_batch([], {})


def test_entry_without_title_is_rejected(store):
    backend = LastFMScrobbleBackend(MagicMock(), store)
    with pytest.raises(BatchValidationError):
        backend.submit_scrobble_batch(entries(""), {})


def test_unknown_session_id(store):
    backend = LastFMScrobbleBackend(MagicMock(), store)
    with pytest.raises(SessionNotFoundError):
        backend.get_scrobble_session_status("nope")


def test_lookup_uses_store(store):
    store.set("Boris (2)", "Boris")
    backend = LastFMScrobbleBackend(MagicMock(), store)
    assert backend.lookup_artist_mapping("Boris (2)").lastfm_name == "Boris"
    assert not backend.lookup_artist_mapping("Merzbow").has_mapping


def test_unexpected_client_error_still_finishes_session(store):
    client = MagicMock()
    client.scrobble.side_effect = [RuntimeError("socket closed"), None]
    backend = LastFMScrobbleBackend(client, store)
    orch = ScrobbleOrchestrator(backend, poll_interval=0.01, initial_delay=0)

    thread = orch.start(entries("Farewell", "Pink"), {"album": "Pink"})
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert orch.state == State.FAILED
    assert (orch.result.success, orch.result.failed) == (1, 1)
    assert "Boris (2) - Farewell: socket closed" in orch.result.errors[0]


def test_broken_mapping_store_fails_the_track_not_the_worker(store):
    store.lastfm_name = MagicMock(side_effect=OSError("disk gone"))
    backend = LastFMScrobbleBackend(MagicMock(), store)
    orch = ScrobbleOrchestrator(backend, poll_interval=0.01, initial_delay=0)

    thread = orch.start(entries("Farewell"), {"album": "Pink"})
    thread.join(timeout=5)

    assert orch.state == State.FAILED
    assert orch.result.failed == 1


def test_finished_session_is_dropped_once_reported(store):
    backend = LastFMScrobbleBackend(MagicMock(), store)

    orch, result = run(backend, entries("Farewell"))

    assert result.ok
    with pytest.raises(SessionNotFoundError):
        backend.get_scrobble_session_status(orch.session_id)
