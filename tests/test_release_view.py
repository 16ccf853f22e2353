from recordscrobbler.history import AlbumHistory, Play
from recordscrobbler.orchestrator import State
from recordscrobbler.release_view import ReleaseView
from recordscrobbler.timing import TimingPlan
from tests.factories import FakeScrobbleBackend, make_release, status

T = 1_700_000_000


class FakeCatalog:
    def __init__(self, release, history=None, history_error=None):
        self.release = release
        self.history = history
        self.history_error = history_error
        self.history_requests = []

    def fetch_release(self, release_id):
        return self.release

    def fetch_album_history(self, artist, album):
        self.history_requests.append((artist, album))
        if self.history_error is not None:
            raise self.history_error
        return self.history


def make_view(release, mappings, statuses=(), **catalog_kwargs):
    backend = FakeScrobbleBackend(statuses)
    view = ReleaseView(FakeCatalog(release, **catalog_kwargs), backend, mappings,
                       poll_interval=0, initial_delay=0)
    view.load(release.id)
    return view, backend


def test_load_selects_all_tracks_and_resolves_topology(double_lp, mappings):
    view, _ = make_view(double_lp, mappings)

    assert view.topology.sides == ["A", "B", "C", "D"]
    assert view.selection.all_selected
    assert len(view.selection) == 8
    assert view.plan.is_auto


def test_history_feeds_track_rows(double_lp, mappings):
    history = AlbumHistory(found=True, plays=(
        Play(T - 86400 * 3, "Track A1 [Explicit]"),
        Play(T - 86400, "track a1"),
        Play(T - 10, "Unrelated"),
    ))
    view, _ = make_view(double_lp, mappings, history=history)

    rows = view.track_rows(now=T)

    assert rows[0].play_count == 2
    assert rows[0].last_played == T - 86400
    assert rows[0].last_played_text == "Yesterday"
    assert rows[1].play_count is None
    assert rows[4].is_header
    assert not rows[4].selected


def test_history_failure_leaves_stats_empty(double_lp, mappings):
    view, _ = make_view(double_lp, mappings, history_error=RuntimeError("boom"))
    assert view.history is None
    assert all(row.play_count is None for row in view.track_rows(now=T))


def test_auto_timing_ends_selection_now(double_lp, mappings):
    view, _ = make_view(double_lp, mappings)
    view.selection.toggle_all()
    view.selection.toggle_track(0)
    view.selection.toggle_track(1)

    view.auto_timing(now=T)

    assert view.plan.start_timestamp == T - 452
    assert view.timing_description().startswith("Tracks will be scrobbled starting from: ")


def test_auto_timing_with_empty_selection_clears_start(double_lp, mappings):
    view, _ = make_view(double_lp, mappings)
    view.set_start_time(T)
    view.selection.toggle_all()

    view.auto_timing(now=T)

    assert view.plan.is_auto
    assert view.timing_description() == ""


def test_nudge_is_ignored_in_auto_mode(double_lp, mappings):
    view, _ = make_view(double_lp, mappings)
    view.nudge_start_time(5)
    assert view.plan == TimingPlan()


def test_nudge_moves_explicit_start(double_lp, mappings):
    view, _ = make_view(double_lp, mappings)
    view.set_start_time(T - T % 60)
    view.nudge_start_time(-5)
    assert view.plan.start_timestamp == T - T % 60 - 300


def test_realistic_timing_description(double_lp, mappings):
    view, _ = make_view(double_lp, mappings)
    assert "realistic timing" in view.timing_description()


def test_scrobble_without_suffixed_artists_submits_immediately(double_lp, mappings):
    view, backend = make_view(double_lp, mappings, statuses=[status("completed", 8, 8, success=8)])

    result = view.request_scrobble(now=T)

    assert result.ok
    assert view.orchestrator.state == State.COMPLETED
    batch, context = backend.submitted[0]
    assert len(batch) == 8
    assert context == {"releaseId": 1234, "artist": "Boris", "album": "Pink"}
    assert batch[-1].timestamp + batch[-1].duration + 1 == T


def test_guard_holds_scrobble_until_confirmed(mappings):
    release = make_release(["1", "2"], durations=["3:00", "3:00"], artist="Boris (2)")
    view, backend = make_view(release, mappings, statuses=[status("completed", 2, 2, success=2)])

    assert view.request_scrobble(now=T) is None
    assert view.guard.pending_artists == ["Boris (2)"]
    assert backend.submitted == []

    result = view.confirm_disambiguation()

    assert result.success == 2
    assert [e.artist for e in backend.submitted[0][0]] == ["Boris (2)", "Boris (2)"]


def test_cancelled_disambiguation_submits_nothing(mappings):
    release = make_release(["1"], artist="Boris (2)")
    view, backend = make_view(release, mappings)

    view.request_scrobble(now=T)
    view.cancel_disambiguation()

    assert not view.guard.awaiting_confirmation
    assert backend.submitted == []


def test_empty_selection_submits_nothing(double_lp, mappings):
    view, backend = make_view(double_lp, mappings)
    view.selection.toggle_all()

    assert view.request_scrobble(now=T) is None
    assert backend.submitted == []


def test_showing_new_release_resets_state(double_lp, mappings):
    view, _ = make_view(double_lp, mappings)
    view.set_start_time(T)
    view.selection.toggle_side("A")

    view.show(make_release(["1", "2", "3"]))

    assert view.plan.is_auto
    assert len(view.selection) == 3
    assert view.topology.sides == []


def test_close_cancels_pending_confirmation(mappings):
    release = make_release(["1"], artist="Boris (2)")
    view, _ = make_view(release, mappings)
    view.request_scrobble(now=T)

    view.close()

    assert view.orchestrator.state == State.IDLE
    assert not view.guard.awaiting_confirmation
