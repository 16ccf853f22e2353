"""
Everything the display layer needs for one release, in one object.

A ReleaseView owns the loaded release, its side/disc topology, the track
selection, the start-time setting, play stats from album history, the
disambiguation guard and the scrobble orchestrator. Handlers call methods on
it instead of sharing module-level state; close() disposes it.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable

from recordscrobbler.artist_mappings import ArtistMapping
from recordscrobbler.disambiguation import DisambiguationGuard
from recordscrobbler.history import AlbumHistory, TrackStatsIndex, format_relative_time
from recordscrobbler.orchestrator import POLL_INITIAL_DELAY, POLL_INTERVAL, ScrobbleOrchestrator
from recordscrobbler.selection import TrackSelection
from recordscrobbler.timing import (
    NUDGE_MINUTES,
    ScrobbleEntry,
    TimingPlan,
    auto_start_timestamp,
    build_scrobble_batch,
    format_local_time,
    nudge_timestamp,
)
from recordscrobbler.tracklist import Release, Topology, resolve_topology

log = logging.getLogger("release-view")


@dataclass(frozen=True)
class TrackRow:
    index: int
    position: str
    title: str
    duration: str | None
    is_header: bool
    selected: bool
    play_count: int | None = None
    last_played: int | None = None
    last_played_text: str | None = None


class ReleaseView:
    def __init__(self, catalog, scrobbler, lookup_mapping: Callable[[str], ArtistMapping],
                 poll_interval: float = POLL_INTERVAL, initial_delay: float = POLL_INITIAL_DELAY,
                 on_change: Callable[[ScrobbleOrchestrator], None] | None = None):
        self.catalog = catalog
        self.guard = DisambiguationGuard(lookup_mapping)
        self.orchestrator = ScrobbleOrchestrator(
            scrobbler, poll_interval=poll_interval, initial_delay=initial_delay, on_change=on_change,
        )
        self.release: Release | None = None
        self.topology = Topology()
        self.selection: TrackSelection | None = None
        self.plan = TimingPlan()
        self.history: AlbumHistory | None = None
        self.stats = TrackStatsIndex()

    # -------- loading --------
    def load(self, release_id) -> Release:
        release = self.catalog.fetch_release(release_id)
        self.show(release)
        return release

    def show(self, release: Release) -> None:
        """Replace the current release wholesale."""
        self.orchestrator.cancel()
        self.guard.cancel()
        self.release = release
        self.topology = resolve_topology(release.tracklist)
        self.selection = TrackSelection(release)
        self.plan = TimingPlan()
        log.info("Loaded %s - %s (%s tracks, sides: %s)", release.artist, release.title,
                 len(self.selection), "".join(self.topology.sides) or "none")
        self.load_history()

    def load_history(self) -> None:
        self.history = None
        fetch = getattr(self.catalog, "fetch_album_history", None)
        if self.release is not None and fetch is not None and self.release.artist and self.release.title:
            try:
                self.history = fetch(self.release.artist, self.release.title)
            except Exception as e:
                log.warning("Failed to load album history for track stats: %s", e)
        self.stats = TrackStatsIndex.from_history(self.history)

    def close(self) -> None:
        self.orchestrator.cancel()
        self.guard.cancel()

    # -------- timing --------
    def set_start_time(self, timestamp: int | None) -> None:
        self.plan = TimingPlan(timestamp)

    def clear_start_time(self) -> None:
        self.plan = TimingPlan()

    def auto_timing(self, now: int | None = None) -> None:
        """Pin the start so the selection ends now; clears it when nothing is selected."""
        if self.release is None or not self.selection:
            self.clear_start_time()
            return
        self.plan = TimingPlan(auto_start_timestamp(self.release, self.selection.indices, now))

    def nudge_start_time(self, minutes: int = NUDGE_MINUTES) -> None:
        if self.plan.is_auto:
            return
        self.plan = TimingPlan(nudge_timestamp(self.plan.start_timestamp, minutes))

    def timing_description(self) -> str:
        if not self.plan.is_auto:
            return f"Tracks will be scrobbled starting from: {format_local_time(self.plan.start_timestamp)}"
        if self.selection:
            return "Tracks will be scrobbled with realistic timing (as if you just finished listening)"
        return ""

    # -------- display --------
    def track_rows(self, now: int | None = None) -> list[TrackRow]:
        if self.release is None or self.selection is None:
            return []
        rows = []
        for i, track in enumerate(self.release.tracklist):
            stats = None if track.is_header else self.stats.lookup(track.title)
            rows.append(TrackRow(
                index=i,
                position=track.position,
                title=track.title,
                duration=str(track.duration) if track.duration else None,
                is_header=track.is_header,
                selected=i in self.selection,
                play_count=stats.count if stats else None,
                last_played=stats.last_played if stats else None,
                last_played_text=format_relative_time(stats.last_played, now) if stats else None,
            ))
        return rows

    # -------- scrobbling --------
    def release_context(self) -> dict[str, Any]:
        if self.release is None:
            return {}
        return {"releaseId": self.release.id, "artist": self.release.artist, "album": self.release.title}

    def build_batch(self, now: int | None = None) -> list[ScrobbleEntry]:
        if self.release is None or not self.selection:
            return []
        return build_scrobble_batch(self.release, self.selection.indices, self.plan, now)

    def request_scrobble(self, now: int | None = None, background: bool = False):
        """Scrobble the selection, unless the guard holds it for confirmation.

        Returns the orchestrator result (or polling thread when `background`),
        or None when nothing was submitted.
        """
        if self.release is None or not self.selection:
            return None
        return self.guard.check(self.release, self.selection.indices, lambda: self._submit(now, background))

    def confirm_disambiguation(self):
        return self.guard.confirm()

    def cancel_disambiguation(self) -> None:
        self.guard.cancel()

    def _submit(self, now: int | None, background: bool):
        # timestamps are taken at submission time, not when the guard paused
        batch = self.build_batch(now)
        if not batch:
            return None
        if background:
            return self.orchestrator.start(batch, self.release_context())
        return self.orchestrator.submit(batch, self.release_context())
