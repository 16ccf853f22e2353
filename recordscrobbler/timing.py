"""
Timestamps for a batch of selected tracks.

Each track is assumed to play for its parsed duration followed by a one
second gap. With no explicit start time the batch is placed so the last
selected track ends "now" (auto timing, "just finished listening").
"""

from __future__ import annotations
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable

from recordscrobbler.tracklist import Release, parse_track_duration

TRACK_GAP = 1  # seconds between tracks
NUDGE_MINUTES = 5

_INPUT_FORMATS = ("%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class TimingPlan:
    """Explicit start (unix seconds), or None for auto timing."""
    start_timestamp: int | None = None

    @property
    def is_auto(self) -> bool:
        return self.start_timestamp is None


@dataclass(frozen=True)
class ScrobbleEntry:
    track_index: int
    artist: str
    track: str
    album: str
    timestamp: int
    duration: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "artist": self.artist,
            "track": self.track,
            "album": self.album,
            "timestamp": self.timestamp,
            "duration": self.duration,
        }


def _durations(release: Release, indices: Iterable[int]) -> list[tuple[int, int]]:
    # ascending index order is authoritative; headers never count
    out = []
    for i in sorted(set(indices)):
        track = release.tracklist[i]
        if track.is_header:
            continue
        out.append((i, parse_track_duration(track.duration)))
    return out


def total_duration(release: Release, indices: Iterable[int]) -> int:
    return sum(d + TRACK_GAP for _, d in _durations(release, indices))


def auto_start_timestamp(release: Release, indices: Iterable[int], now: int | None = None) -> int | None:
    """Start time that makes the selection end at `now`; None for an empty selection."""
    durations = _durations(release, indices)
    if not durations:
        return None
    if now is None:
        now = int(time.time())
    return now - sum(d + TRACK_GAP for _, d in durations)


def resolve_start(plan: TimingPlan, release: Release, indices: Iterable[int], now: int | None = None) -> int | None:
    if not plan.is_auto:
        return plan.start_timestamp
    # recomputed on every call, never cached
    return auto_start_timestamp(release, indices, now)


def build_scrobble_batch(release: Release, indices: Iterable[int], plan: TimingPlan,
                         now: int | None = None) -> list[ScrobbleEntry]:
    indices = list(indices)
    start = resolve_start(plan, release, indices, now)
    if start is None:
        return []

    batch = []
    current = start
    for i, duration in _durations(release, indices):
        track = release.tracklist[i]
        batch.append(ScrobbleEntry(
            track_index=i,
            artist=release.artist_for(i),
            track=track.title,
            album=release.title,
            timestamp=current,
            duration=duration,
        ))
        current += duration + TRACK_GAP
    return batch


# -------------------------
# Manual start time (local wall clock, minute precision)
# -------------------------
def nudge_timestamp(timestamp: int, minutes: int = NUDGE_MINUTES) -> int:
    """Shift a start time by whole minutes on local calendar components.

    Works like a datetime-local input: the value is taken apart into
    year/month/day/hour/minute, shifted, and carried across day, month and
    year boundaries. Seconds are dropped.
    """
    local = datetime.fromtimestamp(timestamp)
    wall = datetime(local.year, local.month, local.day, local.hour, local.minute)
    return int((wall + timedelta(minutes=minutes)).timestamp())


def parse_start_time(text: str) -> int:
    """Local "YYYY-MM-DD HH:MM" (or ISO "T" form) to unix seconds."""
    value = text.strip()
    for fmt in _INPUT_FORMATS:
        try:
            return int(datetime.strptime(value, fmt).timestamp())
        except ValueError:
            continue
    raise ValueError(f"Unrecognised start time {text!r}; expected YYYY-MM-DD HH:MM")


def format_start_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%dT%H:%M")


def format_local_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%b %d, %Y %I:%M %p")
