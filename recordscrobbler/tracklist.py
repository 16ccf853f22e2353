"""
Release / track model and the side-and-disc topology derived from positions.

Discogs position labels are free text: "A1", "B", "1", "CD1-3", "" (a section
header). Only labels of the form <one uppercase letter><optional digits>
describe a vinyl side; everything else contributes no side.
"""

from __future__ import annotations
import math
import re
from dataclasses import dataclass, field
from typing import Any

DEFAULT_TRACK_DURATION = 180  # seconds; unknown track ~ 3 minutes

_SIDE_RE = re.compile(r"^([A-Z])(\d*)$")
_DURATION_RE = re.compile(r"(\d+)\s*:\s*(\d+)", re.ASCII)


@dataclass(frozen=True)
class Track:
    position: str
    title: str
    artist: str | None = None
    duration: str | int | None = None

    @property
    def is_header(self) -> bool:
        return not self.position.strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        return cls(
            position=data.get("position") or "",
            title=data.get("title") or "",
            artist=data.get("artist") or _join_artists(data.get("artists")),
            duration=data.get("duration") or None,
        )


@dataclass(frozen=True)
class Release:
    id: int | str | None
    title: str
    artist: str
    tracklist: tuple[Track, ...] = ()
    year: int | None = None
    cover_image: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Release":
        return cls(
            id=data.get("id"),
            title=data.get("title") or "",
            artist=data.get("artist") or _join_artists(data.get("artists")) or "",
            tracklist=tuple(Track.from_dict(t) for t in data.get("tracklist") or []),
            year=data.get("year") or None,
            cover_image=data.get("cover_image") or None,
        )

    def artist_for(self, index: int) -> str:
        """Per-track artist, falling back to the release artist."""
        return self.tracklist[index].artist or self.artist


def _join_artists(artists: Any) -> str | None:
    if not artists:
        return None
    names = [a.get("name", "") for a in artists if isinstance(a, dict)]
    return ", ".join(n for n in names if n) or None


def parse_track_duration(value: str | int | float | None) -> int:
    """Seconds for a Discogs duration ("3:30") or an existing number of seconds.

    Never raises: anything that isn't a number or exactly MM:SS yields
    DEFAULT_TRACK_DURATION.
    """
    if isinstance(value, bool):
        return DEFAULT_TRACK_DURATION
    if isinstance(value, (int, float)):
        if (isinstance(value, float) and not math.isfinite(value)) or value < 0:
            return DEFAULT_TRACK_DURATION
        return int(value)
    if isinstance(value, str):
        m = _DURATION_RE.fullmatch(value.strip())
        if m:
            return int(m.group(1)) * 60 + int(m.group(2))
    return DEFAULT_TRACK_DURATION


def selectable_indices(tracks: tuple[Track, ...] | list[Track]) -> list[int]:
    return [i for i, t in enumerate(tracks) if not t.is_header]


# -------------------------
# Sides and discs
# -------------------------
def disc_label(side: str) -> str:
    # A,B -> Disc 1; C,D -> Disc 2; ...
    return f"Disc {(ord(side) - ord('A')) // 2 + 1}"


@dataclass
class Topology:
    sides: list[str] = field(default_factory=list)
    discs: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_multi_side(self) -> bool:
        return len(self.sides) > 1

    @property
    def is_multi_disc(self) -> bool:
        return len(self.discs) > 1


def resolve_topology(tracks) -> Topology:
    sides: list[str] = []
    discs: dict[str, list[str]] = {}

    for track in tracks:
        m = _SIDE_RE.match(track.position.strip())
        if not m:
            continue
        side = m.group(1)
        if side not in sides:
            sides.append(side)
        members = discs.setdefault(disc_label(side), [])
        if side not in members:
            members.append(side)

    sides.sort()
    for members in discs.values():
        members.sort()
    # keep disc order stable regardless of data order
    ordered = dict(sorted(discs.items(), key=lambda kv: int(kv[0].split()[1])))
    return Topology(sides=sides, discs=ordered)


def side_track_indices(tracks, side: str) -> list[int]:
    return [i for i, t in enumerate(tracks) if t.position.strip().startswith(side)]


def disc_track_indices(tracks, sides: list[str]) -> list[int]:
    indices: list[int] = []
    for side in sides:
        indices.extend(side_track_indices(tracks, side))
    return indices
