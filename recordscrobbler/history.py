"""
Map prior scrobbles of an album back onto the current tracklist.

Last.fm and Discogs spell the same track differently ("Request Denied" vs
"Request Denied [Explicit]", "El-p" vs "El-P"), so both sides go through
normalize_for_matching before they are compared.
"""

from __future__ import annotations
import re
import time
from dataclasses import dataclass, field
from typing import Any

_BRACKET_SUFFIX = re.compile(
    r"\s*\[(explicit|clean|remaster(ed)?|deluxe|deluxe edition|special edition|expanded|"
    r"expanded edition|anniversary|anniversary edition|bonus tracks?|vinyl|lp|cd|digital|"
    r"limited|limited edition)\]\s*",
    re.IGNORECASE,
)
_PAREN_SUFFIX = re.compile(
    r"\s*\((explicit|clean|remaster(ed)?(\s+\d{4})?|deluxe(\s+edition)?|special edition|"
    r"expanded(\s+edition)?|anniversary(\s+edition)?|\d+th anniversary|bonus tracks?|"
    r"limited(\s+edition)?)\)\s*",
    re.IGNORECASE,
)
_AT_ANNIVERSARY = re.compile(r"\s+at\s+\d+\s*$", re.IGNORECASE)  # "Gentlemen at 21"
_FEATURING = re.compile(r"\s*(\(|\[)?\bfeat\.?\s+[^)\]]+(\)|\])?\s*$", re.IGNORECASE)
_QUOTES = re.compile(r"[\"'`“”‘’]")
_SPACES = re.compile(r"\s+")


def _normalize_once(value: str) -> str:
    value = value.lower()
    value = _BRACKET_SUFFIX.sub("", value)
    value = _PAREN_SUFFIX.sub("", value)
    value = _AT_ANNIVERSARY.sub("", value)
    value = _FEATURING.sub("", value)
    value = _QUOTES.sub("", value)
    return _SPACES.sub(" ", value).strip()


def normalize_for_matching(value: str) -> str:
    """Lowercased title with edition/featuring suffixes, quotes and extra spaces removed.

    Stripping one suffix can expose another ("x at 1 at 2"), so passes repeat
    until nothing changes; normalize(normalize(x)) == normalize(x).
    """
    current = _normalize_once(value)
    while True:
        nxt = _normalize_once(current)
        if nxt == current:
            return current
        current = nxt


@dataclass(frozen=True)
class Play:
    timestamp: int
    track: str | None = None


@dataclass(frozen=True)
class AlbumHistory:
    found: bool = False
    plays: tuple[Play, ...] = ()

    @classmethod
    def not_found(cls) -> "AlbumHistory":
        return cls(found=False, plays=())

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AlbumHistory":
        if not data:
            return cls.not_found()
        plays = []
        for p in data.get("plays") or []:
            try:
                plays.append(Play(timestamp=int(p["timestamp"]), track=p.get("track") or None))
            except (KeyError, TypeError, ValueError):
                continue
        return cls(found=bool(data.get("found")), plays=tuple(plays))


@dataclass
class TrackScrobbleStats:
    count: int
    last_played: int


@dataclass
class TrackStatsIndex:
    """Per normalized title: play count and most recent play."""
    stats: dict[str, TrackScrobbleStats] = field(default_factory=dict)

    @classmethod
    def from_history(cls, history: AlbumHistory | None) -> "TrackStatsIndex":
        return cls(build_track_stats(history))

    def lookup(self, title: str) -> TrackScrobbleStats | None:
        return self.stats.get(normalize_for_matching(title))


def build_track_stats(history: AlbumHistory | None) -> dict[str, TrackScrobbleStats]:
    stats: dict[str, TrackScrobbleStats] = {}
    if history is None:
        return stats

    for play in history.plays:
        if not play.track:
            continue
        key = normalize_for_matching(play.track)
        existing = stats.get(key)
        if existing is None:
            stats[key] = TrackScrobbleStats(count=1, last_played=play.timestamp)
        else:
            existing.count += 1
            existing.last_played = max(existing.last_played, play.timestamp)
    return stats


def format_relative_time(timestamp: int, now: int | None = None) -> str:
    if now is None:
        now = int(time.time())
    days = (now - timestamp) // 86400

    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    if days < 365:
        return f"{days // 30} months ago"
    return f"{days // 365} years ago"
