"""
Pre-submission check for Discogs disambiguation suffixes.

Discogs tells same-named artists apart with a trailing number ("Boris (2)").
Last.fm knows no such artist, so unless a mapping to a real Last.fm name
exists the user is asked before anything gets scrobbled.
"""

from __future__ import annotations
import logging
import re
from typing import Callable, Iterable, TypeVar

from recordscrobbler.artist_mappings import ArtistMapping
from recordscrobbler.tracklist import Release

log = logging.getLogger("disambiguation")

DISAMBIGUATION_PATTERN = re.compile(r"\s*\(\d+\)\s*$")

T = TypeVar("T")


def has_disambiguation_suffix(name: str) -> bool:
    return bool(DISAMBIGUATION_PATTERN.search(name))


def unique_artists(release: Release, indices: Iterable[int]) -> list[str]:
    artists: list[str] = []
    for i in sorted(set(indices)):
        if i < 0 or i >= len(release.tracklist):
            continue
        artist = release.artist_for(i)
        if artist and artist not in artists:
            artists.append(artist)
    return artists


def find_unmapped_artists(artists: Iterable[str], lookup: Callable[[str], ArtistMapping]) -> list[str]:
    unmapped = []
    for artist in artists:
        if not has_disambiguation_suffix(artist):
            continue
        try:
            mapping = lookup(artist)
        except Exception as e:
            # If lookup fails, assume unmapped
            log.warning("Artist mapping lookup failed for %r: %s", artist, e)
            unmapped.append(artist)
            continue
        # A mapping onto the same name is no mapping at all
        if not mapping.has_mapping or mapping.lastfm_name == artist:
            unmapped.append(artist)
    return unmapped


class DisambiguationGuard:
    """Holds a submission back while flagged artists await confirmation."""

    def __init__(self, lookup: Callable[[str], ArtistMapping]):
        self.lookup = lookup
        self.pending_artists: list[str] = []
        self._proceed: Callable[[], object] | None = None

    @property
    def awaiting_confirmation(self) -> bool:
        return self._proceed is not None

    def check(self, release: Release, indices: Iterable[int], proceed: Callable[[], T]) -> T | None:
        """Run `proceed` now, or park it until confirm() when artists are unmapped."""
        self.cancel()
        unmapped = find_unmapped_artists(unique_artists(release, indices), self.lookup)
        if not unmapped:
            return proceed()

        log.info("Holding submission; unmapped disambiguated artists: %s", ", ".join(unmapped))
        self.pending_artists = unmapped
        self._proceed = proceed
        return None

    def confirm(self):
        """Continue anyway."""
        proceed = self._proceed
        self.cancel()
        if proceed is None:
            return None
        return proceed()

    def cancel(self) -> None:
        """Go create a mapping first; nothing is submitted."""
        self.pending_artists = []
        self._proceed = None
