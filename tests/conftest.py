from __future__ import annotations

import pytest

from recordscrobbler.artist_mappings import ArtistMapping
from tests.factories import make_release


@pytest.fixture
def double_lp():
    # A1..D2 plus a section header at the start of disc 2
    return make_release(
        ["A1", "A2", "B1", "B2", "", "C1", "C2", "D1", "D2"],
        durations=["3:30", "4:00", "2:15", "5:05", None, "3:00", "3:00", "6:10", "1:00"],
    )


@pytest.fixture
def mappings():
    """Mapping lookup backed by a plain dict of Discogs -> Last.fm names."""
    table: dict[str, str] = {}

    def lookup(name: str) -> ArtistMapping:
        if name in table:
            return ArtistMapping(has_mapping=True, lastfm_name=table[name])
        return ArtistMapping(has_mapping=False, lastfm_name=name)

    lookup.table = table
    return lookup
