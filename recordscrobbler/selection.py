"""
Track selection for one release.

The selected set only ever holds indices of selectable tracks (non-blank
position). Side and disc toggles are all-or-nothing: if every track of the
group is already selected the group is cleared, otherwise it is filled.
"""

from __future__ import annotations
from typing import Iterable, Iterator

from recordscrobbler.tracklist import (
    Release,
    disc_track_indices,
    selectable_indices,
    side_track_indices,
)


class TrackSelection:
    def __init__(self, release: Release, selected: Iterable[int] | None = None):
        self.release = release
        self._selectable = frozenset(selectable_indices(release.tracklist))
        self._selected: set[int] = set()
        if selected is None:
            self.initialize_to_all_selectable()
        else:
            self._selected = {i for i in selected if i in self._selectable}

    # -------- queries --------
    def __contains__(self, index: int) -> bool:
        return index in self._selected

    def __iter__(self) -> Iterator[int]:
        # timing and batches follow track order, not click order
        return iter(sorted(self._selected))

    def __len__(self) -> int:
        return len(self._selected)

    @property
    def indices(self) -> list[int]:
        return sorted(self._selected)

    @property
    def selectable_count(self) -> int:
        return len(self._selectable)

    @property
    def all_selected(self) -> bool:
        return len(self._selected) == len(self._selectable)

    def side_indices(self, side: str) -> list[int]:
        return [i for i in side_track_indices(self.release.tracklist, side) if i in self._selectable]

    def disc_indices(self, sides: list[str]) -> list[int]:
        return [i for i in disc_track_indices(self.release.tracklist, sides) if i in self._selectable]

    def is_side_selected(self, side: str) -> bool:
        return self._covers(self.side_indices(side))

    def is_disc_selected(self, sides: list[str]) -> bool:
        return self._covers(self.disc_indices(sides))

    def _covers(self, indices: list[int]) -> bool:
        return bool(indices) and all(i in self._selected for i in indices)

    # -------- mutators --------
    def initialize_to_all_selectable(self) -> None:
        self._selected = set(self._selectable)

    def toggle_track(self, index: int) -> None:
        if index not in self._selectable:
            return
        if index in self._selected:
            self._selected.discard(index)
        else:
            self._selected.add(index)

    def toggle_side(self, side: str) -> None:
        self._toggle_group(self.side_indices(side))

    def toggle_disc(self, sides: list[str]) -> None:
        self._toggle_group(self.disc_indices(sides))

    def toggle_all(self) -> None:
        """Select everything, or clear when everything is already selected."""
        if self.all_selected:
            self._selected = set()
        else:
            self.initialize_to_all_selectable()

    def _toggle_group(self, indices: list[int]) -> None:
        if self._covers(indices):
            self._selected.difference_update(indices)
        else:
            self._selected.update(indices)
