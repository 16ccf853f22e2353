"""
Persistent Discogs -> Last.fm artist name mappings.

- Stored on disk as a JSON object so mappings survive restarts.
- Keys are matched case-insensitively; the original spelling is kept.
- Unmapped names map to themselves.
"""

from __future__ import annotations
import json
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Dict

log = logging.getLogger("artist-mappings")


@dataclass(frozen=True)
class ArtistMapping:
    has_mapping: bool
    lastfm_name: str

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any] | None) -> "ArtistMapping":
        if not data:
            return cls(has_mapping=False, lastfm_name=name)
        return cls(
            has_mapping=bool(data.get("hasMapping")),
            lastfm_name=data.get("lastfmName") or name,
        )


class ArtistMappingStore:
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._map: Dict[str, str] = {}
        self._load()

    # -------- persistence --------
    def _load(self) -> None:
        try:
            if os.path.isfile(self.path):
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    self._map = {str(k): str(v) for k, v in data.items() if v}
        except (OSError, ValueError) as e:
            # Corrupt or unreadable file? Start fresh.
            log.warning("Could not read artist mappings from %s: %s", self.path, e)
            self._map = {}

    def _save(self) -> None:
        # Write atomically to avoid corruption
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._map, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def _key(self, name: str) -> str | None:
        if name in self._map:
            return name
        folded = name.casefold()
        for k in self._map:
            if k.casefold() == folded:
                return k
        return None

    # -------- public API --------
    def lookup(self, name: str) -> ArtistMapping:
        with self._lock:
            key = self._key(name)
            if key is None:
                return ArtistMapping(has_mapping=False, lastfm_name=name)
            return ArtistMapping(has_mapping=True, lastfm_name=self._map[key])

    def lastfm_name(self, name: str) -> str:
        return self.lookup(name).lastfm_name

    def set(self, discogs_name: str, lastfm_name: str) -> None:
        if not discogs_name.strip() or not lastfm_name.strip():
            raise ValueError("Both Discogs and Last.fm names are required")
        with self._lock:
            key = self._key(discogs_name)
            if key is not None:
                del self._map[key]
            self._map[discogs_name.strip()] = lastfm_name.strip()
            self._save()
        log.info("Mapped artist %r -> %r", discogs_name, lastfm_name)

    def remove(self, discogs_name: str) -> bool:
        with self._lock:
            key = self._key(discogs_name)
            if key is None:
                return False
            del self._map[key]
            self._save()
            return True

    def all(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._map)
