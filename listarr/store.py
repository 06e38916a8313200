"""
In-memory store of published entries, read by the list endpoints.
"""

from datetime import datetime
from threading import Lock
from typing import Iterable, List, Optional
import logging

from listarr.models import MediaEntry

logger = logging.getLogger(__name__)


class EntryStore:
    """Published entries, unique by entry key. Safe to read from the API thread."""

    def __init__(self, entries: Optional[Iterable[MediaEntry]] = None):
        self._lock = Lock()
        self._entries: List[MediaEntry] = []
        self._keys = set()
        self.last_refresh: Optional[datetime] = None
        if entries:
            for entry in entries:
                self.add(entry)

    def add(self, entry: MediaEntry) -> bool:
        """Add an entry; returns False for intermediaries and already stored keys."""
        if entry.is_intermediary:
            return False
        with self._lock:
            if entry.key in self._keys:
                return False
            self._entries.append(entry)
            self._keys.add(entry.key)
        return True

    def filter(self, media_type: str, anime: bool, require_id: str) -> List[MediaEntry]:
        """
        Entries of one list.

        Args:
            media_type: 'movie' or 'tv'
            anime: Anime flag to match
            require_id: 'tmdb' or 'tvdb'; entries without it are left out
        """
        with self._lock:
            return [
                e for e in self._entries
                if e.type == media_type and e.anime == anime and getattr(e, require_id)
            ]

    def mark_refreshed(self):
        self.last_refresh = datetime.now()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
