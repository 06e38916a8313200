"""
Deduplication ledger backed by an append-only JSONL log.

Every published entry and every intermediary stub is one line. The log is
replayed once at startup into three indices:
- by entry key (external id key or composite key, plus Letterboxd slug key)
- by MyAnimeList source id
- by resolved root MyAnimeList id

Records are flushed to disk one at a time, before the next watchlist item is
processed.
"""

from pathlib import Path
from typing import List, Optional, Set
import json
import logging
import os

from pydantic import ValidationError

from listarr.models import LedgerRecord, MediaEntry

logger = logging.getLogger(__name__)


class Ledger:
    """Process-wide record of everything already emitted or consumed."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.by_key: Set[str] = set()
        self.by_source_id: Set[int] = set()
        self.by_root_id: Set[int] = set()
        self._records: List[LedgerRecord] = []
        self.skipped_lines = 0

    @classmethod
    def load(cls, path: Path) -> "Ledger":
        """
        Replay the log at path into a new ledger.

        Lines that are not UTF-8 JSON objects or fail validation are skipped
        with a warning. A missing file yields an empty ledger.
        """
        ledger = cls(path)
        if not ledger.path.exists():
            logger.info(f"No ledger at {ledger.path}, starting empty")
            return ledger

        with open(ledger.path, "rb") as f:
            for line_number, raw in enumerate(f, start=1):
                if not raw.strip():
                    continue
                try:
                    record = LedgerRecord.model_validate(json.loads(raw.decode("utf-8")))
                except (ValueError, ValidationError) as e:
                    ledger.skipped_lines += 1
                    logger.warning(f"Skipping invalid ledger line {line_number}: {e}")
                    continue
                ledger._index(record)

        logger.info(
            f"Loaded {len(ledger._records)} ledger records from {ledger.path} "
            f"({ledger.skipped_lines} skipped)"
        )
        return ledger

    def _index(self, record: LedgerRecord) -> None:
        entry = record.to_entry()
        self._records.append(record)
        self.by_key.add(entry.key)
        if entry.slug_key:
            self.by_key.add(entry.slug_key)
        if entry.mal_id is not None:
            self.by_source_id.add(entry.mal_id)
        root_id = entry.resolved_root_id
        if root_id is not None:
            self.by_root_id.add(root_id)

    def _append(self, record: LedgerRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a+b") as f:
            # a crash may have left a torn last line without its newline
            if f.seek(0, os.SEEK_END) > 0:
                f.seek(-1, os.SEEK_END)
                if f.read(1) != b"\n":
                    f.write(b"\n")
            f.write((record.to_json() + "\n").encode("utf-8"))
            f.flush()
            os.fsync(f.fileno())
        self._index(record)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_key(self, key: str) -> bool:
        return key in self.by_key

    def has_source_id(self, mal_id: Optional[int]) -> bool:
        return mal_id is not None and mal_id in self.by_source_id

    def has_root_id(self, mal_id: Optional[int]) -> bool:
        return mal_id is not None and mal_id in self.by_root_id

    def contains(self, entry: MediaEntry) -> bool:
        """True if recording entry would add nothing new."""
        if not self.has_key(entry.key):
            return False
        if entry.mal_id is not None and not self.has_source_id(entry.mal_id):
            return False
        return True

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def record_entry(self, entry: MediaEntry) -> bool:
        """
        Persist a published entry.

        Returns:
            True if a line was written, False if the entry was already known
        """
        if self.contains(entry):
            logger.debug(f"Ledger already has {entry.key}")
            return False
        self._append(LedgerRecord.from_entry(entry))
        return True

    def record_intermediary(self, mal_id: int, root_id: int, username: str) -> bool:
        """
        Persist a non-published stub for a MAL id consumed while tracing.

        Returns:
            True if a line was written, False if the id was already known
        """
        if self.has_source_id(mal_id):
            return False
        self._append(LedgerRecord.from_entry(MediaEntry.intermediary(mal_id, root_id, username)))
        logger.debug(f"Recorded MAL {mal_id} as intermediary of {root_id}")
        return True

    def remember_key(self, key: str) -> None:
        """Mark a key as seen for the rest of this process, without writing a line."""
        self.by_key.add(key)

    def published_entries(self) -> List[MediaEntry]:
        """All non-intermediary records in log order."""
        entries = (record.to_entry() for record in self._records)
        return [entry for entry in entries if not entry.is_intermediary]

    def __len__(self) -> int:
        return len(self._records)
