"""
Base adapter abstraction for watchlist sources.

Defines the interface that all source adapters must implement:
- LetterboxdAdapter
- MyAnimeListAdapter
"""

from abc import ABC, abstractmethod
from typing import Iterator
import logging

from listarr.ledger import Ledger
from listarr.models import MediaEntry

logger = logging.getLogger(__name__)


class BaseAdapter(ABC):
    """
    Abstract base class for watchlist adapters.

    An adapter turns one user's watchlist into fully resolved MediaEntry
    objects, one at a time. scrape() is a generator: the consumer publishes
    and records each yielded entry before asking for the next one, so the
    ledger is always up to date for the item being processed.
    """

    def __init__(self, name: str, ledger: Ledger):
        """
        Initialize adapter.

        Args:
            name: Source name ('letterboxd' or 'myanimelist')
            ledger: Shared deduplication ledger
        """
        self.name = name
        self.ledger = ledger
        self.extracted_count = 0
        self.skipped_count = 0
        self.error_count = 0

    @abstractmethod
    def scrape(self, username: str) -> Iterator[MediaEntry]:
        """
        Yield new entries from a user's watchlist.

        Args:
            username: Account name on the source site

        Yields:
            Resolved entries not yet known to the ledger

        Raises:
            FetchError: If a listing page cannot be fetched or parsed
        """

    def reset_stats(self):
        self.extracted_count = 0
        self.skipped_count = 0
        self.error_count = 0

    def log_extraction_stats(self, username: str):
        """Log extraction statistics."""
        logger.info(
            f"{self.name} [{username}]: {self.extracted_count} new, "
            f"{self.skipped_count} skipped, {self.error_count} errors"
        )
