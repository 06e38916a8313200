"""
Scrape pass orchestration and periodic refresh.

A pass scrapes every configured Letterboxd user, then every MyAnimeList
user, strictly one after the other so the sources never compete for the same
rate budget. Each yielded entry is published (store + Discord) and only then
recorded in the ledger.
"""

from threading import Event, Lock, Thread
from typing import List, Optional, Sequence, Tuple
import logging

from listarr.adapters.base_adapter import BaseAdapter
from listarr.ledger import Ledger
from listarr.models import MediaEntry
from listarr.notifications import DiscordNotifier
from listarr.store import EntryStore

logger = logging.getLogger(__name__)


class WatchlistSync:
    """Runs scrape passes over all configured users."""

    def __init__(
        self,
        ledger: Ledger,
        store: EntryStore,
        notifier: DiscordNotifier,
        sources: Sequence[Tuple[str, BaseAdapter, Sequence[str]]],
    ):
        """
        Initialize sync.

        Args:
            ledger: Shared deduplication ledger
            store: Published entry store
            notifier: Discord notifier (may be disabled)
            sources: (display name, adapter, usernames) in scrape order
        """
        self.ledger = ledger
        self.store = store
        self.notifier = notifier
        self.sources = list(sources)
        self._pass_lock = Lock()
        self.pass_count = 0

    @property
    def running(self) -> bool:
        return self._pass_lock.locked()

    def run_pass(self) -> Optional[List[MediaEntry]]:
        """
        Run one scrape pass.

        Returns:
            Entries published during this pass, or None if a pass was
            already in flight and this call was skipped
        """
        if not self._pass_lock.acquire(blocking=False):
            logger.warning("Refresh already in progress, skipping this trigger")
            return None

        try:
            logger.info("Refreshing data...")
            published: List[MediaEntry] = []
            for source_name, adapter, usernames in self.sources:
                for username in usernames:
                    published.extend(self._scrape_user(source_name, adapter, username))

            self.pass_count += 1
            self.store.mark_refreshed()
            logger.info(f"Refresh complete: {len(published)} new, {len(self.store)} total entries")
            return published
        finally:
            self._pass_lock.release()

    def _scrape_user(self, source_name: str, adapter: BaseAdapter, username: str) -> List[MediaEntry]:
        published = []
        logger.info(f"Starting {source_name} scrape for {username}...")
        try:
            for entry in adapter.scrape(username):
                if self._publish(entry):
                    published.append(entry)
            logger.info(f"✓ Completed {source_name} scrape for {username}")
        except Exception as e:
            logger.exception(f"✗ Failed to scrape {source_name} for {username}: {e}")
            self.notifier.notify_error(
                f"Failed to Scrape {source_name}",
                f"Failed to scrape {source_name} watchlist for user **{username}**",
                e,
            )
        return published

    def _publish(self, entry: MediaEntry) -> bool:
        """Hand one entry to the sink, then advance the ledger."""
        if self.ledger.contains(entry):
            return False
        try:
            self.store.add(entry)
            self.notifier.notify_entry(entry)
            self.ledger.record_entry(entry)
        except Exception as e:
            logger.error(f"Failed to publish {entry.title} ({entry.key}): {e}")
            return False
        logger.info(f"Published {entry.title} ({entry.year}) from {entry.source} [{entry.username}]")
        return True


class RefreshScheduler:
    """Triggers a pass every interval seconds on a background thread."""

    def __init__(self, sync: WatchlistSync, interval: float):
        self.sync = sync
        self.interval = interval
        self._stop = Event()
        self._thread: Optional[Thread] = None

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="listarr-refresh", daemon=True)
        self._thread.start()
        logger.info(f"Refresh interval: {self.interval} seconds")

    def _run(self):
        # the next wait starts only after the previous pass returned
        while not self._stop.wait(self.interval):
            try:
                self.sync.run_pass()
            except Exception as e:
                logger.exception(f"Error during refresh: {e}")
                self.sync.notifier.notify_error(
                    "Refresh Failed", "An error occurred during the scheduled data refresh", e
                )

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
