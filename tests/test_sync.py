import tempfile
import threading
import unittest
from pathlib import Path

from listarr.adapters.base_adapter import BaseAdapter
from listarr.http_client import FetchError
from listarr.ledger import Ledger
from listarr.models import MediaEntry
from listarr.store import EntryStore
from listarr.sync import RefreshScheduler, WatchlistSync


def entry(title, tmdb=None, username="neo", source="letterboxd", **extra) -> MediaEntry:
    return MediaEntry(
        tmdb=tmdb, title=title, year=2000, type="movie", source=source,
        username=username, anime=False, **extra,
    )


class ScriptedAdapter(BaseAdapter):
    """Yields canned entries per user; a FetchError value fails the listing after the entries before it."""

    def __init__(self, ledger, script, on_scrape=None):
        super().__init__(name="scripted", ledger=ledger)
        self.script = script
        self.on_scrape = on_scrape
        self.scraped = []

    def scrape(self, username):
        self.scraped.append(username)
        if self.on_scrape:
            self.on_scrape()
        for item in self.script.get(username, []):
            if isinstance(item, Exception):
                raise item
            if not self.ledger.contains(item):
                yield item


class RecordingNotifier:
    def __init__(self, events=None):
        self.events = events if events is not None else []
        self.errors = []

    def notify_entry(self, entry):
        self.events.append(("notify", entry.title))
        return True

    def notify_error(self, title, description, error=None):
        self.errors.append((title, description, error))
        return True


class OrderedStore(EntryStore):
    def __init__(self, events, fail_titles=()):
        super().__init__()
        self.events = events
        self.fail_titles = set(fail_titles)

    def add(self, entry):
        if entry.title in self.fail_titles:
            raise RuntimeError("sink unavailable")
        self.events.append(("store", entry.title))
        return super().add(entry)


class RecordingLedger(Ledger):
    def __init__(self, path, events):
        super().__init__(path)
        self.events = events

    def record_entry(self, entry):
        self.events.append(("ledger", entry.title))
        return super().record_entry(entry)


class SyncTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.events = []
        self.ledger = RecordingLedger(Path(self._tmp.name) / "announced.jsonl", self.events)
        self.notifier = RecordingNotifier(self.events)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def sync(self, sources, store=None):
        self.store = store if store is not None else OrderedStore(self.events)
        return WatchlistSync(self.ledger, self.store, self.notifier, sources)


class TestRunPass(SyncTestCase):
    def test_sink_runs_before_ledger(self) -> None:
        adapter = ScriptedAdapter(self.ledger, {"neo": [entry("Heat", tmdb="949")]})
        sync = self.sync([("Letterboxd", adapter, ["neo"])])

        published = sync.run_pass()

        self.assertEqual([e.title for e in published], ["Heat"])
        self.assertEqual(self.events, [("store", "Heat"), ("notify", "Heat"), ("ledger", "Heat")])
        self.assertIsNotNone(self.store.last_refresh)

    def test_sources_and_users_run_in_order(self) -> None:
        letterboxd = ScriptedAdapter(self.ledger, {"a": [entry("A1", tmdb="1")], "b": [entry("B1", tmdb="2")]})
        mal = ScriptedAdapter(self.ledger, {"c": [entry("C1", tmdb="3", source="myanimelist", mal_id=3)]})
        sync = self.sync([("Letterboxd", letterboxd, ["a", "b"]), ("MyAnimeList", mal, ["c"])])

        published = sync.run_pass()

        self.assertEqual([e.title for e in published], ["A1", "B1", "C1"])

    def test_failing_user_does_not_stop_pass(self) -> None:
        adapter = ScriptedAdapter(self.ledger, {
            "broken": [entry("Early", tmdb="10"), FetchError("https://lb.example/broken/watchlist/", 503)],
            "fine": [entry("Later", tmdb="11")],
        })
        sync = self.sync([("Letterboxd", adapter, ["broken", "fine"])])

        published = sync.run_pass()

        self.assertEqual([e.title for e in published], ["Early", "Later"])
        self.assertEqual(len(self.notifier.errors), 1)
        title, description, error = self.notifier.errors[0]
        self.assertEqual(title, "Failed to Scrape Letterboxd")
        self.assertIn("broken", description)
        self.assertIsInstance(error, FetchError)

    def test_sink_failure_leaves_ledger_unadvanced(self) -> None:
        adapter = ScriptedAdapter(self.ledger, {"neo": [entry("Flaky", tmdb="20"), entry("Solid", tmdb="21")]})
        store = OrderedStore(self.events, fail_titles={"Flaky"})
        sync = self.sync([("Letterboxd", adapter, ["neo"])], store=store)

        published = sync.run_pass()

        self.assertEqual([e.title for e in published], ["Solid"])
        self.assertFalse(self.ledger.has_key("tmdb:20"))
        self.assertTrue(self.ledger.has_key("tmdb:21"))

        # the sink recovers and the entry is delivered on the next pass
        store.fail_titles.clear()
        self.assertEqual([e.title for e in sync.run_pass()], ["Flaky"])

    def test_second_pass_publishes_nothing_new(self) -> None:
        adapter = ScriptedAdapter(self.ledger, {"neo": [entry("Heat", tmdb="949")]})
        sync = self.sync([("Letterboxd", adapter, ["neo"])])

        sync.run_pass()
        self.assertEqual(sync.run_pass(), [])
        self.assertEqual(len(self.ledger), 1)
        self.assertEqual(sync.pass_count, 2)

    def test_overlapping_trigger_is_skipped(self) -> None:
        nested = []
        adapter = ScriptedAdapter(self.ledger, {"neo": [entry("Heat", tmdb="949")]})
        sync = self.sync([("Letterboxd", adapter, ["neo"])])
        adapter.on_scrape = lambda: nested.append(sync.run_pass())

        sync.run_pass()

        self.assertEqual(nested, [None])
        self.assertEqual(adapter.scraped, ["neo"])
        self.assertFalse(sync.running)

    def test_trigger_from_another_thread_while_running(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def block():
            started.set()
            release.wait(5)

        adapter = ScriptedAdapter(self.ledger, {}, on_scrape=block)
        sync = self.sync([("Letterboxd", adapter, ["neo"])])
        worker = threading.Thread(target=sync.run_pass)
        worker.start()
        try:
            self.assertTrue(started.wait(5))
            self.assertTrue(sync.running)
            self.assertIsNone(sync.run_pass())
        finally:
            release.set()
            worker.join(5)

        self.assertEqual(adapter.scraped, ["neo"])


class TestRefreshScheduler(SyncTestCase):
    def test_runs_passes_until_stopped(self) -> None:
        passes = threading.Event()
        adapter = ScriptedAdapter(self.ledger, {}, on_scrape=passes.set)
        sync = self.sync([("Letterboxd", adapter, ["neo"])])
        scheduler = RefreshScheduler(sync, interval=0.01)

        scheduler.start()
        try:
            self.assertTrue(passes.wait(5))
        finally:
            scheduler.stop(timeout=5)

        self.assertGreaterEqual(sync.pass_count, 1)
        self.assertFalse(scheduler._thread.is_alive())


if __name__ == "__main__":
    unittest.main()
