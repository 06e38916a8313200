import tempfile
import unittest
from pathlib import Path

from bs4 import BeautifulSoup

from listarr.adapters.letterboxd_adapter import LetterboxdAdapter, constructed_poster_url, split_title_year
from listarr.http_client import FetchError
from listarr.id_lookup import ExternalIds, IdLookup
from listarr.ledger import Ledger
from tests.fakes import FakeHttpClient

BASE = "https://lb.example"


def film(slug, name, film_id="12345", full_name=None):
    full = f' data-item-full-display-name="{full_name}"' if full_name else ""
    return (
        f'<li class="griditem"><div class="react-component" data-item-slug="{slug}" '
        f'data-item-name="{name}" data-film-id="{film_id}"{full}></div></li>'
    )


def watchlist_page(*films, has_next=False):
    pagination = '<div class="pagination"><a class="next" href="#">Older</a></div>' if has_next else ""
    return f'<html><body><ul class="poster-list">{"".join(films)}</ul>{pagination}</body></html>'


def film_page(tmdb_id=None, mal=False):
    links = []
    if tmdb_id:
        links.append(f'<a href="https://www.themoviedb.org/movie/{tmdb_id}/">TMDB</a>')
    if mal:
        links.append('<a href="https://myanimelist.net/anime/199/">MAL</a>')
    return f'<html><body><p class="text-footer">{"".join(links)}</p></body></html>'


class TestHelpers(unittest.TestCase):
    def test_split_title_year(self) -> None:
        self.assertEqual(split_title_year("Perfect Blue (1997)"), ("Perfect Blue", 1997))
        self.assertEqual(split_title_year("1917 (2019)"), ("1917", 2019))
        self.assertEqual(split_title_year("Untitled"), ("Untitled", None))

    def test_constructed_poster_url(self) -> None:
        self.assertEqual(
            constructed_poster_url("426", "spirited-away"),
            "https://a.ltrbxd.com/resized/film-poster/4/2/6/426-spirited-away-0-250-0-375-crop.jpg",
        )

    def test_parse_skips_items_without_year_or_slug(self) -> None:
        html = watchlist_page(
            film("perfect-blue", "Perfect Blue (1997)"),
            film("no-year", "No Year"),
            film("full-name", "Full Name", full_name="Full Name (2001)"),
            '<li class="griditem"><div class="react-component" data-item-name="X (2000)"></div></li>',
        )

        items = LetterboxdAdapter.parse_watchlist_page(BeautifulSoup(html, "html.parser"))

        self.assertEqual([(i.source_id, i.title, i.year) for i in items], [
            ("perfect-blue", "Perfect Blue", 1997),
            ("full-name", "Full Name", 2001),
        ])


class LetterboxdTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.ledger = Ledger(Path(self._tmp.name) / "announced.jsonl")
        self.id_lookup = IdLookup(letterboxd_ids={
            "perfect-blue": ExternalIds(tmdb="10494", is_anime=True),
            "the-matrix": ExternalIds(tmdb="603"),
        })

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def adapter(self, text_routes, json_routes=None):
        self.client = FakeHttpClient(json_routes=json_routes or {}, text_routes=text_routes)
        return LetterboxdAdapter(self.ledger, self.id_lookup, self.client, base_url=BASE)

    def consume(self, adapter, username="neo"):
        entries = []
        for entry in adapter.scrape(username):
            self.ledger.record_entry(entry)
            entries.append(entry)
        return entries


class TestLetterboxdScrape(LetterboxdTestCase):
    def test_walks_pages_until_no_next_link(self) -> None:
        adapter = self.adapter({
            f"{BASE}/neo/watchlist/": watchlist_page(film("perfect-blue", "Perfect Blue (1997)"), has_next=True),
            f"{BASE}/neo/watchlist/page/2/": watchlist_page(film("the-matrix", "The Matrix (1999)")),
            f"{BASE}/film/the-matrix/": film_page(tmdb_id="603"),
        }, json_routes={
            f"{BASE}/film/perfect-blue/poster/std/250/": {"url": "https://img.example/pb.jpg"},
        })

        entries = self.consume(adapter)

        self.assertEqual([e.letterboxd_slug for e in entries], ["perfect-blue", "the-matrix"])
        self.assertNotIn(f"{BASE}/neo/watchlist/page/3/", self.client.calls)

        perfect_blue, matrix = entries
        self.assertEqual(perfect_blue.tmdb, "10494")
        self.assertTrue(perfect_blue.anime)
        self.assertEqual(perfect_blue.type, "movie")
        self.assertEqual(perfect_blue.image_url, "https://img.example/pb.jpg")
        self.assertFalse(matrix.anime)

    def test_snapshot_hit_with_anime_flag_skips_film_page(self) -> None:
        adapter = self.adapter({
            f"{BASE}/neo/watchlist/": watchlist_page(film("perfect-blue", "Perfect Blue (1997)")),
        })

        self.consume(adapter)

        self.assertNotIn(f"{BASE}/film/perfect-blue/", self.client.calls)

    def test_empty_page_ends_scrape(self) -> None:
        adapter = self.adapter({f"{BASE}/neo/watchlist/": watchlist_page(has_next=True)})

        self.assertEqual(self.consume(adapter), [])
        self.assertEqual(self.client.calls, [f"{BASE}/neo/watchlist/"])

    def test_film_page_supplies_missing_ids(self) -> None:
        adapter = self.adapter({
            f"{BASE}/neo/watchlist/": watchlist_page(film("paprika", "Paprika (2006)", film_id="4213")),
            f"{BASE}/film/paprika/": film_page(tmdb_id="4977", mal=True),
        })

        [entry] = self.consume(adapter)

        self.assertEqual(entry.tmdb, "4977")
        self.assertTrue(entry.anime)
        self.assertEqual(entry.image_url, constructed_poster_url("4213", "paprika"))

    def test_film_page_failure_keeps_entry(self) -> None:
        adapter = self.adapter({
            f"{BASE}/neo/watchlist/": watchlist_page(film("obscure", "Obscure (1980)")),
            f"{BASE}/film/obscure/": FetchError(f"{BASE}/film/obscure/", 500),
        })

        [entry] = self.consume(adapter)

        self.assertIsNone(entry.tmdb)
        self.assertEqual(entry.key, "Obscure:1980:letterboxd:neo")

    def test_second_pass_is_idempotent(self) -> None:
        routes = {
            f"{BASE}/neo/watchlist/": watchlist_page(film("perfect-blue", "Perfect Blue (1997)")),
        }
        adapter = self.adapter(routes)
        self.consume(adapter)
        calls = len(self.client.calls)

        self.assertEqual(self.consume(adapter), [])
        # only the listing page itself is fetched again
        self.assertEqual(len(self.client.calls), calls + 1)
        self.assertEqual(adapter.skipped_count, 1)

    def test_film_known_by_id_from_another_user_is_skipped(self) -> None:
        adapter = self.adapter({
            f"{BASE}/trinity/watchlist/": watchlist_page(film("the-matrix", "The Matrix (1999)")),
            f"{BASE}/neo/watchlist/": watchlist_page(film("the-matrix", "The Matrix (1999)")),
            f"{BASE}/film/the-matrix/": film_page(tmdb_id="603"),
        })

        self.assertEqual(len(self.consume(adapter, "trinity")), 1)
        self.assertEqual(self.consume(adapter, "neo"), [])

    def test_page_without_parseable_films_does_not_end_scrape(self) -> None:
        adapter = self.adapter({
            f"{BASE}/neo/watchlist/": watchlist_page(film("untitled-project", "Untitled Project"), has_next=True),
            f"{BASE}/neo/watchlist/page/2/": watchlist_page(film("the-matrix", "The Matrix (1999)")),
            f"{BASE}/film/the-matrix/": film_page(tmdb_id="603"),
        })

        entries = self.consume(adapter)

        self.assertEqual([e.letterboxd_slug for e in entries], ["the-matrix"])

    def test_slug_resolving_to_known_film_is_not_refetched(self) -> None:
        self.id_lookup.letterboxd_ids["matrix-remaster"] = self.id_lookup.letterboxd_ids["the-matrix"]
        adapter = self.adapter({
            f"{BASE}/trinity/watchlist/": watchlist_page(film("the-matrix", "The Matrix (1999)")),
            f"{BASE}/neo/watchlist/": watchlist_page(film("matrix-remaster", "The Matrix (1999)")),
            f"{BASE}/film/the-matrix/": film_page(tmdb_id="603"),
            f"{BASE}/film/matrix-remaster/": film_page(tmdb_id="603"),
        })
        self.consume(adapter, "trinity")

        self.assertEqual(self.consume(adapter, "neo"), [])
        calls = len(self.client.calls)
        self.assertEqual(self.consume(adapter, "neo"), [])

        # only the listing page is fetched again
        self.assertEqual(len(self.client.calls), calls + 1)

    def test_listing_failure_propagates(self) -> None:
        adapter = self.adapter({})

        with self.assertRaises(FetchError):
            self.consume(adapter)


if __name__ == "__main__":
    unittest.main()
