"""
Letterboxd watchlist adapter.

Scrapes https://letterboxd.com/<user>/watchlist/ page by page. Every listed
film qualifies (no status filter). External ids come from the id-lookup
snapshot first and from the film's own page as a fallback.
"""

from typing import Iterator, List, Optional, Tuple
import logging
import re

from bs4 import BeautifulSoup

from config.settings import LETTERBOXD_BASE_URL
from listarr.adapters.base_adapter import BaseAdapter
from listarr.http_client import FetchError, HttpClient
from listarr.id_lookup import IdLookup
from listarr.ledger import Ledger
from listarr.models import MediaEntry, WatchlistItem, letterboxd_slug_key

logger = logging.getLogger(__name__)

TITLE_YEAR_PATTERN = re.compile(r"\s*\((\d{4})\)$")
TMDB_MOVIE_PATTERN = re.compile(r"/movie/(\d+)")


def split_title_year(name: str) -> Tuple[str, Optional[int]]:
    """Split "Title (YYYY)" into title and year; year is None when absent."""
    match = TITLE_YEAR_PATTERN.search(name)
    if not match:
        return name.strip(), None
    return name[:match.start()].strip(), int(match.group(1))


def constructed_poster_url(film_id: str, slug: str) -> str:
    """Poster URL pattern used by Letterboxd's CDN (film id digits as path segments)."""
    digits = "/".join(film_id)
    return f"https://a.ltrbxd.com/resized/film-poster/{digits}/{film_id}-{slug}-0-250-0-375-crop.jpg"


class LetterboxdAdapter(BaseAdapter):
    """Letterboxd watchlist adapter."""

    def __init__(
        self,
        ledger: Ledger,
        id_lookup: IdLookup,
        client: HttpClient,
        base_url: str = LETTERBOXD_BASE_URL,
    ):
        super().__init__(name="letterboxd", ledger=ledger)
        self.id_lookup = id_lookup
        self.client = client
        self.base_url = base_url.rstrip("/")

    def watchlist_url(self, username: str, page: int) -> str:
        if page == 1:
            return f"{self.base_url}/{username}/watchlist/"
        return f"{self.base_url}/{username}/watchlist/page/{page}/"

    def scrape(self, username: str) -> Iterator[MediaEntry]:
        self.reset_stats()
        page = 1
        logger.info(f"Starting Letterboxd scrape for {username}")

        while True:
            soup = BeautifulSoup(self.client.get_text(self.watchlist_url(username, page)), "html.parser")
            grid_items = soup.select("li.griditem")
            items = self.parse_watchlist_page(soup)

            for item in items:
                if self.ledger.has_key(letterboxd_slug_key(item.source_id, item.year)):
                    self.skipped_count += 1
                    continue

                try:
                    entry = self._resolve(item, username)
                except Exception as e:
                    logger.error(f"Failed to process Letterboxd entry {item.source_id}: {e}")
                    self.error_count += 1
                    continue
                if entry is None:
                    continue

                self.extracted_count += 1
                yield entry

            if not grid_items or soup.select_one("div.pagination a.next") is None:
                logger.info(f"No more pages for {username} (last page: {page})")
                break
            page += 1
            logger.info(f"Moving to page {page} for {username}")

        self.log_extraction_stats(username)

    @staticmethod
    def parse_watchlist_page(soup: BeautifulSoup) -> List[WatchlistItem]:
        """
        Extract films from one watchlist page.

        Items without a slug, title or four-digit year are left out.
        """
        items = []
        for grid_item in soup.select("li.griditem"):
            component = grid_item.select_one("div.react-component[data-item-slug]")
            if component is None:
                continue

            slug = component.get("data-item-slug")
            item_name = component.get("data-item-name") or ""
            if not slug or not item_name:
                continue

            title, year = split_title_year(item_name)
            if year is None:
                full_name = component.get("data-item-full-display-name") or ""
                full_title, year = split_title_year(full_name)
                if year is not None:
                    title = full_title

            if year is None or not title:
                continue

            items.append(WatchlistItem(
                source_id=slug,
                title=title,
                year=year,
                type_hint="movie",
                film_id=component.get("data-film-id"),
            ))
        return items

    def _resolve(self, item: WatchlistItem, username: str) -> Optional[MediaEntry]:
        slug = item.source_id
        ids = self.id_lookup.ids_for_letterboxd(slug)
        tmdb = ids.tmdb if ids else None
        tvdb = ids.tvdb if ids else None
        is_anime = ids.is_anime if ids else False

        image_url = self._poster_url(slug, item.film_id)

        # film page only when the snapshot left something open
        if not tmdb or not is_anime:
            try:
                page_tmdb, page_anime = self._film_page_evidence(slug)
                tmdb = tmdb or page_tmdb
                is_anime = is_anime or page_anime
            except FetchError as e:
                logger.warning(f"Failed to fetch film page data for {item.title} ({item.year}) from Letterboxd: {e}")

        if not tmdb and not tvdb:
            logger.warning(f'No ID mapping found for Letterboxd slug "{slug}" ({item.title}, {item.year})')

        entry = MediaEntry(
            tmdb=tmdb,
            tvdb=tvdb,
            title=item.title,
            year=item.year,
            type="movie",
            source="letterboxd",
            username=username,
            anime=is_anime,
            image_url=image_url,
            letterboxd_slug=slug,
        )

        if self.ledger.has_key(entry.key):
            logger.info(f"{entry.title} ({entry.key}) already announced")
            self.ledger.remember_key(letterboxd_slug_key(slug, item.year))
            self.skipped_count += 1
            return None
        return entry

    def _poster_url(self, slug: str, film_id: Optional[str]) -> Optional[str]:
        try:
            data = self.client.get_json(f"{self.base_url}/film/{slug}/poster/std/250/")
            if isinstance(data, dict) and data.get("url"):
                return data["url"]
        except FetchError as e:
            logger.debug(f"Poster endpoint failed for {slug}: {e}")

        if film_id:
            return constructed_poster_url(film_id, slug)
        return None

    def _film_page_evidence(self, slug: str) -> Tuple[Optional[str], bool]:
        """TMDB id and anime flag from links on the film's own page."""
        soup = BeautifulSoup(self.client.get_text(f"{self.base_url}/film/{slug}/"), "html.parser")

        tmdb = None
        tmdb_link = soup.select_one('a[href*="themoviedb.org/movie"]')
        if tmdb_link is not None:
            match = TMDB_MOVIE_PATTERN.search(tmdb_link.get("href", ""))
            if match:
                tmdb = match.group(1)

        is_anime = (
            soup.select_one('a[href*="myanimelist.net"]') is not None
            or soup.select_one('a[href*="anidb.net"]') is not None
        )
        return tmdb, is_anime
