"""
MyAnimeList watchlist adapter.

Reads a user's public anime list (load.json, paginated by offset), keeps the
"Plan to Watch" entries and resolves each one to its root series through
Jikan before publishing it.
"""

from typing import Iterator, List, Optional, Tuple
import logging
import re

from pydantic import ValidationError

from config.settings import MYANIMELIST_LIST_URL, MYANIMELIST_PLAN_TO_WATCH
from listarr.adapters.base_adapter import BaseAdapter
from listarr.adapters.jikan_client import JikanClient
from listarr.adapters.relation_tracer import RelationTracer, TraceResult
from listarr.http_client import HttpClient
from listarr.id_lookup import IdLookup
from listarr.ledger import Ledger
from listarr.models import MediaEntry, WatchlistItem
from listarr.schemas import JikanAnime, MalListRow

logger = logging.getLogger(__name__)

START_DATE_PATTERN = re.compile(r"^(\d{2})-(\d{2})-(\d{2})$")


def parse_start_date_year(value: Optional[str]) -> Optional[int]:
    """
    Year from MAL's "MM-DD-YY" start date string.

    Two-digit years below 50 are 20xx, the rest 19xx.
    """
    if not value:
        return None
    match = START_DATE_PATTERN.match(value)
    if not match:
        return None
    year = int(match.group(3))
    return 2000 + year if year < 50 else 1900 + year


def release_year(anime: JikanAnime, fallback_start_date: Optional[str] = None) -> Optional[int]:
    """Year from Jikan's aired.from, else from the list's start date string."""
    aired_from = anime.aired.from_ if anime.aired else None
    if aired_from and len(aired_from) >= 4:
        try:
            return int(aired_from[:4])
        except ValueError:
            pass
    return parse_start_date_year(fallback_start_date)


class MyAnimeListAdapter(BaseAdapter):
    """MyAnimeList plan-to-watch adapter."""

    def __init__(
        self,
        ledger: Ledger,
        id_lookup: IdLookup,
        list_client: HttpClient,
        jikan: JikanClient,
        list_url: str = MYANIMELIST_LIST_URL,
    ):
        """
        Initialize MyAnimeList adapter.

        Args:
            ledger: Shared deduplication ledger
            id_lookup: MAL id -> TMDB/TVDB side table
            list_client: Client for myanimelist.net list pages
            jikan: Jikan API client (for details and relations)
            list_url: List export URL template with a {username} field
        """
        super().__init__(name="myanimelist", ledger=ledger)
        self.id_lookup = id_lookup
        self.list_client = list_client
        self.jikan = jikan
        self.list_url = list_url
        self.tracer = RelationTracer(jikan, ledger)

    def scrape(self, username: str) -> Iterator[MediaEntry]:
        self.reset_stats()
        offset = 0
        logger.info(f"Starting MyAnimeList scrape for {username}")

        while True:
            raw_rows = self._fetch_page(username, offset)
            if not raw_rows:
                break

            for item in self._parse_rows(raw_rows):
                if item.status != MYANIMELIST_PLAN_TO_WATCH:
                    continue
                if self.ledger.has_source_id(item.source_id):
                    self.skipped_count += 1
                    continue

                try:
                    resolved = self._resolve(item, username)
                except Exception as e:
                    logger.error(f"Failed to process MAL entry {item.source_id}: {e}")
                    self.error_count += 1
                    continue
                if resolved is None:
                    continue

                entry, intermediaries = resolved
                self.extracted_count += 1
                yield entry

                # only once the consumer has recorded the root entry
                if self.ledger.has_source_id(entry.mal_id):
                    for mal_id in intermediaries:
                        self.ledger.record_intermediary(mal_id, entry.resolved_root_id, username)

            offset += len(raw_rows)

        self.log_extraction_stats(username)

    def _fetch_page(self, username: str, offset: int) -> list:
        url = self.list_url.format(username=username)
        data = self.list_client.get_json(url, params={"offset": offset})
        if not isinstance(data, list):
            raise ValueError(f"Unexpected MyAnimeList list payload for {username} at offset {offset}")
        return data

    def _parse_rows(self, raw_rows: list) -> List[WatchlistItem]:
        items = []
        for raw in raw_rows:
            try:
                row = MalListRow.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping malformed MyAnimeList row: {e}")
                self.error_count += 1
                continue
            items.append(WatchlistItem(
                source_id=row.anime_id,
                title=row.anime_title_eng or row.anime_title,
                type_hint=row.anime_media_type_string,
                status=row.status,
                start_date=row.anime_start_date_string,
            ))
        return items

    def _resolve(self, item: WatchlistItem, username: str) -> Optional[Tuple[MediaEntry, List[int]]]:
        """
        Resolve one plan-to-watch item to its root series entry.

        Returns:
            (entry, intermediary ids) or None if the item needs no publishing
        """
        mal_id = item.source_id
        anime = self.jikan.get_anime(mal_id)
        trace = self.tracer.trace(mal_id, anime.type)
        root_id = trace.root_id

        if self.ledger.has_root_id(root_id):
            logger.info(f"MAL {mal_id} ({item.title}) belongs to already announced root {root_id}")
            self._record_consumed(mal_id, trace, username)
            self.skipped_count += 1
            return None

        root = anime if root_id == mal_id else self.jikan.get_anime(root_id)
        year = release_year(root, item.start_date)
        if year is None:
            logger.warning(f"Skipping {root.title} (MAL ID: {root_id}): no valid year")
            self.skipped_count += 1
            return None

        ids = self.id_lookup.ids_for_mal(root_id)
        if ids is None:
            logger.warning(f"No ID mapping found for MAL ID {root_id} ({root.display_title})")

        media_type = "movie" if root.type == "Movie" else "tv"
        entry = MediaEntry(
            tmdb=ids.tmdb if ids else None,
            tvdb=ids.tvdb if ids else None,
            title=root.display_title,
            year=year,
            type=media_type,
            source="myanimelist",
            username=username,
            anime=True,
            mal_id=mal_id,
            root_mal_id=root_id if root_id != mal_id else None,
            image_url=root.image_url,
            episodes=root.episodes if media_type == "tv" and root.episodes else None,
        )

        if self.ledger.has_key(entry.key):
            logger.info(f"{entry.title} ({entry.key}) already announced, marking MAL {mal_id} as consumed")
            self._record_consumed(mal_id, trace, username)
            self.skipped_count += 1
            return None

        return entry, trace.intermediaries

    def _record_consumed(self, mal_id: int, trace: TraceResult, username: str):
        """Mark the watchlist item and its intermediaries as resolved to a known root."""
        for consumed_id in [mal_id] + trace.intermediaries:
            self.ledger.record_intermediary(consumed_id, trace.root_id, username)
