"""
Id-lookup side table.

Two static snapshots from the animeApi project map source-native ids to
external database ids:
- MyAnimeList id -> TMDB / TVDB
- Letterboxd slug -> TMDB / TVDB, plus an anime flag (has MAL/AniDB/AniList id)

Loaded once at startup. A snapshot that fails to load is recorded in
load_errors and its lookups simply miss.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional
import logging

from pydantic import ValidationError

from config.settings import ID_LOOKUP_LETTERBOXD_URL, ID_LOOKUP_MAL_URL
from listarr.schemas import LetterboxdIdRecord, MalIdRecord
from listarr.http_client import FetchError, HttpClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExternalIds:
    tmdb: Optional[str] = None
    tvdb: Optional[str] = None
    is_anime: bool = False


def _as_id(value: Optional[int]) -> Optional[str]:
    return str(value) if value else None


class IdLookup:
    """Read-only mapping of source-native ids to external ids."""

    def __init__(
        self,
        mal_ids: Optional[Dict[int, ExternalIds]] = None,
        letterboxd_ids: Optional[Dict[str, ExternalIds]] = None,
    ):
        self.mal_ids: Dict[int, ExternalIds] = mal_ids or {}
        self.letterboxd_ids: Dict[str, ExternalIds] = letterboxd_ids or {}
        self.load_errors: List[str] = []

    @classmethod
    def load(
        cls,
        client: HttpClient,
        mal_url: str = ID_LOOKUP_MAL_URL,
        letterboxd_url: str = ID_LOOKUP_LETTERBOXD_URL,
    ) -> "IdLookup":
        """
        Download and parse both snapshots.

        Args:
            client: HTTP client used for the downloads
            mal_url: MyAnimeList snapshot URL
            letterboxd_url: Letterboxd snapshot URL

        Returns:
            IdLookup, possibly partially empty (see load_errors)
        """
        lookup = cls()
        logger.info("Loading ID lookup databases...")

        try:
            lookup.mal_ids = cls._parse_mal(client.get_json(mal_url))
            logger.info(f"Loaded {len(lookup.mal_ids)} MAL ID mappings")
        except (FetchError, ValidationError, ValueError) as e:
            lookup._fail(f"Failed to load MAL ID lookup database: {e}")

        try:
            lookup.letterboxd_ids = cls._parse_letterboxd(client.get_json(letterboxd_url))
            logger.info(f"Loaded {len(lookup.letterboxd_ids)} Letterboxd ID mappings")
        except (FetchError, ValidationError, ValueError) as e:
            lookup._fail(f"Failed to load Letterboxd ID lookup database: {e}")

        if lookup.load_errors:
            logger.warning(f"ID lookup service loaded with {len(lookup.load_errors)} error(s)")
        else:
            logger.info("ID lookup service loaded successfully")
        return lookup

    def _fail(self, message: str) -> None:
        logger.error(message)
        self.load_errors.append(message)

    @staticmethod
    def _parse_mal(data) -> Dict[int, ExternalIds]:
        if not isinstance(data, dict):
            raise ValueError("MAL snapshot is not a JSON object")
        result = {}
        for mal_id, raw in data.items():
            if not str(mal_id).isdigit():
                continue
            record = MalIdRecord.model_validate(raw)
            ids = ExternalIds(tmdb=_as_id(record.themoviedb), tvdb=_as_id(record.thetvdb), is_anime=True)
            if ids.tmdb or ids.tvdb:
                result[int(mal_id)] = ids
        return result

    @staticmethod
    def _parse_letterboxd(data) -> Dict[str, ExternalIds]:
        if not isinstance(data, dict):
            raise ValueError("Letterboxd snapshot is not a JSON object")
        result = {}
        for slug, raw in data.items():
            record = LetterboxdIdRecord.model_validate(raw)
            ids = ExternalIds(
                tmdb=_as_id(record.themoviedb),
                tvdb=_as_id(record.thetvdb),
                is_anime=bool(record.myanimelist or record.anidb or record.anilist),
            )
            if ids.tmdb or ids.tvdb or ids.is_anime:
                result[slug] = ids
        return result

    def ids_for_mal(self, mal_id: int) -> Optional[ExternalIds]:
        return self.mal_ids.get(mal_id)

    def ids_for_letterboxd(self, slug: str) -> Optional[ExternalIds]:
        return self.letterboxd_ids.get(slug)
