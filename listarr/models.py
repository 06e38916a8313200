"""
Data model shared by adapters, the ledger and the published store.

On-disk and wire field names stay camelCase (malId, rootMalId, ...) through
pydantic aliases, so ledger files written by earlier versions keep loading.
"""

from datetime import datetime, timezone
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

MediaType = Literal["movie", "tv"]
SourceName = Literal["letterboxd", "myanimelist"]

INTERMEDIARY_PREFIX = "[Intermediary:"
INTERMEDIARY_YEAR = 1900


def entry_key(
    tmdb: Optional[str], tvdb: Optional[str], title: str, year: int, source: str, username: str
) -> str:
    """External id key when one is known, composite title/year/source/user key otherwise."""
    if tmdb:
        return f"tmdb:{tmdb}"
    if tvdb:
        return f"tvdb:{tvdb}"
    return f"{title}:{year}:{source}:{username}"


def letterboxd_slug_key(slug: str, year: int) -> str:
    return f"letterboxd:{slug}:{year}"


class WatchlistItem(BaseModel):
    """Raw per-entry data scraped from a source listing."""

    source_id: Union[int, str]
    title: str
    year: Optional[int] = None
    type_hint: Optional[str] = None
    status: Optional[int] = None
    start_date: Optional[str] = None
    film_id: Optional[str] = None


class MediaEntry(BaseModel):
    """A fully resolved watchlist entry, the unit published downstream."""

    model_config = ConfigDict(populate_by_name=True)

    tmdb: Optional[str] = None
    tvdb: Optional[str] = None
    title: str
    year: int = Field(gt=0)
    type: MediaType
    source: SourceName
    username: str
    anime: bool
    mal_id: Optional[int] = Field(default=None, alias="malId")
    root_mal_id: Optional[int] = Field(default=None, alias="rootMalId")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    episodes: Optional[int] = None
    letterboxd_slug: Optional[str] = Field(default=None, alias="letterboxdSlug")

    @property
    def key(self) -> str:
        return entry_key(self.tmdb, self.tvdb, self.title, self.year, self.source, self.username)

    @property
    def slug_key(self) -> Optional[str]:
        if self.source == "letterboxd" and self.letterboxd_slug:
            return letterboxd_slug_key(self.letterboxd_slug, self.year)
        return None

    @property
    def is_intermediary(self) -> bool:
        return self.title.startswith(INTERMEDIARY_PREFIX)

    @property
    def resolved_root_id(self) -> Optional[int]:
        """Root MAL id this entry stands for (its own id when it is a root)."""
        if self.root_mal_id is not None:
            return self.root_mal_id
        if self.source == "myanimelist" and not self.is_intermediary:
            return self.mal_id
        return None

    @classmethod
    def intermediary(cls, mal_id: int, root_mal_id: int, username: str) -> "MediaEntry":
        """Non-published stub marking a MAL id consumed while tracing to a root."""
        return cls(
            title=f"{INTERMEDIARY_PREFIX} MAL {mal_id}]",
            year=INTERMEDIARY_YEAR,
            type="tv",
            source="myanimelist",
            username=username,
            anime=True,
            mal_id=mal_id,
            root_mal_id=root_mal_id,
        )


class LedgerRecord(BaseModel):
    """One line of the durable ledger log."""

    model_config = ConfigDict(populate_by_name=True)

    tmdb: Optional[str] = None
    tvdb: Optional[str] = None
    title: str
    year: int = Field(gt=0)
    type: MediaType
    source: SourceName
    username: str
    anime: bool
    timestamp: str
    mal_id: Optional[int] = Field(default=None, alias="malId")
    root_mal_id: Optional[int] = Field(default=None, alias="rootMalId")
    letterboxd_slug: Optional[str] = Field(default=None, alias="letterboxdSlug")

    @classmethod
    def from_entry(cls, entry: MediaEntry, timestamp: Optional[datetime] = None) -> "LedgerRecord":
        timestamp = timestamp or datetime.now(timezone.utc)
        data = entry.model_dump(exclude={"image_url", "episodes"})
        return cls(timestamp=timestamp.isoformat(), **data)

    def to_entry(self) -> MediaEntry:
        return MediaEntry(**self.model_dump(exclude={"timestamp"}))

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)
