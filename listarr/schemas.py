"""
Pydantic schemas for upstream payloads (MyAnimeList list export, Jikan v4,
animeApi id snapshots). Unknown fields are ignored.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Loose(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ==============================================================================
# MyAnimeList list export (load.json)
# ==============================================================================

class MalListRow(_Loose):
    status: int
    anime_id: int
    anime_title: str
    anime_title_eng: Optional[str] = None
    anime_start_date_string: Optional[str] = None
    anime_end_date_string: Optional[str] = None
    anime_media_type_string: Optional[str] = None

    @field_validator("anime_title", "anime_title_eng", mode="before")
    @classmethod
    def _titles_as_text(cls, value):
        # numeric titles (e.g. "86") arrive as JSON numbers
        if value is None or isinstance(value, str):
            return value
        return str(value)


# ==============================================================================
# Jikan v4
# ==============================================================================

class JikanImageSet(_Loose):
    image_url: Optional[str] = None
    small_image_url: Optional[str] = None
    large_image_url: Optional[str] = None


class JikanImages(_Loose):
    jpg: Optional[JikanImageSet] = None
    webp: Optional[JikanImageSet] = None


class JikanAired(_Loose):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None


class JikanAnime(_Loose):
    mal_id: int
    title: str
    title_english: Optional[str] = None
    type: Optional[str] = None  # "TV", "Movie", "OVA", "Special", ...
    episodes: Optional[int] = None
    images: Optional[JikanImages] = None
    aired: Optional[JikanAired] = None

    @property
    def display_title(self) -> str:
        return self.title_english or self.title

    @property
    def image_url(self) -> Optional[str]:
        if not self.images:
            return None
        candidates = []
        for image_set in (self.images.jpg, self.images.webp):
            if image_set:
                candidates.extend([image_set.large_image_url, image_set.image_url])
        return next((url for url in candidates if url), None)

    @property
    def is_multi_episode_tv(self) -> bool:
        return self.type == "TV" and (self.episodes or 0) > 1


class JikanRelationEntry(_Loose):
    mal_id: int
    type: str
    name: Optional[str] = None


class JikanRelation(_Loose):
    relation: str
    entry: List[JikanRelationEntry] = []


# ==============================================================================
# animeApi id snapshots
# ==============================================================================

class MalIdRecord(_Loose):
    title: Optional[str] = None
    themoviedb: Optional[int] = None
    thetvdb: Optional[int] = None
    imdb: Optional[str] = None
    trakt: Optional[int] = None


class LetterboxdIdRecord(_Loose):
    title: Optional[str] = None
    themoviedb: Optional[int] = None
    thetvdb: Optional[int] = None
    myanimelist: Optional[int] = None
    anidb: Optional[int] = None
    anilist: Optional[int] = None
