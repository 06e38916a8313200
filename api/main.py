"""
List Serving Layer
Plain JSON import lists for Radarr (movies) and Sonarr (series)
"""

from datetime import datetime
from typing import List, Optional
import logging

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from listarr import __version__
from listarr.models import MediaEntry
from listarr.store import EntryStore

logger = logging.getLogger(__name__)

# ============================================================================
# Data Models
# ============================================================================

class ListItem(BaseModel):
    """One import-list item as Radarr/Sonarr expect it"""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    year: int
    tmdb_id: Optional[str] = Field(default=None, alias="tmdbId")
    tvdb_id: Optional[str] = Field(default=None, alias="tvdbId")

    @classmethod
    def from_entry(cls, entry: MediaEntry) -> "ListItem":
        return cls(title=entry.title, year=entry.year, tmdb_id=entry.tmdb, tvdb_id=entry.tvdb)


class HealthResponse(BaseModel):
    status: str
    entries: int
    last_refresh: Optional[str] = None
    version: str


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Listarr",
    description="Letterboxd and MyAnimeList watchlists as Radarr/Sonarr import lists",
    version=__version__,
)
app.state.store = EntryStore()


def get_store(request: Request) -> EntryStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Entry store not initialized")
    return store


def _list(request: Request, media_type: str, anime: bool, require_id: str) -> List[dict]:
    entries = get_store(request).filter(media_type, anime, require_id)
    return [ListItem.from_entry(e).model_dump(by_alias=True, exclude_none=True) for e in entries]


# ============================================================================
# Radarr Endpoints
# ============================================================================

@app.get("/radarr/movies")
async def radarr_movies(request: Request):
    """Non-anime movies with a TMDB id"""
    return _list(request, "movie", False, "tmdb")


@app.get("/radarr/anime")
async def radarr_anime(request: Request):
    """Anime movies with a TMDB id"""
    return _list(request, "movie", True, "tmdb")


# ============================================================================
# Sonarr Endpoints
# ============================================================================

@app.get("/sonarr/shows")
async def sonarr_shows(request: Request):
    """Non-anime series with a TVDB id"""
    return _list(request, "tv", False, "tvdb")


@app.get("/sonarr/anime")
async def sonarr_anime(request: Request):
    """Anime series with a TVDB id"""
    return _list(request, "tv", True, "tvdb")


# ============================================================================
# Health
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint"""
    store = get_store(request)
    last_refresh = store.last_refresh.isoformat() if store.last_refresh else None
    return HealthResponse(
        status="healthy",
        entries=len(store),
        last_refresh=last_refresh,
        version=__version__,
    )


@app.get("/")
async def root():
    """API documentation"""
    return {
        "name": "Listarr",
        "version": __version__,
        "endpoints": {
            "GET /radarr/movies": "Movies (TMDB)",
            "GET /radarr/anime": "Anime movies (TMDB)",
            "GET /sonarr/shows": "Shows (TVDB)",
            "GET /sonarr/anime": "Anime shows (TVDB)",
            "GET /health": "Health check",
        },
        "generated_at": datetime.now().isoformat(),
    }
