"""
Watchlist adapters.

Adapters for Letterboxd (HTML scraping) and MyAnimeList (list export + Jikan).
"""

from .base_adapter import BaseAdapter
from .jikan_client import JikanClient
from .letterboxd_adapter import LetterboxdAdapter
from .myanimelist_adapter import MyAnimeListAdapter
from .relation_tracer import RelationTracer, TraceResult

__all__ = [
    "BaseAdapter",
    "JikanClient",
    "LetterboxdAdapter",
    "MyAnimeListAdapter",
    "RelationTracer",
    "TraceResult",
]
