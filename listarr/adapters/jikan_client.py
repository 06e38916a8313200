"""
Jikan v4 REST client (unofficial MyAnimeList API).

Rate limit: 3 requests/second, 60 requests/minute. Pacing is done by the
RateLimiter of the injected HttpClient.
"""

from typing import List
import logging

from config.settings import JIKAN_BASE_URL
from listarr.http_client import HttpClient
from listarr.schemas import JikanAnime, JikanRelation

logger = logging.getLogger(__name__)


class JikanClient:
    """Typed access to the two Jikan endpoints the adapter needs."""

    def __init__(self, http: HttpClient, base_url: str = JIKAN_BASE_URL):
        self.http = http
        self.base_url = base_url.rstrip("/")

    def _get_data(self, path: str):
        payload = self.http.get_json(f"{self.base_url}{path}")
        if not isinstance(payload, dict) or "data" not in payload:
            raise ValueError(f"Unexpected Jikan response for {path}")
        return payload["data"]

    def get_anime(self, mal_id: int) -> JikanAnime:
        return JikanAnime.model_validate(self._get_data(f"/anime/{mal_id}"))

    def get_relations(self, mal_id: int) -> List[JikanRelation]:
        data = self._get_data(f"/anime/{mal_id}/relations")
        return [JikanRelation.model_validate(item) for item in data]
