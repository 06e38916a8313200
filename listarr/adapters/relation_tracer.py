"""
Series-root tracing over the MyAnimeList relation graph.

Given a plan-to-watch anime, walk parent-pointing relations (Parent Story,
Prequel, Full Story, and Sequel for movies) up to the canonical root series:

    Season 3 (TV) --Prequel--> Season 2 (TV) --Prequel--> Season 1 (TV)
    => root: Season 1, intermediaries: [Season 2]

Walk rules:
1. A node seen twice means a cycle: stop there.
2. A starting Movie is only traced when it sits inside a TV continuity
   (Parent Story / Sequel / Prequel pointing at a multi-episode TV entry);
   otherwise it is its own root.
3. A parent already known to the ledger as a root ends the walk at once.
4. The walk only climbs into multi-episode TV parents.

Nodes passed on the way (other than the starting node and the root) are
returned as intermediaries so the caller can mark them as consumed.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from listarr.adapters.jikan_client import JikanClient
from listarr.http_client import FetchError
from listarr.ledger import Ledger
from listarr.schemas import JikanAnime

logger = logging.getLogger(__name__)

PARENT_RELATIONS = ("Parent Story", "Prequel", "Full Story")
MOVIE_PARENT_RELATIONS = PARENT_RELATIONS + ("Sequel",)
# Relations that place a movie inside a TV continuity
EMBEDDING_RELATIONS = ("Parent Story", "Sequel", "Prequel")


@dataclass
class TraceResult:
    root_id: int
    intermediaries: List[int] = field(default_factory=list)


class RelationTracer:
    """Finds the root series of an anime entry."""

    def __init__(self, jikan: JikanClient, ledger: Ledger):
        self.jikan = jikan
        self.ledger = ledger

    def trace(self, start_id: int, declared_type: Optional[str]) -> TraceResult:
        """
        Walk parent relations from start_id to the root series.

        Args:
            start_id: MAL id of the watchlist entry
            declared_type: Jikan type of the entry ("TV", "Movie", "OVA", ...)

        Returns:
            TraceResult with the root id and the intermediary ids, in walk order.
            On an upstream failure mid-walk, the node reached so far is the root.
        """
        is_movie = declared_type == "Movie"
        nodes: Dict[int, JikanAnime] = {}
        visited = set()
        intermediaries: List[int] = []
        current = start_id

        while True:
            if current in visited:
                logger.info(f"Circular relation reached MAL {current} again, using it as root")
                return self._result(current, intermediaries)
            visited.add(current)

            try:
                relations = self._parent_candidates(current)
                at_movie_start = is_movie and current == start_id

                if at_movie_start and not self._is_embedded(relations, nodes):
                    logger.debug(f"MAL {start_id} is a standalone movie")
                    return TraceResult(start_id, [])

                parent_id = self._select_parent(relations, include_sequel=at_movie_start)
                if parent_id is None:
                    return self._result(current, intermediaries)

                if self.ledger.has_root_id(parent_id):
                    logger.debug(f"MAL {parent_id} is already a known root")
                    return self._result(parent_id, intermediaries)

                if current != start_id:
                    intermediaries.append(current)

                parent = self._node(parent_id, nodes)
                if parent.is_multi_episode_tv:
                    current = parent_id
                    continue

                return self._result(current, intermediaries)

            except (FetchError, ValueError) as e:
                logger.warning(f"Failed to trace parent for MAL ID {current}: {e}")
                return self._result(current, intermediaries)

    @staticmethod
    def _result(root_id: int, intermediaries: List[int]) -> TraceResult:
        # the root is published, so it is never one of its own intermediaries
        return TraceResult(root_id, [i for i in intermediaries if i != root_id])

    def _parent_candidates(self, mal_id: int) -> Dict[str, List[int]]:
        """Anime ids per relation type, keeping Jikan's order."""
        candidates: Dict[str, List[int]] = {}
        for relation in self.jikan.get_relations(mal_id):
            ids = [e.mal_id for e in relation.entry if e.type == "anime"]
            if ids:
                candidates.setdefault(relation.relation, []).extend(ids)
        return candidates

    def _node(self, mal_id: int, nodes: Dict[int, JikanAnime]) -> JikanAnime:
        if mal_id not in nodes:
            nodes[mal_id] = self.jikan.get_anime(mal_id)
        return nodes[mal_id]

    def _is_embedded(self, relations: Dict[str, List[int]], nodes: Dict[int, JikanAnime]) -> bool:
        for relation in EMBEDDING_RELATIONS:
            ids = relations.get(relation)
            if ids and self._node(ids[0], nodes).is_multi_episode_tv:
                return True
        return False

    @staticmethod
    def _select_parent(relations: Dict[str, List[int]], include_sequel: bool) -> Optional[int]:
        order = MOVIE_PARENT_RELATIONS if include_sequel else PARENT_RELATIONS
        for relation in order:
            ids = relations.get(relation)
            if ids:
                return ids[0]
        return None
