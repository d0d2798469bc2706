"""
Caches

Advisory caches on top of a KeyValueStore:
- VectorCache: term vectors keyed by (community, title)
- AnswerCache: final results keyed by (query, community) and generated
  answer text keyed by (query, context)

Any store failure is logged and treated as a miss or a no-op.
"""

import hashlib
import json
import logging
from typing import Any, Dict, Optional

from ..common.kv_store import KeyValueStore
from .forum_client import normalize_community
from .vector_scorer import TermVector

logger = logging.getLogger("reddisearch.retriever.cache")

VECTOR_PREFIX = "post_vector:"
RESULT_PREFIX = "answer_result:"
GENERATION_PREFIX = "answer_text:"

_SEP = "\x1f"


def _digest(*parts: str) -> str:
    return hashlib.sha256(_SEP.join(parts).encode("utf-8")).hexdigest()


def _normalize(text: Optional[str]) -> str:
    return " ".join((text or "").lower().split())


def _is_result(data: Any) -> bool:
    if not isinstance(data, dict) or not isinstance(data.get("answer"), str):
        return False
    posts_found = data.get("posts_found")
    return isinstance(posts_found, int) and not isinstance(posts_found, bool) and posts_found > 0


class VectorCache:
    """
    Term vectors keyed by (community, title).

    Keyed by title rather than content: two posts sharing a title in one
    community share a vector.
    """

    def __init__(self, store: KeyValueStore, ttl: float = 24 * 3600):
        self._store = store
        self._ttl = ttl

    @staticmethod
    def key_for(community: str, title: str) -> str:
        return VECTOR_PREFIX + _digest(community or "", title or "")

    def get(self, community: str, title: str) -> Optional[TermVector]:
        key = self.key_for(community, title)
        try:
            raw = self._store.get(key)
            if not raw:
                return None
            weights = json.loads(raw)
            if not isinstance(weights, dict):
                logger.warning("Discarding malformed cached vector %s", key)
                return None
            return TermVector.from_weights(weights)
        except Exception as e:
            logger.warning("Error retrieving cached vector: %s", e)
            return None

    def put(self, community: str, title: str, vector: TermVector) -> None:
        key = self.key_for(community, title)
        try:
            self._store.put(key, json.dumps(vector.weights), self._ttl)
        except Exception as e:
            logger.warning("Error caching vector: %s", e)

    def clear(self) -> int:
        try:
            return self._store.clear(VECTOR_PREFIX)
        except Exception as e:
            logger.warning("Error clearing vector cache: %s", e)
            return 0

    def size(self) -> int:
        try:
            return self._store.count(VECTOR_PREFIX)
        except Exception as e:
            logger.warning("Error getting vector cache size: %s", e)
            return 0


class AnswerCache:
    """Memoized pipeline results and generated answer text"""

    def __init__(
        self,
        store: KeyValueStore,
        result_ttl: float = 600,
        generation_ttl: float = 3600,
    ):
        self._store = store
        self._result_ttl = result_ttl
        self._generation_ttl = generation_ttl

    @staticmethod
    def result_key(query: str, community: Optional[str]) -> str:
        return RESULT_PREFIX + _digest(_normalize(query), _normalize(normalize_community(community)))

    @staticmethod
    def generation_key(query: str, context: str) -> str:
        return GENERATION_PREFIX + _digest(_normalize(query), context or "")

    def get_result(self, query: str, community: Optional[str]) -> Optional[Dict[str, Any]]:
        """Cached {"answer", "posts_found"} for the query, if any"""
        key = self.result_key(query, community)
        try:
            raw = self._store.get(key)
            if not raw:
                return None
            data = json.loads(raw)
            if not _is_result(data):
                logger.debug("Ignoring malformed cached result for %r", query)
                return None
            return data
        except Exception as e:
            logger.warning("Error retrieving cached result: %s", e)
            return None

    def put_result(self, query: str, community: Optional[str], answer: str, posts_found: int) -> None:
        if posts_found <= 0:
            return
        key = self.result_key(query, community)
        try:
            payload = json.dumps({"answer": answer, "posts_found": posts_found})
            self._store.put(key, payload, self._result_ttl)
        except Exception as e:
            logger.warning("Error caching result: %s", e)

    def get_generation(self, query: str, context: str) -> Optional[str]:
        try:
            return self._store.get(self.generation_key(query, context)) or None
        except Exception as e:
            logger.warning("Error retrieving cached generation: %s", e)
            return None

    def put_generation(self, query: str, context: str, text: str) -> None:
        if not text or not text.strip():
            return
        try:
            self._store.put(self.generation_key(query, context), text, self._generation_ttl)
        except Exception as e:
            logger.warning("Error caching generation: %s", e)
