"""
LRU + TTL cache of generation results keyed by normalized query and options.
"""
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cachetools import TTLCache

from ..schemas.query import GenerationResult

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    result: GenerationResult
    timestamp: float


class QueryCache:
    """Service for memoizing answers to repeated questions."""

    def __init__(self, max_size: int, ttl: float, timer: Callable[[], float] = time.monotonic):
        self.max_size = max_size
        self.ttl = ttl
        self._timer = timer
        self._cache: TTLCache = TTLCache(maxsize=max_size, ttl=ttl, timer=timer)
        logger.info(f"Query cache initialized (max_size={max_size}, ttl={ttl}s)")

    @staticmethod
    def generate_key(query: str, options: Optional[Dict[str, Any]] = None) -> str:
        """
        Build the cache key for a query and its option set.

        The query is case-folded and trimmed; options are serialized with
        sorted keys, dropping None values. A missing or empty option set
        serializes differently from any non-empty one.
        """
        key_data: Dict[str, Any] = {"query": query.strip().lower()}
        if options:
            cleaned = {k: v for k, v in options.items() if v is not None}
            if cleaned:
                key_data["options"] = cleaned
        serialized = json.dumps(key_data, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    def get(self, query: str, options: Optional[Dict[str, Any]] = None) -> Optional[GenerationResult]:
        """Return the cached result or None."""
        try:
            key = self.generate_key(query, options)
            entry = self._cache.get(key)
        except Exception as e:
            logger.error(f"Cache lookup failed: {str(e)}")
            return None

        if entry is None:
            logger.debug(f"Cache miss: {key}")
            return None

        logger.debug(f"Cache hit: {key}")
        return entry.result

    def set(self, query: str, result: GenerationResult, options: Optional[Dict[str, Any]] = None) -> None:
        """Store a result, replacing any entry under the same key."""
        try:
            key = self.generate_key(query, options)
            # pop first so the overwrite also restarts the TTL clock
            self._cache.pop(key, None)
            self._cache[key] = CacheEntry(result=result, timestamp=self._timer())
            logger.debug(f"Cache set: {key}")
        except Exception as e:
            logger.error(f"Cache write failed: {str(e)}")

    def delete(self, query: str, options: Optional[Dict[str, Any]] = None) -> bool:
        """Remove one entry; returns whether it existed."""
        try:
            key = self.generate_key(query, options)
            return self._cache.pop(key, None) is not None
        except Exception as e:
            logger.error(f"Cache delete failed: {str(e)}")
            return False

    def clear(self) -> None:
        self._cache.clear()
        logger.info("Cache cleared")

    def stats(self) -> Dict[str, Any]:
        """Entry count and limits, for health reporting."""
        return {
            "size": len(self._cache),
            "max_size": self.max_size,
            "ttl": self.ttl,
        }
