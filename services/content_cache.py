"""
Content Cache
=============

In-process TTL cache for generation results and for the intermediate
steps of the sequential pipeline.

Features:
- Keyed by (diagram type, normalized query)
- Lazy expiration: stale entries are dropped when read
- Injectable clock for tests
- No size bound and no single-flight; concurrent writers race, last write wins
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from config.settings import config
from models.common import DiagramType
from models.generation import GenerationResult

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


def normalize_query(query: str) -> str:
    return (query or '').strip().lower()


def make_key(diagram_type: DiagramType, query: str) -> Tuple[str, str]:
    return (DiagramType(diagram_type).value, normalize_query(query))


class ContentCache:
    """
    TTL cache for GenerationResult objects plus a step cache used by the
    sequential pipeline to memoise content and universal-content calls.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl_seconds: Default time-to-live; CONTENT_CACHE_TTL when omitted
            clock: Monotonic time source
        """
        self._ttl = ttl_seconds
        self._clock = clock
        self._results: Dict[Tuple[str, str], CacheEntry] = {}
        self._steps: Dict[Tuple[str, str, str], CacheEntry] = {}

    @property
    def ttl(self) -> float:
        return self._ttl if self._ttl is not None else config.CONTENT_CACHE_TTL

    def _read(self, store: Dict, key) -> Optional[Any]:
        entry = store.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del store[key]
            logger.debug(f"[ContentCache] Evicted expired entry {key}")
            return None
        return entry.value

    def _write(self, store: Dict, key, value: Any, ttl: Optional[float]):
        lifetime = self.ttl if ttl is None else ttl
        store[key] = CacheEntry(value=value, expires_at=self._clock() + lifetime)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get(self, diagram_type: DiagramType, query: str) -> Optional[GenerationResult]:
        """Return the cached result, or None when missing or expired."""
        key = make_key(diagram_type, query)
        result = self._read(self._results, key)
        if result is not None:
            logger.debug(f"[ContentCache] Hit for {key[0]}: '{key[1][:60]}'")
        return result

    def put(self, diagram_type: DiagramType, query: str, result: GenerationResult, ttl: Optional[float] = None):
        """Insert or replace a result; ttl overrides the default lifetime."""
        key = make_key(diagram_type, query)
        self._write(self._results, key, result, ttl)
        logger.debug(f"[ContentCache] Stored {key[0]}: '{key[1][:60]}'")

    # ------------------------------------------------------------------
    # Sequential steps
    # ------------------------------------------------------------------

    def get_step(self, step: str, diagram_type: DiagramType, query: str) -> Optional[Any]:
        return self._read(self._steps, (step,) + make_key(diagram_type, query))

    def put_step(self, step: str, diagram_type: DiagramType, query: str, value: Any, ttl: Optional[float] = None):
        self._write(self._steps, (step,) + make_key(diagram_type, query), value, ttl)

    def clear(self):
        self._results.clear()
        self._steps.clear()
        logger.info("[ContentCache] Cleared")

    def __len__(self) -> int:
        return len(self._results)

