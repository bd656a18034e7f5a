import asyncio
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, Optional

import numpy as np

from faq_assistant.config import config
from faq_assistant.errors import EmbeddingUnavailable

logger = logging.getLogger(__name__)

Embedder = Callable[[str], Awaitable[np.ndarray]]


@dataclass
class CacheEntry:
    key: str
    vector: np.ndarray
    inserted_at: float


def normalize_question(question: str) -> str:
    return question.strip().casefold()


class VectorCache:
    """Memoizes question embeddings.

    Keys are the case-folded, trimmed question. Entries expire ``ttl`` seconds
    after insertion, checked lazily on read. When full, the oldest-inserted
    entry is evicted; reads do not refresh an entry's position, so eviction
    order is insertion order, not recency of use.
    """

    def __init__(self, embedder: Embedder, max_size: int = None,
                 ttl: float = None, clock: Callable[[], float] = time.monotonic):
        self._embedder = embedder
        self.max_size = max_size if max_size is not None else config.MAX_CACHE_SIZE
        self.ttl = ttl if ttl is not None else config.CACHE_TTL_SECONDS
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, question: str) -> bool:
        return self._lookup(normalize_question(question)) is not None

    def _lookup(self, key: str) -> Optional[np.ndarray]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.inserted_at >= self.ttl:
            return None
        return entry.vector

    def _store(self, key: str, vector: np.ndarray) -> None:
        with self._lock:
            # Re-deriving an expired key moves it to the newest position.
            self._entries.pop(key, None)
            while self._entries and len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cached embedding for %r", evicted[:50])
            self._entries[key] = CacheEntry(key, vector, self._clock())

    async def get(self, question: str) -> np.ndarray:
        """Return the embedding for ``question``, computing it on a miss.

        Raises EmbeddingUnavailable if the embedder fails; nothing is cached
        in that case.
        """
        key = normalize_question(question)
        vector = self._lookup(key)
        if vector is not None:
            self.hits += 1
            logger.debug("Using cached embedding for: %s", question[:50])
            return vector

        self.misses += 1
        logger.debug("Generating embedding for: %s", question[:50])
        vector = await self._embedder(question)
        if self.max_size > 0:
            self._store(key, vector)
        return vector

    async def prewarm(self, questions: Iterable[str], delay: float = 0.05) -> int:
        """Fill the cache with common questions, skipping ones that fail."""
        questions = list(questions)
        logger.info("Pre-warming cache with %d common questions", len(questions))
        for question in questions:
            try:
                await self.get(question)
            except EmbeddingUnavailable as e:
                logger.warning("Failed to pre-warm %r: %s", question, e)
            if delay:
                await asyncio.sleep(delay)
        logger.info("Cache pre-warmed with %d embeddings", len(self._entries))
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict:
        lookups = self.hits + self.misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "ttl_seconds": self.ttl,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / lookups, 3) if lookups else 0.0,
        }
