import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class SynonymCache:
    """Size- and TTL-bounded cache of token -> related terms"""

    def __init__(
        self,
        max_size: int = 1024,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Dict[str, Tuple[list[str], float]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._cache)

    async def get(self, token: str) -> Optional[list[str]]:
        """Cached terms for *token*, or None when absent or expired"""
        async with self._lock:
            if token in self._cache:
                terms, stored_at = self._cache[token]
                if self._clock() - stored_at < self.ttl_seconds:
                    logger.debug(f"Synonym cache hit for {token!r}")
                    return list(terms)
                del self._cache[token]
                logger.debug(f"Synonym cache expired for {token!r}")
            return None

    async def set(self, token: str, terms: list[str]):
        async with self._lock:
            if token not in self._cache and len(self._cache) >= self.max_size:
                oldest = min(self._cache.keys(), key=lambda k: self._cache[k][1])
                del self._cache[oldest]
                logger.debug(f"Synonym cache evicted {oldest!r}")
            self._cache[token] = (list(terms), self._clock())
