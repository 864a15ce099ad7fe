"""
analysis_cache.py
~~~~~~~~~~~~~~~~~
Content-addressable memoization of full analyses.

Key: ``analysis:{version}:{sha256(json([base, updated, tests]))}``. The inputs
are hashed as one JSON array so no two submissions share a boundary. Bumping the
version tag orphans every earlier entry; stale entries age out on their TTL.
The stored value is the final, classified Result, so a hit is returned as-is.
"""
import hashlib
import json
import logging
from typing import Optional, Protocol, Sequence

from pydantic import ValidationError

from specmatch.core.config import settings
from specmatch.services.kv_store import KVStore
from specmatch.services.models import AnalysisResult

logger = logging.getLogger(__name__)


class Analyzer(Protocol):
    async def analyze(
        self,
        base_text: str,
        updated_text: Optional[str],
        test_rows: Sequence[Sequence[str]],
    ) -> AnalysisResult:
        ...


def fingerprint(base_text: str, updated_text: Optional[str], test_rows: Sequence[Sequence[str]]) -> str:
    payload = json.dumps(
        [base_text, updated_text or "", [list(row) for row in test_rows]],
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def cache_key(version: str, digest: str) -> str:
    return f"analysis:{version}:{digest}"


class AnalysisCache:
    def __init__(self, store: KVStore, analyzer: Analyzer, ttl_seconds: Optional[int] = None):
        self.store = store
        self.analyzer = analyzer
        self.ttl_seconds = ttl_seconds or settings.ANALYSIS_CACHE_TTL_SECONDS

    async def get_or_compute(
        self,
        base_text: str,
        updated_text: Optional[str],
        test_rows: Sequence[Sequence[str]],
        version: Optional[str] = None,
    ) -> AnalysisResult:
        version = version or settings.ANALYSIS_VERSION
        key = cache_key(version, fingerprint(base_text, updated_text, test_rows))

        cached = await self.store.get(key)
        if cached is not None:
            try:
                result = AnalysisResult.model_validate(cached)
                logger.info(f"Analysis cache hit: {key}")
                return result
            except ValidationError:
                logger.warning(f"Analysis cache entry {key} is unreadable; recomputing")

        logger.info(f"Analysis cache miss: {key}")
        result = await self.analyzer.analyze(base_text, updated_text, test_rows)
        # last write wins; an abandoned late computation rewrites identical content
        await self.store.set(key, result.to_dict(), ttl=self.ttl_seconds)
        return result
