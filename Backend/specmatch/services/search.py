"""
search.py
~~~~~~~~~
Keyword search over persisted SearchableItems.

    query -> lowercase whitespace tokens
          -> + up to MAX_SYNONYMS LLM-suggested related terms per token
          -> vocabulary (deduplicated)
    item score = |vocabulary tokens found in testCaseText| / |vocabulary|

Rows that already carry a requirementId are skipped; only test-case rows
are searched. Zero-score items are dropped, the rest are ordered by score
(desc) then testCaseId (asc), and collapsed on (testCaseId, testCaseSource).
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from specmatch.core.config import settings
from specmatch.core.errors import InputValidationError, SpecMatchError
from specmatch.services.job_repository import JobRepository
from specmatch.services.kv_store import KVStore
from specmatch.services.llm_client import LLMClient, build_llm_client, render_prompt
from specmatch.services.models import SearchableItem
from specmatch.services.synonym_cache import SynonymCache

logger = logging.getLogger(__name__)

_SPLIT_RE = re.compile(r",|\n")
_TRIM_CHARS = "\"' \t\r\n"


# ─── Scope ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SearchScope:
    """One job, an explicit set of jobs, or every job (``job_ids is None``)."""
    job_ids: Optional[tuple[str, ...]] = None

    @classmethod
    def for_job(cls, job_id: str) -> "SearchScope":
        return cls(job_ids=(job_id,))

    @classmethod
    def for_jobs(cls, job_ids: Sequence[str]) -> "SearchScope":
        return cls(job_ids=tuple(j.strip() for j in job_ids if j and j.strip()))

    @classmethod
    def all_jobs(cls) -> "SearchScope":
        return cls()

    @property
    def is_all(self) -> bool:
        return self.job_ids is None


# ─── Synonym Expansion ───────────────────────────────────────────────────────

def parse_synonym_list(raw: str, max_terms: int) -> list[str]:
    """Split an LLM answer on commas/newlines, trimming quotes and whitespace."""
    terms = [part.strip(_TRIM_CHARS) for part in _SPLIT_RE.split(raw or "")]
    return [t for t in terms if t][:max_terms]


class SynonymExpander:
    """
    Fetches related terms for one token through the LLM, memoized in an
    injected SynonymCache. Any failure degrades to [] and is cached too, so
    a broken upstream isn't hammered once per request.
    """

    def __init__(self, llm: LLMClient, cache: SynonymCache, max_terms: Optional[int] = None):
        self.llm = llm
        self.cache = cache
        self.max_terms = max_terms or settings.MAX_SYNONYMS

    async def expand(self, token: str) -> list[str]:
        cached = await self.cache.get(token)
        if cached is not None:
            return cached

        try:
            prompt = render_prompt("synonyms.txt", max_terms=self.max_terms, token=token)
            raw = await self.llm.complete(prompt, purpose="synonyms")
            terms = parse_synonym_list(raw, self.max_terms)
        except SpecMatchError as e:
            logger.warning(f"Synonym lookup failed for {token!r}, searching without expansion: {e}")
            terms = []

        await self.cache.set(token, terms)
        return terms


# ─── Scoring ─────────────────────────────────────────────────────────────────

def tokenize(query: str) -> list[str]:
    return query.lower().split()


def build_vocabulary(base_tokens: Sequence[str], synonym_lists: Sequence[Sequence[str]]) -> list[str]:
    vocabulary: dict[str, None] = {}
    for token in base_tokens:
        vocabulary.setdefault(token.lower(), None)
    for terms in synonym_lists:
        for term in terms:
            if term:
                vocabulary.setdefault(term.lower(), None)
    return list(vocabulary)


def score_text(text: str, vocabulary: Sequence[str]) -> float:
    if not vocabulary:
        return 0.0
    lowered = (text or "").lower()
    return sum(1 for token in vocabulary if token in lowered) / len(vocabulary)


def score_items(items: Sequence[SearchableItem], vocabulary: Sequence[str]) -> list[tuple[SearchableItem, float]]:
    """Score test-case rows; requirement rows and zero scores are dropped."""
    scored = []
    for item in items:
        if item.requirement_id.strip():
            continue
        score = score_text(item.test_case_text, vocabulary)
        if score > 0:
            scored.append((item, score))
    scored.sort(key=lambda pair: (-pair[1], pair[0].test_case_id))
    return scored


def dedupe_ranked(scored: Sequence[tuple[SearchableItem, float]]) -> list[SearchableItem]:
    """Keep the first (best) item per (testCaseId, testCaseSource); confidence becomes the score."""
    seen: set[tuple[str, str]] = set()
    results = []
    for item, score in scored:
        key = (item.test_case_id, item.test_case_source)
        if key in seen:
            continue
        seen.add(key)
        results.append(item.model_copy(update={"confidence": score}))
    return results


# ─── Engine ──────────────────────────────────────────────────────────────────

class SearchEngine:
    def __init__(self, repository: JobRepository, expander: SynonymExpander):
        self.repository = repository
        self.expander = expander

    async def _load_items(self, scope: SearchScope) -> list[SearchableItem]:
        if scope.is_all:
            job_ids = await self.repository.list_searchable_job_ids()
            logger.info(f"Searching across all jobs ({len(job_ids)} with searchable data)")
        else:
            job_ids = list(scope.job_ids)
        return await self.repository.get_searchable_data_many(job_ids)

    async def search(self, scope: SearchScope, query: str) -> list[SearchableItem]:
        base_tokens = list(dict.fromkeys(tokenize(query or "")))
        if not base_tokens:
            raise InputValidationError("Search query is required")

        items = await self._load_items(scope)
        if not items:
            logger.info(f"No searchable data for scope {scope}")
            return []

        synonym_lists = await asyncio.gather(*(self.expander.expand(t) for t in base_tokens))
        vocabulary = build_vocabulary(base_tokens, synonym_lists)

        results = dedupe_ranked(score_items(items, vocabulary))
        logger.info(f"Search {query!r}: {len(vocabulary)} vocabulary terms, {len(results)} unique test case(s)")
        return results


def build_search_engine(store: KVStore, llm: Optional[LLMClient] = None) -> SearchEngine:
    cache = SynonymCache(
        max_size=settings.SYNONYM_CACHE_MAX_SIZE,
        ttl_seconds=settings.SYNONYM_CACHE_TTL_SECONDS,
    )
    expander = SynonymExpander(llm or build_llm_client(), cache)
    return SearchEngine(JobRepository(store), expander)
