"""
Shared route dependencies. Tests swap these out via ``app.dependency_overrides``.
"""
from functools import lru_cache

from specmatch.services.kv_store import get_kv_store
from specmatch.services.orchestrator import JobOrchestrator, build_orchestrator
from specmatch.services.search import SearchEngine, build_search_engine


@lru_cache(maxsize=1)
def get_orchestrator() -> JobOrchestrator:
    return build_orchestrator(get_kv_store())


@lru_cache(maxsize=1)
def get_search_engine() -> SearchEngine:
    return build_search_engine(get_kv_store())
