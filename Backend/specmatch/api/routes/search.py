"""
Search Route: keyword search over indexed test case rows.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from specmatch.api.deps import get_search_engine
from specmatch.core.errors import InputValidationError
from specmatch.core.limiter import SEARCH_LIMIT, limiter
from specmatch.services.search import SearchEngine, SearchScope

logger = logging.getLogger(__name__)
router = APIRouter()


def resolve_scope(job_id: Optional[str], job_ids: Optional[str]) -> SearchScope:
    """``jobIds=a,b`` wins over ``jobId``; no job id (or ``all``) searches every job."""
    if job_ids:
        return SearchScope.for_jobs(job_ids.split(","))
    if not job_id or job_id.strip().lower() == "all":
        return SearchScope.all_jobs()
    return SearchScope.for_job(job_id.strip())


@router.get("/search")
@limiter.limit(SEARCH_LIMIT)
async def search_test_cases(
    request: Request,
    query: Optional[str] = None,
    jobId: Optional[str] = None,
    jobIds: Optional[str] = None,
    engine: SearchEngine = Depends(get_search_engine),
):
    scope = resolve_scope(jobId, jobIds)
    try:
        items = await engine.search(scope, query or "")
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [item.to_dict() for item in items]
