"""
Result Route: one-shot retrieval of a finished analysis.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from specmatch.api.deps import get_orchestrator
from specmatch.core.errors import NotFoundError
from specmatch.core.limiter import RESULT_LIMIT, limiter
from specmatch.services.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/result/{job_id}")
@limiter.limit(RESULT_LIMIT)
async def get_job_result(
    request: Request,
    job_id: str,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Return the Result and delete the job's files, status and result.
    A second call for the same job is a 404; search data is kept.
    """
    try:
        result = await orchestrator.get_result(job_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Result not found")
    return result.to_dict()
