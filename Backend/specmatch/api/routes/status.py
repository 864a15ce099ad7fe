"""
Status Routes: Job phase polling.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from specmatch.api.deps import get_orchestrator
from specmatch.core.errors import NotFoundError
from specmatch.core.limiter import STATUS_LIMIT, limiter
from specmatch.services.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/status/{job_id}")
@limiter.limit(STATUS_LIMIT)
async def get_job_status(
    request: Request,
    job_id: str,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Check the progress of a job: ``{phase, message, progress}``.
    """
    try:
        status = await orchestrator.get_status(job_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    return status.to_dict()
