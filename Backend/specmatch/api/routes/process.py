"""
Process Route: (re)trigger processing of a submitted job.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from specmatch.api.deps import get_orchestrator
from specmatch.core.errors import NotFoundError
from specmatch.core.limiter import PROCESS_LIMIT, limiter
from specmatch.services.orchestrator import JobOrchestrator
from specmatch.tasks import process_job_task

logger = logging.getLogger(__name__)
router = APIRouter()


class ProcessRequest(BaseModel):
    jobId: str


@router.post("/process")
@limiter.limit(PROCESS_LIMIT)
async def process_job(
    request: Request,
    body: ProcessRequest,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Safe to call repeatedly: jobs already past ``extracting`` are left alone.
    """
    if not body.jobId.strip():
        raise HTTPException(status_code=400, detail="Job ID is required")

    try:
        status = await orchestrator.get_status(body.jobId)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    process_job_task.delay(body.jobId)
    return {"jobId": body.jobId, "phase": status.phase.value, "message": "Processing requested"}
