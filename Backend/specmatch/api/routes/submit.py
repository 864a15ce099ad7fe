"""
Submit Route: Specification + test table ingestion.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from specmatch.api.deps import get_orchestrator
from specmatch.core.errors import InputValidationError
from specmatch.core.file_validation import (
    DOCUMENT_EXTENSIONS,
    TABLE_EXTENSIONS,
    read_validated_upload,
    safe_filename,
)
from specmatch.core.limiter import SUBMIT_LIMIT, limiter
from specmatch.services.models import FileNames
from specmatch.services.orchestrator import JobOrchestrator
from specmatch.tasks import process_job_task

logger = logging.getLogger(__name__)
router = APIRouter()


class SubmitResponse(BaseModel):
    jobId: str
    message: str


@router.post("/submit", response_model=SubmitResponse)
@limiter.limit(SUBMIT_LIMIT)
async def submit_job(
    request: Request,
    baseFsd: Optional[UploadFile] = File(None),
    updatedFsd: Optional[UploadFile] = File(None),
    testsCsv: Optional[UploadFile] = File(None),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Store the uploads, queue the job in phase ``extracting`` and dispatch
    processing. Returns the job id immediately.
    """
    if baseFsd is None or testsCsv is None:
        raise HTTPException(status_code=400, detail="Base FSD and Tests CSV are required")

    base = await read_validated_upload(baseFsd, DOCUMENT_EXTENSIONS)
    updated = await read_validated_upload(updatedFsd, DOCUMENT_EXTENSIONS) if updatedFsd else None
    tests = await read_validated_upload(testsCsv, TABLE_EXTENSIONS)

    names = FileNames(
        base_spec_name=safe_filename(baseFsd.filename, "base_spec.txt"),
        updated_spec_name=safe_filename(updatedFsd.filename, "updated_spec.txt") if updatedFsd else None,
        tests_name=safe_filename(testsCsv.filename, "tests.csv"),
    )

    try:
        job_id = await orchestrator.submit(base, updated, tests, names)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    process_job_task.delay(job_id)
    logger.info(f"Job {job_id} submitted ({names.base_spec_name}, {names.tests_name})")

    return SubmitResponse(jobId=job_id, message="Files uploaded. Processing started.")
