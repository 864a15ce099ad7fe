"""
Log Route: structured event intake from the web client.
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from specmatch.core.config import settings
from specmatch.core.limiter import LOG_LIMIT, limiter
from specmatch.core.logging_config import log_event

logger = logging.getLogger(__name__)
router = APIRouter()


class ClientLogEntry(BaseModel):
    jobId: Optional[str] = None
    type: str
    input: Optional[Any] = None
    output: Optional[Any] = None
    duration: Optional[float] = None


@router.post("/log")
@limiter.limit(LOG_LIMIT)
async def log_client_event(request: Request, entry: ClientLogEntry):
    log_event(
        logger,
        entry.type,
        jobId=entry.jobId,
        input=entry.input,
        output=entry.output,
        duration=entry.duration,
        environment=settings.ENVIRONMENT,
    )
    return {"success": True}
