"""
orchestrator.py
~~~~~~~~~~~~~~~
Per-job phase state machine on top of the key-value store.

    extracting ──► processing ──► analyzing ──► complete
         │              │              │
         └──────────────┴──────────────┴──────► error

Every transition is persisted before the next step starts, so a status
poller only ever sees whole snapshots. Parsing and analysis are each raced
against STAGE_TIMEOUT_SECONDS; the loser is abandoned, not cancelled.
"""
import asyncio
import base64
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional

from specmatch.core.config import settings
from specmatch.core.errors import InputValidationError, NotFoundError, StageTimeoutError
from specmatch.services.analysis_cache import AnalysisCache
from specmatch.services.analyzer import ChunkedAnalyzer
from specmatch.services.document_parser import ParsedFiles, parse_files
from specmatch.services.job_repository import JobRepository
from specmatch.services.kv_store import KVStore
from specmatch.services.llm_client import LLMClient, build_llm_client
from specmatch.services.models import (
    AnalysisResult,
    FileNames,
    JobFiles,
    JobStatus,
    Phase,
)
from specmatch.services.searchable_index import build_searchable_items

logger = logging.getLogger(__name__)

Parser = Callable[[JobFiles], Awaitable[ParsedFiles]]


# ─── Deadlines ───────────────────────────────────────────────────────────────

def _consume_abandoned(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"Abandoned stage finished late with an error: {exc}")
    else:
        logger.info("Abandoned stage finished late; result discarded")


async def run_with_deadline(awaitable: Awaitable[Any], timeout: float, message: str) -> Any:
    """
    Await *awaitable* for at most *timeout* seconds.

    On timeout the operation keeps running in the background and its
    outcome is discarded.

    The abandoned operation only lives as long as the event loop. Under
    ``process_job_task`` the loop belongs to a single ``asyncio.run`` call,
    so when ``advance`` returns the KV store is closed and the late task is
    cancelled at loop shutdown; its result and any cache write it would
    have made are lost rather than landing late.

    Raises:
        StageTimeoutError: with *message* when the deadline wins.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()
    task.add_done_callback(_consume_abandoned)
    raise StageTimeoutError(message)


# ─── Orchestrator ────────────────────────────────────────────────────────────

class JobOrchestrator:
    def __init__(
        self,
        repository: JobRepository,
        cache: AnalysisCache,
        stage_timeout: Optional[float] = None,
        analysis_version: Optional[str] = None,
        parser: Parser = parse_files,
    ):
        self.repository = repository
        self.cache = cache
        self.stage_timeout = stage_timeout or settings.STAGE_TIMEOUT_SECONDS
        self.analysis_version = analysis_version or settings.ANALYSIS_VERSION
        self.parser = parser

    async def _set_phase(self, job_id: str, phase: Phase, message: str, progress: int) -> None:
        await self.repository.set_status(job_id, JobStatus(phase=phase, message=message, progress=progress))
        logger.info(f"Job {job_id}: {phase.value} ({progress}%) {message}")

    # ─── Submit ──────────────────────────────────────────────────────────────

    async def submit(
        self,
        base: bytes,
        updated: Optional[bytes],
        tests: bytes,
        names: FileNames,
    ) -> str:
        """Store the uploads and queue the job in phase ``extracting``."""
        if not base:
            raise InputValidationError("Base specification is required")
        if not tests:
            raise InputValidationError("Test case table is required")

        job_id = str(uuid.uuid4())
        files = JobFiles(
            base=base64.b64encode(base).decode("ascii"),
            updated=base64.b64encode(updated).decode("ascii") if updated else None,
            tests=base64.b64encode(tests).decode("ascii"),
        )
        await self.repository.set_files(job_id, files)
        await self.repository.set_file_names(job_id, names)
        await self._set_phase(job_id, Phase.EXTRACTING, "Queued for extraction", 0)
        return job_id

    # ─── Advance ─────────────────────────────────────────────────────────────

    async def advance(self, job_id: str) -> None:
        """
        Drive a queued job to ``complete`` or ``error``.

        Only jobs still in ``extracting`` are run; calling this again for a
        job that is already underway or finished does nothing.

        Raises:
            NotFoundError: Unknown job, or its files are gone.
        """
        status = await self.repository.get_status(job_id)
        if status is None:
            raise NotFoundError(f"Job {job_id} not found")
        files = await self.repository.get_files(job_id)
        if files is None:
            raise NotFoundError(f"Files not found for job {job_id}")

        if status.phase != Phase.EXTRACTING:
            logger.info(f"Job {job_id} already {status.phase.value}; nothing to do")
            return

        try:
            await self._run(job_id, files)
        except Exception as e:
            logger.error(f"Job {job_id} failed: {e}", exc_info=True)
            await self._set_phase(job_id, Phase.ERROR, str(e) or type(e).__name__, 0)

    async def _run(self, job_id: str, files: JobFiles) -> None:
        file_names = await self.repository.get_file_names(job_id)
        if file_names is None:
            logger.warning(f"File names missing for job {job_id}; it will not be searchable")

        await self._set_phase(job_id, Phase.PROCESSING, "Processing files...", 10)
        parsed: ParsedFiles = await run_with_deadline(
            self.parser(files), self.stage_timeout, "File parsing timed out"
        )

        await self._set_phase(job_id, Phase.ANALYZING, "Analyzing requirements...", 50)
        result: AnalysisResult = await run_with_deadline(
            self.cache.get_or_compute(parsed.base, parsed.updated, parsed.tests, self.analysis_version),
            self.stage_timeout,
            "Analysis timed out",
        )
        await self.repository.set_result(job_id, result)

        if file_names is not None:
            items = build_searchable_items(job_id, parsed.tests, file_names)
            if items:
                await self.repository.set_searchable_data(job_id, items)
                logger.info(f"Job {job_id}: indexed {len(items)} test case row(s) for search")
            else:
                logger.warning(f"Job {job_id}: test table has no data rows, nothing to index")

        await self._set_phase(job_id, Phase.COMPLETE, "Analysis complete", 100)

    # ─── Read Side ───────────────────────────────────────────────────────────

    async def get_status(self, job_id: str) -> JobStatus:
        status = await self.repository.get_status(job_id)
        if status is None:
            raise NotFoundError(f"Job {job_id} not found")
        return status

    async def get_result(self, job_id: str) -> AnalysisResult:
        """Return the result once; files, status and result are deleted afterwards."""
        result = await self.repository.get_result(job_id)
        if result is None:
            raise NotFoundError(f"Result not found for job {job_id}")
        await self.repository.cleanup_job(job_id)
        return result


def build_orchestrator(store: KVStore, llm: Optional[LLMClient] = None) -> JobOrchestrator:
    repository = JobRepository(store)
    analyzer = ChunkedAnalyzer(llm or build_llm_client())
    return JobOrchestrator(repository, AnalysisCache(store, analyzer))
