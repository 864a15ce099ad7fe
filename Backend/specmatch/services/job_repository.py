"""
job_repository.py
~~~~~~~~~~~~~~~~~
Key-per-artifact persistence for jobs.

Keys:
    job:{id}:files            raw uploads (base64)          ephemeral
    job:{id}:status           current Status                ephemeral
    job:{id}:result           final Result                  ephemeral
    job:{id}:searchableData   SearchableItem list           retained
    job:{id}:fileNames        display names                 retained

Every write replaces the whole value. There is no transaction discipline:
one job is driven by one orchestrator run at a time.
"""
import asyncio
import logging
from typing import Optional

from specmatch.services.kv_store import KVStore
from specmatch.services.models import (
    AnalysisResult,
    FileNames,
    JobFiles,
    JobStatus,
    SearchableItem,
)

logger = logging.getLogger(__name__)

SEARCHABLE_DATA_PATTERN = "job:*:searchableData"


def job_key(job_id: str, artifact: str) -> str:
    return f"job:{job_id}:{artifact}"


class JobRepository:
    """Typed access to the ``job:*`` namespace of a KVStore."""

    def __init__(self, store: KVStore):
        self.store = store

    # ─── Files ───────────────────────────────────────────────────────────────

    async def set_files(self, job_id: str, files: JobFiles) -> None:
        await self.store.set(job_key(job_id, "files"), files.to_dict())

    async def get_files(self, job_id: str) -> Optional[JobFiles]:
        raw = await self.store.get(job_key(job_id, "files"))
        return JobFiles.model_validate(raw) if raw else None

    async def set_file_names(self, job_id: str, names: FileNames) -> None:
        await self.store.set(job_key(job_id, "fileNames"), names.to_dict())

    async def get_file_names(self, job_id: str) -> Optional[FileNames]:
        raw = await self.store.get(job_key(job_id, "fileNames"))
        return FileNames.model_validate(raw) if raw else None

    # ─── Status & Result ─────────────────────────────────────────────────────

    async def set_status(self, job_id: str, status: JobStatus) -> None:
        await self.store.set(job_key(job_id, "status"), status.to_dict())

    async def get_status(self, job_id: str) -> Optional[JobStatus]:
        raw = await self.store.get(job_key(job_id, "status"))
        return JobStatus.model_validate(raw) if raw else None

    async def set_result(self, job_id: str, result: AnalysisResult) -> None:
        await self.store.set(job_key(job_id, "result"), result.to_dict())

    async def get_result(self, job_id: str) -> Optional[AnalysisResult]:
        raw = await self.store.get(job_key(job_id, "result"))
        return AnalysisResult.model_validate(raw) if raw else None

    # ─── Searchable Data ─────────────────────────────────────────────────────

    async def set_searchable_data(self, job_id: str, items: list[SearchableItem]) -> None:
        await self.store.set(job_key(job_id, "searchableData"), [item.to_dict() for item in items])

    async def get_searchable_data(self, job_id: str) -> Optional[list[SearchableItem]]:
        raw = await self.store.get(job_key(job_id, "searchableData"))
        if raw is None:
            return None
        return [SearchableItem.model_validate(item) for item in raw]

    async def get_searchable_data_many(self, job_ids: list[str]) -> list[SearchableItem]:
        batches = await asyncio.gather(*(self.get_searchable_data(job_id) for job_id in job_ids))
        return [item for batch in batches if batch for item in batch]

    async def list_searchable_job_ids(self) -> list[str]:
        keys = await self.store.keys(SEARCHABLE_DATA_PATTERN)
        # job ids are uuid4 strings (no ":"), so the middle segment is the id
        return sorted(key.split(":")[1] for key in keys)

    # ─── Cleanup ─────────────────────────────────────────────────────────────

    async def cleanup_job(self, job_id: str) -> None:
        """Drop ephemeral state. searchableData and fileNames back cross-job search and stay."""
        logger.info(f"Cleaning up job {job_id} (keeping searchableData and fileNames)")
        await self.store.delete(
            job_key(job_id, "files"),
            job_key(job_id, "status"),
            job_key(job_id, "result"),
        )
