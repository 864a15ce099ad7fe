import asyncio
import logging
import threading

from specmatch.core.celery_app import celery_app
from specmatch.core.errors import NotFoundError
from specmatch.services.kv_store import create_kv_store
from specmatch.services.llm_client import build_llm_client
from specmatch.services.orchestrator import build_orchestrator

logger = logging.getLogger(__name__)


def run_async_wrapper(coro):
    """
    Run an async coroutine synchronously, handling existing event loops.
    If a loop is already running (e.g. Celery eager mode inside an API request),
    run in a separate thread with its own loop. Otherwise, use asyncio.run().
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        logger.info("Event loop detected. Running async task in separate thread.")
        result = None
        exception = None

        def run_in_thread():
            nonlocal result, exception
            try:
                result = asyncio.run(coro)
            except Exception as e:
                exception = e

        thread = threading.Thread(target=run_in_thread)
        thread.start()
        thread.join()

        if exception:
            raise exception
        return result
    return asyncio.run(coro)


async def _advance_job(job_id: str) -> None:
    # Fresh store per run: the Redis client is bound to this run's event loop
    store = create_kv_store()
    try:
        orchestrator = build_orchestrator(store, build_llm_client())
        await orchestrator.advance(job_id)
    finally:
        await store.close()


@celery_app.task(name="specmatch.tasks.process_job")
def process_job_task(job_id: str) -> None:
    """Advance one submitted job through parsing and analysis."""
    logger.info(f"Processing job {job_id}")
    try:
        run_async_wrapper(_advance_job(job_id))
    except NotFoundError as e:
        logger.error(f"Cannot process job {job_id}: {e}")
