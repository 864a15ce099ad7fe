import logging

import redis
from celery import Celery

from specmatch.core.config import settings
from specmatch.core.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


def _redis_reachable(url: str) -> bool:
    try:
        client = redis.from_url(url, socket_connect_timeout=1)
        client.ping()
        return True
    except (redis.exceptions.RedisError, OSError) as e:
        logger.warning(f"Redis not available at {url} ({e})")
        return False


def get_celery_app() -> Celery:
    app = Celery(
        "specmatch_tasks",
        broker=settings.REDIS_URL,
        backend=settings.REDIS_URL,
        include=["specmatch.tasks"],
    )

    app.conf.update(
        result_expires=86400,  # 24 hours
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        # Ack on receipt: a job lost with its worker stays in its last phase
        # and must be resubmitted, never redelivered
        task_acks_late=False,
    )

    # The memory KV backend only exists inside this process, so a separate
    # worker could never see the job. Same fallback when Redis is down.
    if settings.KV_BACKEND.lower() == "memory":
        logger.info("KV_BACKEND=memory: running Celery tasks eagerly in-process")
        eager = True
    else:
        eager = not _redis_reachable(settings.REDIS_URL)
        if eager:
            logger.warning("Running Celery tasks eagerly in-process (task_always_eager=True)")
        else:
            logger.info(f"Celery connected to Redis at {settings.REDIS_URL}")

    if eager:
        app.conf.update(
            task_always_eager=True,
            task_eager_propagates=True,
        )

    return app


celery_app = get_celery_app()
