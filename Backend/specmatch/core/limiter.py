"""
Rate Limiting Module
Uses slowapi to protect the API endpoints from abuse.
"""
import logging

import redis
from slowapi import Limiter
from slowapi.util import get_remote_address

from specmatch.core.config import settings

logger = logging.getLogger(__name__)


def _storage_uri() -> str:
    """Share counters through Redis when it is the KV backend and reachable."""
    if not settings.RATE_LIMIT_ENABLED or settings.KV_BACKEND.lower() == "memory":
        return "memory://"
    try:
        client = redis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
        client.ping()
        logger.info(f"Rate Limiter connected to Redis at {settings.REDIS_URL}")
        return settings.REDIS_URL
    except (redis.exceptions.RedisError, OSError) as e:
        logger.warning(f"Rate Limiter: Redis not available ({e}). Falling back to memory storage.")
        return "memory://"


# Key function: rate limit per client IP address
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=_storage_uri(),
)

# Endpoint-specific limits
SUBMIT_LIMIT = "10/minute"
PROCESS_LIMIT = "20/minute"
STATUS_LIMIT = "120/minute"
RESULT_LIMIT = "30/minute"
SEARCH_LIMIT = "60/minute"
LOG_LIMIT = "120/minute"

logger.info(f"Rate limiting {'ENABLED' if settings.RATE_LIMIT_ENABLED else 'DISABLED'}")
