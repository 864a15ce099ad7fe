import json
import logging
from datetime import datetime, timezone
from typing import Any

from specmatch.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once per process."""
    global _configured
    if _configured:
        return
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)
    _configured = True


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    """
    Emit one structured event as a single JSON line.

    Used for LLM call telemetry and for events posted by the web client, so
    they can be grepped out of the process log by ``type``.
    """
    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "type": event,
        **fields,
    }
    logger.log(level, json.dumps(payload, default=str))
