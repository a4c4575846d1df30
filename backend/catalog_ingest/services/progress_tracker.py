"""Shared helpers for publishing job progress snapshots to Redis."""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any

from redis.exceptions import RedisError

from catalog_ingest.core.config import get_settings
from catalog_ingest.services.csv_ingest import ImportTally
from catalog_ingest.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)

settings = get_settings()
redis_client = create_redis_client(
    settings.redis_url, decode_responses=True, socket_connect_timeout=2
)
PROGRESS_PREFIX = "imports:progress:"
PROGRESS_TTL = timedelta(hours=24)


def _key(job_id: str) -> str:
    return f"{PROGRESS_PREFIX}{job_id}"


def publish_progress(
    job_id: str,
    status: str,
    tally: ImportTally | None = None,
    message: str | None = None,
) -> None:
    """Persist a progress snapshot so pollers need not hit the database."""
    payload: dict[str, Any] = {
        "job_id": job_id,
        "status": status,
        "progress": tally.progress if tally is not None else 0,
        "message": message,
    }
    if tally is not None:
        payload.update(tally.as_dict())
    try:
        redis_client.set(
            _key(job_id),
            json.dumps(payload),
            ex=int(PROGRESS_TTL.total_seconds()),
        )
    except RedisError as exc:
        # Redis availability should not break ingestion.
        logger.debug(f"Could not publish progress for job {job_id}: {exc}")


def fetch_progress(job_id: str) -> dict[str, Any]:
    """Return the latest snapshot for ``job_id`` or an empty dict."""
    try:
        raw = redis_client.get(_key(job_id))
    except RedisError:
        return {}
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {}


def clear_progress(job_id: str) -> None:
    try:
        redis_client.delete(_key(job_id))
    except RedisError:
        pass
