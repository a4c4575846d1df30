"""Liveness and readiness endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from catalog_ingest.core.config import get_settings
from catalog_ingest.db.session import engine
from catalog_ingest.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "catalog-ingest-api"


@router.get("/live", summary="Liveness check")
def live() -> dict[str, str]:
    """Indicates the API process is running."""
    return {"status": "ok", "service": SERVICE_NAME}


def _ping_redis(url: str) -> None:
    client = create_redis_client(url, decode_responses=True, socket_connect_timeout=2)
    try:
        client.ping()
    finally:
        client.close()


@router.get("/ready", summary="Readiness check")
def ready() -> dict[str, Any]:
    """Check the database, the progress store and the Celery broker.

    The broker is reported but does not fail readiness, since workers may be
    deployed separately from the API.
    """
    settings = get_settings()
    checks: dict[str, Any] = {"status": "ok", "service": SERVICE_NAME, "checks": {}}
    all_healthy = True

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        checks["checks"]["database"] = {"status": "healthy"}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        checks["checks"]["database"] = {"status": "unhealthy", "message": str(e)}
        all_healthy = False

    try:
        _ping_redis(settings.redis_url)
        checks["checks"]["redis"] = {"status": "healthy"}
    except RedisError as e:
        logger.error(f"Redis health check failed: {e}", exc_info=True)
        checks["checks"]["redis"] = {"status": "unhealthy", "message": str(e)}
        all_healthy = False

    try:
        _ping_redis(settings.celery_broker_url or settings.redis_url)
        checks["checks"]["celery_broker"] = {"status": "healthy"}
    except RedisError as e:
        logger.warning(f"Celery broker health check failed: {e}")
        checks["checks"]["celery_broker"] = {"status": "unhealthy", "message": str(e)}

    if not all_healthy:
        checks["status"] = "unhealthy"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=checks,
        )
    return checks
