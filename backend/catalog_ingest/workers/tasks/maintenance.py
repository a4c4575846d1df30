"""Periodic registry upkeep: expire stalled jobs and purge old ones."""

from __future__ import annotations

import logging
from datetime import timedelta

from catalog_ingest.core.config import get_settings
from catalog_ingest.db.session import get_fresh_session
from catalog_ingest.services import job_registry
from catalog_ingest.services.progress_tracker import clear_progress
from catalog_ingest.storage.uploads import delete_upload
from catalog_ingest.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="catalog_ingest.workers.tasks.reap_stale_import_jobs")
def reap_stale_import_jobs_task() -> list[str]:
    """Fail processing jobs whose lease expired and pending jobs queued too long."""
    settings = get_settings()
    session = get_fresh_session()
    try:
        reaped = job_registry.reap_stale_jobs(
            session,
            timedelta(seconds=settings.import_job_stale_after_seconds),
            queue_timeout=timedelta(seconds=settings.import_job_queue_timeout_seconds),
        )
        for path in job_registry.staged_files(session, reaped):
            delete_upload(path)
        for job_id in reaped:
            clear_progress(job_id)
        return reaped
    finally:
        session.close()


@celery_app.task(name="catalog_ingest.workers.tasks.purge_expired_import_jobs")
def purge_expired_import_jobs_task() -> int:
    settings = get_settings()
    session = get_fresh_session()
    try:
        paths = job_registry.purge_expired_jobs(
            session, timedelta(days=settings.import_job_retention_days)
        )
    finally:
        session.close()
    for path in paths:
        delete_upload(path)
    return len(paths)
