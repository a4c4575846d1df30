"""Celery task for long-running CSV ingestion."""

from __future__ import annotations

import logging
from pathlib import Path

from catalog_ingest.core.config import get_settings
from catalog_ingest.db.models.import_job import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PROCESSING,
    ImportJob,
)
from catalog_ingest.db.session import get_fresh_session
from catalog_ingest.services import csv_ingest, job_registry
from catalog_ingest.services.progress_tracker import publish_progress
from catalog_ingest.storage.uploads import delete_upload
from catalog_ingest.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="catalog_ingest.workers.tasks.import_products")
def import_products_task(self, job_id: str, file_path: str):
    """Claim the job, apply every row in order, and keep the registry current."""
    settings = get_settings()
    session = get_fresh_session()
    path_obj = Path(file_path).resolve()
    tally: csv_ingest.ImportTally | None = None
    claimed = False

    try:
        job = session.get(ImportJob, job_id)
        if job is None:
            logger.warning(f"Import job {job_id} no longer exists; skipping")
            delete_upload(path_obj)
            return
        if not job_registry.claim_job(session, job_id):
            # Another worker may still be reading the file of a processing job.
            session.refresh(job)
            if job.is_terminal:
                delete_upload(path_obj)
            logger.warning(f"Import job {job_id} is {job.status}, not pending; skipping")
            return
        claimed = True
        publish_progress(job_id, JOB_PROCESSING, message="Counting rows")

        if not path_obj.exists():
            raise FileNotFoundError(f"Staged CSV file not found: {path_obj}")

        def on_start(current: csv_ingest.ImportTally) -> None:
            nonlocal tally
            tally = current
            if not job_registry.checkpoint_job(session, job_id, current):
                raise csv_ingest.ImportAborted("job was finished before rows were read")
            publish_progress(
                job_id,
                JOB_PROCESSING,
                current,
                message=f"Processing {current.total_rows} rows",
            )

        def on_progress(current: csv_ingest.ImportTally) -> bool:
            if not job_registry.checkpoint_job(session, job_id, current):
                logger.warning(
                    f"Import job {job_id} was finished elsewhere; stopping at "
                    f"row {current.processed_rows}"
                )
                return False
            publish_progress(
                job_id,
                JOB_PROCESSING,
                current,
                message=f"Processed {current.processed_rows}/{current.total_rows} rows",
            )
            return True

        tally = csv_ingest.run_import(
            path_obj,
            session,
            error_limit=settings.import_error_limit,
            progress_interval=settings.import_progress_interval,
            on_start=on_start,
            on_progress=on_progress,
        )

        if job_registry.complete_job(session, job_id, tally):
            publish_progress(job_id, JOB_COMPLETED, tally, message="Import complete")
            logger.info(
                f"Import job {job_id} completed: {tally.success_count} succeeded, "
                f"{tally.fail_count} failed"
            )
        else:
            logger.warning(f"Import job {job_id} was finished elsewhere before completion")
        return tally.as_dict()
    except csv_ingest.ImportAborted as exc:
        session.rollback()
        logger.warning(f"Import job {job_id} aborted: {exc}")
        return None
    except Exception as exc:
        session.rollback()
        logger.error(f"Import job {job_id} failed: {exc}", exc_info=True)
        job_registry.fail_job(session, job_id, str(exc), tally)
        publish_progress(job_id, JOB_FAILED, tally, message="Import failed")
        raise
    finally:
        if claimed:
            delete_upload(path_obj)
        session.close()
