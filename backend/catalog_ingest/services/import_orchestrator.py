"""Decide how an uploaded CSV is imported and start that import."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import UploadFile
from sqlalchemy.orm import Session

from catalog_ingest.core.config import Settings, get_settings
from catalog_ingest.core.errors import FileRejected
from catalog_ingest.db.models.import_job import JOB_PENDING, ImportJob
from catalog_ingest.services import job_registry
from catalog_ingest.services.csv_ingest import ImportTally, run_import
from catalog_ingest.services.progress_tracker import publish_progress
from catalog_ingest.storage.uploads import UploadTooLarge, delete_upload, save_upload
from catalog_ingest.utils.csv_validator import ValidationError
from catalog_ingest.workers.tasks.import_products import import_products_task

logger = logging.getLogger(__name__)

MODE_SYNC = "sync"
MODE_BACKGROUND = "background"


def _format_size(size: int) -> str:
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}TB"


def check_file_type(filename: str | None, content_type: str | None) -> None:
    """Only CSV uploads are accepted (by extension or declared content type)."""
    if not filename:
        raise FileRejected("Filename is required")
    if filename.lower().endswith(".csv"):
        return
    if content_type and "csv" in content_type.lower():
        return
    raise FileRejected("Invalid file type. Only CSV files are allowed.")


def check_file_size(size: int | None, settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    if size is not None and size > settings.max_file_bytes:
        raise FileRejected(
            f"File size {_format_size(size)} exceeds the "
            f"{_format_size(settings.max_file_bytes)} limit",
            status_code=413,
        )


def choose_mode(
    size: int,
    *,
    background: bool | None = None,
    settings: Settings | None = None,
) -> str:
    """Pick sync or background processing for a file of ``size`` bytes.

    Files over the ceiling are rejected regardless of the caller's choice.
    An explicit ``background`` wins; otherwise files above the threshold go
    to the background.
    """
    settings = settings or get_settings()
    check_file_size(size, settings)
    if background is not None:
        return MODE_BACKGROUND if background else MODE_SYNC
    if size > settings.background_threshold_bytes:
        return MODE_BACKGROUND
    return MODE_SYNC


def stage_upload(upload: UploadFile, settings: Settings | None = None) -> tuple[Path, int]:
    """Validate type and size, then copy the upload to the staging area."""
    settings = settings or get_settings()
    check_file_type(upload.filename, upload.content_type)
    check_file_size(getattr(upload, "size", None), settings)
    try:
        path, size = save_upload(
            upload.file, upload.filename, max_bytes=settings.max_file_bytes
        )
    except UploadTooLarge:
        raise FileRejected(
            f"File size exceeds the {_format_size(settings.max_file_bytes)} limit",
            status_code=413,
        )
    logger.info(f"Staged upload {upload.filename} ({_format_size(size)}) at {path}")
    return path, size


def run_sync_import(
    path: Path, db: Session, settings: Settings | None = None
) -> ImportTally:
    """Import a staged file inside the request and delete it afterwards."""
    settings = settings or get_settings()
    try:
        return run_import(
            path,
            db,
            error_limit=settings.import_error_limit,
            progress_interval=settings.import_progress_interval,
        )
    except ValidationError as exc:
        db.rollback()
        raise FileRejected(str(exc)) from exc
    finally:
        delete_upload(path)


def start_background_import(
    db: Session, path: Path, filename: str | None, size: int
) -> ImportJob:
    """Register a pending job for a staged file and hand it to a worker."""
    job = job_registry.create_job(
        db, file_path=str(path), filename=filename, file_size=size
    )
    db.commit()
    publish_progress(job.id, JOB_PENDING, message="Queued")

    try:
        import_products_task.apply_async(args=(job.id, str(path)), queue="imports")
    except Exception as exc:
        logger.error(f"Error enqueueing import job {job.id}: {exc}", exc_info=True)
        job_registry.fail_job(db, job.id, "could not be queued for processing")
        delete_upload(path)
        raise

    logger.info(f"Queued import job {job.id} for {filename} ({_format_size(size)})")
    return job
