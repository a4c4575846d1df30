"""Endpoints for CSV import dispatch and background job polling."""

from __future__ import annotations

import logging

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    Response,
    UploadFile,
    status,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_ingest.api.routers.job_helpers import serialize_job
from catalog_ingest.api.schemas.job import (
    ErrorResponse,
    ImportReport,
    JobAccepted,
    JobStatus,
)
from catalog_ingest.core.config import get_settings
from catalog_ingest.core.errors import IngestError
from catalog_ingest.db.session import get_db
from catalog_ingest.services import job_registry
from catalog_ingest.services.import_orchestrator import (
    MODE_BACKGROUND,
    choose_mode,
    run_sync_import,
    stage_upload,
    start_background_import,
)
from catalog_ingest.services.progress_tracker import fetch_progress
from catalog_ingest.storage.uploads import delete_upload

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_ERRORS = {
    400: {"model": ErrorResponse, "description": "Rejected file or header"},
    413: {"model": ErrorResponse, "description": "File exceeds the upload ceiling"},
}


def _dispatch(
    file: UploadFile, db: Session, background: bool | None, response: Response
) -> JobAccepted | ImportReport:
    settings = get_settings()
    path, size = stage_upload(file, settings)
    try:
        mode = choose_mode(size, background=background, settings=settings)
    except IngestError:
        delete_upload(path)
        raise

    try:
        if mode == MODE_BACKGROUND:
            job = start_background_import(db, path, file.filename, size)
            response.status_code = status.HTTP_202_ACCEPTED
            return JobAccepted(job_id=job.id, status=job.status)

        tally = run_sync_import(path, db, settings)
        logger.info(
            f"Imported {file.filename}: {tally.success_count} ok, "
            f"{tally.fail_count} failed of {tally.total_rows} rows"
        )
        return ImportReport(**tally.as_dict())
    except IngestError:
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Database error importing {file.filename}: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to import file",
        ) from exc
    except Exception as exc:
        logger.error(f"Unexpected error importing {file.filename}: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred",
        ) from exc


@router.post(
    "/",
    summary="Import a CSV, choosing sync or background by size",
    response_model=JobAccepted | ImportReport,
    responses=UPLOAD_ERRORS,
)
def import_auto(
    response: Response,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
) -> JobAccepted | ImportReport:
    """Files above the background threshold are queued (202 + job id);
    smaller files are imported inline and the final report is returned.
    """
    return _dispatch(file, db, None, response)


@router.post(
    "/sync",
    summary="Import a CSV inside the request",
    response_model=ImportReport,
    responses=UPLOAD_ERRORS,
)
def import_sync(
    response: Response,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
) -> ImportReport:
    return _dispatch(file, db, False, response)


@router.post(
    "/background",
    summary="Queue a CSV import job",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=JobAccepted,
    responses=UPLOAD_ERRORS,
)
def import_background(
    response: Response,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
) -> JobAccepted:
    return _dispatch(file, db, True, response)


@router.get(
    "/background",
    summary="Check background import progress",
    response_model=JobStatus,
    responses={404: {"model": ErrorResponse}},
)
def get_import_status(
    job_id: str = Query(..., alias="jobId"),
    db: Session = Depends(get_db),
) -> JobStatus:
    """Expose latest processing stats to power UI progress bars."""
    job = job_registry.get_job(db, job_id)
    return serialize_job(job, fetch_progress(job_id))
