"""The import job registry: the ``import_jobs`` table plus its state rules.

Every state change is a conditional UPDATE on the current status, so a job
that has reached ``completed`` or ``failed`` can never be written again, and
a worker whose job was failed by the watchdog notices at its next checkpoint.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session

from catalog_ingest.core.config import get_settings
from catalog_ingest.core.errors import JobNotFound
from catalog_ingest.db.models.import_job import (
    ACTIVE_STATUSES,
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PENDING,
    JOB_PROCESSING,
    TERMINAL_STATUSES,
    ImportJob,
)
from catalog_ingest.services.csv_ingest import ImportTally

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_job(
    db: Session, *, file_path: str, filename: str | None, file_size: int
) -> ImportJob:
    """Register a pending job for a staged upload (caller commits)."""
    job = ImportJob(
        status=JOB_PENDING,
        uploaded_file_path=file_path,
        original_filename=filename,
        file_size=file_size,
        errors=[],
    )
    db.add(job)
    db.flush()
    return job


def get_job(db: Session, job_id: str) -> ImportJob:
    job = db.get(ImportJob, job_id)
    if job is None:
        raise JobNotFound(job_id)
    return job


def list_jobs(db: Session, *, status: str | None = None, limit: int = 50) -> list[ImportJob]:
    query = select(ImportJob)
    if status:
        query = query.where(ImportJob.status == status)
    return list(db.scalars(query.order_by(ImportJob.created_at.desc()).limit(limit)))


def _transition(db: Session, job_id: str, expected: tuple[str, ...], **values) -> bool:
    result = db.execute(
        update(ImportJob)
        .where(ImportJob.id == job_id, ImportJob.status.in_(expected))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def claim_job(db: Session, job_id: str) -> bool:
    """pending -> processing. False if another worker (or the watchdog) got there first."""
    now = _now()
    return _transition(
        db,
        job_id,
        (JOB_PENDING,),
        status=JOB_PROCESSING,
        started_at=now,
        heartbeat_at=now,
    )


def checkpoint_job(db: Session, job_id: str, tally: ImportTally) -> bool:
    """Persist counters and renew the lease; False means the job is no longer ours."""
    return _transition(
        db,
        job_id,
        (JOB_PROCESSING,),
        heartbeat_at=_now(),
        **tally.as_dict(),
    )


def complete_job(db: Session, job_id: str, tally: ImportTally) -> bool:
    now = _now()
    return _transition(
        db,
        job_id,
        (JOB_PROCESSING,),
        status=JOB_COMPLETED,
        finished_at=now,
        heartbeat_at=now,
        **tally.as_dict(),
    )


def fail_job(
    db: Session, job_id: str, message: str, tally: ImportTally | None = None
) -> bool:
    """Move an active job to ``failed``, keeping whatever counters were reached."""
    values = tally.as_dict() if tally is not None else {}
    errors = list(values.pop("errors", None) or _current_errors(db, job_id))
    errors.append(f"Job failed: {message}")
    limit = tally.error_limit if tally is not None else get_settings().import_error_limit
    errors = errors[-limit:]
    now = _now()
    return _transition(
        db,
        job_id,
        ACTIVE_STATUSES,
        status=JOB_FAILED,
        error_message=message,
        errors=errors,
        finished_at=now,
        heartbeat_at=now,
        **values,
    )


def _current_errors(db: Session, job_id: str) -> list[str]:
    return list(db.scalar(select(ImportJob.errors).where(ImportJob.id == job_id)) or [])


def reap_stale_jobs(
    db: Session,
    stale_after: timedelta,
    *,
    queue_timeout: timedelta | None = None,
    dry_run: bool = False,
) -> list[str]:
    """Fail jobs that can no longer finish on their own.

    A ``processing`` job is stale once its lease (last heartbeat) is older
    than ``stale_after``. A ``pending`` job only waits on the queue, which a
    long import ahead of it can hold for hours, so it is failed only after
    ``queue_timeout``; with no timeout pending jobs are left alone.
    """
    now = _now()
    last_seen = func.coalesce(
        ImportJob.heartbeat_at, ImportJob.started_at, ImportJob.created_at
    )
    conditions = [
        and_(ImportJob.status == JOB_PROCESSING, last_seen < now - stale_after)
    ]
    if queue_timeout is not None:
        conditions.append(
            and_(
                ImportJob.status == JOB_PENDING,
                ImportJob.created_at < now - queue_timeout,
            )
        )
    stale = list(db.execute(select(ImportJob.id, ImportJob.status).where(or_(*conditions))))
    if dry_run:
        return [job_id for job_id, _ in stale]

    reaped = []
    for job_id, status in stale:
        if status == JOB_PENDING:
            hours = int(queue_timeout.total_seconds() // 3600)
            message = f"still queued after {hours} hours; no worker picked it up"
        else:
            minutes = int(stale_after.total_seconds() // 60)
            message = f"no progress for {minutes} minutes; worker presumed lost"
        if fail_job(db, job_id, message):
            logger.warning(f"Marked stale {status} import job {job_id} as failed")
            reaped.append(job_id)
    return reaped


def staged_files(db: Session, job_ids: list[str]) -> list[str]:
    """Staged upload paths recorded for ``job_ids``."""
    if not job_ids:
        return []
    return list(
        db.scalars(
            select(ImportJob.uploaded_file_path).where(ImportJob.id.in_(job_ids))
        )
    )


def purge_expired_jobs(db: Session, retention: timedelta) -> list[str]:
    """Delete finished jobs older than ``retention``.

    Returns the staged upload paths of the deleted rows so the caller can
    remove any file still left on disk.
    """
    threshold = _now() - retention
    expired = (
        ImportJob.status.in_(TERMINAL_STATUSES),
        ImportJob.finished_at < threshold,
    )
    paths = list(db.scalars(select(ImportJob.uploaded_file_path).where(*expired)))
    result = db.execute(
        delete(ImportJob).where(*expired).execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount:
        logger.info(f"Purged {result.rowcount} finished import jobs")
    return paths
