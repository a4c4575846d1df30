"""Shared helpers for shaping job responses."""
from __future__ import annotations

from catalog_ingest.api.schemas.job import JobStatus
from catalog_ingest.db.models.import_job import JOB_COMPLETED, ImportJob

COUNTER_FIELDS = (
    "total_rows",
    "processed_rows",
    "success_count",
    "fail_count",
    "created_count",
    "updated_count",
    "in_stock_count",
    "out_of_stock_count",
)


def _db_progress(job: ImportJob) -> int:
    if job.status == JOB_COMPLETED:
        return 100
    if not job.total_rows:
        return 0
    return min(100, int(job.processed_rows * 100 / job.total_rows))


def serialize_job(job: ImportJob, progress_payload: dict | None) -> JobStatus:
    """Combine DB state + cached progress snapshot into a response schema.

    The snapshot is only trusted while the job is still running; once the
    row is terminal it is the source of truth.
    """
    progress_payload = progress_payload or {}
    if job.is_terminal or progress_payload.get("status") in (None, ""):
        progress_payload = {}

    counters = {
        name: progress_payload.get(name, getattr(job, name) or 0)
        for name in COUNTER_FIELDS
    }
    errors = progress_payload.get("errors")
    if errors is None:
        errors = list(job.errors or [])

    progress = progress_payload.get("progress")
    if progress is None:
        progress = _db_progress(job)

    message = progress_payload.get("message")
    if not message:
        total_display = counters["total_rows"] if counters["total_rows"] else "?"
        message = f"Processed {counters['processed_rows']}/{total_display} rows"

    return JobStatus(
        id=job.id,
        status=progress_payload.get("status") or job.status,
        progress=progress,
        message=message,
        filename=job.original_filename,
        error_message=job.error_message,
        errors=errors,
        start_time=job.started_at or job.created_at,
        end_time=job.finished_at,
        **counters,
    )
