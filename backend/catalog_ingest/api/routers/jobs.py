"""Import job tracking endpoints: listing, polling and an SSE push channel."""
from __future__ import annotations

import asyncio
import json
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from catalog_ingest.api.routers.job_helpers import serialize_job
from catalog_ingest.api.schemas.job import ErrorResponse, JobStatus
from catalog_ingest.db.models.import_job import ImportJob
from catalog_ingest.db.session import SessionLocal, get_db
from catalog_ingest.services import job_registry
from catalog_ingest.services.progress_tracker import fetch_progress

router = APIRouter()

STREAM_INTERVAL_SECONDS = 2.0
STREAM_MAX_IDLE_POLLS = 150


@router.get(
    "/",
    summary="List import jobs",
    response_model=list[JobStatus],
)
def list_jobs(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of jobs to return"),
    status: str | None = Query(
        None, description="Filter by status (pending, processing, completed, failed)"
    ),
    db: Session = Depends(get_db),
) -> list[JobStatus]:
    """Return jobs newest first, each merged with its latest progress snapshot."""
    jobs = job_registry.list_jobs(db, status=status, limit=limit)
    return [serialize_job(job, fetch_progress(job.id)) for job in jobs]


@router.get(
    "/{job_id}",
    summary="Fetch job metadata and latest progress",
    response_model=JobStatus,
    responses={404: {"model": ErrorResponse}},
)
def get_job(
    job_id: str,
    db: Session = Depends(get_db),
) -> JobStatus:
    job = job_registry.get_job(db, job_id)
    return serialize_job(job, fetch_progress(job_id))


@router.get(
    "/{job_id}/stream",
    summary="Server-Sent Events stream for real-time progress",
    responses={404: {"model": ErrorResponse}},
)
def stream_job_progress(
    job_id: str,
    db: Session = Depends(get_db),
) -> StreamingResponse:
    """Stream job progress updates via Server-Sent Events (SSE).

    Each ``data:`` event carries the same JSON body as ``GET /api/jobs/{id}``.
    The stream closes once the job completes or fails, or after a long run
    of polls without any change.
    """
    job_registry.get_job(db, job_id)

    async def event_generator() -> AsyncGenerator[str, None]:
        last_payload = None
        idle_polls = 0
        # The request session is closed once the handler returns.
        session = SessionLocal()
        try:
            while True:
                session.expire_all()
                job = session.get(ImportJob, job_id)
                if job is None:
                    yield f"event: error\ndata: {json.dumps({'success': False, 'error': 'Job not found'})}\n\n"
                    break

                data = serialize_job(job, fetch_progress(job_id)).model_dump_json(
                    by_alias=True
                )
                if data != last_payload:
                    last_payload = data
                    idle_polls = 0
                    yield f"data: {data}\n\n"
                else:
                    idle_polls += 1

                if job.is_terminal:
                    yield "event: close\ndata: {}\n\n"
                    break
                if idle_polls > STREAM_MAX_IDLE_POLLS:
                    yield "event: timeout\ndata: {}\n\n"
                    break

                await asyncio.sleep(STREAM_INTERVAL_SECONDS)
        finally:
            session.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
