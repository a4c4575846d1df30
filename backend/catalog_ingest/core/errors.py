"""Request-level errors surfaced to API callers as ``{success: false, error}``."""

from __future__ import annotations


class IngestError(Exception):
    """Base class for errors that abort a whole import request."""

    status_code = 400

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class FileRejected(IngestError):
    """Upload refused before any row was read (type, size, header)."""


class JobNotFound(IngestError):
    status_code = 404

    def __init__(self, job_id: str) -> None:
        super().__init__("Job not found")
        self.job_id = job_id
