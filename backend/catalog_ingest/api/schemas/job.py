"""Import job and report payloads."""

from datetime import datetime

from pydantic import Field

from catalog_ingest.api.schemas.base import ApiModel


class ImportCounts(ApiModel):
    total_rows: int = 0
    processed_rows: int = 0
    success_count: int = 0
    fail_count: int = 0
    created_count: int = 0
    updated_count: int = 0
    in_stock_count: int = 0
    out_of_stock_count: int = 0
    errors: list[str] = Field(
        default_factory=list, description="Most recent row errors, oldest first"
    )


class ImportReport(ImportCounts):
    """Final report of a synchronous import."""

    success: bool = True


class JobAccepted(ApiModel):
    success: bool = True
    job_id: str
    status: str = "pending"
    message: str = "Import job started. Use the job ID to check progress."


class JobStatus(ImportCounts):
    success: bool = True
    id: str
    status: str = Field(..., description="pending|processing|completed|failed")
    progress: int = Field(0, ge=0, le=100, description="Percent of rows processed")
    message: str | None = None
    filename: str | None = None
    error_message: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class ErrorResponse(ApiModel):
    success: bool = False
    error: str
