"""Job registry rows for background CSV imports."""

import uuid

from sqlalchemy import JSON, Column, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from catalog_ingest.db.base import Base

JOB_PENDING = "pending"
JOB_PROCESSING = "processing"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"

ACTIVE_STATUSES = (JOB_PENDING, JOB_PROCESSING)
TERMINAL_STATUSES = (JOB_COMPLETED, JOB_FAILED)


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status = Column(String(32), nullable=False, default=JOB_PENDING)
    original_filename = Column(String(255))
    uploaded_file_path = Column(Text, nullable=False)
    file_size = Column(Integer, default=0)
    total_rows = Column(Integer, nullable=False, default=0)
    processed_rows = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    fail_count = Column(Integer, nullable=False, default=0)
    created_count = Column(Integer, nullable=False, default=0)
    updated_count = Column(Integer, nullable=False, default=0)
    in_stock_count = Column(Integer, nullable=False, default=0)
    out_of_stock_count = Column(Integer, nullable=False, default=0)
    errors = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True))
    finished_at = Column(DateTime(timezone=True))
    heartbeat_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (Index("ix_import_jobs_status_created", status, created_at),)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
