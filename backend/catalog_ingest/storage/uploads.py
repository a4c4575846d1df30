"""Staging area for uploaded CSV files (local filesystem shared with workers)."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import BinaryIO

from catalog_ingest.core.config import get_settings

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024


class UploadTooLarge(ValueError):
    def __init__(self, limit: int) -> None:
        super().__init__(f"upload exceeds {limit} bytes")
        self.limit = limit


def uploads_dir() -> Path:
    path = Path(get_settings().uploads_dir).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_upload(
    file_obj: BinaryIO,
    original_name: str | None = None,
    *,
    max_bytes: int | None = None,
) -> tuple[Path, int]:
    """Copy an upload to disk; returns ``(absolute path, size in bytes)``.

    Raises UploadTooLarge, after removing the partial copy, once more than
    ``max_bytes`` have been read.
    """
    suffix = Path(original_name or "upload.csv").suffix or ".csv"
    target_path = (uploads_dir() / f"{uuid.uuid4()}{suffix}").resolve()
    file_obj.seek(0)
    written = 0
    try:
        with target_path.open("wb") as destination:
            while True:
                chunk = file_obj.read(COPY_BUFFER_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if max_bytes is not None and written > max_bytes:
                    raise UploadTooLarge(max_bytes)
                destination.write(chunk)
    except Exception:
        delete_upload(target_path)
        raise
    return target_path, written


def delete_upload(uri: str | Path) -> None:
    """Cleanup staged files when imports finish."""
    path = Path(uri)
    if not path.is_absolute():
        path = path.resolve()
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning(f"Could not delete staged upload {path}: {exc}")
