"""Row-by-row CSV ingestion shared by the synchronous and background paths."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_ingest.services.category_resolver import (
    CategoryPathError,
    recount_category_totals,
    resolve_category_path,
)
from catalog_ingest.services.product_upsert import upsert_product
from catalog_ingest.services.row_parser import count_rows, iter_rows, parse_row
from catalog_ingest.utils.csv_validator import RowError

logger = logging.getLogger(__name__)

DEFAULT_ERROR_LIMIT = 50
DEFAULT_PROGRESS_INTERVAL = 100


class ImportAborted(RuntimeError):
    """Raised when a progress checkpoint reports that the job was taken away."""


@dataclass
class ImportTally:
    """Counters for one import run; ``errors`` keeps only the most recent N."""

    total_rows: int = 0
    processed_rows: int = 0
    success_count: int = 0
    fail_count: int = 0
    created_count: int = 0
    updated_count: int = 0
    in_stock_count: int = 0
    out_of_stock_count: int = 0
    error_limit: int = DEFAULT_ERROR_LIMIT
    errors: deque = field(init=False)

    def __post_init__(self) -> None:
        self.errors = deque(maxlen=self.error_limit)

    def record_failure(self, message: str) -> None:
        self.fail_count += 1
        self.errors.append(message)

    def record_success(self, *, created: bool, in_stock: bool) -> None:
        self.success_count += 1
        if created:
            self.created_count += 1
        else:
            self.updated_count += 1
        if in_stock:
            self.in_stock_count += 1
        else:
            self.out_of_stock_count += 1

    @property
    def progress(self) -> int:
        """Whole-number percentage of rows processed."""
        if not self.total_rows:
            return 0
        return min(100, int(self.processed_rows * 100 / self.total_rows))

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "processed_rows": self.processed_rows,
            "success_count": self.success_count,
            "fail_count": self.fail_count,
            "created_count": self.created_count,
            "updated_count": self.updated_count,
            "in_stock_count": self.in_stock_count,
            "out_of_stock_count": self.out_of_stock_count,
            "errors": list(self.errors),
        }


def apply_row(
    db: Session,
    row_number: int,
    values: list[str],
    tally: ImportTally,
    today: date | None = None,
) -> None:
    """Validate, resolve categories for and upsert one row inside a savepoint.

    Row-level problems are recorded on ``tally``; they never propagate.
    """
    try:
        row = parse_row(row_number, values)
    except RowError as exc:
        tally.record_failure(str(exc))
        return

    try:
        with db.begin_nested():
            chain = resolve_category_path(db, row.category_path)
            product, created = upsert_product(db, row, chain, today)
    except CategoryPathError as exc:
        tally.record_failure(str(RowError(row_number, str(exc))))
        return
    except SQLAlchemyError as exc:
        logger.warning(f"Database error on row {row_number} (SKU {row.sku}): {exc}")
        reason = f"could not save SKU '{row.sku}': {exc.__class__.__name__}"
        tally.record_failure(str(RowError(row_number, reason)))
        return

    tally.record_success(created=created, in_stock=product.in_stock)


def run_import(
    file_path: Path,
    db: Session,
    *,
    error_limit: int = DEFAULT_ERROR_LIMIT,
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    on_start: Callable[[ImportTally], None] | None = None,
    on_progress: Callable[[ImportTally], bool] | None = None,
    today: date | None = None,
) -> ImportTally:
    """Apply every row of ``file_path`` in file order and return the tally.

    ``on_start`` runs once the row count is known. ``on_progress`` runs every
    ``progress_interval`` rows after the session is committed; returning
    False aborts the run with ImportAborted. Category totals are recomputed
    once all rows are applied.

    Raises ValidationError for file-level problems (missing/short header,
    unreadable file).
    """
    tally = ImportTally(error_limit=error_limit)
    tally.total_rows = count_rows(file_path)
    logger.info(f"Importing {tally.total_rows} rows from {file_path.name}")
    if on_start is not None:
        on_start(tally)

    for row_number, values in iter_rows(file_path):
        apply_row(db, row_number, values, tally, today)
        tally.processed_rows += 1

        if tally.processed_rows % progress_interval == 0:
            db.commit()
            if on_progress is not None and on_progress(tally) is False:
                raise ImportAborted(
                    f"Import stopped after {tally.processed_rows} rows"
                )

    if tally.processed_rows != tally.total_rows:
        logger.warning(
            f"Row count changed while importing {file_path.name}: "
            f"counted {tally.total_rows}, processed {tally.processed_rows}"
        )
        tally.total_rows = tally.processed_rows

    recount_category_totals(db)
    db.commit()
    logger.info(
        f"Imported {file_path.name}: {tally.success_count} succeeded, "
        f"{tally.fail_count} failed ({tally.created_count} created, "
        f"{tally.updated_count} updated)"
    )
    return tally
