"""Validate CSV headers and coerce raw positional cells."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation


class ValidationError(ValueError):
    """Custom exception for CSV validation errors."""

    pass


class HeaderError(ValidationError):
    """The file has no usable header row; nothing can be imported."""


class RowError(ValidationError):
    """A single data row could not be imported."""

    def __init__(self, row_number: int, reason: str) -> None:
        super().__init__(f"Row {row_number}: {reason}")
        self.row_number = row_number
        self.reason = reason


# Positional layout of the supplier feed, 1-indexed in the docs, 0-indexed here.
CSV_COLUMNS = (
    "SPU No",
    "Item No",
    "URL",
    "Category",
    "Product Name",
    "Supplier",
    "Brand",
    "Variation Theme 1",
    "Variation Value 1",
    "Variation Theme 2",
    "Variation Value 2",
    "SKU Code",
    "MAP Price",
    "Dropshipping Price",
    "Inventory Qty",
    "Shipping Weight",
    "Shipping Length",
    "Shipping Width",
    "Shipping Height",
    "Shipping Cost",
    "Inventory Location",
    "Inventory Status",
    "Inventory Notes",
    "Inventory Reserved",
    "Inventory Available",
    "Sale Price",
    "Promotion Type",
    "Promotion Value",
    "Promotion End Date",
    "Main Image",
    "Image 2",
    "Image 3",
    "Image 4",
    "Image 5",
    "Image 6",
    "Description",
    "UPC",
    "ASIN",
    "Additional Field 1",
    "Additional Field 2",
    "Additional Field 3",
    "Additional Field 4",
)
COLUMN_COUNT = len(CSV_COLUMNS)
# Everything up to and including ASIN must be present; 39-42 are optional.
MIN_COLUMNS = 38

CATEGORY_DELIMITER = ">>"
MAX_CATEGORY_LEVELS = 4

_PRICE_NOISE = re.compile(r"[\s$,]|US\$|USD", re.IGNORECASE)
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y")


def validate_header(header: list[str] | None) -> None:
    """Ensure the header row carries the positional schema before processing."""
    if not header or not any(cell.strip() for cell in header):
        raise HeaderError("CSV file is empty or has no header row")
    if len(header) < MIN_COLUMNS:
        raise HeaderError(
            f"CSV header has {len(header)} columns; expected at least "
            f"{MIN_COLUMNS} (up to {COLUMN_COUNT})"
        )


def pad_row(values: list[str]) -> list[str]:
    """Trim cells and normalize the row to exactly COLUMN_COUNT cells."""
    cells = [value.strip() for value in values[:COLUMN_COUNT]]
    if len(cells) < COLUMN_COUNT:
        cells.extend([""] * (COLUMN_COUNT - len(cells)))
    return cells


def parse_decimal(raw: str | None) -> Decimal | None:
    """Parse a price cell such as ``$1,299.00``; empty cells are ``None``."""
    if raw is None:
        return None
    cleaned = _PRICE_NOISE.sub("", raw)
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"'{raw}' is not a number") from exc
    if not value.is_finite():
        raise ValueError(f"'{raw}' is not a number")
    return value


def parse_quantity(raw: str | None) -> int:
    """Parse an inventory cell; empty means zero."""
    if raw is None:
        return 0
    cleaned = raw.replace(",", "").strip()
    if not cleaned:
        return 0
    if not re.fullmatch(r"[+-]?\d+", cleaned):
        raise ValueError(f"'{raw}' is not a whole number")
    return int(cleaned)


def parse_date(raw: str | None) -> date | None:
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value[:10], fmt).date()
        except ValueError:
            continue
    raise ValueError(f"'{raw}' is not a date (YYYY-MM-DD or MM/DD/YYYY)")


def split_category_path(raw: str | None) -> list[str]:
    """Split ``A>>B>>C>>D`` into trimmed segments.

    Trailing empty segments are dropped; an empty segment between two
    non-empty ones, or more than four levels, makes the path malformed.
    """
    if raw is None:
        return []
    segments = [segment.strip() for segment in raw.split(CATEGORY_DELIMITER)]
    while segments and not segments[-1]:
        segments.pop()
    if not segments:
        return []
    if any(not segment for segment in segments):
        raise ValueError(f"category path '{raw}' has an empty level")
    if len(segments) > MAX_CATEGORY_LEVELS:
        raise ValueError(
            f"category path '{raw}' has {len(segments)} levels; "
            f"at most {MAX_CATEGORY_LEVELS} are supported"
        )
    return segments
