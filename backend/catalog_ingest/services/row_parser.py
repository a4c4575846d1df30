"""Stream the supplier CSV and turn positional rows into typed ProductRows."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)

from catalog_ingest.utils.csv_validator import (
    CSV_COLUMNS,
    MIN_COLUMNS,
    RowError,
    ValidationError,
    pad_row,
    parse_date,
    parse_decimal,
    parse_quantity,
    split_category_path,
    validate_header,
)

logger = logging.getLogger(__name__)

# Descriptions in supplier feeds regularly exceed the 128 KiB default.
csv.field_size_limit(16 * 1024 * 1024)

SHIPPING_KEYS = ("weight", "length", "width", "height", "cost")
INVENTORY_KEYS = ("location", "status", "notes", "reserved", "available")


def _label(index: int) -> str:
    return f"{CSV_COLUMNS[index]} (column {index + 1})"


FIELD_LABELS = {
    "spu_no": _label(0),
    "url": _label(2),
    "category_path": _label(3),
    "name": _label(4),
    "sku": _label(11),
    "msrp": _label(12),
    "dropshipping_price": _label(13),
    "inventory": _label(14),
    "discounted_price": _label(25),
    "promotion_value": _label(27),
    "promotion_end": _label(28),
    "main_image": _label(29),
}


class ProductRow(BaseModel):
    """One validated CSV line. Lives only while its row is being applied."""

    model_config = ConfigDict(frozen=True)

    row_number: int
    spu_no: str
    item_no: str | None = None
    url: str | None = None
    full_category: str
    category_path: list[str] = Field(min_length=1, max_length=4)
    name: str
    supplier: str | None = None
    brand: str | None = None
    variant_theme_1: str | None = None
    variant_value_1: str | None = None
    variant_theme_2: str | None = None
    variant_value_2: str | None = None
    sku: str
    msrp: Decimal = Field(ge=0)
    dropshipping_price: Decimal | None = Field(default=None, ge=0)
    inventory: int = Field(default=0, ge=0)
    shipping_details: dict[str, str] = Field(default_factory=dict)
    inventory_details: dict[str, str] = Field(default_factory=dict)
    discounted_price: Decimal | None = Field(default=None, ge=0)
    promotion_type: str | None = None
    promotion_value: Decimal | None = Field(default=None, ge=0)
    promotion_end: date | None = None
    main_image: AnyHttpUrl | None = None
    images: list[AnyHttpUrl] = Field(default_factory=list, max_length=5)
    description: str | None = None
    upc: str | None = None
    asin: str | None = None
    extra_fields: list[str] = Field(default_factory=list)

    @field_validator("spu_no", "name", "sku", mode="before")
    @classmethod
    def _required_text(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("is required")
        return v

    @field_validator(
        "item_no",
        "url",
        "supplier",
        "brand",
        "variant_theme_1",
        "variant_value_1",
        "variant_theme_2",
        "variant_value_2",
        "promotion_type",
        "main_image",
        "description",
        "upc",
        "asin",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("msrp", mode="before")
    @classmethod
    def _parse_msrp(cls, v: Any) -> Any:
        if isinstance(v, str):
            parsed = parse_decimal(v)
            if parsed is None:
                raise ValueError("is required")
            return parsed
        return v

    @field_validator(
        "dropshipping_price", "discounted_price", "promotion_value", mode="before"
    )
    @classmethod
    def _parse_optional_price(cls, v: Any) -> Any:
        return parse_decimal(v) if isinstance(v, str) else v

    @field_validator("inventory", mode="before")
    @classmethod
    def _parse_inventory(cls, v: Any) -> Any:
        return parse_quantity(v) if isinstance(v, str) else v

    @field_validator("promotion_end", mode="before")
    @classmethod
    def _parse_promotion_end(cls, v: Any) -> Any:
        return parse_date(v) if isinstance(v, str) else v

    @field_validator("category_path", mode="before")
    @classmethod
    def _split_category_path(cls, v: Any) -> Any:
        if isinstance(v, str):
            segments = split_category_path(v)
            if not segments:
                raise ValueError("primary category is required")
            return segments
        return v

    @model_validator(mode="after")
    def _discount_below_msrp(self) -> "ProductRow":
        if self.discounted_price is not None and self.discounted_price >= self.msrp:
            raise ValueError(
                f"{_label(25)} {self.discounted_price} must be less than "
                f"{_label(12)} {self.msrp}"
            )
        return self

    @property
    def image_urls(self) -> list[str]:
        return [str(url) for url in self.images]

    @property
    def main_image_url(self) -> str | None:
        return str(self.main_image) if self.main_image is not None else None


def _describe(exc: PydanticValidationError) -> str:
    """Flatten pydantic errors into one human-readable reason."""
    parts = []
    for error in exc.errors():
        loc = error.get("loc") or ()
        message = error["msg"].removeprefix("Value error, ")
        field = loc[0] if loc else None
        if field == "images" and len(loc) > 1 and isinstance(loc[1], int):
            label = _label(30 + loc[1])
        else:
            label = FIELD_LABELS.get(field)
        parts.append(f"{label} {message}" if label else message)
    return "; ".join(parts)


def _non_empty(keys: tuple[str, ...], cells: list[str]) -> dict[str, str]:
    return {key: cell for key, cell in zip(keys, cells) if cell}


def parse_row(row_number: int, values: list[str]) -> ProductRow:
    """Map one positional CSV row onto a ProductRow or raise RowError."""
    if len(values) < MIN_COLUMNS:
        raise RowError(
            row_number,
            f"expected at least {MIN_COLUMNS} columns, found {len(values)}",
        )
    c = pad_row(values)
    payload = {
        "row_number": row_number,
        "spu_no": c[0],
        "item_no": c[1],
        "url": c[2],
        "full_category": c[3],
        "category_path": c[3],
        "name": c[4],
        "supplier": c[5],
        "brand": c[6],
        "variant_theme_1": c[7],
        "variant_value_1": c[8],
        "variant_theme_2": c[9],
        "variant_value_2": c[10],
        "sku": c[11],
        "msrp": c[12],
        "dropshipping_price": c[13],
        "inventory": c[14],
        "shipping_details": _non_empty(SHIPPING_KEYS, c[15:20]),
        "inventory_details": _non_empty(INVENTORY_KEYS, c[20:25]),
        "discounted_price": c[25],
        "promotion_type": c[26],
        "promotion_value": c[27],
        "promotion_end": c[28],
        "main_image": c[29],
        "images": [cell for cell in c[30:35] if cell],
        "description": c[35],
        "upc": c[36],
        "asin": c[37],
        "extra_fields": [cell for cell in c[38:42] if cell],
    }
    try:
        return ProductRow.model_validate(payload)
    except PydanticValidationError as exc:
        raise RowError(row_number, _describe(exc)) from exc


def _is_blank(values: list[str]) -> bool:
    return not any(cell.strip() for cell in values)


def iter_rows(file_path: Path) -> Iterator[tuple[int, list[str]]]:
    """Yield ``(row_number, cells)`` for every non-blank data row.

    The header is validated before the first row is yielded; row numbers are
    physical line numbers, so the first data row is usually row 2.
    """
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.reader(handle)
            header = None
            for values in reader:
                if not _is_blank(values):
                    header = values
                    break
            validate_header(header)

            for values in reader:
                if _is_blank(values):
                    continue
                yield reader.line_num, values
    except FileNotFoundError:
        raise ValidationError(f"CSV file not found: {file_path}")
    except PermissionError:
        raise ValidationError(f"Permission denied reading file: {file_path}")
    except UnicodeDecodeError as e:
        raise ValidationError(f"File encoding error: {str(e)}") from e
    except csv.Error as e:
        raise ValidationError(f"CSV parsing error: {str(e)}") from e


def count_rows(file_path: Path) -> int:
    """Return the number of data rows ``iter_rows`` will yield."""
    return sum(1 for _ in iter_rows(file_path))
