"""Pydantic models describing Product payloads."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from catalog_ingest.api.schemas.base import ApiModel


class ProductRead(ApiModel):
    id: int
    sku: str = Field(..., description="Case-insensitive unique SKU")
    spu_no: str
    item_no: str | None = None
    slug: str | None = None
    name: str
    brand: str | None = None
    supplier: str | None = None
    full_category: str | None = None
    category1_id: int | None = None
    category2_id: int | None = None
    category3_id: int | None = None
    category4_id: int | None = None
    msrp: Decimal
    discounted_price: Decimal | None = None
    discount_amount: Decimal
    sale_price: Decimal
    dropshipping_price: Decimal | None = None
    promotion_type: str | None = None
    promotion_value: Decimal | None = None
    promotion_end: date | None = None
    inventory: int
    status: str
    main_image: str | None = None
    images: list[str] | None = None
    description: str | None = None
    upc: str | None = None
    asin: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductListResponse(ApiModel):
    items: list[ProductRead]
    total: int
    page: int
    page_size: int
