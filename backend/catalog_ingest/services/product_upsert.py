"""Create or update catalog products from validated rows."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from catalog_ingest.db.models.product import PRODUCT_ACTIVE, PRODUCT_ARCHIVED, Product
from catalog_ingest.services.row_parser import ProductRow
from catalog_ingest.utils.slugs import slug_from_url, slugify

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")

PERCENT_PROMOTIONS = {"percent", "percentage", "%", "pct"}
FIXED_PROMOTIONS = {"fixed", "amount", "flat", "fixed amount"}


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def promotion_discount(row: ProductRow, today: date | None = None) -> Decimal | None:
    """Discount granted by the row's promotion, or None when none applies."""
    if not row.promotion_type or row.promotion_value is None:
        return None
    today = today or date.today()
    if row.promotion_end is not None and row.promotion_end < today:
        return None
    kind = row.promotion_type.strip().lower()
    if kind in PERCENT_PROMOTIONS:
        return row.msrp * row.promotion_value / Decimal(100)
    if kind in FIXED_PROMOTIONS:
        return row.promotion_value
    logger.debug(
        f"Row {row.row_number}: promotion type '{row.promotion_type}' "
        "does not affect pricing"
    )
    return None


def resolve_discount(row: ProductRow, today: date | None = None) -> Decimal:
    """Promotion first, then MSRP minus the row's discounted price, else zero."""
    discount = promotion_discount(row, today)
    if discount is None and row.discounted_price is not None:
        discount = row.msrp - row.discounted_price
    return discount if discount is not None else ZERO


def derive_sale_price(msrp: Decimal, discount: Decimal) -> Decimal:
    """``max(0, MSRP - discount)`` rounded to cents."""
    return _cents(max(ZERO, msrp - discount))


def find_by_sku(db: Session, sku: str) -> Product | None:
    return db.scalar(
        select(Product).where(func.lower(Product.sku) == sku.strip().lower())
    )


def _apply_row(product: Product, row: ProductRow, chain: Sequence, today: date | None):
    discount = resolve_discount(row, today)
    links = [node.id for node in chain] + [None] * (4 - len(chain))

    product.spu_no = row.spu_no
    product.item_no = row.item_no
    product.url = row.url
    product.slug = slug_from_url(row.url) or slugify(row.name) or row.sku.lower()
    product.name = row.name
    product.supplier = row.supplier
    product.brand = row.brand
    product.variant_theme_1 = row.variant_theme_1
    product.variant_value_1 = row.variant_value_1
    product.variant_theme_2 = row.variant_theme_2
    product.variant_value_2 = row.variant_value_2
    product.full_category = row.full_category
    (
        product.category1_id,
        product.category2_id,
        product.category3_id,
        product.category4_id,
    ) = links
    product.msrp = row.msrp
    product.discounted_price = row.discounted_price
    product.discount_amount = _cents(min(max(discount, ZERO), row.msrp))
    product.sale_price = derive_sale_price(row.msrp, discount)
    product.dropshipping_price = row.dropshipping_price
    product.promotion_type = row.promotion_type
    product.promotion_value = row.promotion_value
    product.promotion_end = row.promotion_end
    product.inventory = row.inventory
    product.shipping_details = dict(row.shipping_details) or None
    product.inventory_details = dict(row.inventory_details) or None
    product.main_image = row.main_image_url
    images = ([row.main_image_url] if row.main_image_url else []) + row.image_urls
    product.images = images or None
    product.description = row.description
    product.upc = row.upc
    product.asin = row.asin
    product.extra_fields = list(row.extra_fields) or None


def upsert_product(
    db: Session, row: ProductRow, chain: Sequence, today: date | None = None
) -> tuple[Product, bool]:
    """Insert or update the product for ``row.sku``; returns ``(product, created)``.

    An existing SKU (case-insensitive) keeps its id and has every mutable
    field replaced. The caller owns the surrounding savepoint.
    """
    product = find_by_sku(db, row.sku)
    created = product is None
    if created:
        product = Product(sku=row.sku)
        db.add(product)
    _apply_row(product, row, chain, today)
    if created or product.status == PRODUCT_ARCHIVED:
        product.status = PRODUCT_ACTIVE
    db.flush()
    return product, created
