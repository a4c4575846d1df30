"""Read-only product catalog endpoints for checking import results."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_ingest.api.schemas.job import ErrorResponse
from catalog_ingest.api.schemas.product import ProductListResponse, ProductRead
from catalog_ingest.core.errors import IngestError
from catalog_ingest.db.models.category import CATEGORY_LEVELS
from catalog_ingest.db.models.product import PRODUCT_STATUSES, Product
from catalog_ingest.db.session import get_db
from catalog_ingest.services.category_resolver import PRODUCT_LINK_COLUMNS
from catalog_ingest.services.product_upsert import find_by_sku

logger = logging.getLogger(__name__)

router = APIRouter()


def _filters(
    sku: str | None, name: str | None, category: str | None, status_value: str | None
) -> list:
    conditions = []
    if sku:
        conditions.append(func.lower(Product.sku).contains(sku.lower()))
    if name:
        conditions.append(Product.name.ilike(f"%{name}%"))
    if category:
        conditions.append(
            or_(
                *(
                    link.in_(select(model.id).where(model.slug == category))
                    for model, link in zip(CATEGORY_LEVELS, PRODUCT_LINK_COLUMNS)
                )
            )
        )
    if status_value:
        if status_value not in PRODUCT_STATUSES:
            raise IngestError(
                f"Invalid status '{status_value}'; expected one of: "
                f"{', '.join(PRODUCT_STATUSES)}"
            )
        conditions.append(Product.status == status_value)
    return conditions


@router.get(
    "/",
    summary="List products with filters and pagination",
    response_model=ProductListResponse,
    responses={400: {"model": ErrorResponse}},
)
def list_products(
    sku: str | None = Query(None, description="Filter by SKU (case-insensitive)"),
    name: str | None = Query(None, description="Filter by name (partial match)"),
    category: str | None = Query(
        None, description="Filter by category slug at any level"
    ),
    status_value: str | None = Query(
        None, alias="status", description="Filter by status (active, draft, archived)"
    ),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(50, ge=1, le=500, alias="pageSize", description="Items per page"),
    db: Session = Depends(get_db),
) -> ProductListResponse:
    """Return paginated products, newest first. Filters are combined with AND."""
    conditions = _filters(sku, name, category, status_value)
    try:
        total = db.scalar(select(func.count(Product.id)).where(*conditions)) or 0
        products = db.scalars(
            select(Product)
            .where(*conditions)
            .order_by(Product.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Database error listing products: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve products",
        ) from e

    return ProductListResponse(
        items=[ProductRead.model_validate(p) for p in products],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{sku}",
    summary="Fetch a product by SKU",
    response_model=ProductRead,
)
def get_product(
    sku: str,
    db: Session = Depends(get_db),
) -> ProductRead:
    product = find_by_sku(db, sku)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductRead.model_validate(product)
