"""Category tree browsing and total recomputation."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_ingest.api.schemas.category import CategoryNode, RecountResponse
from catalog_ingest.db.models.category import CATEGORY_LEVELS
from catalog_ingest.db.session import get_db
from catalog_ingest.services.category_resolver import recount_category_totals

logger = logging.getLogger(__name__)

router = APIRouter()


def build_tree(db: Session) -> list[CategoryNode]:
    """Assemble the four levels into nested nodes ordered by position."""
    roots: list[CategoryNode] = []
    parents: dict[int, CategoryNode] = {}
    for model in CATEGORY_LEVELS:
        current: dict[int, CategoryNode] = {}
        for row in db.scalars(select(model).order_by(model.position)):
            parent = parents.get(row.parent_id) if row.parent_id is not None else None
            if row.level > 1 and parent is None:
                continue
            prefix = parent.path if parent is not None else ""
            node = CategoryNode(
                id=row.id,
                level=row.level,
                name=row.name,
                slug=row.slug,
                path=f"{prefix}/{row.slug}",
                position=row.position,
                total_product=row.total_product,
            )
            if parent is None:
                roots.append(node)
            else:
                parent.children.append(node)
            current[row.id] = node
        parents = current
    return roots


@router.get(
    "/",
    summary="Category tree with hierarchical paths",
    response_model=list[CategoryNode],
)
def list_categories(db: Session = Depends(get_db)) -> list[CategoryNode]:
    return build_tree(db)


@router.post(
    "/recount",
    summary="Recompute product totals for every category",
    response_model=RecountResponse,
)
def recount_categories(db: Session = Depends(get_db)) -> RecountResponse:
    try:
        recount_category_totals(db)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Database error recounting categories: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to recount categories",
        ) from exc

    levels = {
        str(model.level): db.scalar(select(func.count(model.id))) or 0
        for model in CATEGORY_LEVELS
    }
    logger.info(f"Recounted category totals: {levels}")
    return RecountResponse(levels=levels)
