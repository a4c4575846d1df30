"""Resolve ``A>>B>>C>>D`` category paths into level 1-4 category rows."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catalog_ingest.db.models.category import CATEGORY_LEVELS
from catalog_ingest.db.models.product import Product
from catalog_ingest.utils.csv_validator import split_category_path
from catalog_ingest.utils.slugs import slugify, suffixed_slug

logger = logging.getLogger(__name__)

# Concurrent jobs may race to create the same node; the loser retries the lookup.
MAX_CREATE_ATTEMPTS = 5

PRODUCT_LINK_COLUMNS = (
    Product.category1_id,
    Product.category2_id,
    Product.category3_id,
    Product.category4_id,
)


class CategoryPathError(ValueError):
    """A path segment cannot be turned into a category node."""


def _slug_candidates(model, base: str):
    return or_(model.slug == base, model.slug.like(f"{base}-%"))


def _find_node(db: Session, model, name: str, base: str, parent_id: int | None):
    query = select(model).where(_slug_candidates(model, base))
    if model.level > 1:
        query = query.where(model.parent_id == parent_id)
    wanted = name.casefold()
    for node in db.scalars(query.order_by(model.id)):
        if node.name.casefold() == wanted and slugify(node.name) == base:
            return node
    return None


def _create_node(db: Session, model, name: str, base: str, parent_id: int | None):
    taken = set(db.scalars(select(model.slug).where(_slug_candidates(model, base))))
    max_position = db.scalar(select(func.max(model.position)))
    node = model(
        name=name,
        slug=suffixed_slug(base, taken),
        position=0 if max_position is None else max_position + 1,
        total_product=0,
    )
    if model.level > 1:
        node.parent_id = parent_id
    db.add(node)
    db.flush()
    logger.debug(
        f"Created level {model.level} category '{name}' "
        f"(slug={node.slug}, position={node.position})"
    )
    return node


def resolve_level(db: Session, level: int, name: str, parent_id: int | None = None):
    """Return the node named ``name`` under ``parent_id``, creating it if absent."""
    model = CATEGORY_LEVELS[level - 1]
    base = slugify(name)
    if not base:
        raise CategoryPathError(
            f"category '{name}' has no letters or digits to build a slug from"
        )

    for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
        node = _find_node(db, model, name, base, parent_id)
        if node is not None:
            return node
        try:
            with db.begin_nested():
                return _create_node(db, model, name, base, parent_id)
        except IntegrityError:
            logger.info(
                f"Conflict creating level {level} category '{name}' "
                f"(attempt {attempt}/{MAX_CREATE_ATTEMPTS}), retrying lookup"
            )
    raise CategoryPathError(
        f"could not create level {level} category '{name}' after "
        f"{MAX_CREATE_ATTEMPTS} attempts"
    )


def resolve_category_path(db: Session, path: str | Sequence[str]) -> list:
    """Resolve every segment of ``path`` and return the chain, level 1 first."""
    segments = split_category_path(path) if isinstance(path, str) else list(path)
    chain = []
    parent_id = None
    for level, name in enumerate(segments, start=1):
        node = resolve_level(db, level, name, parent_id)
        chain.append(node)
        parent_id = node.id
    return chain


def recount_category_totals(db: Session) -> None:
    """Set ``total_product`` on every node to the number of linked products.

    One correlated UPDATE per level, so concurrent imports never lose counts.
    """
    for model, link in zip(CATEGORY_LEVELS, PRODUCT_LINK_COLUMNS):
        linked = (
            select(func.count(Product.id)).where(link == model.id).scalar_subquery()
        )
        db.execute(
            update(model)
            .values(total_product=linked)
            .execution_options(synchronize_session=False)
        )
    db.flush()
    db.expire_all()
