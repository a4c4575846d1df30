"""Database models package."""
from catalog_ingest.db.models.category import (
    CATEGORY_LEVELS,
    CategoryLevel1,
    CategoryLevel2,
    CategoryLevel3,
    CategoryLevel4,
)
from catalog_ingest.db.models.import_job import ImportJob
from catalog_ingest.db.models.product import Product

__all__ = [
    "CATEGORY_LEVELS",
    "CategoryLevel1",
    "CategoryLevel2",
    "CategoryLevel3",
    "CategoryLevel4",
    "ImportJob",
    "Product",
]
