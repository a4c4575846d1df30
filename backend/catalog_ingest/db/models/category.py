"""Four-level category hierarchy built from ``A>>B>>C>>D`` paths."""

from sqlalchemy import Column, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship
from sqlalchemy.types import DateTime

from catalog_ingest.db.base import Base


class CategoryColumns:
    """Columns shared by every level; slug and position are unique per level."""

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    position = Column(Integer, nullable=False, unique=True)
    total_product = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    level = 0
    parent_id = None


class CategoryLevel1(CategoryColumns, Base):
    __tablename__ = "category_level_1"
    level = 1


class CategoryLevel2(CategoryColumns, Base):
    __tablename__ = "category_level_2"
    level = 2

    parent_id = Column(
        Integer, ForeignKey("category_level_1.id"), nullable=False, index=True
    )
    parent = relationship(CategoryLevel1)


class CategoryLevel3(CategoryColumns, Base):
    __tablename__ = "category_level_3"
    level = 3

    parent_id = Column(
        Integer, ForeignKey("category_level_2.id"), nullable=False, index=True
    )
    parent = relationship(CategoryLevel2)


class CategoryLevel4(CategoryColumns, Base):
    __tablename__ = "category_level_4"
    level = 4

    parent_id = Column(
        Integer, ForeignKey("category_level_3.id"), nullable=False, index=True
    )
    parent = relationship(CategoryLevel3)


CATEGORY_LEVELS = (CategoryLevel1, CategoryLevel2, CategoryLevel3, CategoryLevel4)
