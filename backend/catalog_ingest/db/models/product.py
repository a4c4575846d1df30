"""SQLAlchemy model for catalog products."""

from sqlalchemy import (
    JSON,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import DateTime

from catalog_ingest.db.base import Base

PRODUCT_ACTIVE = "active"
PRODUCT_DRAFT = "draft"
PRODUCT_ARCHIVED = "archived"

PRODUCT_STATUSES = (PRODUCT_ACTIVE, PRODUCT_DRAFT, PRODUCT_ARCHIVED)

JSONType = JSON().with_variant(JSONB, "postgresql")
Money = Numeric(12, 2)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    sku = Column(String(128), nullable=False, index=True)
    spu_no = Column(String(128), nullable=False, index=True)
    item_no = Column(String(128))
    slug = Column(String(255), index=True)
    url = Column(Text)
    name = Column(String(512), nullable=False)
    supplier = Column(String(255))
    brand = Column(String(255))
    variant_theme_1 = Column(String(128))
    variant_value_1 = Column(String(255))
    variant_theme_2 = Column(String(128))
    variant_value_2 = Column(String(255))

    full_category = Column(Text)
    category1_id = Column(Integer, ForeignKey("category_level_1.id"), index=True)
    category2_id = Column(Integer, ForeignKey("category_level_2.id"), index=True)
    category3_id = Column(Integer, ForeignKey("category_level_3.id"), index=True)
    category4_id = Column(Integer, ForeignKey("category_level_4.id"), index=True)

    msrp = Column(Money, nullable=False)
    discounted_price = Column(Money)
    discount_amount = Column(Money, nullable=False, default=0)
    sale_price = Column(Money, nullable=False)
    dropshipping_price = Column(Money)
    promotion_type = Column(String(64))
    promotion_value = Column(Money)
    promotion_end = Column(Date)

    inventory = Column(Integer, nullable=False, default=0)
    shipping_details = Column(JSONType)
    inventory_details = Column(JSONType)

    main_image = Column(Text)
    images = Column(JSONType)
    description = Column(Text)
    upc = Column(String(64))
    asin = Column(String(64))
    extra_fields = Column(JSONType)

    status = Column(String(16), nullable=False, default=PRODUCT_ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (Index("ix_products_sku_lower", func.lower(sku), unique=True),)

    @property
    def in_stock(self) -> bool:
        return (self.inventory or 0) > 0
