"""
Catalog models - products, images and variant combinations

Inventory lives on the product unless the product has variants, in which
case every combination (ProductVariant) carries its own quantity and the
product-level quantity stays 0.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Float, ForeignKey,
    UniqueConstraint, DECIMAL, JSON
)
from sqlalchemy.orm import relationship

from marketplace.db.base import Base


PRODUCT_CATEGORIES = (
    "ACCESSORIES",
    "ART_AND_COLLECTIBLES",
    "BAGS_AND_PURSES",
    "BATH_AND_BEAUTY",
    "BOOKS_MOVIES_AND_MUSIC",
    "CLOTHING",
    "CRAFT_SUPPLIES_AND_TOOLS",
    "ELECTRONICS_AND_ACCESSORIES",
    "HOME_AND_LIVING",
    "JEWELRY",
    "PAPER_AND_PARTY_SUPPLIES",
    "PET_SUPPLIES",
    "SHOES",
    "TOYS_AND_GAMES",
    "WEDDINGS",
)


class ProductStatus:
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"

    ALL = (DRAFT, ACTIVE, ARCHIVED)


class Product(Base):
    """Product listed by a vendor store

    Slug is unique within the store.
    """
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint('store_id', 'slug', name='uq_product_store_slug'),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("vendor_stores.id"), nullable=False, index=True)

    name = Column(String(200), nullable=False, index=True)
    slug = Column(String(220), nullable=False, index=True)
    description = Column(Text)
    category = Column(String(50), index=True)
    tags = Column(JSON, default=list)

    price = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    compare_at_price = Column(DECIMAL(12, 2), comment="Original price shown struck through")
    sku = Column(String(100))

    status = Column(String(20), nullable=False, default=ProductStatus.DRAFT, index=True)

    # Inventory
    track_inventory = Column(Boolean, nullable=False, default=True)
    quantity = Column(Integer, nullable=False, default=0, comment="On hand")
    quantity_on_hold = Column(Integer, nullable=False, default=0, comment="Reserved by paid, unshipped orders")
    low_stock_threshold = Column(Integer, nullable=False, default=5)

    # Variants
    has_variants = Column(Boolean, nullable=False, default=False)
    variant_types = Column(JSON, default=list, comment="e.g. ['color', 'size']")

    # Aggregates
    sales_count = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    images = relationship(
        "ProductImage", back_populates="product", cascade="all, delete-orphan",
        order_by="ProductImage.sort_order", lazy="selectin"
    )
    options = relationship(
        "VariantOption", back_populates="product", cascade="all, delete-orphan",
        order_by="VariantOption.sort_order", lazy="selectin"
    )
    variants = relationship(
        "ProductVariant", back_populates="product", cascade="all, delete-orphan",
        order_by="ProductVariant.sort_order", lazy="selectin"
    )

    def __repr__(self):
        return f"<Product {self.id}: {self.name} [{self.status}]>"

    @property
    def available_quantity(self) -> int:
        """On hand minus held, never negative"""
        return max((self.quantity or 0) - (self.quantity_on_hold or 0), 0)

    @property
    def is_low_stock(self) -> bool:
        return bool(self.track_inventory) and self.available_quantity <= (self.low_stock_threshold or 0)

    @property
    def primary_image_url(self):
        return self.images[0].url if self.images else None


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    alt_text = Column(String(200))
    size_bytes = Column(Integer, nullable=False, default=0, comment="Counted against tenant storage")
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="images")


class VariantOption(Base):
    """One selectable value of a variant type (e.g. color=red)"""
    __tablename__ = "variant_options"
    __table_args__ = (
        UniqueConstraint('product_id', 'type', 'value', name='uq_variant_option'),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    value = Column(String(100), nullable=False)
    display_name = Column(String(100))
    hex_color = Column(String(7))
    image_url = Column(String(500))
    icon = Column(String(50))
    sort_order = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="options")


class ProductVariant(Base):
    """A purchasable combination of option values

    combination_key is "type:value" pairs sorted by type and joined with "|",
    e.g. "color:red|size:large". price NULL means the product price applies.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint('product_id', 'combination_key', name='uq_variant_combination'),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    combination_key = Column(String(300), nullable=False)
    option_values = Column(JSON, nullable=False, comment="{type: value}")
    name = Column(String(200), comment="Display name, e.g. 'Red / Large'")
    sku = Column(String(100))
    price = Column(DECIMAL(12, 2))
    quantity = Column(Integer, nullable=False, default=0)
    quantity_on_hold = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)
    image_url = Column(String(500))
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="variants")

    def __repr__(self):
        return f"<ProductVariant {self.product_id}:{self.combination_key}>"

    @property
    def available_quantity(self) -> int:
        return max((self.quantity or 0) - (self.quantity_on_hold or 0), 0)

    @property
    def in_stock(self) -> bool:
        return self.available_quantity > 0
