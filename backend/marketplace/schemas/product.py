"""Product Schema"""
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator

from marketplace.models.product import PRODUCT_CATEGORIES


def _check_category(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in PRODUCT_CATEGORIES:
        raise ValueError(f"category must be one of {', '.join(PRODUCT_CATEGORIES)}")
    return v


# ===== Variants =====
class VariantOptionValue(BaseModel):
    value: str = Field(..., min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, max_length=100)
    hex_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    image_url: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=50)


class VariantOptionGroup(BaseModel):
    type: str = Field(..., min_length=1, max_length=50, description="e.g. color, size")
    values: List[VariantOptionValue] = Field(..., min_length=1)


class VariantDefaults(BaseModel):
    price: Optional[Decimal] = Field(None, ge=0, description="NULL = product price")
    quantity: int = Field(0, ge=0)
    sku: Optional[str] = Field(None, max_length=80)


class VariantCombinationsCreate(BaseModel):
    variant_types: List[str] = Field(..., min_length=1, max_length=3)
    options: List[VariantOptionGroup] = Field(..., min_length=1)
    generate_combinations: bool = True
    defaults: VariantDefaults = VariantDefaults()


class VariantUpdate(BaseModel):
    price: Optional[Decimal] = Field(None, ge=0)
    sku: Optional[str] = Field(None, max_length=100)
    quantity: Optional[int] = Field(None, ge=0)
    is_available: Optional[bool] = None
    image_url: Optional[str] = Field(None, max_length=500)


class VariantResponse(BaseModel):
    id: int
    combination_key: str
    option_values: Dict[str, str]
    name: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    effective_price: float
    quantity: int
    quantity_on_hold: int
    available_quantity: int
    in_stock: bool
    is_available: bool
    image_url: Optional[str] = None


class VariantOptionResponse(BaseModel):
    id: int
    type: str
    value: str
    display_name: Optional[str] = None
    hex_color: Optional[str] = None
    image_url: Optional[str] = None
    icon: Optional[str] = None

    class Config:
        from_attributes = True


# ===== Images =====
class ProductImageResponse(BaseModel):
    id: int
    url: str
    alt_text: Optional[str] = None
    size_bytes: int
    sort_order: int

    class Config:
        from_attributes = True


# ===== Product =====
class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=10000)
    category: Optional[str] = None
    tags: List[str] = []
    price: Decimal = Field(..., ge=0)
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    sku: Optional[str] = Field(None, max_length=100)
    track_inventory: bool = True
    quantity: int = Field(0, ge=0)
    low_stock_threshold: int = Field(5, ge=0)

    @field_validator("category")
    @classmethod
    def check_category(cls, v: Optional[str]) -> Optional[str]:
        return _check_category(v)


class ProductCreate(ProductBase):
    """New products start as DRAFT"""
    has_variants: bool = False
    variant_options: Optional[VariantCombinationsCreate] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=10000)
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    price: Optional[Decimal] = Field(None, ge=0)
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    sku: Optional[str] = Field(None, max_length=100)
    status: Optional[str] = Field(None, pattern=r"^(DRAFT|ACTIVE|ARCHIVED)$")
    track_inventory: Optional[bool] = None
    quantity: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)

    @field_validator("category")
    @classmethod
    def check_category(cls, v: Optional[str]) -> Optional[str]:
        return _check_category(v)


class StockAdjust(BaseModel):
    """Set on-hand quantity of the product or one of its variants"""
    new_quantity: int = Field(..., ge=0)
    variant_id: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=200)


class ProductResponse(BaseModel):
    id: int
    store_id: int
    name: str
    slug: str
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = []
    price: float
    compare_at_price: Optional[float] = None
    sku: Optional[str] = None
    status: str
    track_inventory: bool
    quantity: int
    quantity_on_hold: int
    available_quantity: int
    low_stock_threshold: int
    is_low_stock: bool
    has_variants: bool
    variant_types: List[str] = []
    sales_count: int
    average_rating: float
    review_count: int
    images: List[ProductImageResponse] = []
    options: List[VariantOptionResponse] = []
    variants: List[VariantResponse] = []
    created_at: datetime
    updated_at: datetime


class ProductListResponse(BaseModel):
    data: List[ProductResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class LowStockItem(BaseModel):
    product_id: int
    product_name: str
    variant_id: Optional[int] = None
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    available_quantity: int
    threshold: int


class StockMovementResponse(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    order_id: Optional[int] = None
    movement_type: str
    quantity_change: int
    quantity_before: int
    quantity_after: int
    on_hold_after: int
    reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
