"""Cart and checkout Schema"""
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, EmailStr, field_validator


class CartItemAdd(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(1, ge=1, le=10)
    store_slug: str = Field(..., min_length=1)


class CartItemUpdate(BaseModel):
    cart_item_id: str
    quantity: int = Field(..., ge=0, le=10, description="0 removes the item")


class CouponApply(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    email: Optional[EmailStr] = None


class CartItem(BaseModel):
    cart_item_id: str
    product_id: int
    product_name: str
    product_slug: str
    variant_id: Optional[int] = None
    variant_name: Optional[str] = None
    option_values: Optional[Dict[str, str]] = None
    price: float
    quantity: int
    image: Optional[str] = None
    line_total: float


class CartResponse(BaseModel):
    store_id: Optional[int] = None
    store_slug: Optional[str] = None
    store_name: Optional[str] = None
    items: List[CartItem] = []
    item_count: int = 0
    subtotal: float = 0.0


class CouponResult(BaseModel):
    valid: bool
    code: str
    discount: float = 0.0
    discount_type: Optional[str] = None
    error: Optional[str] = None


# ===== Shipping =====
ZIP_PATTERN = r"^\d{5}(-\d{4})?$"


class ShippingCalculateRequest(BaseModel):
    zip_code: str = Field(..., pattern=ZIP_PATTERN)
    cart_total: float = Field(..., ge=0)
    state: Optional[str] = Field(None, pattern=r"^[A-Z]{2}$")
    store_slug: Optional[str] = None


class ShippingOption(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float
    estimated_days: Optional[str] = None
    carrier: Optional[str] = None


class ShippingCalculateResponse(BaseModel):
    rates: List[ShippingOption]
    zone: Optional[int] = None
    shipping_zone_name: Optional[str] = None
    free_shipping_eligible: bool


# ===== Checkout =====
class ShippingInfo(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=2, max_length=100)
    phone: str = Field(..., pattern=r"^\+?[\d\s\-()]{10,20}$")
    address_line1: str = Field(..., min_length=5, max_length=200)
    address_line2: Optional[str] = Field(None, max_length=200)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., pattern=r"^[A-Z]{2}$")
    zip_code: str = Field(..., pattern=ZIP_PATTERN)
    country: str = Field("US", min_length=2, max_length=2)

    @field_validator("state", mode="before")
    @classmethod
    def upper_state(cls, v):
        return v.upper() if isinstance(v, str) else v


class PaymentIntentCreate(BaseModel):
    shipping_info: ShippingInfo
    shipping_method: str = Field(..., min_length=1, description="Rate id from /shipping/calculate")
    coupon_code: Optional[str] = Field(None, max_length=50)


class PaymentIntentResponse(BaseModel):
    client_secret: str
    order_number: str
    subtotal: float
    discount_amount: float
    shipping_cost: float
    tax_amount: float
    total: float
