"""Order Schema"""
from typing import Optional, List, Dict
from datetime import datetime
from pydantic import BaseModel, Field


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    name: str
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    image_url: Optional[str] = None
    price: float
    quantity: int
    line_total: float


class OrderResponse(BaseModel):
    id: int
    order_number: str
    store_id: int
    customer_id: Optional[int] = None
    customer_email: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Optional[Dict] = None
    subtotal: float
    discount_amount: float
    shipping_cost: float
    tax_amount: float
    total: float
    platform_fee: float
    vendor_payout: float
    refund_amount: float
    shipping_method: Optional[str] = None
    coupon_code: Optional[str] = None
    status: str
    payment_status: str
    fulfillment_status: str
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    cancel_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime
    items: List[OrderItemResponse] = []


class VendorOrderResponse(OrderResponse):
    """Dashboard view, includes notes"""
    internal_notes: Optional[str] = None


class OrderListResponse(BaseModel):
    data: List[OrderResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class OrderFulfill(BaseModel):
    carrier: str = Field(..., pattern=r"^(USPS|FEDEX|UPS|DHL|OTHER)$")
    tracking_number: Optional[str] = Field(None, max_length=100)
    shipping_date: datetime
    internal_notes: Optional[str] = Field(None, max_length=2000)


class OrderCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
