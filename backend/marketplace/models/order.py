"""
Store orders - created by the Stripe webhook once payment succeeds

Status fields:
- status: PENDING -> PAID -> CANCELLED | REFUNDED
- payment_status: PENDING -> PAID -> PARTIALLY_REFUNDED | REFUNDED, or FAILED
- fulfillment_status: UNFULFILLED -> SHIPPED -> DELIVERED, or CANCELLED
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, JSON
from sqlalchemy.orm import relationship

from marketplace.db.base import Base


class OrderStatus:
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus:
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    REFUNDED = "REFUNDED"


class FulfillmentStatus:
    UNFULFILLED = "UNFULFILLED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class StoreOrder(Base):
    __tablename__ = "store_orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), unique=True, index=True, nullable=False)
    store_id = Column(Integer, ForeignKey("vendor_stores.id"), nullable=False, index=True)

    # Guests check out without an account
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_name = Column(String(100))
    customer_phone = Column(String(30))
    shipping_address = Column(JSON, comment="address_line1/2, city, state, zip_code, country")

    # Amounts
    subtotal = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    discount_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    shipping_cost = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    tax_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    total = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    platform_fee = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    vendor_payout = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    refund_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))

    shipping_method = Column(String(100))
    coupon_code = Column(String(50))

    # Idempotency key for webhook deliveries
    payment_intent_id = Column(String(100), unique=True, index=True)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING, index=True)
    payment_status = Column(String(30), nullable=False, default=PaymentStatus.PENDING, index=True)
    fulfillment_status = Column(String(20), nullable=False, default=FulfillmentStatus.UNFULFILLED, index=True)

    # Shipping
    carrier = Column(String(20))
    tracking_number = Column(String(100))

    internal_notes = Column(Text)
    cancel_reason = Column(String(500))

    paid_at = Column(DateTime)
    shipped_at = Column(DateTime, index=True)
    delivered_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    refunded_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "StoreOrderItem", back_populates="order", cascade="all, delete-orphan",
        order_by="StoreOrderItem.id", lazy="selectin"
    )

    def __repr__(self):
        return f"<StoreOrder {self.order_number} [{self.status}/{self.payment_status}/{self.fulfillment_status}]>"

    @property
    def is_refunded(self) -> bool:
        return self.payment_status in (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED)


class StoreOrderItem(Base):
    """Order line. Name, variant and price are snapshots taken at purchase."""
    __tablename__ = "store_order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("store_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(200), nullable=False)
    variant_name = Column(String(200))
    sku = Column(String(100))
    image_url = Column(String(500))
    price = Column(DECIMAL(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    review_request_sent_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("StoreOrder", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return (self.price or Decimal("0")) * (self.quantity or 0)
