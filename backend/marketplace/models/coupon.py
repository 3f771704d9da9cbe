from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, DECIMAL, JSON

from marketplace.db.base import Base


class DiscountType:
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"


class Coupon(Base):
    """Store coupon. Code is stored upper-case and unique per store."""
    __tablename__ = "coupons"
    __table_args__ = (
        UniqueConstraint('store_id', 'code', name='uq_coupon_store_code'),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("vendor_stores.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False, index=True)
    description = Column(String(200))

    discount_type = Column(String(20), nullable=False)
    discount_value = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    min_purchase_amount = Column(DECIMAL(12, 2))
    max_discount_amount = Column(DECIMAL(12, 2))

    usage_limit = Column(Integer, comment="NULL = unlimited")
    usage_count = Column(Integer, nullable=False, default=0)
    first_time_customers_only = Column(Boolean, nullable=False, default=False)

    # Item eligibility
    applicable_products = Column(JSON, default=list)
    applicable_categories = Column(JSON, default=list)
    excluded_products = Column(JSON, default=list)

    start_date = Column(DateTime)
    end_date = Column(DateTime)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Coupon {self.code} {self.discount_type} {self.discount_value}>"
