"""
Vendor store and its settings (opening hours, vacations)
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Float, ForeignKey, DECIMAL, JSON
from sqlalchemy.orm import relationship

from marketplace.db.base import Base


class VendorStore(Base):
    """A vendor's shop. One per user, optionally attached to a tenant."""
    __tablename__ = "vendor_stores"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=True, index=True)

    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), nullable=False, comment="Order alerts go here")
    description = Column(Text)
    logo_url = Column(String(500))
    is_active = Column(Boolean, nullable=False, default=True)

    # Overrides the tenant fee when set
    platform_fee_percent = Column(Float, nullable=True)

    # Payouts
    stripe_account_id = Column(String(100), comment="Stripe Connect account")
    paypal_email = Column(String(255))
    withdraw_balance = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    minimum_withdraw = Column(DECIMAL(12, 2), nullable=False, default=Decimal("50.00"))

    # Running totals
    total_orders = Column(Integer, nullable=False, default=0)
    total_sales = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    average_rating = Column(Float, nullable=False, default=0.0)
    total_reviews = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", lazy="selectin")

    def __repr__(self):
        return f"<VendorStore {self.slug}>"


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class StoreHours(Base):
    """Weekly opening hours, one row per store

    Each weekday column holds {"open": "09:00", "close": "17:00", "closed": false}
    """
    __tablename__ = "store_hours"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("vendor_stores.id"), unique=True, nullable=False)

    monday = Column(JSON)
    tuesday = Column(JSON)
    wednesday = Column(JSON)
    thursday = Column(JSON)
    friday = Column(JSON)
    saturday = Column(JSON)
    sunday = Column(JSON)

    timezone = Column(String(50), nullable=False, default="America/New_York")
    is_enabled = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def schedule(self) -> dict:
        return {day: getattr(self, day) for day in WEEKDAYS}


class StoreVacation(Base):
    __tablename__ = "store_vacations"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("vendor_stores.id"), nullable=False, index=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    message = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_current(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return bool(self.is_active) and self.start_date <= now <= self.end_date
