from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, DECIMAL, JSON
from sqlalchemy.orm import relationship

from marketplace.db.base import Base


class ShippingRateType:
    FLAT_RATE = "FLAT_RATE"
    FREE_SHIPPING = "FREE_SHIPPING"
    WEIGHT_BASED = "WEIGHT_BASED"
    LOCAL_PICKUP = "LOCAL_PICKUP"

    ALL = (FLAT_RATE, FREE_SHIPPING, WEIGHT_BASED, LOCAL_PICKUP)


class ShippingZone(Base):
    """Destination region of a store

    regions: {"states": ["CA", "OR"], "zip_prefixes": ["941"]}; an empty
    object matches every destination.
    """
    __tablename__ = "shipping_zones"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("vendor_stores.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    regions = Column(JSON, default=dict)
    is_enabled = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=False, default=0, comment="Lower matches first")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rates = relationship(
        "ShippingRate", back_populates="zone", cascade="all, delete-orphan",
        order_by="ShippingRate.sort_order", lazy="selectin"
    )

    def matches(self, state: str = None, zip_code: str = None) -> bool:
        regions = self.regions or {}
        states = [s.upper() for s in regions.get("states") or []]
        prefixes = regions.get("zip_prefixes") or []
        if not states and not prefixes:
            return True
        if state and state.upper() in states:
            return True
        if zip_code and any(zip_code.startswith(p) for p in prefixes):
            return True
        return False


class ShippingRate(Base):
    __tablename__ = "shipping_rates"

    id = Column(Integer, primary_key=True, index=True)
    zone_id = Column(Integer, ForeignKey("shipping_zones.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False, default=ShippingRateType.FLAT_RATE)
    cost = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    min_order_amount = Column(DECIMAL(12, 2), comment="Free shipping threshold")
    estimated_days = Column(String(50))
    is_enabled = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    zone = relationship("ShippingZone", back_populates="rates")
