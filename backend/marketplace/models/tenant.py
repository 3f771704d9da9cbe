"""
Tenant model - the account that owns one or more vendor stores

Plan ceilings (max_*) are copied onto the row when the tenant is created
so a later plan change does not silently alter existing tenants.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, ForeignKey

from marketplace.db.base import Base


class SubscriptionPlan:
    TRIAL = "TRIAL"
    STARTER = "STARTER"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"

    ALL = (TRIAL, STARTER, PRO, ENTERPRISE)


class SubscriptionStatus:
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(50), unique=True, index=True, nullable=False, comment="Subdomain")
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Subscription
    subscription_plan = Column(String(20), nullable=False, default=SubscriptionPlan.TRIAL)
    subscription_status = Column(String(20), nullable=False, default=SubscriptionStatus.TRIAL)
    trial_ends_at = Column(DateTime, comment="End of the free trial")

    # Branding
    primary_color = Column(String(7), default="#10b981")
    logo_url = Column(String(500))

    # Plan ceilings
    max_products = Column(Integer, nullable=False, default=10)
    max_orders = Column(Integer, nullable=False, default=20, comment="Orders per month")
    max_storage_gb = Column(Float, nullable=False, default=0.5)
    platform_fee_percent = Column(Float, nullable=False, default=7.0)

    # Usage counters
    current_products = Column(Integer, nullable=False, default=0)
    current_orders = Column(Integer, nullable=False, default=0, comment="Reset monthly")
    current_storage_gb = Column(Float, nullable=False, default=0.0)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Tenant {self.slug} ({self.subscription_plan})>"

    @property
    def usage(self) -> dict:
        return {
            "products": {"current": self.current_products or 0, "limit": self.max_products},
            "orders": {"current": self.current_orders or 0, "limit": self.max_orders},
            "storage_gb": {"current": round(self.current_storage_gb or 0.0, 4), "limit": self.max_storage_gb},
        }
