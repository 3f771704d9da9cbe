"""
Tenant plans, quotas and slug rules

Quota checks run before a mutation and raise QuotaExceededError at or over
the ceiling; counters are bumped by the caller after the mutation succeeds.
Stores without a tenant have no ceilings.
"""

import re
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import QuotaExceededError
from marketplace.models import Tenant, SubscriptionPlan, SubscriptionStatus

logger = logging.getLogger(__name__)

TRIAL_DAYS = 14

PLAN_LIMITS = {
    SubscriptionPlan.TRIAL: {"max_products": 10, "max_orders": 20, "max_storage_gb": 0.5, "platform_fee_percent": 7.0},
    SubscriptionPlan.STARTER: {"max_products": 50, "max_orders": 100, "max_storage_gb": 1.0, "platform_fee_percent": 5.0},
    SubscriptionPlan.PRO: {"max_products": 500, "max_orders": 1000, "max_storage_gb": 10.0, "platform_fee_percent": 3.0},
    SubscriptionPlan.ENTERPRISE: {"max_products": 999999, "max_orders": 999999, "max_storage_gb": 100.0, "platform_fee_percent": 2.0},
}

RESERVED_SLUGS = {
    "www", "api", "admin", "app", "mail", "ftp", "localhost", "staging", "dev",
    "test", "demo", "cdn", "static", "assets", "files", "images", "uploads",
    "downloads", "blog", "shop", "store", "stores",
}

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")

BYTES_PER_GB = 1024 ** 3


def slugify(value: str) -> str:
    """Lower-case, runs of non-alphanumerics become one dash, no edge dashes"""
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower())
    return slug.strip("-")


def validate_tenant_slug(slug: str) -> Optional[str]:
    """Return an error message, or None when the slug is acceptable"""
    if len(slug) < 2:
        return "Slug must be at least 2 characters"
    if len(slug) > 50:
        return "Slug must be at most 50 characters"
    if not SLUG_PATTERN.match(slug):
        return "Slug can only contain lowercase letters, numbers, and hyphens"
    if slug in RESERVED_SLUGS:
        return "This slug is reserved"
    return None


def build_tenant(name: str, slug: str, owner_id: int, plan: str = SubscriptionPlan.TRIAL,
                 primary_color: Optional[str] = None, logo_url: Optional[str] = None) -> Tenant:
    limits = PLAN_LIMITS[plan]
    return Tenant(
        name=name,
        slug=slug,
        owner_id=owner_id,
        subscription_plan=plan,
        subscription_status=SubscriptionStatus.TRIAL if plan == SubscriptionPlan.TRIAL else SubscriptionStatus.ACTIVE,
        trial_ends_at=datetime.utcnow() + timedelta(days=TRIAL_DAYS) if plan == SubscriptionPlan.TRIAL else None,
        primary_color=primary_color or "#10b981",
        logo_url=logo_url,
        current_products=0,
        current_orders=0,
        current_storage_gb=0.0,
        **limits,
    )


def check_product_quota(tenant: Optional[Tenant]) -> None:
    if tenant is None:
        return
    if (tenant.current_products or 0) >= tenant.max_products:
        raise QuotaExceededError(
            f"Product limit reached ({tenant.max_products}). Please upgrade your plan to add more products.",
            limit=tenant.max_products,
            current_usage=tenant.current_products,
        )


def check_order_quota(tenant: Optional[Tenant]) -> None:
    if tenant is None:
        return
    if (tenant.current_orders or 0) >= tenant.max_orders:
        raise QuotaExceededError(
            f"Monthly order limit reached ({tenant.max_orders}). The store cannot accept new orders this month.",
            limit=tenant.max_orders,
            current_usage=tenant.current_orders,
        )


def check_storage_quota(tenant: Optional[Tenant], additional_bytes: int) -> None:
    if tenant is None:
        return
    additional_gb = additional_bytes / BYTES_PER_GB
    if (tenant.current_storage_gb or 0.0) + additional_gb > tenant.max_storage_gb:
        raise QuotaExceededError(
            f"Storage limit reached ({tenant.max_storage_gb} GB). Please upgrade your plan for more storage.",
            limit=tenant.max_storage_gb,
            current_usage=round(tenant.current_storage_gb or 0.0, 4),
        )


def add_storage_usage(tenant: Optional[Tenant], size_bytes: int) -> None:
    if tenant is None:
        return
    current = (tenant.current_storage_gb or 0.0) + size_bytes / BYTES_PER_GB
    tenant.current_storage_gb = max(current, 0.0)


def add_product_usage(tenant: Optional[Tenant], delta: int) -> None:
    if tenant is None:
        return
    tenant.current_products = max((tenant.current_products or 0) + delta, 0)


async def reset_monthly_usage(db: AsyncSession) -> int:
    """Zero current_orders for every tenant, returns the number of tenants touched"""
    result = await db.execute(update(Tenant).values(current_orders=0))
    await db.commit()
    logger.info(f"Monthly usage reset for {result.rowcount} tenants")
    return result.rowcount
