"""Tenant API"""

import logging
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db, get_current_user
from marketplace.models import Tenant, User
from marketplace.schemas.tenant import TenantCreate, TenantResponse, TenantListResponse, SlugCheckResponse
from marketplace.services.tenancy import build_tenant, validate_tenant_slug

logger = logging.getLogger(__name__)

router = APIRouter()


def build_tenant_response(tenant: Tenant) -> TenantResponse:
    response = TenantResponse.model_validate(tenant)
    response.usage = tenant.usage
    return response


async def slug_taken(db: AsyncSession, slug: str) -> bool:
    result = await db.execute(select(func.count(Tenant.id)).where(Tenant.slug == slug))
    return (result.scalar() or 0) > 0


@router.get("", response_model=TenantListResponse)
async def list_tenants(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)) -> Any:
    """Admins see every tenant, everyone else the tenants they own"""
    query = select(Tenant).order_by(Tenant.created_at.desc())
    if not current_user.is_admin:
        query = query.where(Tenant.owner_id == current_user.id)
    result = await db.execute(query)
    tenants = result.scalars().all()
    return TenantListResponse(data=[build_tenant_response(t) for t in tenants], total=len(tenants))


@router.post("", response_model=TenantResponse, status_code=201)
async def create_tenant(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    tenant_in: TenantCreate) -> Any:
    error = validate_tenant_slug(tenant_in.slug)
    if error:
        raise HTTPException(status_code=400, detail=error)
    if await slug_taken(db, tenant_in.slug):
        raise HTTPException(status_code=409, detail="This slug is already taken")

    tenant = build_tenant(
        name=tenant_in.name,
        slug=tenant_in.slug,
        owner_id=current_user.id,
        plan=tenant_in.subscription_plan,
        primary_color=tenant_in.primary_color,
        logo_url=tenant_in.logo_url,
    )
    db.add(tenant)
    await db.commit()
    logger.info(f"Tenant {tenant.slug} created on {tenant.subscription_plan} by user {current_user.id}")
    return build_tenant_response(tenant)


@router.get("/check-slug", response_model=SlugCheckResponse)
async def check_slug(
    *,
    db: AsyncSession = Depends(get_db),
    slug: Optional[str] = Query(None)) -> Any:
    """Availability check used by the signup form"""
    if not slug:
        raise HTTPException(status_code=400, detail="Slug is required")
    slug = slug.strip().lower()
    error = validate_tenant_slug(slug)
    if error:
        return SlugCheckResponse(slug=slug, available=False, error=error)
    if await slug_taken(db, slug):
        return SlugCheckResponse(slug=slug, available=False, error="This slug is already taken")
    return SlugCheckResponse(slug=slug, available=True)


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    tenant_id: int) -> Any:
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    if tenant.owner_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return build_tenant_response(tenant)
