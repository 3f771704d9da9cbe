"""Vendor store API"""

import logging
from datetime import datetime
from typing import Any
from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db, get_current_user, require_vendor_store
from marketplace.models import VendorStore, Tenant, User, UserRole, StoreHours, StoreVacation
from marketplace.schemas.store import (
    StoreCreate, StoreUpdate, StoreResponse, PublicStoreResponse, StoreHoursResponse, VacationResponse
)
from marketplace.services import email as email_service
from marketplace.services.tenancy import slugify

logger = logging.getLogger(__name__)

router = APIRouter()
public_router = APIRouter()


@router.post("", response_model=StoreResponse, status_code=201)
async def create_store(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    store_in: StoreCreate) -> Any:
    """Open a store for the current user (one per account)"""
    existing = await db.execute(select(VendorStore).where(VendorStore.owner_id == current_user.id))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="You already have a store")

    if store_in.tenant_id is not None:
        tenant = await db.get(Tenant, store_in.tenant_id)
        if not tenant:
            raise HTTPException(status_code=404, detail="Tenant not found")
        if tenant.owner_id != current_user.id:
            raise HTTPException(status_code=403, detail="You do not own this tenant")

    slug = store_in.slug or slugify(store_in.name)
    if not slug:
        raise HTTPException(status_code=400, detail="Store name must contain letters or numbers")
    taken = await db.execute(select(func.count(VendorStore.id)).where(VendorStore.slug == slug))
    if taken.scalar():
        raise HTTPException(status_code=409, detail="A store with this name already exists")

    store = VendorStore(
        owner_id=current_user.id,
        tenant_id=store_in.tenant_id,
        name=store_in.name,
        slug=slug,
        email=store_in.email or current_user.email,
        description=store_in.description,
        is_active=True,
    )
    db.add(store)
    if current_user.role == UserRole.CUSTOMER:
        current_user.role = UserRole.VENDOR
    await db.commit()
    logger.info(f"Store {store.slug} opened by user {current_user.id}")

    try:
        await run_in_threadpool(email_service.send_vendor_welcome, store.email, store.name)
    except Exception as e:
        logger.error(f"Welcome email failed for store {store.slug}: {e}")

    return store


@router.get("/me", response_model=StoreResponse)
async def get_my_store(store: VendorStore = Depends(require_vendor_store)) -> Any:
    return store


@router.put("/me", response_model=StoreResponse)
async def update_my_store(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    store_in: StoreUpdate) -> Any:
    update_data = store_in.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(store, field, value)
    await db.commit()
    return store


@public_router.get("/{slug}", response_model=PublicStoreResponse)
async def get_public_store(
    *,
    db: AsyncSession = Depends(get_db),
    slug: str) -> Any:
    """Storefront header: profile, opening hours and current vacation notice"""
    result = await db.execute(
        select(VendorStore).where(VendorStore.slug == slug, VendorStore.is_active.is_(True))
    )
    store = result.scalar_one_or_none()
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")

    hours_result = await db.execute(select(StoreHours).where(StoreHours.store_id == store.id))
    hours = hours_result.scalar_one_or_none()

    now = datetime.utcnow()
    vacation_result = await db.execute(
        select(StoreVacation)
        .where(
            StoreVacation.store_id == store.id,
            StoreVacation.is_active.is_(True),
            StoreVacation.start_date <= now,
            StoreVacation.end_date >= now,
        )
        .order_by(StoreVacation.start_date.desc())
        .limit(1)
    )
    vacation = vacation_result.scalar_one_or_none()

    return PublicStoreResponse(
        id=store.id,
        name=store.name,
        slug=store.slug,
        description=store.description,
        logo_url=store.logo_url,
        average_rating=store.average_rating or 0.0,
        total_reviews=store.total_reviews or 0,
        hours=StoreHoursResponse.model_validate(hours) if hours and hours.is_enabled else None,
        vacation=VacationResponse.model_validate(vacation) if vacation else None,
        is_on_vacation=vacation is not None,
    )
