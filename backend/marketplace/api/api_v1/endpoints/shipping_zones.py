"""Vendor shipping zones and their rates"""

import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db, require_vendor_store
from marketplace.models import ShippingZone, ShippingRate, VendorStore
from marketplace.schemas.shipping import (
    ShippingZoneCreate, ShippingZoneUpdate, ShippingZoneResponse,
    ShippingRateCreate, ShippingRateUpdate, ShippingRateResponse
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_store_zone(db: AsyncSession, store: VendorStore, zone_id: int) -> ShippingZone:
    zone = await db.get(ShippingZone, zone_id)
    if not zone:
        raise HTTPException(status_code=404, detail="Shipping zone not found")
    if zone.store_id != store.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return zone


def get_zone_rate(zone: ShippingZone, rate_id: int) -> ShippingRate:
    for rate in zone.rates:
        if rate.id == rate_id:
            return rate
    raise HTTPException(status_code=404, detail="Shipping rate not found")


@router.get("", response_model=List[ShippingZoneResponse])
async def list_zones(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store)) -> Any:
    result = await db.execute(
        select(ShippingZone)
        .where(ShippingZone.store_id == store.id)
        .order_by(ShippingZone.priority, ShippingZone.id)
    )
    return result.scalars().all()


@router.post("", response_model=ShippingZoneResponse, status_code=201)
async def create_zone(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    zone_in: ShippingZoneCreate) -> Any:
    regions = zone_in.regions.model_dump()
    regions["states"] = [s.upper() for s in regions["states"]]
    zone = ShippingZone(
        store_id=store.id,
        name=zone_in.name,
        regions=regions,
        is_enabled=zone_in.is_enabled,
        priority=zone_in.priority,
        rates=[],
    )
    db.add(zone)
    await db.commit()
    await db.refresh(zone)
    logger.info(f"Store {store.id} created shipping zone {zone.id} ({zone.name})")
    return zone


@router.get("/{zone_id}", response_model=ShippingZoneResponse)
async def get_zone(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    zone_id: int) -> Any:
    return await get_store_zone(db, store, zone_id)


@router.put("/{zone_id}", response_model=ShippingZoneResponse)
async def update_zone(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    zone_id: int,
    zone_in: ShippingZoneUpdate) -> Any:
    zone = await get_store_zone(db, store, zone_id)
    update_data = zone_in.model_dump(exclude_unset=True)
    if update_data.get("regions") is not None:
        regions = update_data["regions"]
        regions["states"] = [s.upper() for s in regions.get("states") or []]
    for field, value in update_data.items():
        if value is not None:
            setattr(zone, field, value)
    await db.commit()
    await db.refresh(zone)
    return zone


@router.delete("/{zone_id}")
async def delete_zone(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    zone_id: int) -> Any:
    zone = await get_store_zone(db, store, zone_id)
    await db.delete(zone)
    await db.commit()
    return {"message": "Shipping zone deleted"}


@router.get("/{zone_id}/rates", response_model=List[ShippingRateResponse])
async def list_rates(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    zone_id: int) -> Any:
    zone = await get_store_zone(db, store, zone_id)
    return zone.rates


@router.post("/{zone_id}/rates", response_model=ShippingRateResponse, status_code=201)
async def create_rate(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    zone_id: int,
    rate_in: ShippingRateCreate) -> Any:
    zone = await get_store_zone(db, store, zone_id)
    rate = ShippingRate(**rate_in.model_dump())
    zone.rates.append(rate)
    await db.commit()
    await db.refresh(rate)
    return rate


@router.put("/{zone_id}/rates/{rate_id}", response_model=ShippingRateResponse)
async def update_rate(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    zone_id: int,
    rate_id: int,
    rate_in: ShippingRateUpdate) -> Any:
    zone = await get_store_zone(db, store, zone_id)
    rate = get_zone_rate(zone, rate_id)
    for field, value in rate_in.model_dump(exclude_unset=True).items():
        setattr(rate, field, value)
    await db.commit()
    await db.refresh(rate)
    return rate


@router.delete("/{zone_id}/rates/{rate_id}")
async def delete_rate(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    zone_id: int,
    rate_id: int) -> Any:
    zone = await get_store_zone(db, store, zone_id)
    rate = get_zone_rate(zone, rate_id)
    zone.rates.remove(rate)
    await db.commit()
    return {"message": "Shipping rate deleted"}
