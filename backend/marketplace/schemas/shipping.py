"""Shipping zone Schema"""
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field


class ZoneRegions(BaseModel):
    states: List[str] = []
    zip_prefixes: List[str] = []


class ShippingZoneCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    regions: ZoneRegions = ZoneRegions()
    is_enabled: bool = True
    priority: int = Field(0, ge=0)


class ShippingZoneUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    regions: Optional[ZoneRegions] = None
    is_enabled: Optional[bool] = None
    priority: Optional[int] = Field(None, ge=0)


class ShippingRateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field("FLAT_RATE", pattern=r"^(FLAT_RATE|FREE_SHIPPING|WEIGHT_BASED|LOCAL_PICKUP)$")
    cost: Decimal = Field(Decimal("0"), ge=0)
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    estimated_days: Optional[str] = Field(None, max_length=50)
    is_enabled: bool = True
    sort_order: int = 0


class ShippingRateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[str] = Field(None, pattern=r"^(FLAT_RATE|FREE_SHIPPING|WEIGHT_BASED|LOCAL_PICKUP)$")
    cost: Optional[Decimal] = Field(None, ge=0)
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    estimated_days: Optional[str] = Field(None, max_length=50)
    is_enabled: Optional[bool] = None
    sort_order: Optional[int] = None


class ShippingRateResponse(BaseModel):
    id: int
    zone_id: int
    name: str
    type: str
    cost: float
    min_order_amount: Optional[float] = None
    estimated_days: Optional[str] = None
    is_enabled: bool
    sort_order: int

    class Config:
        from_attributes = True


class ShippingZoneResponse(BaseModel):
    id: int
    store_id: int
    name: str
    regions: dict = {}
    is_enabled: bool
    priority: int
    rates: List[ShippingRateResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True
