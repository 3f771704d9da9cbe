"""Tenant Schema"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=50, pattern=r"^[a-z0-9-]+$",
                      description="Lowercase letters, numbers and hyphens")
    subscription_plan: str = Field(default="TRIAL", pattern=r"^(TRIAL|STARTER|PRO|ENTERPRISE)$")
    primary_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    logo_url: Optional[str] = Field(None, max_length=500)


class TenantResponse(BaseModel):
    id: int
    name: str
    slug: str
    owner_id: int
    subscription_plan: str
    subscription_status: str
    trial_ends_at: Optional[datetime] = None
    primary_color: Optional[str] = None
    logo_url: Optional[str] = None
    max_products: int
    max_orders: int
    max_storage_gb: float
    platform_fee_percent: float
    current_products: int
    current_orders: int
    current_storage_gb: float
    is_active: bool
    created_at: datetime
    usage: dict = {}

    class Config:
        from_attributes = True


class TenantListResponse(BaseModel):
    data: List[TenantResponse]
    total: int


class SlugCheckResponse(BaseModel):
    slug: str
    available: bool
    error: Optional[str] = None
