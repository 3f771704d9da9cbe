"""Vendor store Schema"""
import re
from typing import Optional, List, Dict
from datetime import datetime
from pydantic import BaseModel, Field, EmailStr, field_validator, model_validator


class StoreCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: Optional[str] = Field(None, min_length=2, max_length=100, pattern=r"^[a-z0-9-]+$",
                                description="Derived from the name when omitted")
    email: Optional[EmailStr] = Field(None, description="Defaults to the account email")
    description: Optional[str] = Field(None, max_length=2000)
    tenant_id: Optional[int] = None


class StoreUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    description: Optional[str] = Field(None, max_length=2000)
    logo_url: Optional[str] = Field(None, max_length=500)
    stripe_account_id: Optional[str] = Field(None, max_length=100)
    paypal_email: Optional[EmailStr] = None
    is_active: Optional[bool] = None


class StoreResponse(BaseModel):
    id: int
    owner_id: int
    tenant_id: Optional[int] = None
    name: str
    slug: str
    email: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: bool
    stripe_account_id: Optional[str] = None
    paypal_email: Optional[str] = None
    withdraw_balance: float
    minimum_withdraw: float
    total_orders: int
    total_sales: float
    average_rating: float
    total_reviews: int
    created_at: datetime

    class Config:
        from_attributes = True


# ===== Store hours =====
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class DayHours(BaseModel):
    open: str = Field("09:00", description="HH:MM")
    close: str = Field("17:00", description="HH:MM")
    closed: bool = False

    @model_validator(mode="after")
    def check_times(self):
        for value in (self.open, self.close):
            if not TIME_PATTERN.match(value):
                raise ValueError(f"Invalid time '{value}', expected HH:MM")
        if not self.closed and self.close <= self.open:
            raise ValueError("Closing time must be after opening time")
        return self


class StoreHoursUpdate(BaseModel):
    monday: DayHours = DayHours()
    tuesday: DayHours = DayHours()
    wednesday: DayHours = DayHours()
    thursday: DayHours = DayHours()
    friday: DayHours = DayHours()
    saturday: DayHours = DayHours(closed=True)
    sunday: DayHours = DayHours(closed=True)
    timezone: str = Field("America/New_York", max_length=50)
    is_enabled: bool = True


class StoreHoursResponse(BaseModel):
    id: int
    store_id: int
    monday: Optional[Dict] = None
    tuesday: Optional[Dict] = None
    wednesday: Optional[Dict] = None
    thursday: Optional[Dict] = None
    friday: Optional[Dict] = None
    saturday: Optional[Dict] = None
    sunday: Optional[Dict] = None
    timezone: str
    is_enabled: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===== Vacations =====
class VacationCreate(BaseModel):
    start_date: datetime
    end_date: datetime
    message: Optional[str] = Field(None, max_length=500)
    is_active: bool = True

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must be after start date")
        return self


class VacationUpdate(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    message: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class VacationResponse(BaseModel):
    id: int
    store_id: int
    start_date: datetime
    end_date: datetime
    message: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PublicStoreResponse(BaseModel):
    """Storefront view"""
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    average_rating: float
    total_reviews: int
    hours: Optional[StoreHoursResponse] = None
    vacation: Optional[VacationResponse] = None
    is_on_vacation: bool = False
