"""Coupon Schema"""
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator, model_validator


class CouponBase(BaseModel):
    description: Optional[str] = Field(None, max_length=200)
    discount_type: str = Field(..., pattern=r"^(PERCENTAGE|FIXED_AMOUNT|FREE_SHIPPING)$")
    discount_value: Decimal = Field(Decimal("0"), ge=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    first_time_customers_only: bool = False
    applicable_products: List[int] = []
    applicable_categories: List[str] = []
    excluded_products: List[int] = []
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = True

    @model_validator(mode="after")
    def check_values(self):
        if self.discount_type == "PERCENTAGE" and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must be after start date")
        return self


class CouponCreate(CouponBase):
    code: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.upper()


class CouponUpdate(BaseModel):
    description: Optional[str] = Field(None, max_length=200)
    discount_value: Optional[Decimal] = Field(None, ge=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    first_time_customers_only: Optional[bool] = None
    applicable_products: Optional[List[int]] = None
    applicable_categories: Optional[List[str]] = None
    excluded_products: Optional[List[int]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class CouponResponse(BaseModel):
    id: int
    store_id: int
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: float
    min_purchase_amount: Optional[float] = None
    max_discount_amount: Optional[float] = None
    usage_limit: Optional[int] = None
    usage_count: int
    first_time_customers_only: bool
    applicable_products: List[int] = []
    applicable_categories: List[str] = []
    excluded_products: List[int] = []
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
