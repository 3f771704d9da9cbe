"""Withdraw Schema"""
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field


class WithdrawCreate(BaseModel):
    amount: Decimal = Field(..., ge=1, decimal_places=2)
    method: str = Field(..., pattern=r"^(BANK_TRANSFER|PAYPAL|STRIPE|SKRILL)$")
    notes: Optional[str] = Field(None, max_length=500)
    bank_details: Optional[Dict[str, str]] = None


class WithdrawAdminAction(BaseModel):
    action: str = Field(..., pattern=r"^(approve|reject|mark_paid)$")
    admin_notes: Optional[str] = Field(None, max_length=1000)


class WithdrawResponse(BaseModel):
    id: int
    store_id: int
    amount: float
    method: str
    status: str
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    requested_at: datetime
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WithdrawListResponse(BaseModel):
    data: List[WithdrawResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    balance: Optional[float] = None
    minimum_withdraw: Optional[float] = None
