"""
Vendor payout requests

Requested amounts leave withdraw_balance immediately; rejection or
cancellation puts them back.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, JSON

from marketplace.db.base import Base


class WithdrawMethod:
    BANK_TRANSFER = "BANK_TRANSFER"
    PAYPAL = "PAYPAL"
    STRIPE = "STRIPE"
    SKRILL = "SKRILL"


class WithdrawStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    # A store may only have one of these at a time
    OPEN = (PENDING, APPROVED, PROCESSING)


class VendorWithdraw(Base):
    __tablename__ = "vendor_withdraws"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("vendor_stores.id"), nullable=False, index=True)
    amount = Column(DECIMAL(12, 2), nullable=False)
    method = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=WithdrawStatus.PENDING, index=True)
    notes = Column(Text)
    admin_notes = Column(Text)
    bank_details = Column(JSON)

    requested_at = Column(DateTime, default=datetime.utcnow)
    processed_at = Column(DateTime)
    processed_by = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<VendorWithdraw {self.id}: {self.amount} {self.method} [{self.status}]>"
