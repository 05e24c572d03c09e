from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from models.supplier_advances import AdvanceStatus, PaymentMethod
from schemas.purchases import Purchase

class SupplierAdvanceCreate(BaseModel):
    supplier_id: str
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod
    payment_date: date
    reference: Optional[str] = None
    notes: Optional[str] = None

class ApplyAdvanceRequest(BaseModel):
    purchase_id: str
    amount: Decimal = Field(..., gt=0, decimal_places=2)

class PurchaseAdvance(BaseModel):
    id: str
    purchase_id: str
    advance_id: str
    amount: Decimal
    applied_by: Optional[str] = None
    applied_at: datetime

    class Config:
        from_attributes = True

class SupplierAdvance(BaseModel):
    id: str
    advance_number: str
    supplier_id: str
    amount: Decimal
    amount_used: Decimal
    amount_remaining: Decimal
    status: AdvanceStatus
    payment_method: PaymentMethod
    payment_date: date
    reference: Optional[str] = None
    notes: Optional[str] = None
    version: int
    created_by: Optional[str] = None
    created_at: datetime
    applications: List[PurchaseAdvance] = []

    class Config:
        from_attributes = True

class ApplyAdvanceResult(BaseModel):
    advance: SupplierAdvance
    purchase: Purchase
    application: PurchaseAdvance

class AdvanceStats(BaseModel):
    count: int
    total_amount: Decimal
    total_used: Decimal
    total_remaining: Decimal
