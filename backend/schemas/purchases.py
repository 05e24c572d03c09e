from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal
from models.purchases import PurchaseStatus

class PurchaseItemCreate(BaseModel):
    inventory_item_id: str
    quantity_ordered: Decimal = Field(..., gt=0, decimal_places=2)
    unit_price: Decimal = Field(..., ge=0, decimal_places=2)

class PurchaseItem(BaseModel):
    id: str
    inventory_item_id: str
    quantity_ordered: Decimal
    quantity_received: Decimal
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True

class PurchaseCreate(BaseModel):
    supplier_id: str
    items: List[PurchaseItemCreate] = Field(..., min_length=1)
    tax_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    shipping_cost: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    order_date: Optional[date] = None
    notes: Optional[str] = None
    auto_receive: bool = False  # receive every line in full in the same transaction

class PurchaseUpdate(BaseModel):
    # Only DRAFT purchases can be edited; totals are recomputed by the system
    items: Optional[List[PurchaseItemCreate]] = Field(None, min_length=1)
    tax_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    shipping_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    order_date: Optional[date] = None
    notes: Optional[str] = None

class Purchase(BaseModel):
    id: str
    purchase_number: str
    supplier_id: str
    status: PurchaseStatus
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    amount_due: Decimal
    advance_applied: Decimal
    order_date: Optional[date] = None
    received_at: Optional[datetime] = None
    notes: Optional[str] = None
    version: int
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    items: List[PurchaseItem] = []

    class Config:
        from_attributes = True

class PurchaseStats(BaseModel):
    count: int
    by_status: Dict[str, int]
    total_amount: Decimal
    total_due: Decimal
    total_advance_applied: Decimal
