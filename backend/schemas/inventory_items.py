from pydantic import BaseModel, Field
from typing import Optional, Dict, List
from decimal import Decimal
from datetime import datetime
from models.inventory_items import InventoryItemType, InventoryUnit

class InventoryItemBase(BaseModel):
    sku: str = Field(..., min_length=1, max_length=64)
    name: str
    type: InventoryItemType
    unit: InventoryUnit = InventoryUnit.PIECE
    threshold: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None

class InventoryItemCreate(InventoryItemBase):
    # quantity and average_cost start at zero and only move through the ledger
    pass

class InventoryItemUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[InventoryItemType] = None
    unit: Optional[InventoryUnit] = None
    threshold: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None

class InventoryItem(InventoryItemBase):
    id: str
    quantity: Decimal
    reserved: Decimal
    available: Decimal
    average_cost: Decimal
    last_cost: Optional[Decimal] = None
    total_value: Decimal
    is_active: bool
    last_received_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class StockAdjustmentCreate(BaseModel):
    quantity: Decimal = Field(..., decimal_places=2)  # signed: positive adds stock, negative removes it
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None

class StockReservation(BaseModel):
    quantity: Decimal = Field(..., gt=0, decimal_places=2)

class InventoryValuation(BaseModel):
    item_count: int
    total_quantity: Decimal
    total_value: Decimal
    by_type: Dict[str, Decimal]
    low_stock_count: int

class ReconciliationLine(BaseModel):
    inventory_item_id: str
    sku: str
    stored_quantity: Decimal
    ledger_quantity: Decimal
    stored_average_cost: Decimal
    ledger_average_cost: Decimal
    quantity_variance: Decimal
    variance_value: Decimal
    variance_percent: Decimal
    status: str  # OK, WARNING or CRITICAL

class ReconciliationReport(BaseModel):
    checked: int
    discrepancies: int
    lines: List[ReconciliationLine]
