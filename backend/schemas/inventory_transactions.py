from pydantic import BaseModel
from typing import Optional
from decimal import Decimal
from datetime import datetime
from models.inventory_transactions import TransactionDirection, TransactionType, ReferenceType

class InventoryTransaction(BaseModel):
    id: str
    inventory_item_id: str
    sequence: int
    direction: TransactionDirection
    type: TransactionType
    quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    balance_before: Decimal
    balance_after: Decimal
    value_before: Decimal
    value_after: Decimal
    avg_cost_before: Decimal
    avg_cost_after: Decimal
    reference_type: ReferenceType
    reference_id: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
