from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal
from models.purchases import PurchaseStatus
from schemas.purchases import Purchase
from schemas.inventory_transactions import InventoryTransaction

class ReceiveLine(BaseModel):
    """Receive ``quantity`` more units against one purchase line."""
    purchase_item_id: str
    quantity: Decimal = Field(..., gt=0, decimal_places=2)

class ReceiveRequest(BaseModel):
    lines: List[ReceiveLine] = Field(..., min_length=1)

class ReceivePreviewRequest(BaseModel):
    # Omitted lines preview receiving everything still outstanding
    lines: Optional[List[ReceiveLine]] = None

class ReceivePreviewLine(BaseModel):
    purchase_item_id: str
    inventory_item_id: str
    sku: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    current_quantity: Decimal
    new_quantity: Decimal
    current_average_cost: Decimal
    new_average_cost: Decimal
    current_value: Decimal
    new_value: Decimal

class ReceivePreview(BaseModel):
    purchase_id: str
    purchase_number: str
    lines: List[ReceivePreviewLine]
    total_quantity: Decimal
    total_value: Decimal
    resulting_status: PurchaseStatus

class ReceiveResult(BaseModel):
    purchase: Purchase
    transactions: List[InventoryTransaction]
    over_received: bool = False
