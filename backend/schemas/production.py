from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from models.production_batches import BatchStatus
from schemas.inventory_transactions import InventoryTransaction

class ProductionBatchCreate(BaseModel):
    model_id: str
    planned_qty: int = Field(..., gt=0)
    labor_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)  # defaults to model labor cost x planned_qty
    overhead_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)  # defaults to model other cost x planned_qty
    planned_date: Optional[date] = None
    notes: Optional[str] = None

class ConsumeRequest(BaseModel):
    allow_shortage: bool = False

class CompleteRequest(BaseModel):
    produced_qty: int = Field(..., ge=0)
    labor_cost_override: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    allow_overage: bool = False

class ProductionConsumption(BaseModel):
    id: str
    inventory_item_id: str
    quantity_consumed: Decimal
    unit_cost_at_consumption: Decimal
    total_cost: Decimal
    consumed_at: datetime

    class Config:
        from_attributes = True

class ProductionBatch(BaseModel):
    id: str
    batch_number: str
    model_id: str
    planned_qty: int
    produced_qty: Optional[int] = None
    status: BatchStatus
    materials_cost: Decimal
    labor_cost: Decimal
    overhead_cost: Decimal
    total_cost: Decimal
    cost_per_unit: Optional[Decimal] = None
    planned_date: Optional[date] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    version: int
    created_by: Optional[str] = None
    created_at: datetime
    consumptions: List[ProductionConsumption] = []

    class Config:
        from_attributes = True

class AvailabilityLine(BaseModel):
    inventory_item_id: str
    sku: str
    name: str
    required: Decimal
    available: Decimal
    shortage: Decimal
    average_cost: Decimal

class Availability(BaseModel):
    model_id: str
    planned_qty: int
    can_produce: bool
    max_producible: int
    estimated_materials_cost: Decimal
    lines: List[AvailabilityLine]
    shortages: List[AvailabilityLine]

class ConsumeResult(BaseModel):
    batch: ProductionBatch
    transactions: List[InventoryTransaction]
    shortage_override: bool = False

class CompleteResult(BaseModel):
    batch: ProductionBatch
    overage: bool = False
    finished_goods_transaction: Optional[InventoryTransaction] = None
