from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal

class CostSimulationRequest(BaseModel):
    # inventory_item_id -> unit cost to use instead of the current average cost
    cost_overrides: Dict[str, Decimal] = {}
    estimated_units: Optional[int] = Field(None, gt=0)
    labor_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)  # per unit
    packaging_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)  # per unit
    margin_target: Optional[Decimal] = Field(None, gt=0, lt=100)  # percent

class CostBreakdownLine(BaseModel):
    inventory_item_id: str
    sku: str
    name: str
    type: str
    quantity_per_unit: Decimal
    waste_factor: Decimal
    quantity_with_waste: Decimal
    unit_cost: Decimal
    line_cost: Decimal
    overridden: bool = False

class CostBreakdown(BaseModel):
    model_id: str
    sku: str
    name: str
    estimated_units: int
    fabric_cost: Decimal
    accessory_cost: Decimal
    packaging_cost: Decimal
    other_material_cost: Decimal
    materials_cost: Decimal
    labor_cost: Decimal
    other_cost: Decimal
    charges: Dict[str, Decimal]  # per-unit allocation by charge category
    charges_cost: Decimal
    return_margin_cost: Decimal
    total_cost: Decimal
    selling_price: Optional[Decimal] = None
    margin: Optional[Decimal] = None
    margin_percent: Optional[Decimal] = None
    suggested_prices: Dict[str, Decimal]  # keyed by margin percent: "30", "40", "50"
    margin_target: Optional[Decimal] = None
    target_price: Optional[Decimal] = None
    lines: List[CostBreakdownLine]

class CostSnapshotCreate(BaseModel):
    batch_id: Optional[str] = None

class CostSnapshot(BaseModel):
    id: str
    snapshot_number: str
    model_id: str
    batch_id: Optional[str] = None
    fabric_cost: Decimal
    accessory_cost: Decimal
    packaging_cost: Decimal
    other_material_cost: Decimal
    materials_cost: Decimal
    labor_cost: Decimal
    other_cost: Decimal
    charges_cost: Decimal
    return_margin_cost: Decimal
    total_cost: Decimal
    selling_price: Optional[Decimal] = None
    margin: Optional[Decimal] = None
    margin_percent: Optional[Decimal] = None
    suggested_prices: Dict[str, Decimal]
    breakdown: dict
    estimated_units: int
    is_locked: bool
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
