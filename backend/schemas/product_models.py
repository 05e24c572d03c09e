from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from models.charges import ChargeCategory, ChargeScope

class BomItemCreate(BaseModel):
    inventory_item_id: str
    quantity_per_unit: Decimal = Field(..., gt=0)
    waste_factor: Decimal = Field(Decimal("1.05"), ge=1)
    notes: Optional[str] = None

class BomItemUpdate(BaseModel):
    quantity_per_unit: Optional[Decimal] = Field(None, gt=0)
    waste_factor: Optional[Decimal] = Field(None, ge=1)
    notes: Optional[str] = None

class BomItem(BaseModel):
    id: str
    model_id: str
    inventory_item_id: str
    quantity_per_unit: Decimal
    waste_factor: Decimal
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class ProductModelBase(BaseModel):
    sku: str = Field(..., min_length=1, max_length=64)
    name: str
    description: Optional[str] = None
    labor_cost: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    other_cost: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    return_margin: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    estimated_units: int = Field(100, gt=0)
    selling_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    finished_item_id: Optional[str] = None

class ProductModelCreate(ProductModelBase):
    bom_items: List[BomItemCreate] = []

class ProductModelUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    labor_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    other_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    return_margin: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    estimated_units: Optional[int] = Field(None, gt=0)
    selling_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    finished_item_id: Optional[str] = None
    is_active: Optional[bool] = None

class ProductModel(ProductModelBase):
    id: str
    produced_units: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    bom_items: List[BomItem] = []

    class Config:
        from_attributes = True

class ChargeCreate(BaseModel):
    category: ChargeCategory
    scope: ChargeScope = ChargeScope.MODEL
    model_id: Optional[str] = None
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: Optional[str] = None
    charge_date: Optional[date] = None

class Charge(BaseModel):
    id: str
    charge_number: str
    category: ChargeCategory
    scope: ChargeScope
    model_id: Optional[str] = None
    amount: Decimal
    description: Optional[str] = None
    charge_date: Optional[date] = None
    created_at: datetime

    class Config:
        from_attributes = True
