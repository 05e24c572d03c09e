from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from crud import costing as crud_costing
from crud import product_models as crud_models
from crud import production as crud_production
from schemas.costing import CostBreakdown, CostSimulationRequest, CostSnapshot, CostSnapshotCreate
from schemas.product_models import BomItem, BomItemCreate, BomItemUpdate, ProductModel, ProductModelCreate, ProductModelUpdate
from schemas.production import Availability
from utils.auth_utils import get_current_user, get_user_identifier
from utils.transactions import run_in_transaction

router = APIRouter(prefix="/product-models", tags=["Product Models"])
logger = logging.getLogger("product_models")

@router.post("/", response_model=ProductModel, status_code=status.HTTP_201_CREATED)
def create_model(
    model: ProductModelCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_models.create_model, model, get_user_identifier(user))

@router.get("/", response_model=List[ProductModel])
def read_models(
    active_only: bool = True,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return crud_models.get_models(db, active_only=active_only, search=search, skip=skip, limit=limit)

@router.get("/{model_id}", response_model=ProductModel)
def read_model(model_id: str, db: Session = Depends(get_db)):
    return crud_models.get_model(db, model_id)

@router.patch("/{model_id}", response_model=ProductModel)
def update_model(
    model_id: str,
    model: ProductModelUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_models.update_model, model_id, model, get_user_identifier(user))

@router.post("/{model_id}/bom-items", response_model=BomItem, status_code=status.HTTP_201_CREATED)
def add_bom_item(
    model_id: str,
    bom_item: BomItemCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_models.add_bom_item, model_id, bom_item, get_user_identifier(user))

@router.patch("/{model_id}/bom-items/{bom_item_id}", response_model=BomItem)
def update_bom_item(
    model_id: str,
    bom_item_id: str,
    bom_item: BomItemUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_models.update_bom_item, model_id, bom_item_id, bom_item, get_user_identifier(user))

@router.delete("/{model_id}/bom-items/{bom_item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_bom_item(
    model_id: str,
    bom_item_id: str,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    run_in_transaction(db, crud_models.remove_bom_item, model_id, bom_item_id, get_user_identifier(user))
    return None

@router.get("/{model_id}/availability", response_model=Availability)
def read_availability(model_id: str, planned_qty: int = Query(..., gt=0), db: Session = Depends(get_db)):
    """Material availability for producing ``planned_qty`` units, with shortages listed."""
    return crud_production.check_availability(db, model_id, planned_qty)

@router.get("/{model_id}/costs", response_model=CostBreakdown)
def read_cost_breakdown(
    model_id: str,
    estimated_units: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db),
):
    return crud_costing.cost_breakdown(db, model_id, estimated_units=estimated_units)

@router.post("/{model_id}/costs/simulate", response_model=CostBreakdown)
def simulate_cost(model_id: str, request: CostSimulationRequest, db: Session = Depends(get_db)):
    """What-if breakdown with unit cost, labor and packaging overrides and an optional target margin. Nothing is stored."""
    return crud_costing.cost_breakdown(
        db,
        model_id,
        cost_overrides=request.cost_overrides,
        estimated_units=request.estimated_units,
        labor_cost=request.labor_cost,
        packaging_cost=request.packaging_cost,
        margin_target=request.margin_target,
    )

@router.post("/{model_id}/costs/snapshot", response_model=CostSnapshot, status_code=status.HTTP_201_CREATED)
def create_cost_snapshot(
    model_id: str,
    request: Optional[CostSnapshotCreate] = None,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    batch_id = request.batch_id if request else None
    return run_in_transaction(db, crud_costing.create_cost_snapshot, model_id, get_user_identifier(user), batch_id)

@router.get("/{model_id}/costs/snapshots", response_model=List[CostSnapshot])
def read_cost_snapshots(model_id: str, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return crud_costing.get_snapshots(db, model_id, skip=skip, limit=limit)
