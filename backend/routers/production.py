from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from crud import production as crud_production
from models.production_batches import BatchStatus
from schemas.production import (
    CompleteRequest,
    CompleteResult,
    ConsumeRequest,
    ConsumeResult,
    ProductionBatch,
    ProductionBatchCreate,
)
from utils.auth_utils import get_current_user, get_user_identifier
from utils.transactions import run_in_transaction

router = APIRouter(prefix="/production", tags=["Production"])
logger = logging.getLogger("production")

@router.post("/", response_model=ProductionBatch, status_code=status.HTTP_201_CREATED)
def create_batch(
    batch: ProductionBatchCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_production.create_batch, batch, get_user_identifier(user))

@router.get("/", response_model=List[ProductionBatch])
def read_batches(
    status: Optional[BatchStatus] = None,
    model_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return crud_production.get_batches(db, status=status, model_id=model_id, skip=skip, limit=limit)

@router.get("/{batch_id}", response_model=ProductionBatch)
def read_batch(batch_id: str, db: Session = Depends(get_db)):
    return crud_production.get_batch(db, batch_id)

@router.post("/{batch_id}/consume", response_model=ConsumeResult)
def consume_materials(
    batch_id: str,
    request: Optional[ConsumeRequest] = None,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Take the bill of materials out of stock and start the batch."""
    allow_shortage = request.allow_shortage if request else False
    return run_in_transaction(db, crud_production.consume_materials, batch_id, get_user_identifier(user), allow_shortage)

@router.post("/{batch_id}/complete", response_model=CompleteResult)
def complete_batch(
    batch_id: str,
    request: CompleteRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(
        db,
        crud_production.complete_batch,
        batch_id,
        request.produced_qty,
        get_user_identifier(user),
        request.labor_cost_override,
        request.allow_overage,
    )

@router.post("/{batch_id}/hold", response_model=ProductionBatch)
def hold_batch(batch_id: str, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return run_in_transaction(db, crud_production.hold_batch, batch_id, get_user_identifier(user))

@router.post("/{batch_id}/resume", response_model=ProductionBatch)
def resume_batch(batch_id: str, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return run_in_transaction(db, crud_production.resume_batch, batch_id, get_user_identifier(user))

@router.post("/{batch_id}/cancel", response_model=ProductionBatch)
def cancel_batch(batch_id: str, db: Session = Depends(get_db), user: dict = Depends(get_current_user)):
    return run_in_transaction(db, crud_production.cancel_batch, batch_id, get_user_identifier(user))
