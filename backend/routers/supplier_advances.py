from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from crud import supplier_advances as crud_advances
from models.supplier_advances import AdvanceStatus
from schemas.supplier_advances import (
    AdvanceStats,
    ApplyAdvanceRequest,
    ApplyAdvanceResult,
    SupplierAdvance,
    SupplierAdvanceCreate,
)
from utils.auth_utils import get_current_user, get_user_identifier
from utils.transactions import run_in_transaction

router = APIRouter(prefix="/supplier-advances", tags=["Supplier Advances"])
logger = logging.getLogger("supplier_advances")

@router.post("/", response_model=SupplierAdvance, status_code=status.HTTP_201_CREATED)
def create_advance(
    advance: SupplierAdvanceCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_advances.create_advance, advance, get_user_identifier(user))

@router.get("/", response_model=List[SupplierAdvance])
def read_advances(
    supplier_id: Optional[str] = None,
    status: Optional[AdvanceStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return crud_advances.get_advances(
        db, supplier_id=supplier_id, status=status, start_date=start_date, end_date=end_date, skip=skip, limit=limit
    )

@router.get("/stats", response_model=AdvanceStats)
def read_advance_stats(supplier_id: Optional[str] = None, db: Session = Depends(get_db)):
    return crud_advances.advance_stats(db, supplier_id=supplier_id)

@router.get("/available", response_model=List[SupplierAdvance])
def read_available_advances(supplier_id: str, db: Session = Depends(get_db)):
    """Advances of a supplier that can still be applied, oldest first."""
    return crud_advances.available_advances_for_supplier(db, supplier_id)

@router.get("/{advance_id}", response_model=SupplierAdvance)
def read_advance(advance_id: str, db: Session = Depends(get_db)):
    return crud_advances.get_advance(db, advance_id)

@router.post("/{advance_id}/apply", response_model=ApplyAdvanceResult)
def apply_advance(
    advance_id: str,
    request: ApplyAdvanceRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(
        db, crud_advances.apply_advance, advance_id, request.purchase_id, request.amount, get_user_identifier(user)
    )

@router.delete("/{advance_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_advance(
    advance_id: str,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Only advances that were never applied can be deleted."""
    run_in_transaction(db, crud_advances.delete_advance, advance_id, get_user_identifier(user))
    return None
