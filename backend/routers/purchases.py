from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from crud import purchases as crud_purchases
from crud import receiving as crud_receiving
from models.purchases import PurchaseStatus
from schemas.purchases import Purchase, PurchaseCreate, PurchaseStats, PurchaseUpdate
from schemas.receiving import ReceivePreview, ReceivePreviewRequest, ReceiveRequest, ReceiveResult
from utils.auth_utils import get_current_user, get_user_identifier
from utils.transactions import run_in_transaction

router = APIRouter(prefix="/purchases", tags=["Purchases"])
logger = logging.getLogger("purchases")

@router.post("/", response_model=Purchase, status_code=status.HTTP_201_CREATED)
def create_purchase(
    purchase: PurchaseCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Create a purchase; with auto_receive every line is received in full right away."""
    return run_in_transaction(db, crud_purchases.create_purchase, purchase, get_user_identifier(user))

@router.get("/", response_model=List[Purchase])
def read_purchases(
    status: Optional[PurchaseStatus] = None,
    supplier_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return crud_purchases.get_purchases(
        db, status=status, supplier_id=supplier_id, start_date=start_date, end_date=end_date,
        search=search, skip=skip, limit=limit,
    )

@router.get("/stats", response_model=PurchaseStats)
def read_purchase_stats(supplier_id: Optional[str] = None, db: Session = Depends(get_db)):
    return crud_purchases.purchase_stats(db, supplier_id=supplier_id)

@router.get("/{purchase_id}", response_model=Purchase)
def read_purchase(purchase_id: str, db: Session = Depends(get_db)):
    return crud_purchases.get_purchase(db, purchase_id)

@router.patch("/{purchase_id}", response_model=Purchase)
def update_purchase(
    purchase_id: str,
    purchase: PurchaseUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Edit a DRAFT purchase. Totals and amount due are recomputed."""
    return run_in_transaction(db, crud_purchases.update_purchase, purchase_id, purchase, get_user_identifier(user))

@router.delete("/{purchase_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_purchase(
    purchase_id: str,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    run_in_transaction(db, crud_purchases.delete_purchase, purchase_id, get_user_identifier(user))
    return None

@router.post("/{purchase_id}/order", response_model=Purchase)
def order_purchase(
    purchase_id: str,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_purchases.order_purchase, purchase_id, get_user_identifier(user))

@router.post("/{purchase_id}/cancel", response_model=Purchase)
def cancel_purchase(
    purchase_id: str,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_purchases.cancel_purchase, purchase_id, get_user_identifier(user))

@router.post("/{purchase_id}/receive/preview", response_model=ReceivePreview)
def preview_receive(
    purchase_id: str,
    request: Optional[ReceivePreviewRequest] = None,
    db: Session = Depends(get_db),
):
    """What receiving would do to stock and average costs. Nothing is written."""
    lines = request.lines if request else None
    return crud_receiving.preview_receive(db, purchase_id, lines)

@router.post("/{purchase_id}/receive", response_model=ReceiveResult)
def receive_purchase(
    purchase_id: str,
    request: ReceiveRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Receive one or more lines atomically; any invalid line rejects the whole request."""
    return run_in_transaction(db, crud_receiving.receive_purchase, purchase_id, request.lines, get_user_identifier(user))
