from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from database import get_db
from crud import inventory_transactions as crud_ledger
from models.inventory_transactions import ReferenceType, TransactionType
from schemas.inventory_transactions import InventoryTransaction

router = APIRouter(prefix="/inventory-transactions", tags=["Inventory Ledger"])

@router.get("/", response_model=List[InventoryTransaction])
def read_transactions(
    inventory_item_id: Optional[str] = None,
    reference_type: Optional[ReferenceType] = None,
    reference_id: Optional[str] = None,
    type: Optional[TransactionType] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    """Stock movements, newest first."""
    return crud_ledger.get_transactions(
        db,
        inventory_item_id=inventory_item_id,
        reference_type=reference_type,
        reference_id=reference_id,
        tx_type=type,
        skip=skip,
        limit=limit,
    )
