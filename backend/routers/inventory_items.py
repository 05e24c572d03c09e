from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from crud import inventory_items as crud_inventory_items
from crud import inventory_transactions as crud_ledger
from models.inventory_items import InventoryItemType
from schemas.inventory_items import (
    InventoryItem,
    InventoryItemCreate,
    InventoryItemUpdate,
    InventoryValuation,
    ReconciliationReport,
    StockAdjustmentCreate,
    StockReservation,
)
from schemas.inventory_transactions import InventoryTransaction
from utils.auth_utils import get_current_user, get_user_identifier
from utils.transactions import run_in_transaction

router = APIRouter(prefix="/inventory-items", tags=["Inventory Items"])
logger = logging.getLogger("inventory_items")

@router.post("/", response_model=InventoryItem, status_code=status.HTTP_201_CREATED)
def create_inventory_item(
    item: InventoryItemCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    db_item = run_in_transaction(db, crud_inventory_items.create_inventory_item, item, get_user_identifier(user))
    logger.info(f"Inventory item {db_item.sku} (ID: {db_item.id}) created by user {get_user_identifier(user)}")
    return db_item

@router.get("/", response_model=List[InventoryItem])
def read_inventory_items(
    type: Optional[InventoryItemType] = None,
    active_only: bool = True,
    low_stock: bool = False,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return crud_inventory_items.get_inventory_items(
        db, item_type=type, active_only=active_only, low_stock=low_stock, search=search, skip=skip, limit=limit
    )

@router.get("/valuation", response_model=InventoryValuation)
def read_inventory_valuation(db: Session = Depends(get_db)):
    """Stock value of active items, in total and per item type."""
    return crud_inventory_items.inventory_valuation(db)

@router.get("/reconcile", response_model=ReconciliationReport)
def reconcile_inventory(
    item_ids: Optional[List[str]] = Query(None),
    db: Session = Depends(get_db),
):
    """Replay the ledger of each item and compare it with the stored stock figures."""
    return crud_inventory_items.reconcile_inventory(db, item_ids)

@router.get("/{item_id}", response_model=InventoryItem)
def read_inventory_item(item_id: str, db: Session = Depends(get_db)):
    return crud_inventory_items.get_inventory_item(db, item_id)

@router.patch("/{item_id}", response_model=InventoryItem)
def update_inventory_item(
    item_id: str,
    item: InventoryItemUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_inventory_items.update_inventory_item, item_id, item, get_user_identifier(user))

@router.post("/{item_id}/deactivate", response_model=InventoryItem)
def deactivate_inventory_item(
    item_id: str,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    db_item = run_in_transaction(db, crud_inventory_items.deactivate_inventory_item, item_id, get_user_identifier(user))
    logger.info(f"Inventory item {db_item.sku} (ID: {item_id}) deactivated by user {get_user_identifier(user)}")
    return db_item

@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_inventory_item(
    item_id: str,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Hard delete; only for items that never held stock."""
    run_in_transaction(db, crud_inventory_items.delete_inventory_item, item_id, get_user_identifier(user))
    logger.info(f"Inventory item ID {item_id} deleted by user {get_user_identifier(user)}")
    return None

@router.post("/{item_id}/adjustments", response_model=InventoryTransaction, status_code=status.HTTP_201_CREATED)
def create_adjustment(
    item_id: str,
    adjustment: StockAdjustmentCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    db_tx = run_in_transaction(db, crud_inventory_items.create_adjustment, item_id, adjustment, get_user_identifier(user))
    logger.info(f"Stock adjustment of {adjustment.quantity} on item ID {item_id} by user {get_user_identifier(user)}")
    return db_tx

@router.post("/{item_id}/reserve", response_model=InventoryItem)
def reserve_stock(
    item_id: str,
    reservation: StockReservation,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_inventory_items.reserve_stock, item_id, reservation.quantity, get_user_identifier(user))

@router.post("/{item_id}/release", response_model=InventoryItem)
def release_stock(
    item_id: str,
    reservation: StockReservation,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_inventory_items.release_stock, item_id, reservation.quantity, get_user_identifier(user))

@router.get("/{item_id}/transactions", response_model=List[InventoryTransaction])
def read_item_transactions(
    item_id: str,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    """Ledger of one item, oldest first."""
    crud_inventory_items.get_inventory_item(db, item_id)
    return crud_ledger.get_item_transactions(db, item_id, skip=skip, limit=limit)
