from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from crud import suppliers as crud_suppliers
from schemas.suppliers import Supplier, SupplierCreate, SupplierUpdate
from utils.auth_utils import get_current_user, get_user_identifier
from utils.transactions import run_in_transaction

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])
logger = logging.getLogger("suppliers")

@router.post("/", response_model=Supplier, status_code=status.HTTP_201_CREATED)
def create_supplier(
    supplier: SupplierCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    db_supplier = run_in_transaction(db, crud_suppliers.create_supplier, supplier, get_user_identifier(user))
    logger.info(f"Supplier {db_supplier.code} (ID: {db_supplier.id}) created by user {get_user_identifier(user)}")
    return db_supplier

@router.get("/", response_model=List[Supplier])
def read_suppliers(
    active_only: bool = False,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return crud_suppliers.get_suppliers(db, active_only=active_only, skip=skip, limit=limit)

@router.get("/{supplier_id}", response_model=Supplier)
def read_supplier(supplier_id: str, db: Session = Depends(get_db)):
    return crud_suppliers.get_supplier(db, supplier_id)

@router.patch("/{supplier_id}", response_model=Supplier)
def update_supplier(
    supplier_id: str,
    supplier: SupplierUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_suppliers.update_supplier, supplier_id, supplier, get_user_identifier(user))
