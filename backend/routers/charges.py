from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from crud import product_models as crud_models
from models.charges import ChargeCategory, ChargeScope
from schemas.product_models import Charge, ChargeCreate
from utils.auth_utils import get_current_user, get_user_identifier
from utils.transactions import run_in_transaction

router = APIRouter(prefix="/charges", tags=["Charges"])
logger = logging.getLogger("charges")

@router.post("/", response_model=Charge, status_code=status.HTTP_201_CREATED)
def create_charge(
    charge: ChargeCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return run_in_transaction(db, crud_models.create_charge, charge, get_user_identifier(user))

@router.get("/", response_model=List[Charge])
def read_charges(
    model_id: Optional[str] = None,
    category: Optional[ChargeCategory] = None,
    scope: Optional[ChargeScope] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return crud_models.get_charges(db, model_id=model_id, category=category, scope=scope, skip=skip, limit=limit)

@router.delete("/{charge_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_charge(
    charge_id: str,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    run_in_transaction(db, crud_models.delete_charge, charge_id, get_user_identifier(user))
    logger.info(f"Charge {charge_id} deleted by user {get_user_identifier(user)}")
    return None
