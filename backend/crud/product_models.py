import logging
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from models.charges import Charge, ChargeCategory, ChargeScope
from models.inventory_items import InventoryItem, InventoryItemType
from models.product_models import BomItem, ProductModel
from schemas.product_models import BomItemCreate, BomItemUpdate, ChargeCreate, ProductModelCreate, ProductModelUpdate
from crud.audit_log import record_audit
from utils import sqlalchemy_to_dict
from utils.costing import to_decimal
from utils.exceptions import BusinessRuleViolation, ConflictError, NotFoundError, ValidationError
from utils.numbering import CHARGE_PREFIX, next_document_number

logger = logging.getLogger("product_models")


def get_model(db: Session, model_id: str) -> ProductModel:
    db_model = (
        db.query(ProductModel)
        .options(selectinload(ProductModel.bom_items).selectinload(BomItem.inventory_item))
        .filter(ProductModel.id == model_id)
        .first()
    )
    if not db_model:
        raise NotFoundError("ProductModel", model_id)
    return db_model


def get_models(db: Session, active_only: bool = True, search: Optional[str] = None, skip: int = 0, limit: int = 100):
    query = db.query(ProductModel).options(selectinload(ProductModel.bom_items))
    if active_only:
        query = query.filter(ProductModel.is_active.is_(True))
    if search:
        pattern = f"%{search}%"
        query = query.filter((ProductModel.sku.ilike(pattern)) | (ProductModel.name.ilike(pattern)))
    return query.order_by(ProductModel.sku).offset(skip).limit(limit).all()


def _check_finished_item(db: Session, item_id: Optional[str]):
    if item_id is None:
        return
    db_item = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
    if not db_item:
        raise NotFoundError("InventoryItem", item_id)
    if db_item.type != InventoryItemType.FINISHED:
        raise ValidationError(
            f"Item {db_item.sku} is not a finished-goods item",
            {"finished_item_id": item_id, "type": db_item.type.value},
        )


def _build_bom_item(db: Session, bom_item: BomItemCreate) -> BomItem:
    db_item = db.query(InventoryItem).filter(InventoryItem.id == bom_item.inventory_item_id).first()
    if not db_item:
        raise NotFoundError("InventoryItem", bom_item.inventory_item_id)
    if to_decimal(bom_item.quantity_per_unit) <= 0:
        raise ValidationError("Quantity per unit must be positive", {"quantity_per_unit": str(bom_item.quantity_per_unit)})
    if to_decimal(bom_item.waste_factor) < 1:
        raise ValidationError("Waste factor cannot be below 1", {"waste_factor": str(bom_item.waste_factor)})
    return BomItem(**bom_item.model_dump())


def create_model(db: Session, model: ProductModelCreate, actor: str):
    if db.query(ProductModel).filter(ProductModel.sku == model.sku).first():
        raise ConflictError(f"Model SKU {model.sku} already exists", {"sku": model.sku})
    _check_finished_item(db, model.finished_item_id)

    bom_items = []
    seen = set()
    for bom_item in model.bom_items:
        if bom_item.inventory_item_id in seen:
            raise ConflictError(
                "Each inventory item may appear only once in a bill of materials",
                {"inventory_item_id": bom_item.inventory_item_id},
            )
        seen.add(bom_item.inventory_item_id)
        bom_items.append(_build_bom_item(db, bom_item))

    db_model = ProductModel(
        **model.model_dump(exclude={"bom_items"}),
        produced_units=0,
        created_by=actor,
        updated_by=actor,
    )
    db_model.bom_items = bom_items
    db.add(db_model)
    db.flush()
    record_audit(db, "product_models", db_model.id, "CREATE", actor, None, sqlalchemy_to_dict(db_model))
    logger.info(f"Model {db_model.sku} (ID: {db_model.id}) created with {len(bom_items)} BOM line(s) by user {actor}")
    return db_model


def update_model(db: Session, model_id: str, model: ProductModelUpdate, actor: str):
    db_model = get_model(db, model_id)
    update_data = model.model_dump(exclude_unset=True)
    if "finished_item_id" in update_data:
        _check_finished_item(db, update_data["finished_item_id"])
    old_values = sqlalchemy_to_dict(db_model)
    for key, value in update_data.items():
        setattr(db_model, key, value)
    db_model.updated_by = actor
    db.flush()
    record_audit(db, "product_models", model_id, "UPDATE", actor, old_values, sqlalchemy_to_dict(db_model))
    return db_model


def add_bom_item(db: Session, model_id: str, bom_item: BomItemCreate, actor: str):
    db_model = get_model(db, model_id)
    if any(line.inventory_item_id == bom_item.inventory_item_id for line in db_model.bom_items):
        raise ConflictError(
            "This inventory item is already in the bill of materials",
            {"model_id": model_id, "inventory_item_id": bom_item.inventory_item_id},
        )
    db_bom_item = _build_bom_item(db, bom_item)
    db_model.bom_items.append(db_bom_item)
    db.flush()
    record_audit(db, "bom_items", db_bom_item.id, "CREATE", actor, None, sqlalchemy_to_dict(db_bom_item))
    return db_bom_item


def _get_bom_item(db: Session, model_id: str, bom_item_id: str) -> BomItem:
    db_bom_item = db.query(BomItem).filter(BomItem.id == bom_item_id, BomItem.model_id == model_id).first()
    if not db_bom_item:
        raise NotFoundError("BomItem", bom_item_id)
    return db_bom_item


def update_bom_item(db: Session, model_id: str, bom_item_id: str, bom_item: BomItemUpdate, actor: str):
    db_bom_item = _get_bom_item(db, model_id, bom_item_id)
    update_data = bom_item.model_dump(exclude_unset=True)
    if update_data.get("waste_factor") is not None and to_decimal(update_data["waste_factor"]) < 1:
        raise ValidationError("Waste factor cannot be below 1", {"waste_factor": str(update_data["waste_factor"])})
    if update_data.get("quantity_per_unit") is not None and to_decimal(update_data["quantity_per_unit"]) <= 0:
        raise ValidationError("Quantity per unit must be positive")
    old_values = sqlalchemy_to_dict(db_bom_item)
    for key, value in update_data.items():
        if value is not None or key == "notes":
            setattr(db_bom_item, key, value)
    db.flush()
    record_audit(db, "bom_items", bom_item_id, "UPDATE", actor, old_values, sqlalchemy_to_dict(db_bom_item))
    return db_bom_item


def remove_bom_item(db: Session, model_id: str, bom_item_id: str, actor: str):
    db_bom_item = _get_bom_item(db, model_id, bom_item_id)
    old_values = sqlalchemy_to_dict(db_bom_item)
    db.delete(db_bom_item)
    db.flush()
    record_audit(db, "bom_items", bom_item_id, "DELETE", actor, old_values, None)
    return True


def create_charge(db: Session, charge: ChargeCreate, actor: str):
    if charge.scope == ChargeScope.MODEL:
        if not charge.model_id:
            raise ValidationError("A MODEL charge needs a model_id", {"scope": charge.scope.value})
        get_model(db, charge.model_id)
    elif charge.model_id:
        raise ValidationError(
            f"A {charge.scope.value} charge cannot target a model", {"scope": charge.scope.value}
        )
    if to_decimal(charge.amount) <= 0:
        raise ValidationError("Charge amount must be positive", {"amount": str(charge.amount)})

    db_charge = Charge(
        **charge.model_dump(),
        charge_number=next_document_number(db, Charge.charge_number, CHARGE_PREFIX),
        created_by=actor,
        updated_by=actor,
    )
    db.add(db_charge)
    db.flush()
    record_audit(db, "charges", db_charge.id, "CREATE", actor, None, sqlalchemy_to_dict(db_charge))
    logger.info(f"Charge {db_charge.charge_number} of {db_charge.amount} ({db_charge.category.value}) created by user {actor}")
    return db_charge


def get_charges(
    db: Session,
    model_id: Optional[str] = None,
    category: Optional[ChargeCategory] = None,
    scope: Optional[ChargeScope] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(Charge)
    if model_id:
        query = query.filter(Charge.model_id == model_id)
    if category:
        query = query.filter(Charge.category == category)
    if scope:
        query = query.filter(Charge.scope == scope)
    return query.order_by(Charge.charge_number.desc()).offset(skip).limit(limit).all()


def delete_charge(db: Session, charge_id: str, actor: str):
    db_charge = db.query(Charge).filter(Charge.id == charge_id).first()
    if not db_charge:
        raise NotFoundError("Charge", charge_id)
    old_values = sqlalchemy_to_dict(db_charge)
    db.delete(db_charge)
    db.flush()
    record_audit(db, "charges", charge_id, "DELETE", actor, old_values, None)
    return True


def ensure_active_model(db_model: ProductModel):
    if not db_model.is_active:
        raise BusinessRuleViolation(f"Model {db_model.sku} is inactive", {"model_id": db_model.id})
