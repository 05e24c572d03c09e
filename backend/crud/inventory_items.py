import logging
from decimal import Decimal
from typing import Optional, List

from sqlalchemy.orm import Session

from models.inventory_items import InventoryItem, InventoryItemType
from models.inventory_transactions import ReferenceType, TransactionDirection, TransactionType
from models.product_models import BomItem
from models.purchase_items import PurchaseItem
from schemas.inventory_items import InventoryItemCreate, InventoryItemUpdate, StockAdjustmentCreate
from crud.audit_log import record_audit
from crud.inventory_transactions import all_item_transactions, item_has_transactions, record_movement
from utils import sqlalchemy_to_dict
from utils.costing import ZERO, replay_ledger, round2, to_decimal
from utils.exceptions import BusinessRuleViolation, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("inventory_items")

# Reconciliation thresholds, in percent of the ledger quantity
WARNING_VARIANCE_PERCENT = Decimal("5")
CRITICAL_VARIANCE_PERCENT = Decimal("10")


def get_inventory_item(db: Session, item_id: str) -> InventoryItem:
    db_item = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
    if not db_item:
        raise NotFoundError("InventoryItem", item_id)
    return db_item


def lock_inventory_item(db: Session, item_id: str) -> InventoryItem:
    """Load an item for read-modify-write: row lock plus a fresh read of its version."""
    db_item = (
        db.query(InventoryItem)
        .filter(InventoryItem.id == item_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not db_item:
        raise NotFoundError("InventoryItem", item_id)
    return db_item


def get_inventory_items(
    db: Session,
    item_type: Optional[InventoryItemType] = None,
    active_only: bool = True,
    low_stock: bool = False,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(InventoryItem)
    if item_type:
        query = query.filter(InventoryItem.type == item_type)
    if active_only:
        query = query.filter(InventoryItem.is_active.is_(True))
    if low_stock:
        query = query.filter(InventoryItem.threshold.isnot(None), InventoryItem.available <= InventoryItem.threshold)
    if search:
        pattern = f"%{search}%"
        query = query.filter((InventoryItem.sku.ilike(pattern)) | (InventoryItem.name.ilike(pattern)))
    return query.order_by(InventoryItem.sku).offset(skip).limit(limit).all()


def create_inventory_item(db: Session, item: InventoryItemCreate, actor: str):
    if db.query(InventoryItem).filter(InventoryItem.sku == item.sku).first():
        raise ConflictError(f"SKU {item.sku} already exists", {"sku": item.sku})
    db_item = InventoryItem(
        **item.model_dump(),
        quantity=ZERO,
        reserved=ZERO,
        available=ZERO,
        average_cost=ZERO,
        total_value=ZERO,
        created_by=actor,
        updated_by=actor,
    )
    db.add(db_item)
    db.flush()
    record_audit(db, "inventory_items", db_item.id, "CREATE", actor, None, sqlalchemy_to_dict(db_item))
    return db_item


def update_inventory_item(db: Session, item_id: str, item: InventoryItemUpdate, actor: str):
    """Metadata only; stock figures move through the ledger."""
    db_item = lock_inventory_item(db, item_id)
    old_values = sqlalchemy_to_dict(db_item)
    for key, value in item.model_dump(exclude_unset=True).items():
        setattr(db_item, key, value)
    db_item.updated_by = actor
    db.flush()
    record_audit(db, "inventory_items", item_id, "UPDATE", actor, old_values, sqlalchemy_to_dict(db_item))
    return db_item


def deactivate_inventory_item(db: Session, item_id: str, actor: str):
    db_item = lock_inventory_item(db, item_id)
    old_values = sqlalchemy_to_dict(db_item)
    db_item.is_active = False
    db_item.updated_by = actor
    db.flush()
    record_audit(db, "inventory_items", item_id, "DEACTIVATE", actor, old_values, sqlalchemy_to_dict(db_item))
    return db_item


def delete_inventory_item(db: Session, item_id: str, actor: str):
    db_item = lock_inventory_item(db, item_id)
    if to_decimal(db_item.quantity) != 0:
        raise BusinessRuleViolation(
            f"Item {db_item.sku} still holds {db_item.quantity} in stock; deactivate it instead",
            {"inventory_item_id": item_id, "quantity": str(db_item.quantity)},
        )
    if item_has_transactions(db, item_id):
        raise BusinessRuleViolation(
            f"Item {db_item.sku} has ledger history; deactivate it instead",
            {"inventory_item_id": item_id},
        )
    referenced = (
        db.query(PurchaseItem.id).filter(PurchaseItem.inventory_item_id == item_id).first()
        or db.query(BomItem.id).filter(BomItem.inventory_item_id == item_id).first()
    )
    if referenced:
        raise BusinessRuleViolation(
            f"Item {db_item.sku} is used by a purchase or a bill of materials; deactivate it instead",
            {"inventory_item_id": item_id},
        )
    old_values = sqlalchemy_to_dict(db_item)
    db.delete(db_item)
    db.flush()
    record_audit(db, "inventory_items", item_id, "DELETE", actor, old_values, None)
    return True


def create_adjustment(db: Session, item_id: str, adjustment: StockAdjustmentCreate, actor: str):
    """Manual stock correction at the current average cost. Positive adds, negative removes."""
    quantity = to_decimal(adjustment.quantity)
    if quantity == 0:
        raise ValidationError("Adjustment quantity cannot be zero", {"quantity": "0"})
    db_item = lock_inventory_item(db, item_id)
    old_values = sqlalchemy_to_dict(db_item)
    direction = TransactionDirection.IN if quantity > 0 else TransactionDirection.OUT
    db_tx = record_movement(
        db,
        db_item,
        direction,
        TransactionType.ADJUSTMENT,
        abs(quantity),
        db_item.average_cost,
        ReferenceType.ADJUSTMENT,
        None,
        actor,
        reason=adjustment.reason,
        notes=adjustment.notes,
    )
    record_audit(db, "inventory_items", item_id, "ADJUSTMENT", actor, old_values, sqlalchemy_to_dict(db_item))
    return db_tx


def reserve_stock(db: Session, item_id: str, quantity, actor: str):
    """Earmark available stock. Changes reserved/available only; no ledger row."""
    quantity = to_decimal(quantity)
    if quantity <= 0:
        raise ValidationError("Reservation quantity must be positive", {"quantity": str(quantity)})
    db_item = lock_inventory_item(db, item_id)
    available = to_decimal(db_item.available)
    if quantity > available:
        raise BusinessRuleViolation(
            f"Insufficient available stock for {db_item.sku}: available {available}, requested {quantity}",
            {"inventory_item_id": item_id, "available": str(available), "requested": str(quantity)},
        )
    old_values = sqlalchemy_to_dict(db_item)
    db_item.reserved = to_decimal(db_item.reserved) + quantity
    db_item.available = to_decimal(db_item.quantity) - db_item.reserved
    db_item.updated_by = actor
    db.flush()
    record_audit(db, "inventory_items", item_id, "RESERVE", actor, old_values, sqlalchemy_to_dict(db_item))
    return db_item


def release_stock(db: Session, item_id: str, quantity, actor: str):
    quantity = to_decimal(quantity)
    if quantity <= 0:
        raise ValidationError("Release quantity must be positive", {"quantity": str(quantity)})
    db_item = lock_inventory_item(db, item_id)
    reserved = to_decimal(db_item.reserved)
    if quantity > reserved:
        raise BusinessRuleViolation(
            f"Cannot release {quantity} of {db_item.sku}: only {reserved} reserved",
            {"inventory_item_id": item_id, "reserved": str(reserved), "requested": str(quantity)},
        )
    old_values = sqlalchemy_to_dict(db_item)
    db_item.reserved = reserved - quantity
    db_item.available = to_decimal(db_item.quantity) - db_item.reserved
    db_item.updated_by = actor
    db.flush()
    record_audit(db, "inventory_items", item_id, "RELEASE", actor, old_values, sqlalchemy_to_dict(db_item))
    return db_item


def _variance_status(variance_percent: Decimal, avg_matches: bool) -> str:
    if abs(variance_percent) > CRITICAL_VARIANCE_PERCENT:
        return "CRITICAL"
    if abs(variance_percent) > WARNING_VARIANCE_PERCENT or not avg_matches:
        return "WARNING"
    return "OK"


def reconcile_item(db: Session, db_item: InventoryItem) -> dict:
    ledger_qty, ledger_avg = replay_ledger(all_item_transactions(db, db_item.id))
    stored_qty = to_decimal(db_item.quantity)
    stored_avg = to_decimal(db_item.average_cost)
    variance = stored_qty - ledger_qty
    if ledger_qty != 0:
        variance_percent = round2(variance / ledger_qty * 100)
    else:
        variance_percent = Decimal("100.00") if variance != 0 else Decimal("0.00")
    return {
        "inventory_item_id": db_item.id,
        "sku": db_item.sku,
        "stored_quantity": stored_qty,
        "ledger_quantity": ledger_qty,
        "stored_average_cost": stored_avg,
        "ledger_average_cost": ledger_avg,
        "quantity_variance": variance,
        "variance_value": round2(variance * stored_avg),
        "variance_percent": variance_percent,
        "status": _variance_status(variance_percent, stored_avg == ledger_avg),
    }


def reconcile_inventory(db: Session, item_ids: Optional[List[str]] = None) -> dict:
    """Replay each item's ledger and compare it with the stored quantity and average cost. Read-only."""
    query = db.query(InventoryItem)
    if item_ids:
        query = query.filter(InventoryItem.id.in_(item_ids))
    else:
        query = query.filter(InventoryItem.is_active.is_(True))
    lines = [reconcile_item(db, db_item) for db_item in query.order_by(InventoryItem.sku).all()]
    discrepancies = [line for line in lines if line["status"] != "OK"]
    for line in discrepancies:
        logger.warning(
            f"Reconciliation {line['status']} for {line['sku']}: stored {line['stored_quantity']} @ "
            f"{line['stored_average_cost']}, ledger {line['ledger_quantity']} @ {line['ledger_average_cost']}"
        )
    return {"checked": len(lines), "discrepancies": len(discrepancies), "lines": lines}


def inventory_valuation(db: Session) -> dict:
    items = db.query(InventoryItem).filter(InventoryItem.is_active.is_(True)).all()
    by_type = {item_type.value: ZERO for item_type in InventoryItemType}
    total_quantity = ZERO
    low_stock_count = 0
    for db_item in items:
        by_type[db_item.type.value] += to_decimal(db_item.total_value)
        total_quantity += to_decimal(db_item.quantity)
        if db_item.threshold is not None and to_decimal(db_item.available) <= to_decimal(db_item.threshold):
            low_stock_count += 1
    return {
        "item_count": len(items),
        "total_quantity": round2(total_quantity),
        "total_value": round2(sum(by_type.values(), ZERO)),
        "by_type": {key: round2(value) for key, value in by_type.items()},
        "low_stock_count": low_stock_count,
    }
