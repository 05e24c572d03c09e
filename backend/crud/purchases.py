import logging
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from models.inventory_items import InventoryItem
from models.purchases import Purchase, PurchaseStatus
from models.purchase_items import PurchaseItem
from schemas.purchases import PurchaseCreate, PurchaseUpdate
from schemas.receiving import ReceiveLine
from crud.audit_log import record_audit
from crud.suppliers import get_active_supplier
from utils import now, sqlalchemy_to_dict
from utils.costing import ZERO, round2, to_decimal
from utils.exceptions import BusinessRuleViolation, NotFoundError, ValidationError
from utils.numbering import PURCHASE_PREFIX, next_document_number

logger = logging.getLogger("purchases")

# Allowed status changes; receiving moves DRAFT/ORDERED/PARTIAL forward
PURCHASE_TRANSITIONS = {
    PurchaseStatus.DRAFT: {PurchaseStatus.ORDERED, PurchaseStatus.PARTIAL, PurchaseStatus.RECEIVED, PurchaseStatus.CANCELLED},
    PurchaseStatus.ORDERED: {PurchaseStatus.PARTIAL, PurchaseStatus.RECEIVED, PurchaseStatus.CANCELLED},
    PurchaseStatus.PARTIAL: {PurchaseStatus.PARTIAL, PurchaseStatus.RECEIVED, PurchaseStatus.CANCELLED},
    PurchaseStatus.RECEIVED: set(),
    PurchaseStatus.CANCELLED: set(),
}


def ensure_purchase_transition(purchase: Purchase, target: PurchaseStatus):
    if target not in PURCHASE_TRANSITIONS[purchase.status]:
        raise BusinessRuleViolation(
            f"Purchase {purchase.purchase_number} cannot go from {purchase.status.value} to {target.value}",
            {"purchase_id": purchase.id, "status": purchase.status.value, "target": target.value},
        )


def purchase_snapshot(purchase: Purchase) -> dict:
    """Audit snapshot of a purchase including its lines."""
    snapshot = sqlalchemy_to_dict(purchase)
    snapshot["items"] = [sqlalchemy_to_dict(item) for item in purchase.items]
    return snapshot


def get_purchase(db: Session, purchase_id: str) -> Purchase:
    db_purchase = (
        db.query(Purchase)
        .options(selectinload(Purchase.items))
        .filter(Purchase.id == purchase_id)
        .first()
    )
    if not db_purchase:
        raise NotFoundError("Purchase", purchase_id)
    return db_purchase


def lock_purchase(db: Session, purchase_id: str) -> Purchase:
    db_purchase = (
        db.query(Purchase)
        .filter(Purchase.id == purchase_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not db_purchase:
        raise NotFoundError("Purchase", purchase_id)
    # Lines are read fresh as well; their received quantities gate the next receipt
    db.query(PurchaseItem).filter(PurchaseItem.purchase_id == purchase_id).populate_existing().all()
    return db_purchase


def _build_lines(db: Session, items):
    """Validate the requested lines and build PurchaseItem rows. Returns (rows, subtotal)."""
    rows = []
    subtotal = ZERO
    for item_data in items:
        db_item = db.query(InventoryItem).filter(InventoryItem.id == item_data.inventory_item_id).first()
        if not db_item:
            raise NotFoundError("InventoryItem", item_data.inventory_item_id)
        if not db_item.is_active:
            raise BusinessRuleViolation(
                f"Inventory item {db_item.sku} is inactive and cannot be purchased",
                {"inventory_item_id": db_item.id},
            )
        quantity = to_decimal(item_data.quantity_ordered)
        unit_price = to_decimal(item_data.unit_price)
        if quantity <= 0 or unit_price < 0:
            raise ValidationError(
                "Line quantity must be positive and unit price non-negative",
                {"inventory_item_id": db_item.id, "quantity_ordered": str(quantity), "unit_price": str(unit_price)},
            )
        line_total = round2(quantity * unit_price)
        subtotal += line_total
        rows.append(PurchaseItem(
            inventory_item_id=db_item.id,
            quantity_ordered=quantity,
            quantity_received=ZERO,
            unit_price=round2(unit_price),
            line_total=line_total,
        ))
    return rows, round2(subtotal)


def create_purchase(db: Session, purchase: PurchaseCreate, actor: str):
    """
    Create a DRAFT purchase, or a RECEIVED one when ``auto_receive`` is set.

    With ``auto_receive`` every line is received in full in the same unit of
    work and a single CREATE audit row describes the final state.
    """
    if not purchase.items:
        raise ValidationError("Purchase must contain at least one item", {"items": "empty"})
    tax_amount = to_decimal(purchase.tax_amount)
    shipping_cost = to_decimal(purchase.shipping_cost)
    if tax_amount < 0 or shipping_cost < 0:
        raise ValidationError("Tax and shipping cannot be negative")

    get_active_supplier(db, purchase.supplier_id)
    rows, subtotal = _build_lines(db, purchase.items)
    total_amount = round2(subtotal + tax_amount + shipping_cost)

    db_purchase = Purchase(
        purchase_number=next_document_number(db, Purchase.purchase_number, PURCHASE_PREFIX),
        supplier_id=purchase.supplier_id,
        status=PurchaseStatus.DRAFT,
        subtotal=subtotal,
        tax_amount=round2(tax_amount),
        shipping_cost=round2(shipping_cost),
        total_amount=total_amount,
        amount_due=total_amount,
        advance_applied=ZERO,
        order_date=purchase.order_date or now().date(),
        notes=purchase.notes,
        created_by=actor,
        updated_by=actor,
    )
    db_purchase.items = rows
    db.add(db_purchase)
    db.flush()

    if purchase.auto_receive:
        from crud.receiving import apply_receipt

        lines = [ReceiveLine(purchase_item_id=row.id, quantity=row.quantity_ordered) for row in rows]
        apply_receipt(db, db_purchase, lines, actor)

    record_audit(db, "purchases", db_purchase.id, "CREATE", actor, None, purchase_snapshot(db_purchase))
    logger.info(
        f"Purchase {db_purchase.purchase_number} (ID: {db_purchase.id}) created for supplier "
        f"{db_purchase.supplier_id} with status {db_purchase.status.value} by user {actor}"
    )
    return db_purchase


def _ensure_draft(db_purchase: Purchase, operation: str):
    if db_purchase.status != PurchaseStatus.DRAFT:
        raise BusinessRuleViolation(
            f"Only DRAFT purchases can be {operation}; {db_purchase.purchase_number} is {db_purchase.status.value}",
            {"purchase_id": db_purchase.id, "status": db_purchase.status.value},
        )


def update_purchase(db: Session, purchase_id: str, purchase: PurchaseUpdate, actor: str):
    db_purchase = lock_purchase(db, purchase_id)
    _ensure_draft(db_purchase, "edited")
    old_values = purchase_snapshot(db_purchase)
    update_data = purchase.model_dump(exclude_unset=True)

    if update_data.get("items") is not None:
        rows, subtotal = _build_lines(db, purchase.items)
        db_purchase.items = rows
        db_purchase.subtotal = subtotal
    for key in ("tax_amount", "shipping_cost"):
        if update_data.get(key) is not None:
            setattr(db_purchase, key, round2(update_data[key]))
    for key in ("order_date", "notes"):
        if key in update_data:
            setattr(db_purchase, key, update_data[key])

    total_amount = round2(
        to_decimal(db_purchase.subtotal) + to_decimal(db_purchase.tax_amount) + to_decimal(db_purchase.shipping_cost)
    )
    advance_applied = to_decimal(db_purchase.advance_applied)
    if total_amount < advance_applied:
        raise BusinessRuleViolation(
            f"New total {total_amount} is below the {advance_applied} already settled by advances",
            {"purchase_id": purchase_id, "total_amount": str(total_amount), "advance_applied": str(advance_applied)},
        )
    db_purchase.total_amount = total_amount
    db_purchase.amount_due = total_amount - advance_applied
    db_purchase.updated_by = actor
    db.flush()

    record_audit(db, "purchases", purchase_id, "UPDATE", actor, old_values, purchase_snapshot(db_purchase))
    logger.info(f"Purchase {db_purchase.purchase_number} (ID: {purchase_id}) updated by user {actor}")
    return db_purchase


def delete_purchase(db: Session, purchase_id: str, actor: str):
    db_purchase = lock_purchase(db, purchase_id)
    _ensure_draft(db_purchase, "deleted")
    if to_decimal(db_purchase.advance_applied) > 0 or db_purchase.advance_applications:
        raise BusinessRuleViolation(
            f"Purchase {db_purchase.purchase_number} has advances applied and cannot be deleted",
            {"purchase_id": purchase_id, "advance_applied": str(db_purchase.advance_applied)},
        )
    old_values = purchase_snapshot(db_purchase)
    db.delete(db_purchase)
    db.flush()
    record_audit(db, "purchases", purchase_id, "DELETE", actor, old_values, None)
    logger.info(f"Purchase {old_values['purchase_number']} (ID: {purchase_id}) deleted by user {actor}")
    return True


def _change_status(db: Session, purchase_id: str, target: PurchaseStatus, action: str, actor: str):
    db_purchase = lock_purchase(db, purchase_id)
    ensure_purchase_transition(db_purchase, target)
    old_values = purchase_snapshot(db_purchase)
    db_purchase.status = target
    db_purchase.updated_by = actor
    db.flush()
    record_audit(db, "purchases", purchase_id, action, actor, old_values, purchase_snapshot(db_purchase))
    logger.info(f"Purchase {db_purchase.purchase_number} (ID: {purchase_id}) {target.value} by user {actor}")
    return db_purchase


def order_purchase(db: Session, purchase_id: str, actor: str):
    return _change_status(db, purchase_id, PurchaseStatus.ORDERED, "ORDER", actor)


def cancel_purchase(db: Session, purchase_id: str, actor: str):
    return _change_status(db, purchase_id, PurchaseStatus.CANCELLED, "CANCEL", actor)


def get_purchases(
    db: Session,
    status: Optional[PurchaseStatus] = None,
    supplier_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(Purchase).options(selectinload(Purchase.items))
    if status:
        query = query.filter(Purchase.status == status)
    if supplier_id:
        query = query.filter(Purchase.supplier_id == supplier_id)
    if start_date:
        query = query.filter(Purchase.order_date >= start_date)
    if end_date:
        query = query.filter(Purchase.order_date <= end_date)
    if search:
        query = query.filter(Purchase.purchase_number.ilike(f"%{search}%"))
    return query.order_by(Purchase.purchase_number.desc()).offset(skip).limit(limit).all()


def purchase_stats(db: Session, supplier_id: Optional[str] = None) -> dict:
    query = db.query(
        Purchase.status,
        func.count(Purchase.id),
        func.coalesce(func.sum(Purchase.total_amount), 0),
        func.coalesce(func.sum(Purchase.amount_due), 0),
        func.coalesce(func.sum(Purchase.advance_applied), 0),
    )
    if supplier_id:
        query = query.filter(Purchase.supplier_id == supplier_id)
    by_status = {status.value: 0 for status in PurchaseStatus}
    count, total_amount, total_due, total_advance = 0, ZERO, ZERO, ZERO
    for status, status_count, status_total, status_due, status_advance in query.group_by(Purchase.status).all():
        by_status[status.value] = status_count
        count += status_count
        # Cancelled purchases carry no open balance
        if status != PurchaseStatus.CANCELLED:
            total_amount += to_decimal(status_total)
            total_due += to_decimal(status_due)
            total_advance += to_decimal(status_advance)
    return {
        "count": count,
        "by_status": by_status,
        "total_amount": round2(total_amount),
        "total_due": round2(total_due),
        "total_advance_applied": round2(total_advance),
    }
