"""
Receiving: applies receipt lines against a purchase.

Every precondition is checked before the first write. A receipt then locks
the purchase and the affected inventory items, pushes each line through the
stock ledger (weighted average cost, IN/PURCHASE row), bumps the received
quantities and derives the new purchase status. Nothing is committed here;
callers run ``receive_purchase`` inside ``run_in_transaction``.
"""
import logging
from types import SimpleNamespace
from typing import List, Optional

from sqlalchemy.orm import Session

from models.inventory_items import InventoryItem
from models.inventory_transactions import ReferenceType, TransactionDirection, TransactionType
from models.purchases import Purchase, PurchaseStatus
from schemas.receiving import ReceiveLine
from crud.audit_log import record_audit
from crud.inventory_items import lock_inventory_item
from crud.inventory_transactions import record_movement
from crud.purchases import ensure_purchase_transition, get_purchase, lock_purchase, purchase_snapshot
from utils import now
from utils.costing import (
    ZERO,
    derive_purchase_status,
    has_sub_cent_digits,
    is_over_received,
    remaining_qty,
    round2,
    to_decimal,
    total_value,
    weighted_average_cost,
)
from utils.exceptions import BusinessRuleViolation, NotFoundError, ValidationError

logger = logging.getLogger("receiving")

CLOSED_STATUSES = (PurchaseStatus.CANCELLED, PurchaseStatus.RECEIVED)


def _validate_lines(purchase: Purchase, lines: List[ReceiveLine]):
    """Check a receive request against the purchase. Returns [(purchase_item, quantity)]."""
    if purchase.status in CLOSED_STATUSES:
        raise BusinessRuleViolation(
            f"Purchase {purchase.purchase_number} is {purchase.status.value} and cannot be received",
            {"purchase_id": purchase.id, "status": purchase.status.value},
        )
    if not lines:
        raise ValidationError("At least one receive line is required", {"lines": "empty"})

    items_by_id = {item.id: item for item in purchase.items}
    seen = set()
    validated = []
    for line in lines:
        if line.purchase_item_id in seen:
            raise ValidationError(
                "Each purchase line may appear only once per receipt",
                {"purchase_item_id": line.purchase_item_id},
            )
        seen.add(line.purchase_item_id)

        purchase_item = items_by_id.get(line.purchase_item_id)
        if purchase_item is None:
            raise NotFoundError("PurchaseItem", line.purchase_item_id)

        quantity = to_decimal(line.quantity)
        if quantity <= 0:
            raise ValidationError(
                "Receive quantity must be positive",
                {"purchase_item_id": line.purchase_item_id, "quantity": str(quantity)},
            )
        if has_sub_cent_digits(quantity):
            raise ValidationError(
                "Receive quantity may have at most two decimal places",
                {"purchase_item_id": line.purchase_item_id, "quantity": str(quantity)},
            )
        quantity = round2(quantity)
        remaining = remaining_qty(purchase_item.quantity_ordered, purchase_item.quantity_received)
        if quantity > remaining:
            raise BusinessRuleViolation(
                f"Cannot receive {quantity}: only {remaining} remaining on this line",
                {"purchase_item_id": line.purchase_item_id, "remaining": str(remaining), "requested": str(quantity)},
            )
        validated.append((purchase_item, quantity))
    return validated


def _outstanding_lines(purchase: Purchase) -> List[ReceiveLine]:
    lines = []
    for item in purchase.items:
        remaining = remaining_qty(item.quantity_ordered, item.quantity_received)
        if remaining > 0:
            lines.append(ReceiveLine(purchase_item_id=item.id, quantity=remaining))
    return lines


def preview_receive(db: Session, purchase_id: str, lines: Optional[List[ReceiveLine]] = None) -> dict:
    """
    Compute what a receipt would do without writing anything.

    When ``lines`` is omitted the preview covers everything still outstanding.
    Lines hitting the same inventory item are simulated cumulatively.
    """
    purchase = get_purchase(db, purchase_id)
    if lines is None:
        lines = _outstanding_lines(purchase)
        if not lines and purchase.status not in CLOSED_STATUSES:
            raise BusinessRuleViolation(
                f"Purchase {purchase.purchase_number} has nothing left to receive",
                {"purchase_id": purchase_id},
            )
    validated = _validate_lines(purchase, lines)

    simulated = {}
    preview_lines = []
    receiving = {}
    for purchase_item, quantity in validated:
        inv = db.query(InventoryItem).filter(InventoryItem.id == purchase_item.inventory_item_id).first()
        current_qty, current_avg = simulated.get(inv.id, (to_decimal(inv.quantity), to_decimal(inv.average_cost)))
        new_avg = weighted_average_cost(current_qty, current_avg, quantity, purchase_item.unit_price)
        new_qty = current_qty + quantity
        simulated[inv.id] = (new_qty, new_avg)
        receiving[purchase_item.id] = quantity
        preview_lines.append({
            "purchase_item_id": purchase_item.id,
            "inventory_item_id": inv.id,
            "sku": inv.sku,
            "name": inv.name,
            "quantity": quantity,
            "unit_price": to_decimal(purchase_item.unit_price),
            "current_quantity": current_qty,
            "new_quantity": new_qty,
            "current_average_cost": current_avg,
            "new_average_cost": new_avg,
            "current_value": total_value(current_qty, current_avg),
            "new_value": total_value(new_qty, new_avg),
        })

    after = [
        SimpleNamespace(
            quantity_ordered=item.quantity_ordered,
            quantity_received=to_decimal(item.quantity_received) + receiving.get(item.id, ZERO),
        )
        for item in purchase.items
    ]
    return {
        "purchase_id": purchase.id,
        "purchase_number": purchase.purchase_number,
        "lines": preview_lines,
        "total_quantity": round2(sum((line["quantity"] for line in preview_lines), ZERO)),
        "total_value": round2(sum((line["quantity"] * line["unit_price"] for line in preview_lines), ZERO)),
        "resulting_status": PurchaseStatus[derive_purchase_status(after)],
    }


def apply_receipt(db: Session, purchase: Purchase, lines: List[ReceiveLine], actor: str):
    """
    Receive ``lines`` against an already locked ``purchase``.

    Returns (ledger rows, over_received). Raises before any write if a line
    is invalid.
    """
    validated = _validate_lines(purchase, lines)

    # Lock every touched item up front, in a stable order
    item_ids = sorted({purchase_item.inventory_item_id for purchase_item, _ in validated})
    locked = {item_id: lock_inventory_item(db, item_id) for item_id in item_ids}

    transactions = []
    for purchase_item, quantity in validated:
        db_tx = record_movement(
            db,
            locked[purchase_item.inventory_item_id],
            TransactionDirection.IN,
            TransactionType.PURCHASE,
            quantity,
            purchase_item.unit_price,
            ReferenceType.PURCHASE,
            purchase.id,
            actor,
            reason=f"Receipt of {purchase.purchase_number}",
        )
        purchase_item.quantity_received = to_decimal(purchase_item.quantity_received) + quantity
        transactions.append(db_tx)

    new_status = PurchaseStatus[derive_purchase_status(purchase.items)]
    ensure_purchase_transition(purchase, new_status)
    purchase.status = new_status
    if new_status == PurchaseStatus.RECEIVED:
        purchase.received_at = now()
    # Always touch the row so concurrent receipts collide on its version
    purchase.updated_at = now()
    purchase.updated_by = actor

    over_received = is_over_received(purchase.items)
    if over_received:
        logger.warning(
            f"Purchase {purchase.purchase_number} (ID: {purchase.id}) has lines received beyond the ordered quantity"
        )
    db.flush()
    return transactions, over_received


def receive_purchase(db: Session, purchase_id: str, lines: List[ReceiveLine], actor: str) -> dict:
    purchase = lock_purchase(db, purchase_id)
    old_values = purchase_snapshot(purchase)
    transactions, over_received = apply_receipt(db, purchase, lines, actor)
    record_audit(db, "purchases", purchase_id, "RECEIVE", actor, old_values, purchase_snapshot(purchase))
    logger.info(
        f"Purchase {purchase.purchase_number} (ID: {purchase_id}) received {len(transactions)} line(s), "
        f"status {purchase.status.value}, by user {actor}"
    )
    return {"purchase": purchase, "transactions": transactions, "over_received": over_received}
