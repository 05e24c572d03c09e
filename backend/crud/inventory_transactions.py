"""
The stock ledger.

``record_movement`` is the only code path that changes an item's quantity or
average cost. Every call writes exactly one InventoryTransaction describing
the movement with its before/after balance, value and average cost, so that
replaying an item's rows from zero reproduces its stored state.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.inventory_items import InventoryItem
from models.inventory_transactions import (
    InventoryTransaction,
    ReferenceType,
    TransactionDirection,
    TransactionType,
)
from utils import now
from utils.costing import ZERO, has_sub_cent_digits, round2, to_decimal, total_value, weighted_average_cost
from utils.exceptions import BusinessRuleViolation, ValidationError

logger = logging.getLogger("inventory_ledger")


def next_sequence(db: Session, inventory_item_id: str) -> int:
    """Next ledger position of an item. The caller holds the item's row lock."""
    last = (
        db.query(func.max(InventoryTransaction.sequence))
        .filter(InventoryTransaction.inventory_item_id == inventory_item_id)
        .scalar()
    )
    return (last or 0) + 1


def record_movement(
    db: Session,
    item: InventoryItem,
    direction: TransactionDirection,
    tx_type: TransactionType,
    quantity,
    unit_cost,
    reference_type: ReferenceType,
    reference_id: Optional[str],
    actor: str,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
) -> InventoryTransaction:
    """
    Apply one stock movement to ``item`` and append its ledger row.

    ``item`` must have been loaded with a row lock in the current unit of
    work. IN movements recompute the weighted average cost at ``unit_cost``;
    OUT movements keep the average cost and may never take quantity below
    zero. When an OUT movement eats into reserved stock the reservation
    shrinks with it, so available never goes negative.
    """
    quantity = to_decimal(quantity)
    unit_cost = round2(unit_cost)
    if quantity <= 0:
        raise ValidationError("Movement quantity must be positive", {"quantity": str(quantity)})
    # Stored quantities carry two places; anything finer would not replay
    if has_sub_cent_digits(quantity):
        raise ValidationError("Movement quantity may have at most two decimal places", {"quantity": str(quantity)})
    quantity = round2(quantity)

    balance_before = to_decimal(item.quantity)
    avg_before = to_decimal(item.average_cost)
    value_before = to_decimal(item.total_value)
    reserved = to_decimal(item.reserved)

    if direction == TransactionDirection.IN:
        avg_after = weighted_average_cost(balance_before, avg_before, quantity, unit_cost)
        balance_after = balance_before + quantity
    else:
        if quantity > balance_before:
            raise BusinessRuleViolation(
                f"Insufficient stock for {item.sku}: on hand {balance_before}, requested {quantity}",
                {"inventory_item_id": item.id, "on_hand": str(balance_before), "requested": str(quantity)},
            )
        avg_after = avg_before
        balance_after = balance_before - quantity
        reserved = min(reserved, balance_after)

    value_after = total_value(balance_after, avg_after)

    item.quantity = balance_after
    item.reserved = reserved
    item.available = balance_after - reserved
    item.average_cost = avg_after
    item.total_value = value_after
    item.updated_by = actor
    if direction == TransactionDirection.IN and tx_type in (TransactionType.PURCHASE, TransactionType.PRODUCTION):
        item.last_cost = unit_cost
        item.last_received_at = now()

    db_tx = InventoryTransaction(
        inventory_item_id=item.id,
        sequence=next_sequence(db, item.id),
        direction=direction,
        type=tx_type,
        quantity=quantity,
        unit_cost=unit_cost,
        total_cost=round2(quantity * unit_cost),
        balance_before=balance_before,
        balance_after=balance_after,
        value_before=value_before,
        value_after=value_after,
        avg_cost_before=avg_before,
        avg_cost_after=avg_after,
        reference_type=reference_type,
        reference_id=reference_id,
        reason=reason,
        notes=notes,
        created_by=actor,
        created_at=now(),
    )
    db.add(db_tx)
    db.flush()
    logger.debug(
        f"{direction.value} {tx_type.value} {quantity} x {item.sku} @ {unit_cost}: "
        f"{balance_before} -> {balance_after}, CUMP {avg_before} -> {avg_after}"
    )
    return db_tx


def get_item_transactions(db: Session, inventory_item_id: str, skip: int = 0, limit: int = 100):
    """Ledger rows of one item, oldest first."""
    return (
        db.query(InventoryTransaction)
        .filter(InventoryTransaction.inventory_item_id == inventory_item_id)
        .order_by(InventoryTransaction.sequence)
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_transactions(
    db: Session,
    inventory_item_id: Optional[str] = None,
    reference_type: Optional[ReferenceType] = None,
    reference_id: Optional[str] = None,
    tx_type: Optional[TransactionType] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(InventoryTransaction)
    if inventory_item_id:
        query = query.filter(InventoryTransaction.inventory_item_id == inventory_item_id)
    if reference_type:
        query = query.filter(InventoryTransaction.reference_type == reference_type)
    if reference_id:
        query = query.filter(InventoryTransaction.reference_id == reference_id)
    if tx_type:
        query = query.filter(InventoryTransaction.type == tx_type)
    return (
        query.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.sequence.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def item_has_transactions(db: Session, inventory_item_id: str) -> bool:
    return db.query(InventoryTransaction.id).filter(
        InventoryTransaction.inventory_item_id == inventory_item_id
    ).first() is not None


def all_item_transactions(db: Session, inventory_item_id: str):
    """Full chronological history for replay."""
    return (
        db.query(InventoryTransaction)
        .filter(InventoryTransaction.inventory_item_id == inventory_item_id)
        .order_by(InventoryTransaction.sequence)
        .all()
    )
