"""
Production batches: material availability, consumption and completion.

Consumption takes stock out at the current weighted average cost (the
average itself never moves on an OUT) and accumulates the batch's material
cost. Completion closes the cost of the batch and, when the model is linked
to a finished-goods item, brings the produced units into stock at the batch
cost per unit.
"""
import logging
from decimal import Decimal, ROUND_FLOOR
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from models.inventory_items import InventoryItem
from models.inventory_transactions import ReferenceType, TransactionDirection, TransactionType
from models.product_models import BomItem, ProductModel
from models.production_batches import BatchStatus, ProductionBatch, ProductionConsumption
from schemas.production import ProductionBatchCreate
from crud.audit_log import record_audit
from crud.inventory_items import lock_inventory_item
from crud.inventory_transactions import record_movement
from crud.product_models import ensure_active_model, get_model
from utils import now, sqlalchemy_to_dict
from utils.costing import ZERO, required_quantity as bom_requirement, round2, to_decimal, total_value
from utils.exceptions import BusinessRuleViolation, NotFoundError, ValidationError
from utils.numbering import BATCH_PREFIX, next_document_number

logger = logging.getLogger("production")

BATCH_TRANSITIONS = {
    BatchStatus.PLANNED: {BatchStatus.IN_PROGRESS, BatchStatus.CANCELLED},
    BatchStatus.IN_PROGRESS: {BatchStatus.ON_HOLD, BatchStatus.COMPLETED},
    BatchStatus.ON_HOLD: {BatchStatus.IN_PROGRESS, BatchStatus.CANCELLED},
    BatchStatus.COMPLETED: set(),
    BatchStatus.CANCELLED: set(),
}


def ensure_batch_transition(batch: ProductionBatch, target: BatchStatus):
    if target not in BATCH_TRANSITIONS[batch.status]:
        raise BusinessRuleViolation(
            f"Batch {batch.batch_number} cannot go from {batch.status.value} to {target.value}",
            {"batch_id": batch.id, "status": batch.status.value, "target": target.value},
        )


def required_quantity(bom_line: BomItem, planned_qty) -> Decimal:
    return bom_requirement(bom_line.quantity_per_unit, bom_line.waste_factor, planned_qty)


def get_batch(db: Session, batch_id: str) -> ProductionBatch:
    db_batch = (
        db.query(ProductionBatch)
        .options(selectinload(ProductionBatch.consumptions))
        .filter(ProductionBatch.id == batch_id)
        .first()
    )
    if not db_batch:
        raise NotFoundError("ProductionBatch", batch_id)
    return db_batch


def lock_batch(db: Session, batch_id: str) -> ProductionBatch:
    db_batch = (
        db.query(ProductionBatch)
        .filter(ProductionBatch.id == batch_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not db_batch:
        raise NotFoundError("ProductionBatch", batch_id)
    return db_batch


def get_batches(
    db: Session,
    status: Optional[BatchStatus] = None,
    model_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(ProductionBatch).options(selectinload(ProductionBatch.consumptions))
    if status:
        query = query.filter(ProductionBatch.status == status)
    if model_id:
        query = query.filter(ProductionBatch.model_id == model_id)
    return query.order_by(ProductionBatch.batch_number.desc()).offset(skip).limit(limit).all()


def _availability_line(bom_line: BomItem, item: InventoryItem, planned_qty: int) -> dict:
    required = required_quantity(bom_line, planned_qty)
    available = to_decimal(item.available)
    return {
        "inventory_item_id": item.id,
        "sku": item.sku,
        "name": item.name,
        "required": required,
        "available": available,
        "shortage": max(ZERO, required - available),
        "average_cost": to_decimal(item.average_cost),
    }


def _max_producible(bom_lines, items_by_id) -> Optional[int]:
    limits = []
    for bom_line in bom_lines:
        per_unit = to_decimal(bom_line.quantity_per_unit) * to_decimal(bom_line.waste_factor)
        available = max(ZERO, to_decimal(items_by_id[bom_line.inventory_item_id].available))
        limits.append(int((available / per_unit).to_integral_value(rounding=ROUND_FLOOR)))
    return min(limits) if limits else None


def check_availability(db: Session, model_id: str, planned_qty: int) -> dict:
    """Compare every BOM requirement for ``planned_qty`` units with the available stock. Read-only."""
    if planned_qty is None or planned_qty <= 0:
        raise ValidationError("Planned quantity must be positive", {"planned_qty": planned_qty})
    db_model = get_model(db, model_id)
    items_by_id = {line.inventory_item_id: line.inventory_item for line in db_model.bom_items}

    lines = [_availability_line(line, items_by_id[line.inventory_item_id], planned_qty) for line in db_model.bom_items]
    shortages = [line for line in lines if line["shortage"] > 0]
    max_producible = _max_producible(db_model.bom_items, items_by_id)
    return {
        "model_id": db_model.id,
        "planned_qty": planned_qty,
        "can_produce": not shortages,
        "max_producible": planned_qty if max_producible is None else max_producible,
        "estimated_materials_cost": round2(sum((line["required"] * line["average_cost"] for line in lines), ZERO)),
        "lines": lines,
        "shortages": shortages,
    }


def create_batch(db: Session, batch: ProductionBatchCreate, actor: str):
    if batch.planned_qty <= 0:
        raise ValidationError("Planned quantity must be positive", {"planned_qty": batch.planned_qty})
    db_model = get_model(db, batch.model_id)
    ensure_active_model(db_model)

    labor_cost = batch.labor_cost
    if labor_cost is None:
        labor_cost = to_decimal(db_model.labor_cost) * batch.planned_qty
    overhead_cost = batch.overhead_cost
    if overhead_cost is None:
        overhead_cost = to_decimal(db_model.other_cost) * batch.planned_qty
    labor_cost, overhead_cost = round2(labor_cost), round2(overhead_cost)

    db_batch = ProductionBatch(
        batch_number=next_document_number(db, ProductionBatch.batch_number, BATCH_PREFIX),
        model_id=db_model.id,
        planned_qty=batch.planned_qty,
        status=BatchStatus.PLANNED,
        materials_cost=ZERO,
        labor_cost=labor_cost,
        overhead_cost=overhead_cost,
        total_cost=round2(labor_cost + overhead_cost),
        planned_date=batch.planned_date,
        notes=batch.notes,
        created_by=actor,
        updated_by=actor,
    )
    db.add(db_batch)
    db.flush()
    record_audit(db, "production_batches", db_batch.id, "CREATE", actor, None, sqlalchemy_to_dict(db_batch))
    logger.info(f"Batch {db_batch.batch_number} (ID: {db_batch.id}) planned for {db_batch.planned_qty} x {db_model.sku} by user {actor}")
    return db_batch


def consume_materials(db: Session, batch_id: str, actor: str, allow_shortage: bool = False) -> dict:
    """
    Take the batch's BOM requirements out of stock and start the batch.

    Without ``allow_shortage`` every line must be covered by available
    stock. With it, reserved stock may be drawn on as well, but no item can
    go below zero on hand.
    """
    db_batch = lock_batch(db, batch_id)
    if db_batch.status != BatchStatus.PLANNED:
        raise BusinessRuleViolation(
            f"Materials can only be consumed for a PLANNED batch; {db_batch.batch_number} is {db_batch.status.value}",
            {"batch_id": batch_id, "status": db_batch.status.value},
        )
    db_model = get_model(db, db_batch.model_id)
    if not db_model.bom_items:
        raise BusinessRuleViolation(f"Model {db_model.sku} has no bill of materials", {"model_id": db_model.id})

    # Lock the components in a stable order, then check everything before writing
    bom_lines = sorted(db_model.bom_items, key=lambda line: line.inventory_item_id)
    items = {line.inventory_item_id: lock_inventory_item(db, line.inventory_item_id) for line in bom_lines}
    plan = []
    shortages = []
    for line in bom_lines:
        item = items[line.inventory_item_id]
        availability = _availability_line(line, item, db_batch.planned_qty)
        if availability["shortage"] > 0:
            shortages.append(availability)
        if availability["required"] > 0:
            plan.append((item, availability["required"]))

    if shortages and not allow_shortage:
        raise BusinessRuleViolation(
            f"Insufficient materials for batch {db_batch.batch_number}",
            {
                "batch_id": batch_id,
                "shortages": [
                    {"inventory_item_id": s["inventory_item_id"], "sku": s["sku"], "required": str(s["required"]),
                     "available": str(s["available"]), "shortage": str(s["shortage"])}
                    for s in shortages
                ],
            },
        )
    for item, quantity in plan:
        if quantity > to_decimal(item.quantity):
            raise BusinessRuleViolation(
                f"Insufficient stock for {item.sku}: on hand {item.quantity}, required {quantity}",
                {"inventory_item_id": item.id, "on_hand": str(item.quantity), "required": str(quantity)},
            )
    if shortages:
        logger.warning(
            f"Batch {db_batch.batch_number} consuming with shortage override on "
            f"{', '.join(s['sku'] for s in shortages)} by user {actor}"
        )

    old_values = sqlalchemy_to_dict(db_batch)
    materials_cost = ZERO
    transactions = []
    for item, quantity in plan:
        unit_cost = to_decimal(item.average_cost)
        db_tx = record_movement(
            db,
            item,
            TransactionDirection.OUT,
            TransactionType.CONSUMPTION,
            quantity,
            unit_cost,
            ReferenceType.PRODUCTION_BATCH,
            db_batch.id,
            actor,
            reason=f"Consumption for {db_batch.batch_number}",
        )
        line_cost = total_value(quantity, unit_cost)
        db_batch.consumptions.append(ProductionConsumption(
            inventory_item_id=item.id,
            quantity_consumed=quantity,
            unit_cost_at_consumption=unit_cost,
            total_cost=line_cost,
            consumed_at=now(),
        ))
        materials_cost += line_cost
        transactions.append(db_tx)

    db_batch.materials_cost = round2(materials_cost)
    db_batch.total_cost = round2(materials_cost + to_decimal(db_batch.labor_cost) + to_decimal(db_batch.overhead_cost))
    db_batch.status = BatchStatus.IN_PROGRESS
    db_batch.started_at = now()
    db_batch.updated_by = actor
    db.flush()

    record_audit(db, "production_batches", batch_id, "CONSUME", actor, old_values, sqlalchemy_to_dict(db_batch))
    logger.info(f"Batch {db_batch.batch_number} consumed {len(plan)} material line(s) for {db_batch.materials_cost} by user {actor}")
    return {"batch": db_batch, "transactions": transactions, "shortage_override": bool(shortages)}


def complete_batch(
    db: Session,
    batch_id: str,
    produced_qty: int,
    actor: str,
    labor_cost_override=None,
    allow_overage: bool = False,
) -> dict:
    """
    Close an IN_PROGRESS batch with its final cost.

    Producing more than planned is refused unless ``allow_overage`` is set,
    in which case the result is flagged. ``cost_per_unit`` stays empty when
    nothing was produced.
    """
    if produced_qty is None or produced_qty < 0:
        raise ValidationError("Produced quantity cannot be negative", {"produced_qty": produced_qty})
    if labor_cost_override is not None and to_decimal(labor_cost_override) < 0:
        raise ValidationError("Labor cost cannot be negative", {"labor_cost_override": str(labor_cost_override)})

    db_batch = lock_batch(db, batch_id)
    ensure_batch_transition(db_batch, BatchStatus.COMPLETED)
    overage = produced_qty > db_batch.planned_qty
    if overage and not allow_overage:
        raise BusinessRuleViolation(
            f"Produced quantity {produced_qty} exceeds the planned {db_batch.planned_qty}",
            {"batch_id": batch_id, "planned_qty": db_batch.planned_qty, "produced_qty": produced_qty},
        )
    if overage:
        logger.warning(
            f"Batch {db_batch.batch_number} produced {produced_qty} against {db_batch.planned_qty} planned, accepted by user {actor}"
        )

    db_model = get_model(db, db_batch.model_id)
    old_values = sqlalchemy_to_dict(db_batch)

    if labor_cost_override is not None:
        db_batch.labor_cost = round2(labor_cost_override)
    total_cost = round2(
        to_decimal(db_batch.materials_cost) + to_decimal(db_batch.labor_cost) + to_decimal(db_batch.overhead_cost)
    )
    cost_per_unit = round2(total_cost / produced_qty) if produced_qty > 0 else None

    db_batch.produced_qty = produced_qty
    db_batch.total_cost = total_cost
    db_batch.cost_per_unit = cost_per_unit
    db_batch.status = BatchStatus.COMPLETED
    db_batch.completed_at = now()
    db_batch.updated_by = actor

    # Incremented in SQL so concurrent completions of the same model add up
    db_model.produced_units = ProductModel.produced_units + produced_qty

    finished_tx = None
    if db_model.finished_item_id and produced_qty > 0:
        finished_item = lock_inventory_item(db, db_model.finished_item_id)
        finished_tx = record_movement(
            db,
            finished_item,
            TransactionDirection.IN,
            TransactionType.PRODUCTION,
            produced_qty,
            cost_per_unit,
            ReferenceType.PRODUCTION_BATCH,
            db_batch.id,
            actor,
            reason=f"Output of {db_batch.batch_number}",
        )
    db.flush()

    record_audit(db, "production_batches", batch_id, "COMPLETE", actor, old_values, sqlalchemy_to_dict(db_batch))
    logger.info(
        f"Batch {db_batch.batch_number} completed: {produced_qty} unit(s), total {total_cost}, "
        f"per unit {cost_per_unit} by user {actor}"
    )
    return {"batch": db_batch, "overage": overage, "finished_goods_transaction": finished_tx}


def _change_status(db: Session, db_batch: ProductionBatch, target: BatchStatus, action: str, actor: str) -> ProductionBatch:
    ensure_batch_transition(db_batch, target)
    batch_id = db_batch.id
    old_values = sqlalchemy_to_dict(db_batch)
    db_batch.status = target
    db_batch.updated_by = actor
    db.flush()
    record_audit(db, "production_batches", batch_id, action, actor, old_values, sqlalchemy_to_dict(db_batch))
    logger.info(f"Batch {db_batch.batch_number} (ID: {batch_id}) {target.value} by user {actor}")
    return db_batch


def hold_batch(db: Session, batch_id: str, actor: str):
    return _change_status(db, lock_batch(db, batch_id), BatchStatus.ON_HOLD, "HOLD", actor)


def resume_batch(db: Session, batch_id: str, actor: str):
    db_batch = lock_batch(db, batch_id)
    # PLANNED batches start through consume_materials
    if db_batch.status != BatchStatus.ON_HOLD:
        raise BusinessRuleViolation(
            f"Only ON_HOLD batches can be resumed; {db_batch.batch_number} is {db_batch.status.value}",
            {"batch_id": batch_id, "status": db_batch.status.value},
        )
    return _change_status(db, db_batch, BatchStatus.IN_PROGRESS, "RESUME", actor)


def cancel_batch(db: Session, batch_id: str, actor: str):
    """
    Cancel a PLANNED or ON_HOLD batch.

    Materials already consumed by an ON_HOLD batch go back into stock at the
    unit cost they were taken out at.
    """
    db_batch = lock_batch(db, batch_id)
    ensure_batch_transition(db_batch, BatchStatus.CANCELLED)
    consumptions = sorted(db_batch.consumptions, key=lambda c: c.inventory_item_id)
    for consumption in consumptions:
        item = lock_inventory_item(db, consumption.inventory_item_id)
        record_movement(
            db,
            item,
            TransactionDirection.IN,
            TransactionType.ADJUSTMENT,
            consumption.quantity_consumed,
            consumption.unit_cost_at_consumption,
            ReferenceType.PRODUCTION_BATCH,
            db_batch.id,
            actor,
            reason=f"Return from cancelled {db_batch.batch_number}",
        )
    if consumptions:
        logger.info(f"Batch {db_batch.batch_number} returned {len(consumptions)} material line(s) to stock")
    return _change_status(db, db_batch, BatchStatus.CANCELLED, "CANCEL", actor)
