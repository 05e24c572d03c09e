import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from models.charges import Charge, ChargeCategory, ChargeScope
from models.cost_snapshots import CostSnapshot
from models.inventory_items import InventoryItemType
from models.production_batches import ProductionBatch
from crud.audit_log import record_audit
from crud.product_models import get_model
from utils import sqlalchemy_to_dict
from utils.costing import SUGGESTED_MARGINS, ZERO, round2, suggested_price, to_decimal
from utils.exceptions import NotFoundError, ValidationError
from utils.numbering import SNAPSHOT_PREFIX, next_document_number

logger = logging.getLogger("costing")

DEFAULT_ESTIMATED_UNITS = 100

# BOM item type -> breakdown bucket
MATERIAL_BUCKETS = {
    InventoryItemType.FABRIC: "fabric_cost",
    InventoryItemType.ACCESSORY: "accessory_cost",
    InventoryItemType.PACKAGING: "packaging_cost",
}


def _json_safe(value):
    """Decimals to strings, recursively, for JSON columns."""
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_json_safe(item) for item in value]
    if isinstance(value, (int, bool)) or value is None or isinstance(value, str):
        return value
    return str(value)


def cost_breakdown(
    db: Session,
    model_id: str,
    cost_overrides: Optional[Dict[str, object]] = None,
    estimated_units: Optional[int] = None,
    labor_cost=None,
    packaging_cost=None,
    margin_target=None,
) -> dict:
    """
    Full per-unit cost of a model. Read-only.

    Material lines are priced at each item's current average cost unless
    ``cost_overrides`` maps the item id to another unit cost. Charges scoped
    to the model and its return margin are spread over ``estimated_units``
    (the model's own estimate by default).

    What-if inputs: ``labor_cost`` replaces the model's per-unit labor,
    ``packaging_cost`` replaces the per-unit packaging bucket and
    ``margin_target`` (percent) adds the price that would earn that margin.
    """
    cost_overrides = cost_overrides or {}
    db_model = get_model(db, model_id)
    units = estimated_units or db_model.estimated_units or DEFAULT_ESTIMATED_UNITS
    if units <= 0:
        raise ValidationError("Estimated units must be positive", {"estimated_units": units})
    for field, value in (("labor_cost", labor_cost), ("packaging_cost", packaging_cost)):
        if value is not None and to_decimal(value) < 0:
            raise ValidationError(f"{field} override cannot be negative", {field: str(value)})
    if margin_target is not None and not 0 < to_decimal(margin_target) < 100:
        raise ValidationError(
            "Margin target must be between 0 and 100 percent", {"margin_target": str(margin_target)}
        )

    buckets = {"fabric_cost": ZERO, "accessory_cost": ZERO, "packaging_cost": ZERO, "other_material_cost": ZERO}
    lines = []
    for bom_line in db_model.bom_items:
        item = bom_line.inventory_item
        overridden = item.id in cost_overrides
        unit_cost = round2(cost_overrides[item.id]) if overridden else to_decimal(item.average_cost)
        if unit_cost < 0:
            raise ValidationError("Unit cost override cannot be negative", {"inventory_item_id": item.id})
        quantity = to_decimal(bom_line.quantity_per_unit) * to_decimal(bom_line.waste_factor)
        line_cost = round2(quantity * unit_cost)
        buckets[MATERIAL_BUCKETS.get(item.type, "other_material_cost")] += line_cost
        lines.append({
            "inventory_item_id": item.id,
            "sku": item.sku,
            "name": item.name,
            "type": item.type.value,
            "quantity_per_unit": to_decimal(bom_line.quantity_per_unit),
            "waste_factor": to_decimal(bom_line.waste_factor),
            "quantity_with_waste": quantity,
            "unit_cost": unit_cost,
            "line_cost": line_cost,
            "overridden": overridden,
        })
    if packaging_cost is not None:
        buckets["packaging_cost"] = round2(packaging_cost)
    materials_cost = sum(buckets.values(), ZERO)

    charge_totals = {category.value: ZERO for category in ChargeCategory}
    model_charges = db.query(Charge).filter(Charge.model_id == db_model.id, Charge.scope == ChargeScope.MODEL).all()
    for charge in model_charges:
        charge_totals[charge.category.value] += to_decimal(charge.amount)
    charges = {category: round2(total / units) for category, total in charge_totals.items()}
    charges_cost = sum(charges.values(), ZERO)

    labor_cost = round2(labor_cost) if labor_cost is not None else to_decimal(db_model.labor_cost)
    other_cost = to_decimal(db_model.other_cost)
    return_margin_cost = round2(to_decimal(db_model.return_margin) / units)
    total_cost = round2(materials_cost + labor_cost + other_cost + charges_cost + return_margin_cost)

    selling_price = to_decimal(db_model.selling_price) if db_model.selling_price is not None else None
    margin = margin_percent = None
    if selling_price is not None:
        margin = round2(selling_price - total_cost)
        if selling_price > 0:
            margin_percent = round2(margin / selling_price * 100)

    target_price = None
    if margin_target is not None:
        margin_target = round2(margin_target)
        target_price = suggested_price(total_cost, margin_target / 100)

    return {
        "model_id": db_model.id,
        "sku": db_model.sku,
        "name": db_model.name,
        "estimated_units": units,
        **{key: round2(value) for key, value in buckets.items()},
        "materials_cost": round2(materials_cost),
        "labor_cost": round2(labor_cost),
        "other_cost": round2(other_cost),
        "charges": charges,
        "charges_cost": round2(charges_cost),
        "return_margin_cost": return_margin_cost,
        "total_cost": total_cost,
        "selling_price": selling_price,
        "margin": margin,
        "margin_percent": margin_percent,
        "suggested_prices": {
            str(int(fraction * 100)): suggested_price(total_cost, fraction) for fraction in SUGGESTED_MARGINS
        },
        "margin_target": margin_target,
        "target_price": target_price,
        "lines": lines,
    }


def create_cost_snapshot(db: Session, model_id: str, actor: str, batch_id: Optional[str] = None):
    """Freeze the current cost breakdown of a model, optionally tied to one of its batches."""
    breakdown = cost_breakdown(db, model_id)
    if batch_id is not None:
        db_batch = db.query(ProductionBatch).filter(ProductionBatch.id == batch_id).first()
        if not db_batch:
            raise NotFoundError("ProductionBatch", batch_id)
        if db_batch.model_id != model_id:
            raise ValidationError(
                "Batch belongs to another model", {"batch_id": batch_id, "model_id": model_id}
            )

    db_snapshot = CostSnapshot(
        snapshot_number=next_document_number(db, CostSnapshot.snapshot_number, SNAPSHOT_PREFIX),
        model_id=model_id,
        batch_id=batch_id,
        fabric_cost=breakdown["fabric_cost"],
        accessory_cost=breakdown["accessory_cost"],
        packaging_cost=breakdown["packaging_cost"],
        other_material_cost=breakdown["other_material_cost"],
        materials_cost=breakdown["materials_cost"],
        labor_cost=breakdown["labor_cost"],
        other_cost=breakdown["other_cost"],
        charges_cost=breakdown["charges_cost"],
        return_margin_cost=breakdown["return_margin_cost"],
        total_cost=breakdown["total_cost"],
        selling_price=breakdown["selling_price"],
        margin=breakdown["margin"],
        margin_percent=breakdown["margin_percent"],
        suggested_prices=_json_safe(breakdown["suggested_prices"]),
        breakdown=_json_safe({"lines": breakdown["lines"], "charges": breakdown["charges"]}),
        estimated_units=breakdown["estimated_units"],
        is_locked=True,
        created_by=actor,
        updated_by=actor,
    )
    db.add(db_snapshot)
    db.flush()
    record_audit(db, "cost_snapshots", db_snapshot.id, "CREATE", actor, None, sqlalchemy_to_dict(db_snapshot))
    logger.info(
        f"Cost snapshot {db_snapshot.snapshot_number} for model {breakdown['sku']}: total {db_snapshot.total_cost} by user {actor}"
    )
    return db_snapshot


def get_snapshots(db: Session, model_id: str, skip: int = 0, limit: int = 100):
    get_model(db, model_id)
    return (
        db.query(CostSnapshot)
        .filter(CostSnapshot.model_id == model_id)
        .order_by(CostSnapshot.snapshot_number.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
