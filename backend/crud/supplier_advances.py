import logging
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from models.purchases import PurchaseStatus
from models.supplier_advances import AdvanceStatus, PurchaseAdvance, SupplierAdvance
from schemas.supplier_advances import SupplierAdvanceCreate
from crud.audit_log import record_audit
from crud.purchases import lock_purchase
from crud.suppliers import get_active_supplier, get_supplier
from utils import now, sqlalchemy_to_dict
from utils.costing import ZERO, has_sub_cent_digits, round2, to_decimal
from utils.exceptions import BusinessRuleViolation, InternalError, NotFoundError, ValidationError
from utils.numbering import ADVANCE_PREFIX, next_document_number

logger = logging.getLogger("supplier_advances")


def get_advance(db: Session, advance_id: str) -> SupplierAdvance:
    db_advance = (
        db.query(SupplierAdvance)
        .options(selectinload(SupplierAdvance.applications))
        .filter(SupplierAdvance.id == advance_id)
        .first()
    )
    if not db_advance:
        raise NotFoundError("SupplierAdvance", advance_id)
    return db_advance


def lock_advance(db: Session, advance_id: str) -> SupplierAdvance:
    db_advance = (
        db.query(SupplierAdvance)
        .filter(SupplierAdvance.id == advance_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not db_advance:
        raise NotFoundError("SupplierAdvance", advance_id)
    return db_advance


def get_advances(
    db: Session,
    supplier_id: Optional[str] = None,
    status: Optional[AdvanceStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(SupplierAdvance).options(selectinload(SupplierAdvance.applications))
    if supplier_id:
        query = query.filter(SupplierAdvance.supplier_id == supplier_id)
    if status:
        query = query.filter(SupplierAdvance.status == status)
    if start_date:
        query = query.filter(SupplierAdvance.payment_date >= start_date)
    if end_date:
        query = query.filter(SupplierAdvance.payment_date <= end_date)
    return query.order_by(SupplierAdvance.advance_number.desc()).offset(skip).limit(limit).all()


def available_advances_for_supplier(db: Session, supplier_id: str):
    """Advances of ``supplier_id`` that still have a balance, oldest first."""
    get_supplier(db, supplier_id)
    return (
        db.query(SupplierAdvance)
        .filter(
            SupplierAdvance.supplier_id == supplier_id,
            SupplierAdvance.status.in_([AdvanceStatus.PENDING, AdvanceStatus.PARTIAL]),
            SupplierAdvance.amount_remaining > 0,
        )
        .order_by(SupplierAdvance.payment_date, SupplierAdvance.advance_number)
        .all()
    )


def advance_stats(db: Session, supplier_id: Optional[str] = None) -> dict:
    query = db.query(
        func.count(SupplierAdvance.id),
        func.coalesce(func.sum(SupplierAdvance.amount), 0),
        func.coalesce(func.sum(SupplierAdvance.amount_used), 0),
        func.coalesce(func.sum(SupplierAdvance.amount_remaining), 0),
    )
    if supplier_id:
        query = query.filter(SupplierAdvance.supplier_id == supplier_id)
    count, total_amount, total_used, total_remaining = query.one()
    return {
        "count": count,
        "total_amount": round2(total_amount),
        "total_used": round2(total_used),
        "total_remaining": round2(total_remaining),
    }


def _checked_amount(value, label: str):
    """Two-place positive amount, or ValidationError. Sub-cent digits are rejected, not rounded."""
    amount = to_decimal(value)
    if has_sub_cent_digits(amount):
        raise ValidationError(f"{label} may have at most two decimal places", {"amount": str(amount)})
    amount = round2(amount)
    if amount <= 0:
        raise ValidationError(f"{label} must be positive", {"amount": str(amount)})
    return amount


def create_advance(db: Session, advance: SupplierAdvanceCreate, actor: str):
    amount = _checked_amount(advance.amount, "Advance amount")
    get_active_supplier(db, advance.supplier_id)

    db_advance = SupplierAdvance(
        advance_number=next_document_number(db, SupplierAdvance.advance_number, ADVANCE_PREFIX),
        supplier_id=advance.supplier_id,
        amount=amount,
        amount_used=ZERO,
        amount_remaining=amount,
        status=AdvanceStatus.PENDING,
        payment_method=advance.payment_method,
        payment_date=advance.payment_date,
        reference=advance.reference,
        notes=advance.notes,
        created_by=actor,
        updated_by=actor,
    )
    db.add(db_advance)
    db.flush()
    record_audit(db, "supplier_advances", db_advance.id, "CREATE", actor, None, sqlalchemy_to_dict(db_advance))
    logger.info(
        f"Advance {db_advance.advance_number} (ID: {db_advance.id}) of {db_advance.amount} created for supplier "
        f"{db_advance.supplier_id} by user {actor}"
    )
    return db_advance


def _check_balances(advance: SupplierAdvance, purchase):
    if to_decimal(advance.amount_used) + to_decimal(advance.amount_remaining) != to_decimal(advance.amount):
        raise InternalError("Advance balance is inconsistent, the application was not applied")
    if to_decimal(purchase.amount_due) + to_decimal(purchase.advance_applied) != to_decimal(purchase.total_amount):
        raise InternalError("Purchase balance is inconsistent, the application was not applied")


def apply_advance(db: Session, advance_id: str, purchase_id: str, amount, actor: str) -> dict:
    """
    Apply ``amount`` of an advance to a purchase of the same supplier.

    The advance is locked first, then the purchase, so two applications of
    the same advance serialize on the advance row.
    """
    amount = _checked_amount(amount, "Applied amount")

    advance = lock_advance(db, advance_id)
    purchase = lock_purchase(db, purchase_id)

    if advance.status in (AdvanceStatus.APPLIED, AdvanceStatus.REFUNDED):
        raise BusinessRuleViolation(
            f"Advance {advance.advance_number} is {advance.status.value} and cannot be applied",
            {"advance_id": advance_id, "status": advance.status.value},
        )
    if purchase.status == PurchaseStatus.CANCELLED:
        raise BusinessRuleViolation(
            f"Purchase {purchase.purchase_number} is CANCELLED",
            {"purchase_id": purchase_id, "status": purchase.status.value},
        )
    if purchase.supplier_id != advance.supplier_id:
        raise BusinessRuleViolation(
            "Advance and purchase belong to different suppliers",
            {"advance_supplier_id": advance.supplier_id, "purchase_supplier_id": purchase.supplier_id},
        )
    remaining = to_decimal(advance.amount_remaining)
    if amount > remaining:
        raise BusinessRuleViolation(
            f"Advance balance insufficient: remaining {remaining}, requested {amount}",
            {"advance_id": advance_id, "remaining": str(remaining), "requested": str(amount)},
        )
    amount_due = to_decimal(purchase.amount_due)
    if amount > amount_due:
        raise BusinessRuleViolation(
            f"Amount exceeds purchase balance: due {amount_due}, requested {amount}",
            {"purchase_id": purchase_id, "amount_due": str(amount_due), "requested": str(amount)},
        )

    old_values = {"advance": sqlalchemy_to_dict(advance), "purchase": sqlalchemy_to_dict(purchase)}

    application = PurchaseAdvance(
        purchase=purchase,
        advance=advance,
        amount=amount,
        applied_by=actor,
        applied_at=now(),
    )
    db.add(application)

    advance.amount_used = to_decimal(advance.amount_used) + amount
    advance.amount_remaining = remaining - amount
    advance.status = AdvanceStatus.APPLIED if advance.amount_remaining <= 0 else AdvanceStatus.PARTIAL
    advance.updated_by = actor

    purchase.amount_due = amount_due - amount
    purchase.advance_applied = to_decimal(purchase.advance_applied) + amount
    purchase.updated_by = actor

    _check_balances(advance, purchase)
    db.flush()

    record_audit(
        db, "supplier_advances", advance.id, "APPLY", actor, old_values,
        {"advance": sqlalchemy_to_dict(advance), "purchase": sqlalchemy_to_dict(purchase), "application": sqlalchemy_to_dict(application)},
    )
    logger.info(
        f"Advance {advance.advance_number} applied {amount} to purchase {purchase.purchase_number} by user {actor}"
    )
    return {"advance": advance, "purchase": purchase, "application": application}


def delete_advance(db: Session, advance_id: str, actor: str):
    advance = lock_advance(db, advance_id)
    if to_decimal(advance.amount_used) != 0:
        raise BusinessRuleViolation(
            f"Advance {advance.advance_number} has already been used ({advance.amount_used}) and cannot be deleted",
            {"advance_id": advance_id, "amount_used": str(advance.amount_used)},
        )
    old_values = sqlalchemy_to_dict(advance)
    db.delete(advance)
    db.flush()
    record_audit(db, "supplier_advances", advance_id, "DELETE", actor, old_values, None)
    logger.info(f"Advance {old_values['advance_number']} (ID: {advance_id}) deleted by user {actor}")
    return True
