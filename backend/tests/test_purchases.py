from decimal import Decimal

import pytest

from crud import purchases as crud_purchases
from crud import suppliers as crud_suppliers
from models.audit_log import AuditLog
from models.purchases import PurchaseStatus
from schemas.purchases import PurchaseCreate, PurchaseItemCreate, PurchaseUpdate
from schemas.suppliers import SupplierUpdate
from utils.exceptions import BusinessRuleViolation, NotFoundError

from conftest import ACTOR


def test_create_purchase_computes_totals(factory):
    supplier = factory.supplier()
    fabric, buttons = factory.item(), factory.item()
    purchase = factory.purchase(
        supplier, [(fabric, 100, "500"), (buttons, 1000, "0.35")], tax_amount="950", shipping_cost="200"
    )
    assert purchase.status == PurchaseStatus.DRAFT
    assert purchase.subtotal == Decimal("50350.00")
    assert purchase.total_amount == Decimal("51500.00")
    assert purchase.amount_due == purchase.total_amount
    assert purchase.advance_applied == Decimal("0.00")
    assert purchase.purchase_number.startswith("ACH-")
    assert purchase.purchase_number.endswith("-0001")
    assert [line.line_total for line in purchase.items] == [Decimal("50000.00"), Decimal("350.00")]


def test_purchase_numbers_are_sequential(factory):
    supplier, item = factory.supplier(), factory.item()
    first = factory.purchase(supplier, [(item, 1, 1)])
    second = factory.purchase(supplier, [(item, 1, 1)])
    assert int(second.purchase_number.rsplit("-", 1)[1]) == int(first.purchase_number.rsplit("-", 1)[1]) + 1


def test_unknown_supplier_is_not_found(factory, db):
    item = factory.item()
    with pytest.raises(NotFoundError):
        crud_purchases.create_purchase(
            db,
            PurchaseCreate(supplier_id="missing", items=[PurchaseItemCreate(inventory_item_id=item.id, quantity_ordered=1, unit_price=1)]),
            ACTOR,
        )


def test_inactive_supplier_cannot_be_used(factory, db):
    supplier, item = factory.supplier(), factory.item()
    crud_suppliers.update_supplier(db, supplier.id, SupplierUpdate(is_active=False), ACTOR)
    db.commit()
    with pytest.raises(BusinessRuleViolation):
        factory.purchase(supplier, [(item, 1, 1)])


def test_unknown_item_is_not_found(factory, db):
    supplier = factory.supplier()
    with pytest.raises(NotFoundError):
        crud_purchases.create_purchase(
            db,
            PurchaseCreate(supplier_id=supplier.id, items=[PurchaseItemCreate(inventory_item_id="missing", quantity_ordered=1, unit_price=1)]),
            ACTOR,
        )


def test_update_draft_recomputes_totals(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)])
    crud_purchases.update_purchase(
        db,
        purchase.id,
        PurchaseUpdate(items=[PurchaseItemCreate(inventory_item_id=item.id, quantity_ordered=20, unit_price=100)], shipping_cost=50),
        ACTOR,
    )
    db.commit()
    assert purchase.subtotal == Decimal("2000.00")
    assert purchase.total_amount == Decimal("2050.00")
    assert purchase.amount_due == Decimal("2050.00")
    assert len(purchase.items) == 1


def test_only_drafts_can_be_edited_or_deleted(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)])
    crud_purchases.order_purchase(db, purchase.id, ACTOR)
    db.commit()
    assert purchase.status == PurchaseStatus.ORDERED

    with pytest.raises(BusinessRuleViolation):
        crud_purchases.update_purchase(db, purchase.id, PurchaseUpdate(notes="late"), ACTOR)
    db.rollback()
    with pytest.raises(BusinessRuleViolation):
        crud_purchases.delete_purchase(db, purchase.id, ACTOR)
    db.rollback()


def test_delete_draft(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)])
    purchase_id = purchase.id
    crud_purchases.delete_purchase(db, purchase_id, ACTOR)
    db.commit()
    with pytest.raises(NotFoundError):
        crud_purchases.get_purchase(db, purchase_id)
    assert db.query(AuditLog).filter(AuditLog.entity_id == purchase_id, AuditLog.action == "DELETE").count() == 1


def test_cancelled_purchase_is_terminal(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)])
    crud_purchases.cancel_purchase(db, purchase.id, ACTOR)
    db.commit()
    with pytest.raises(BusinessRuleViolation):
        crud_purchases.order_purchase(db, purchase.id, ACTOR)
    db.rollback()


def test_auto_receive_writes_a_single_create_audit_row(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)], auto_receive=True)
    assert purchase.status == PurchaseStatus.RECEIVED
    assert purchase.received_at is not None
    assert item.quantity == Decimal("10.00")
    actions = [row.action for row in db.query(AuditLog).filter(AuditLog.entity_id == purchase.id).all()]
    assert actions == ["CREATE"]


def test_stats_ignore_cancelled_balances(factory, db):
    supplier, item = factory.supplier(), factory.item()
    factory.purchase(supplier, [(item, 10, 100)])
    cancelled = factory.purchase(supplier, [(item, 5, 100)])
    crud_purchases.cancel_purchase(db, cancelled.id, ACTOR)
    db.commit()

    stats = crud_purchases.purchase_stats(db)
    assert stats["count"] == 2
    assert stats["by_status"]["DRAFT"] == 1
    assert stats["by_status"]["CANCELLED"] == 1
    assert stats["total_amount"] == Decimal("1000.00")
    assert stats["total_due"] == Decimal("1000.00")
