from decimal import Decimal

import pydantic
import pytest

from crud import inventory_items as crud_inventory_items
from crud import receiving as crud_receiving
from crud.inventory_transactions import all_item_transactions
from models.audit_log import AuditLog
from models.inventory_transactions import ReferenceType, TransactionDirection, TransactionType
from models.purchases import PurchaseStatus
from schemas.receiving import ReceiveLine
from utils.costing import replay_ledger
from utils.exceptions import BusinessRuleViolation, NotFoundError, ValidationError

from conftest import ACTOR


def _receive(db, purchase, *pairs):
    result = crud_receiving.receive_purchase(
        db, purchase.id, [ReceiveLine(purchase_item_id=line.id, quantity=qty) for line, qty in pairs], ACTOR
    )
    db.commit()
    return result


def test_receive_full_purchase_end_to_end(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 100, 500)])

    result = _receive(db, purchase, (purchase.items[0], 100))

    assert item.quantity == Decimal("100.00")
    assert item.average_cost == Decimal("500.00")
    assert item.total_value == Decimal("50000.00")
    assert item.last_cost == Decimal("500.00")
    assert purchase.status == PurchaseStatus.RECEIVED
    assert result["over_received"] is False

    rows = all_item_transactions(db, item.id)
    assert len(rows) == 1
    row = rows[0]
    assert row.direction == TransactionDirection.IN
    assert row.type == TransactionType.PURCHASE
    assert row.reference_type == ReferenceType.PURCHASE
    assert row.reference_id == purchase.id
    assert row.balance_before == Decimal("0.00")
    assert row.balance_after == Decimal("100.00")
    assert row.avg_cost_before == Decimal("0.00")
    assert row.avg_cost_after == Decimal("500.00")
    assert db.query(AuditLog).filter(AuditLog.entity_id == purchase.id, AuditLog.action == "RECEIVE").count() == 1


def test_partial_receipts_then_complete(factory, db):
    supplier, fabric, lining = factory.supplier(), factory.item(), factory.item()
    factory.stock(fabric, 100, 500)
    purchase = factory.purchase(supplier, [(fabric, 50, 600), (lining, 20, 40)])
    fabric_line, lining_line = purchase.items

    _receive(db, purchase, (fabric_line, 50))
    assert purchase.status == PurchaseStatus.PARTIAL
    assert fabric.average_cost == Decimal("533.33")

    _receive(db, purchase, (lining_line, 5))
    assert purchase.status == PurchaseStatus.PARTIAL

    _receive(db, purchase, (lining_line, 15))
    assert purchase.status == PurchaseStatus.RECEIVED
    assert lining_line.quantity_received == Decimal("20.00")

    quantity, avg_cost = replay_ledger(all_item_transactions(db, fabric.id))
    assert (quantity, avg_cost) == (fabric.quantity, fabric.average_cost)


def test_receiving_more_than_remaining_is_rejected_atomically(factory, db):
    supplier, fabric, lining = factory.supplier(), factory.item(), factory.item()
    purchase = factory.purchase(supplier, [(fabric, 10, 100), (lining, 10, 10)])
    fabric_line, lining_line = purchase.items

    with pytest.raises(BusinessRuleViolation):
        crud_receiving.receive_purchase(
            db,
            purchase.id,
            [ReceiveLine(purchase_item_id=fabric_line.id, quantity=5), ReceiveLine(purchase_item_id=lining_line.id, quantity=11)],
            ACTOR,
        )
    db.rollback()

    assert fabric.quantity == Decimal("0.00")
    assert fabric_line.quantity_received == Decimal("0.00")
    assert purchase.status == PurchaseStatus.DRAFT
    assert all_item_transactions(db, fabric.id) == []


def test_duplicate_and_unknown_lines(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)])
    line = purchase.items[0]

    with pytest.raises(ValidationError):
        crud_receiving.receive_purchase(
            db, purchase.id,
            [ReceiveLine(purchase_item_id=line.id, quantity=1), ReceiveLine(purchase_item_id=line.id, quantity=1)],
            ACTOR,
        )
    db.rollback()
    with pytest.raises(NotFoundError):
        crud_receiving.receive_purchase(db, purchase.id, [ReceiveLine(purchase_item_id="nope", quantity=1)], ACTOR)
    db.rollback()


def test_sub_cent_receipt_is_rejected_and_ledger_stays_consistent(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 1, 100)])
    line = purchase.items[0]

    for _ in range(2):
        with pytest.raises(ValidationError):
            crud_receiving.receive_purchase(
                db, purchase.id, [ReceiveLine.model_construct(purchase_item_id=line.id, quantity=Decimal("0.005"))], ACTOR
            )
        db.rollback()
    assert item.quantity == Decimal("0.00")
    assert line.quantity_received == Decimal("0.00")

    _receive(db, purchase, (line, Decimal("0.01")))
    _receive(db, purchase, (line, Decimal("0.01")))
    report = crud_inventory_items.reconcile_item(db, item)
    assert report["stored_quantity"] == report["ledger_quantity"] == Decimal("0.02")
    assert report["status"] == "OK"


def test_receive_line_schema_limits_quantity_to_cents():
    with pytest.raises(pydantic.ValidationError):
        ReceiveLine(purchase_item_id="line", quantity=Decimal("0.005"))


def test_closed_purchases_cannot_be_received(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)], auto_receive=True)
    with pytest.raises(BusinessRuleViolation):
        _receive(db, purchase, (purchase.items[0], 1))
    db.rollback()


def test_preview_is_read_only_and_cumulative(factory, db):
    supplier, fabric = factory.supplier(), factory.item()
    factory.stock(fabric, 100, 500)
    purchase = factory.purchase(supplier, [(fabric, 50, 600), (fabric, 50, 400)])

    preview = crud_receiving.preview_receive(db, purchase.id)
    first, second = preview["lines"]
    assert first["new_average_cost"] == Decimal("533.33")
    # The second line starts from the first line's simulated state
    assert second["current_quantity"] == Decimal("150.00")
    assert second["current_average_cost"] == Decimal("533.33")
    assert second["new_quantity"] == Decimal("200.00")
    assert preview["resulting_status"] == PurchaseStatus.RECEIVED
    assert preview["total_quantity"] == Decimal("100.00")
    assert preview["total_value"] == Decimal("50000.00")

    db.expire_all()
    assert fabric.quantity == Decimal("100.00")
    assert len(all_item_transactions(db, fabric.id)) == 1


def test_preview_of_selected_lines(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)])
    preview = crud_receiving.preview_receive(
        db, purchase.id, [ReceiveLine(purchase_item_id=purchase.items[0].id, quantity=4)]
    )
    assert preview["resulting_status"] == PurchaseStatus.PARTIAL
    assert preview["lines"][0]["new_quantity"] == Decimal("4.00")
