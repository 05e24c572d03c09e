from datetime import date
from decimal import Decimal

import pydantic
import pytest

from crud import purchases as crud_purchases
from crud import supplier_advances as crud_advances
from models.purchases import PurchaseStatus
from models.supplier_advances import AdvanceStatus, PaymentMethod, PurchaseAdvance, SupplierAdvance
from schemas.supplier_advances import SupplierAdvanceCreate
from utils.exceptions import BusinessRuleViolation, ImmutableRecordError, NotFoundError, ValidationError

from conftest import ACTOR


def _assert_balanced(advance, purchase):
    assert advance.amount_used + advance.amount_remaining == advance.amount
    assert purchase.amount_due + purchase.advance_applied <= purchase.total_amount


@pytest.fixture
def setup(factory):
    supplier = factory.supplier()
    item = factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)])  # total 1000
    advance = factory.advance(supplier, 600)
    return supplier, purchase, advance


def test_new_advance_is_pending(setup):
    _, _, advance = setup
    assert advance.status == AdvanceStatus.PENDING
    assert advance.amount_remaining == Decimal("600.00")
    assert advance.amount_used == Decimal("0.00")
    assert advance.advance_number.startswith("AVA-")


def test_partial_then_full_application(setup, db):
    _, purchase, advance = setup

    result = crud_advances.apply_advance(db, advance.id, purchase.id, Decimal("250"), ACTOR)
    db.commit()
    assert advance.status == AdvanceStatus.PARTIAL
    assert advance.amount_remaining == Decimal("350.00")
    assert purchase.amount_due == Decimal("750.00")
    assert purchase.advance_applied == Decimal("250.00")
    assert result["application"].amount == Decimal("250.00")
    _assert_balanced(advance, purchase)

    crud_advances.apply_advance(db, advance.id, purchase.id, Decimal("350"), ACTOR)
    db.commit()
    assert advance.status == AdvanceStatus.APPLIED
    assert advance.amount_remaining == Decimal("0.00")
    assert advance.amount_used == Decimal("600.00")
    assert purchase.amount_due == Decimal("400.00")
    assert len(advance.applications) == 2
    _assert_balanced(advance, purchase)


def test_fully_applied_advance_cannot_be_reapplied(setup, factory, db):
    supplier, purchase, _ = setup
    small = factory.advance(supplier, 100)
    crud_advances.apply_advance(db, small.id, purchase.id, 100, ACTOR)
    db.commit()
    with pytest.raises(BusinessRuleViolation):
        crud_advances.apply_advance(db, small.id, purchase.id, 1, ACTOR)
    db.rollback()


def test_amount_over_remaining_is_rejected(setup, db):
    _, purchase, advance = setup
    with pytest.raises(BusinessRuleViolation) as excinfo:
        crud_advances.apply_advance(db, advance.id, purchase.id, Decimal("600.01"), ACTOR)
    db.rollback()
    assert excinfo.value.details["remaining"] == "600.00"
    assert advance.amount_remaining == Decimal("600.00")


def test_amount_over_purchase_balance_is_rejected(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 1, 100)])
    advance = factory.advance(supplier, 500)
    with pytest.raises(BusinessRuleViolation):
        crud_advances.apply_advance(db, advance.id, purchase.id, 101, ACTOR)
    db.rollback()


def test_non_positive_amount_is_invalid(setup, db):
    _, purchase, advance = setup
    with pytest.raises(ValidationError):
        crud_advances.apply_advance(db, advance.id, purchase.id, 0, ACTOR)


@pytest.mark.parametrize("amount", [Decimal("0.004"), Decimal("10.005")])
def test_sub_cent_application_is_rejected_without_writes(setup, db, amount):
    _, purchase, advance = setup
    with pytest.raises(ValidationError):
        crud_advances.apply_advance(db, advance.id, purchase.id, amount, ACTOR)
    db.rollback()
    assert advance.status == AdvanceStatus.PENDING
    assert advance.amount_used == Decimal("0.00")
    assert purchase.amount_due == Decimal("1000.00")
    assert db.query(PurchaseAdvance).count() == 0


def test_sub_cent_advance_amount_is_rejected(factory, db):
    supplier = factory.supplier()
    request = SupplierAdvanceCreate.model_construct(
        supplier_id=supplier.id,
        amount=Decimal("99.999"),
        payment_method=PaymentMethod.TRANSFER,
        payment_date=date(2026, 1, 15),
    )
    with pytest.raises(ValidationError):
        crud_advances.create_advance(db, request, ACTOR)
    db.rollback()
    assert db.query(SupplierAdvance).count() == 0


def test_advance_request_schema_limits_amount_to_cents():
    with pytest.raises(pydantic.ValidationError):
        SupplierAdvanceCreate(
            supplier_id="any",
            amount=Decimal("0.004"),
            payment_method=PaymentMethod.TRANSFER,
            payment_date=date(2026, 1, 15),
        )


def test_supplier_mismatch_is_rejected(setup, factory, db):
    _, purchase, _ = setup
    other_advance = factory.advance(factory.supplier(), 100)
    with pytest.raises(BusinessRuleViolation):
        crud_advances.apply_advance(db, other_advance.id, purchase.id, 50, ACTOR)
    db.rollback()


def test_cancelled_purchase_is_rejected(setup, db):
    _, purchase, advance = setup
    crud_purchases.cancel_purchase(db, purchase.id, ACTOR)
    db.commit()
    with pytest.raises(BusinessRuleViolation):
        crud_advances.apply_advance(db, advance.id, purchase.id, 50, ACTOR)
    db.rollback()


def test_missing_entities_are_not_found(setup, db):
    _, purchase, advance = setup
    with pytest.raises(NotFoundError):
        crud_advances.apply_advance(db, "missing", purchase.id, 50, ACTOR)
    db.rollback()
    with pytest.raises(NotFoundError):
        crud_advances.apply_advance(db, advance.id, "missing", 50, ACTOR)
    db.rollback()


def test_advance_settles_received_purchase(factory, db):
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)], auto_receive=True)
    advance = factory.advance(supplier, 1000)
    crud_advances.apply_advance(db, advance.id, purchase.id, 1000, ACTOR)
    db.commit()
    assert purchase.status == PurchaseStatus.RECEIVED
    assert purchase.amount_due == Decimal("0.00")
    assert purchase.amount_due + purchase.advance_applied == purchase.total_amount


def test_used_advance_and_its_purchase_cannot_be_deleted(setup, db):
    _, purchase, advance = setup
    crud_advances.apply_advance(db, advance.id, purchase.id, 10, ACTOR)
    db.commit()
    with pytest.raises(BusinessRuleViolation):
        crud_advances.delete_advance(db, advance.id, ACTOR)
    db.rollback()
    with pytest.raises(BusinessRuleViolation):
        crud_purchases.delete_purchase(db, purchase.id, ACTOR)
    db.rollback()


def test_unused_advance_can_be_deleted(setup, db):
    _, _, advance = setup
    advance_id = advance.id
    crud_advances.delete_advance(db, advance_id, ACTOR)
    db.commit()
    with pytest.raises(NotFoundError):
        crud_advances.get_advance(db, advance_id)


def test_applications_are_immutable(setup, db):
    _, purchase, advance = setup
    application = crud_advances.apply_advance(db, advance.id, purchase.id, 10, ACTOR)["application"]
    db.commit()
    application.amount = Decimal("1")
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()
    assert db.query(PurchaseAdvance).one().amount == Decimal("10.00")


def test_available_advances_oldest_first(setup, factory, db):
    supplier, purchase, advance = setup
    second = factory.advance(supplier, 50)
    crud_advances.apply_advance(db, advance.id, purchase.id, 600, ACTOR)
    db.commit()
    available = crud_advances.available_advances_for_supplier(db, supplier.id)
    assert [a.id for a in available] == [second.id]


def test_stats(setup, db):
    supplier, purchase, advance = setup
    crud_advances.apply_advance(db, advance.id, purchase.id, 200, ACTOR)
    db.commit()
    stats = crud_advances.advance_stats(db, supplier_id=supplier.id)
    assert stats == {
        "count": 1,
        "total_amount": Decimal("600.00"),
        "total_used": Decimal("200.00"),
        "total_remaining": Decimal("400.00"),
    }
