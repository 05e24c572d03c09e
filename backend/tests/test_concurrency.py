"""
Interleaved sessions against one file-backed SQLite database.

SQLite ignores SELECT ... FOR UPDATE, so these tests exercise the optimistic
version counters: a write based on a stale read must fail, and
run_in_transaction must retry it from a fresh read.
"""
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from database import Base
from crud import receiving as crud_receiving
from crud import supplier_advances as crud_advances
from crud.purchases import lock_purchase
from crud.inventory_items import lock_inventory_item
from crud.inventory_transactions import all_item_transactions, record_movement
from models.inventory_items import InventoryItem
from models.inventory_transactions import ReferenceType, TransactionDirection, TransactionType
from models.purchase_items import PurchaseItem
from models.purchases import Purchase, PurchaseStatus
from models.supplier_advances import AdvanceStatus, SupplierAdvance
from schemas.receiving import ReceiveLine
from utils.costing import replay_ledger
from utils.exceptions import BusinessRuleViolation, ConflictError
from utils.transactions import run_in_transaction

from conftest import ACTOR, Factory


@pytest.fixture
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 5},
    )
    Base.metadata.create_all(bind=engine)
    make_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    sessions = []

    def open_session():
        session = make_session()
        sessions.append(session)
        return session

    yield open_session
    for session in sessions:
        session.close()
    engine.dispose()


def test_competing_applications_never_overdraw(file_sessions):
    setup = file_sessions()
    factory = Factory(setup)
    supplier, item = factory.supplier(), factory.item()
    first_purchase = factory.purchase(supplier, [(item, 10, 100)])
    second_purchase = factory.purchase(supplier, [(item, 10, 100)])
    advance = factory.advance(supplier, 600)
    advance_id, first_id, second_id = advance.id, first_purchase.id, second_purchase.id

    session_a, session_b = file_sessions(), file_sessions()
    # Both callers read the advance with 600 remaining
    assert session_a.get(SupplierAdvance, advance_id).amount_remaining == Decimal("600.00")
    assert session_b.get(SupplierAdvance, advance_id).amount_remaining == Decimal("600.00")

    run_in_transaction(session_a, crud_advances.apply_advance, advance_id, first_id, Decimal("400"), ACTOR)
    with pytest.raises(BusinessRuleViolation):
        run_in_transaction(session_b, crud_advances.apply_advance, advance_id, second_id, Decimal("400"), ACTOR)

    check = file_sessions()
    final = check.get(SupplierAdvance, advance_id)
    assert final.amount_used == Decimal("400.00")
    assert final.amount_remaining == Decimal("200.00")
    assert final.status == AdvanceStatus.PARTIAL
    assert len(final.applications) == 1


def test_stale_write_is_detected(file_sessions):
    setup = file_sessions()
    factory = Factory(setup)
    advance = factory.advance(factory.supplier(), 600)
    advance_id = advance.id

    session_a, session_b = file_sessions(), file_sessions()
    stale = session_a.get(SupplierAdvance, advance_id)
    fresh = session_b.get(SupplierAdvance, advance_id)

    fresh.notes = "updated elsewhere"
    session_b.commit()

    stale.notes = "lost update"
    with pytest.raises(StaleDataError):
        session_a.flush()
    session_a.rollback()


def test_stale_unit_of_work_is_retried_from_a_fresh_read(file_sessions):
    setup = file_sessions()
    factory = Factory(setup)
    item = factory.stock(factory.item(), 100, 500)
    item_id = item.id

    session_a, session_b = file_sessions(), file_sessions()
    attempts = []

    def receive_at_stale_read(db, quantity, unit_cost):
        db_item = db.get(InventoryItem, item_id)
        if not attempts:
            # Another caller receives stock between our read and our write
            other = lock_inventory_item(session_b, item_id)
            record_movement(
                session_b, other, TransactionDirection.IN, TransactionType.ADJUSTMENT, 50, 600,
                ReferenceType.ADJUSTMENT, None, "other-user",
            )
            session_b.commit()
        attempts.append(db_item.version)
        return record_movement(
            db, db_item, TransactionDirection.IN, TransactionType.ADJUSTMENT, quantity, unit_cost,
            ReferenceType.ADJUSTMENT, None, ACTOR,
        )

    run_in_transaction(session_a, receive_at_stale_read, 50, 400)

    assert len(attempts) == 2
    check = file_sessions()
    final = check.get(InventoryItem, item_id)
    assert final.quantity == Decimal("200.00")
    # (150 * 533.33 + 50 * 400) / 200
    assert final.average_cost == Decimal("500.00")
    assert replay_ledger(all_item_transactions(check, item_id)) == (final.quantity, final.average_cost)


def test_retries_give_up_with_a_conflict(file_sessions):
    setup = file_sessions()
    factory = Factory(setup)
    advance_id = factory.advance(factory.supplier(), 100).id
    session_a, session_b = file_sessions(), file_sessions()

    def always_stale(db):
        mine = db.get(SupplierAdvance, advance_id)
        theirs = session_b.get(SupplierAdvance, advance_id)
        session_b.refresh(theirs)
        theirs.notes = f"touched {theirs.version}"
        session_b.commit()
        mine.notes = "mine"
        db.flush()

    with pytest.raises(ConflictError):
        run_in_transaction(session_a, always_stale, retries=2)


def test_interleaved_receipts_cannot_overfill_a_line(file_sessions):
    setup = file_sessions()
    factory = Factory(setup)
    supplier, item = factory.supplier(), factory.item()
    purchase = factory.purchase(supplier, [(item, 10, 100)])
    purchase_id, line_id, item_id = purchase.id, purchase.items[0].id, item.id
    lines = [ReceiveLine(purchase_item_id=line_id, quantity=6)]

    session_a, session_b = file_sessions(), file_sessions()
    attempts = []

    def receive_after_competitor(db):
        locked = lock_purchase(db, purchase_id)
        if not attempts:
            # The other receipt commits between our read of the purchase and our write
            run_in_transaction(session_b, crud_receiving.receive_purchase, purchase_id, lines, "other-user")
        attempts.append(locked.version)
        return crud_receiving.apply_receipt(db, locked, lines, ACTOR)

    with pytest.raises(BusinessRuleViolation):
        run_in_transaction(session_a, receive_after_competitor)

    assert len(attempts) == 2
    check = file_sessions()
    final_line = check.get(PurchaseItem, line_id)
    final_item = check.get(InventoryItem, item_id)
    assert final_line.quantity_received == Decimal("6.00")
    assert check.get(Purchase, purchase_id).status == PurchaseStatus.PARTIAL
    assert final_item.quantity == Decimal("6.00")
    assert len(all_item_transactions(check, item_id)) == 1
    assert replay_ledger(all_item_transactions(check, item_id)) == (final_item.quantity, final_item.average_cost)
