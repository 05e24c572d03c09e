import os

# Settings must be in place before the application modules are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_TO_FILE"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["ENABLE_SCHEDULER"] = "false"

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base, get_db
from crud import inventory_items as crud_inventory_items
from crud import product_models as crud_models
from crud import purchases as crud_purchases
from crud import suppliers as crud_suppliers
from crud import supplier_advances as crud_advances
from crud.inventory_transactions import record_movement
from main import app
from models.inventory_items import InventoryItemType
from models.inventory_transactions import ReferenceType, TransactionDirection, TransactionType
from models.supplier_advances import PaymentMethod
from schemas.inventory_items import InventoryItemCreate
from schemas.product_models import BomItemCreate, ProductModelCreate
from schemas.purchases import PurchaseCreate, PurchaseItemCreate
from schemas.suppliers import SupplierCreate
from schemas.supplier_advances import SupplierAdvanceCreate
from utils.auth_utils import get_current_user

ACTOR = "tester@example.com"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: {"email": ACTOR}
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class Factory:
    """Builds committed fixtures through the same crud paths the API uses."""

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self, prefix):
        self._seq += 1
        return f"{prefix}-{self._seq:03d}"

    def supplier(self, code=None, name="Textiles Atlas"):
        supplier = crud_suppliers.create_supplier(
            self.db, SupplierCreate(code=code or self._next("SUP"), name=name), ACTOR
        )
        self.db.commit()
        return supplier

    def item(self, sku=None, item_type=InventoryItemType.FABRIC, name="Cotton fabric"):
        item = crud_inventory_items.create_inventory_item(
            self.db, InventoryItemCreate(sku=sku or self._next("SKU"), name=name, type=item_type), ACTOR
        )
        self.db.commit()
        return item

    def stock(self, item, quantity, unit_cost):
        """Bring ``quantity`` into stock at ``unit_cost`` through the ledger."""
        locked = crud_inventory_items.lock_inventory_item(self.db, item.id)
        record_movement(
            self.db,
            locked,
            TransactionDirection.IN,
            TransactionType.ADJUSTMENT,
            quantity,
            unit_cost,
            ReferenceType.ADJUSTMENT,
            None,
            ACTOR,
            reason="Opening stock",
        )
        self.db.commit()
        self.db.refresh(locked)
        return locked

    def purchase(self, supplier, lines, tax_amount=0, shipping_cost=0, auto_receive=False):
        """``lines`` is a list of (item, quantity, unit_price)."""
        purchase = crud_purchases.create_purchase(
            self.db,
            PurchaseCreate(
                supplier_id=supplier.id,
                items=[
                    PurchaseItemCreate(inventory_item_id=item.id, quantity_ordered=quantity, unit_price=price)
                    for item, quantity, price in lines
                ],
                tax_amount=tax_amount,
                shipping_cost=shipping_cost,
                auto_receive=auto_receive,
            ),
            ACTOR,
        )
        self.db.commit()
        return purchase

    def advance(self, supplier, amount):
        advance = crud_advances.create_advance(
            self.db,
            SupplierAdvanceCreate(
                supplier_id=supplier.id,
                amount=amount,
                payment_method=PaymentMethod.TRANSFER,
                payment_date=date(2026, 1, 15),
            ),
            ACTOR,
        )
        self.db.commit()
        return advance

    def model(self, bom=(), sku=None, **fields):
        """``bom`` is a list of (item, quantity_per_unit, waste_factor)."""
        model = crud_models.create_model(
            self.db,
            ProductModelCreate(
                sku=sku or self._next("MOD"),
                name=fields.pop("name", "Linen shirt"),
                bom_items=[
                    BomItemCreate(inventory_item_id=item.id, quantity_per_unit=qpu, waste_factor=waste)
                    for item, qpu, waste in bom
                ],
                **fields,
            ),
            ACTOR,
        )
        self.db.commit()
        return model


@pytest.fixture
def factory(db):
    return Factory(db)


def D(value) -> Decimal:
    return Decimal(str(value))
