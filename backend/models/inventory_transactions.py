from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum, UniqueConstraint, event
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import new_id
from utils import now
from utils.exceptions import ImmutableRecordError

class TransactionDirection(enum.Enum):
    IN = "IN"
    OUT = "OUT"

class TransactionType(enum.Enum):
    PURCHASE = "PURCHASE"
    CONSUMPTION = "CONSUMPTION"
    ADJUSTMENT = "ADJUSTMENT"
    PRODUCTION = "PRODUCTION"

class ReferenceType(enum.Enum):
    PURCHASE = "PURCHASE"
    PRODUCTION_BATCH = "PRODUCTION_BATCH"
    ADJUSTMENT = "ADJUSTMENT"

class InventoryTransaction(Base):
    """One stock movement. Rows are written once and never changed."""
    __tablename__ = "inventory_transactions"
    __table_args__ = (UniqueConstraint("inventory_item_id", "sequence", name="_inventory_tx_item_sequence_uc"),)

    id = Column(String(36), primary_key=True, default=new_id)
    inventory_item_id = Column(String(36), ForeignKey("inventory_items.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)  # per item, 1-based; replay order
    direction = Column(Enum(TransactionDirection), nullable=False)
    type = Column(Enum(TransactionType), nullable=False)
    quantity = Column(Numeric(14, 2), nullable=False)
    unit_cost = Column(Numeric(14, 2), nullable=False)
    total_cost = Column(Numeric(14, 2), nullable=False)
    balance_before = Column(Numeric(14, 2), nullable=False)
    balance_after = Column(Numeric(14, 2), nullable=False)
    value_before = Column(Numeric(14, 2), nullable=False)
    value_after = Column(Numeric(14, 2), nullable=False)
    avg_cost_before = Column(Numeric(14, 2), nullable=False)
    avg_cost_after = Column(Numeric(14, 2), nullable=False)
    reference_type = Column(Enum(ReferenceType), nullable=False)
    reference_id = Column(String(36), nullable=True, index=True)
    reason = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now, index=True)

    # Relationships
    inventory_item = relationship("InventoryItem", back_populates="transactions")


@event.listens_for(InventoryTransaction, "before_update")
def _reject_transaction_update(mapper, connection, target):
    raise ImmutableRecordError(
        "Inventory transactions cannot be modified", {"transaction_id": target.id}
    )


@event.listens_for(InventoryTransaction, "before_delete")
def _reject_transaction_delete(mapper, connection, target):
    raise ImmutableRecordError(
        "Inventory transactions cannot be deleted", {"transaction_id": target.id}
    )
