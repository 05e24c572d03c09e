from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, Enum
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import TimestampMixin, new_id

class InventoryItemType(enum.Enum):
    FABRIC = "FABRIC"
    ACCESSORY = "ACCESSORY"
    PACKAGING = "PACKAGING"
    FINISHED = "FINISHED"

class InventoryUnit(enum.Enum):
    METER = "METER"
    ROLL = "ROLL"
    PIECE = "PIECE"
    KG = "KG"
    LITER = "LITER"

class InventoryItem(Base, TimestampMixin):
    __tablename__ = "inventory_items"

    id = Column(String(36), primary_key=True, default=new_id)
    sku = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(Enum(InventoryItemType), nullable=False)
    unit = Column(Enum(InventoryUnit), default=InventoryUnit.PIECE, nullable=False)
    quantity = Column(Numeric(14, 2), default=0, nullable=False)
    reserved = Column(Numeric(14, 2), default=0, nullable=False)
    available = Column(Numeric(14, 2), default=0, nullable=False)  # quantity - reserved, kept in step on every write
    average_cost = Column(Numeric(14, 2), default=0, nullable=False)  # CUMP
    last_cost = Column(Numeric(14, 2), nullable=True)
    total_value = Column(Numeric(14, 2), default=0, nullable=False)
    threshold = Column(Numeric(14, 2), nullable=True)  # low-stock alert level
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_received_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    purchase_items = relationship("PurchaseItem", back_populates="inventory_item")
    transactions = relationship("InventoryTransaction", back_populates="inventory_item")
