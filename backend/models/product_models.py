from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin, new_id

class ProductModel(Base, TimestampMixin):
    """A product recipe: its bill of materials plus per-unit direct costs."""
    __tablename__ = "product_models"

    id = Column(String(36), primary_key=True, default=new_id)
    sku = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    labor_cost = Column(Numeric(14, 2), default=0, nullable=False)  # per unit
    other_cost = Column(Numeric(14, 2), default=0, nullable=False)  # per unit
    return_margin = Column(Numeric(14, 2), default=0, nullable=False)  # returns provision, spread over estimated_units
    estimated_units = Column(Integer, default=100, nullable=False)
    produced_units = Column(Integer, default=0, nullable=False)
    selling_price = Column(Numeric(14, 2), nullable=True)
    finished_item_id = Column(String(36), ForeignKey("inventory_items.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    bom_items = relationship("BomItem", back_populates="model", cascade="all, delete-orphan")
    charges = relationship("Charge", back_populates="model")
    batches = relationship("ProductionBatch", back_populates="model")
    finished_item = relationship("InventoryItem")

class BomItem(Base):
    __tablename__ = "bom_items"
    __table_args__ = (UniqueConstraint('model_id', 'inventory_item_id', name='_bom_model_item_uc'),)

    id = Column(String(36), primary_key=True, default=new_id)
    model_id = Column(String(36), ForeignKey("product_models.id"), nullable=False, index=True)
    inventory_item_id = Column(String(36), ForeignKey("inventory_items.id"), nullable=False)
    quantity_per_unit = Column(Numeric(14, 4), nullable=False)
    waste_factor = Column(Numeric(14, 4), default=1.05, nullable=False)  # 1.05 = 5% waste allowance
    notes = Column(Text, nullable=True)

    # Relationships
    model = relationship("ProductModel", back_populates="bom_items")
    inventory_item = relationship("InventoryItem")
