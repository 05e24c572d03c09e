from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import TimestampMixin, new_id
from utils import now

class BatchStatus(enum.Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class ProductionBatch(Base, TimestampMixin):
    __tablename__ = "production_batches"

    id = Column(String(36), primary_key=True, default=new_id)
    batch_number = Column(String(20), unique=True, nullable=False, index=True)  # LOT-YYYY-NNNN
    model_id = Column(String(36), ForeignKey("product_models.id"), nullable=False, index=True)
    planned_qty = Column(Integer, nullable=False)
    produced_qty = Column(Integer, nullable=True)
    status = Column(Enum(BatchStatus), default=BatchStatus.PLANNED, nullable=False)
    materials_cost = Column(Numeric(14, 2), default=0, nullable=False)
    labor_cost = Column(Numeric(14, 2), default=0, nullable=False)
    overhead_cost = Column(Numeric(14, 2), default=0, nullable=False)
    total_cost = Column(Numeric(14, 2), default=0, nullable=False)
    cost_per_unit = Column(Numeric(14, 2), nullable=True)  # NULL when nothing was produced
    planned_date = Column(Date, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    model = relationship("ProductModel", back_populates="batches")
    consumptions = relationship("ProductionConsumption", back_populates="batch", cascade="all, delete-orphan")

class ProductionConsumption(Base):
    __tablename__ = "production_consumptions"

    id = Column(String(36), primary_key=True, default=new_id)
    batch_id = Column(String(36), ForeignKey("production_batches.id"), nullable=False, index=True)
    inventory_item_id = Column(String(36), ForeignKey("inventory_items.id"), nullable=False)
    quantity_consumed = Column(Numeric(14, 2), nullable=False)
    unit_cost_at_consumption = Column(Numeric(14, 2), nullable=False)
    total_cost = Column(Numeric(14, 2), nullable=False)
    consumed_at = Column(DateTime(timezone=True), default=now)

    # Relationships
    batch = relationship("ProductionBatch", back_populates="consumptions")
    inventory_item = relationship("InventoryItem")
