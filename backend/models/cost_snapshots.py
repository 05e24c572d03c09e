from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin, new_id

class CostSnapshot(Base, TimestampMixin):
    """Frozen copy of a model's cost breakdown at a point in time."""
    __tablename__ = "cost_snapshots"

    id = Column(String(36), primary_key=True, default=new_id)
    snapshot_number = Column(String(20), unique=True, nullable=False, index=True)  # SNP-YYYY-NNNN
    model_id = Column(String(36), ForeignKey("product_models.id"), nullable=False, index=True)
    batch_id = Column(String(36), ForeignKey("production_batches.id"), nullable=True)
    fabric_cost = Column(Numeric(14, 2), default=0, nullable=False)
    accessory_cost = Column(Numeric(14, 2), default=0, nullable=False)
    packaging_cost = Column(Numeric(14, 2), default=0, nullable=False)
    other_material_cost = Column(Numeric(14, 2), default=0, nullable=False)
    materials_cost = Column(Numeric(14, 2), default=0, nullable=False)
    labor_cost = Column(Numeric(14, 2), default=0, nullable=False)
    other_cost = Column(Numeric(14, 2), default=0, nullable=False)
    charges_cost = Column(Numeric(14, 2), default=0, nullable=False)
    return_margin_cost = Column(Numeric(14, 2), default=0, nullable=False)
    total_cost = Column(Numeric(14, 2), nullable=False)
    selling_price = Column(Numeric(14, 2), nullable=True)
    margin = Column(Numeric(14, 2), nullable=True)
    margin_percent = Column(Numeric(7, 2), nullable=True)
    suggested_prices = Column(JSON, nullable=False)  # {"30": "...", "40": "...", "50": "..."}
    breakdown = Column(JSON, nullable=False)  # per-line material detail and per-category charges
    estimated_units = Column(Integer, nullable=False)
    is_locked = Column(Boolean, default=True, nullable=False)

    # Relationships
    model = relationship("ProductModel")
    batch = relationship("ProductionBatch")
