from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import TimestampMixin, new_id

class PurchaseStatus(enum.Enum):
    DRAFT = "DRAFT"
    ORDERED = "ORDERED"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"

class Purchase(Base, TimestampMixin):
    __tablename__ = "purchases"

    id = Column(String(36), primary_key=True, default=new_id)
    purchase_number = Column(String(20), unique=True, nullable=False, index=True)  # ACH-YYYY-NNNN
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    status = Column(Enum(PurchaseStatus), default=PurchaseStatus.DRAFT, nullable=False)
    subtotal = Column(Numeric(14, 2), default=0, nullable=False)
    tax_amount = Column(Numeric(14, 2), default=0, nullable=False)
    shipping_cost = Column(Numeric(14, 2), default=0, nullable=False)
    total_amount = Column(Numeric(14, 2), default=0, nullable=False)
    amount_due = Column(Numeric(14, 2), default=0, nullable=False)  # total_amount - advance_applied
    advance_applied = Column(Numeric(14, 2), default=0, nullable=False)
    order_date = Column(Date, nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    supplier = relationship("Supplier", back_populates="purchases")
    items = relationship("PurchaseItem", back_populates="purchase", cascade="all, delete-orphan")
    advance_applications = relationship("PurchaseAdvance", back_populates="purchase")
