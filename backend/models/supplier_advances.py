from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, ForeignKey, Enum, event
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import TimestampMixin, new_id
from utils import now
from utils.exceptions import ImmutableRecordError

class AdvanceStatus(enum.Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    APPLIED = "APPLIED"
    REFUNDED = "REFUNDED"  # declared, no transition leads here yet

class PaymentMethod(enum.Enum):
    CASH = "CASH"
    CHECK = "CHECK"
    TRANSFER = "TRANSFER"
    CCP = "CCP"

class SupplierAdvance(Base, TimestampMixin):
    __tablename__ = "supplier_advances"

    id = Column(String(36), primary_key=True, default=new_id)
    advance_number = Column(String(20), unique=True, nullable=False, index=True)  # AVA-YYYY-NNNN
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    amount_used = Column(Numeric(14, 2), default=0, nullable=False)
    amount_remaining = Column(Numeric(14, 2), nullable=False)
    status = Column(Enum(AdvanceStatus), default=AdvanceStatus.PENDING, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_date = Column(Date, nullable=False)
    reference = Column(String, nullable=True)  # cheque number, transfer id etc.
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    supplier = relationship("Supplier", back_populates="advances")
    applications = relationship("PurchaseAdvance", back_populates="advance")

class PurchaseAdvance(Base):
    """Application of part of an advance to one purchase."""
    __tablename__ = "purchase_advances"

    id = Column(String(36), primary_key=True, default=new_id)
    purchase_id = Column(String(36), ForeignKey("purchases.id"), nullable=False, index=True)
    advance_id = Column(String(36), ForeignKey("supplier_advances.id"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    applied_by = Column(String, nullable=True)
    applied_at = Column(DateTime(timezone=True), default=now)

    # Relationships
    purchase = relationship("Purchase", back_populates="advance_applications")
    advance = relationship("SupplierAdvance", back_populates="applications")


@event.listens_for(PurchaseAdvance, "before_update")
def _reject_application_update(mapper, connection, target):
    raise ImmutableRecordError("Advance applications cannot be modified", {"application_id": target.id})


@event.listens_for(PurchaseAdvance, "before_delete")
def _reject_application_delete(mapper, connection, target):
    raise ImmutableRecordError("Advance applications cannot be deleted", {"application_id": target.id})
