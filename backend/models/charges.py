from sqlalchemy import Column, String, Text, Numeric, Date, ForeignKey, Enum
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import TimestampMixin, new_id

class ChargeCategory(enum.Enum):
    ATELIER = "ATELIER"
    SHOOTING = "SHOOTING"
    ADS = "ADS"
    INFLUENCER = "INFLUENCER"
    TRANSPORT = "TRANSPORT"
    LABOR = "LABOR"
    OTHER = "OTHER"

class ChargeScope(enum.Enum):
    GLOBAL = "GLOBAL"
    COLLECTION = "COLLECTION"
    MODEL = "MODEL"

class Charge(Base, TimestampMixin):
    """A fixed expense, allocated per unit when scoped to a model."""
    __tablename__ = "charges"

    id = Column(String(36), primary_key=True, default=new_id)
    charge_number = Column(String(20), unique=True, nullable=False, index=True)  # CHG-YYYY-NNNN
    category = Column(Enum(ChargeCategory), nullable=False)
    scope = Column(Enum(ChargeScope), default=ChargeScope.MODEL, nullable=False)
    model_id = Column(String(36), ForeignKey("product_models.id"), nullable=True, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    description = Column(Text, nullable=True)
    charge_date = Column(Date, nullable=True)

    # Relationships
    model = relationship("ProductModel", back_populates="charges")
