from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin, new_id

class Supplier(Base, TimestampMixin):
    __tablename__ = "suppliers"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    contact_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    purchases = relationship("Purchase", back_populates="supplier")
    advances = relationship("SupplierAdvance", back_populates="supplier")
