from sqlalchemy import Column, String, DateTime, JSON
from database import Base
from models.audit_mixin import new_id
from utils import now

class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=new_id)
    entity_type = Column(String, nullable=False, index=True)  # e.g., 'purchases', 'supplier_advances'
    entity_id = Column(String(36), nullable=False, index=True)
    changed_at = Column(DateTime(timezone=True), default=now)
    changed_by = Column(String, nullable=False)
    action = Column(String, nullable=False)  # e.g., 'CREATE', 'RECEIVE', 'APPLY_ADVANCE', 'DELETE'
    old_values = Column(JSON)
    new_values = Column(JSON)
