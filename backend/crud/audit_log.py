from typing import Optional
from sqlalchemy.orm import Session
from models.audit_log import AuditLog
from schemas.audit_log import AuditLogCreate

def create_audit_log(db: Session, log_entry: AuditLogCreate):
    """Stage an audit row in the caller's unit of work; it commits with the change it records."""
    db_log_entry = AuditLog(**log_entry.model_dump())
    db.add(db_log_entry)
    db.flush()
    return db_log_entry

def record_audit(db: Session, entity_type: str, entity_id: str, action: str, actor: str, old_values=None, new_values=None):
    return create_audit_log(db, AuditLogCreate(
        entity_type=entity_type,
        entity_id=str(entity_id),
        changed_by=actor,
        action=action,
        old_values=old_values,
        new_values=new_values,
    ))

def get_audit_logs(db: Session, entity_type: Optional[str] = None, entity_id: Optional[str] = None, skip: int = 0, limit: int = 100):
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    return query.order_by(AuditLog.changed_at.desc()).offset(skip).limit(limit).all()
