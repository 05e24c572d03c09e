from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from database import get_db
from crud import audit_log as crud_audit_log
from schemas.audit_log import AuditLog

router = APIRouter(prefix="/audit-logs", tags=["Audit Log"])

@router.get("/", response_model=List[AuditLog])
def read_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return crud_audit_log.get_audit_logs(db, entity_type=entity_type, entity_id=entity_id, skip=skip, limit=limit)
