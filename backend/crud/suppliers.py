from sqlalchemy.orm import Session
from models.suppliers import Supplier
from schemas.suppliers import SupplierCreate, SupplierUpdate
from crud.audit_log import record_audit
from utils import sqlalchemy_to_dict
from utils.exceptions import BusinessRuleViolation, ConflictError, NotFoundError

def get_supplier(db: Session, supplier_id: str) -> Supplier:
    db_supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not db_supplier:
        raise NotFoundError("Supplier", supplier_id)
    return db_supplier

def get_active_supplier(db: Session, supplier_id: str) -> Supplier:
    db_supplier = get_supplier(db, supplier_id)
    if not db_supplier.is_active:
        raise BusinessRuleViolation(
            f"Supplier {db_supplier.code} is inactive", {"supplier_id": supplier_id}
        )
    return db_supplier

def get_suppliers(db: Session, active_only: bool = False, skip: int = 0, limit: int = 100):
    query = db.query(Supplier)
    if active_only:
        query = query.filter(Supplier.is_active.is_(True))
    return query.order_by(Supplier.name).offset(skip).limit(limit).all()

def create_supplier(db: Session, supplier: SupplierCreate, actor: str):
    if db.query(Supplier).filter(Supplier.code == supplier.code).first():
        raise ConflictError(f"Supplier code {supplier.code} already exists", {"code": supplier.code})
    db_supplier = Supplier(**supplier.model_dump(), created_by=actor, updated_by=actor)
    db.add(db_supplier)
    db.flush()
    record_audit(db, "suppliers", db_supplier.id, "CREATE", actor, None, sqlalchemy_to_dict(db_supplier))
    return db_supplier

def update_supplier(db: Session, supplier_id: str, supplier: SupplierUpdate, actor: str):
    db_supplier = get_supplier(db, supplier_id)
    old_values = sqlalchemy_to_dict(db_supplier)
    for key, value in supplier.model_dump(exclude_unset=True).items():
        setattr(db_supplier, key, value)
    db_supplier.updated_by = actor
    db.flush()
    record_audit(db, "suppliers", supplier_id, "UPDATE", actor, old_values, sqlalchemy_to_dict(db_supplier))
    return db_supplier
