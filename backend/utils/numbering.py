from sqlalchemy import func
from sqlalchemy.orm import Session

from utils import now

# Document number prefixes: <PREFIX>-<YEAR>-<0001>
PURCHASE_PREFIX = "ACH"
ADVANCE_PREFIX = "AVA"
CHARGE_PREFIX = "CHG"
BATCH_PREFIX = "LOT"
SNAPSHOT_PREFIX = "SNP"


def next_document_number(db: Session, column, prefix: str) -> str:
    """Next human-readable number for ``column``, restarting at 0001 each year."""
    year_prefix = f"{prefix}-{now().year}-"
    last_number = db.query(func.max(column)).filter(column.like(f"{year_prefix}%")).scalar()
    seq = int(last_number.rsplit("-", 1)[-1]) + 1 if last_number else 1
    return f"{year_prefix}{seq:04d}"
