import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from database import SessionLocal
from crud import inventory_items as crud_inventory_items

logger = logging.getLogger(__name__)

def run_reconciliation(item_ids: Optional[List[str]] = None, session_factory=SessionLocal) -> Optional[dict]:
    """
    Replay the stock ledger of every active item and log any item whose
    stored quantity or average cost drifted from its movements.

    Read-only: nothing is corrected here. Discrepancies are logged at WARNING
    by ``reconcile_inventory`` and summarised once at the end.
    """
    logger.info("Starting inventory reconciliation.")
    db: Session = session_factory()
    try:
        report = crud_inventory_items.reconcile_inventory(db, item_ids)
        if report["discrepancies"]:
            logger.warning(
                f"Inventory reconciliation found {report['discrepancies']} discrepancy(ies) in {report['checked']} item(s)."
            )
        else:
            logger.info(f"Inventory reconciliation checked {report['checked']} item(s), no discrepancies.")
        return report
    except Exception as e:
        logger.error(f"Error during inventory reconciliation task: {e}", exc_info=True)
        db.rollback()
        return None
    finally:
        db.close()
