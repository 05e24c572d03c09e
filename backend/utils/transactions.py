"""
Unit of work for ledger-mutating operations.

Each operation in ``crud`` that changes stock, balances or batch state is a
plain function ``operation(db, ...)`` that performs all of its reads and
writes on ``db`` without committing. ``run_in_transaction`` executes it,
commits once, and rolls back everything on any failure. Writes based on a
stale read are detected by the ``version_id_col`` counters on the locked
aggregates; the whole operation is then retried from a fresh read.
"""
import logging
import os

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from utils.exceptions import ConflictError, InternalError, LedgerError

logger = logging.getLogger("transactions")

MAX_RETRIES = int(os.getenv("LEDGER_MAX_RETRIES", "3"))


def run_in_transaction(db: Session, operation, *args, retries: int = None, **kwargs):
    """
    Run ``operation(db, *args, **kwargs)`` as one all-or-nothing transaction.

    Returns whatever the operation returns, after commit. Domain errors
    propagate unchanged; infrastructure errors surface as InternalError.
    """
    attempts = retries or MAX_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            result = operation(db, *args, **kwargs)
            db.commit()
            return result
        except StaleDataError:
            db.rollback()
            logger.warning(
                f"Concurrent update detected in {operation.__name__} (attempt {attempt}/{attempts}), retrying"
            )
        except LedgerError:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Integrity error in {operation.__name__}: {e.orig}")
            raise ConflictError("A record with the same unique key already exists") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Database error in {operation.__name__}")
            raise InternalError() from e
    raise ConflictError(
        "The record was modified concurrently, please retry",
        {"operation": operation.__name__, "attempts": attempts},
    )
