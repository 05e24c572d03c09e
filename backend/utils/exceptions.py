"""
Typed errors raised by the ledger operations.

Every error carries a machine-readable ``kind``, a human-readable message and
optional field-level ``details``. The API layer renders them as::

    {"error": {"kind": "BusinessRuleViolation", "message": "...", "details": {...}}}

    LedgerError
    +-- ValidationError        malformed or out-of-range input (400)
    +-- NotFoundError          referenced entity does not exist (404)
    +-- ConflictError          duplicate unique key or lost optimistic lock (409)
    +-- BusinessRuleViolation  state machine, stock or balance rule broken (422)
    |   +-- ImmutableRecordError  append-only row changed
    +-- InternalError          persistence/infrastructure failure (500)
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationError(LedgerError):
    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found", {"entity": entity, "id": str(entity_id)})


class ConflictError(LedgerError):
    status_code = 409


class BusinessRuleViolation(LedgerError):
    status_code = 422


class InternalError(LedgerError):
    status_code = 500

    def __init__(self, message: str = "Internal error, the operation was not applied"):
        super().__init__(message)


class ImmutableRecordError(BusinessRuleViolation):
    """An append-only row (ledger movement, advance application) was updated or deleted."""
