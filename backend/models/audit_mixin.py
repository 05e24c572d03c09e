import uuid

from sqlalchemy import Column, DateTime, String

from utils import now


def new_id() -> str:
    """Opaque primary key for every ledger entity."""
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin that provides created/updated timestamps and user info.

    Timestamps are timezone-aware and taken in APP_TIMEZONE.
    """
    created_at = Column(DateTime(timezone=True), default=now)
    updated_at = Column(DateTime(timezone=True), onupdate=now)
    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)
