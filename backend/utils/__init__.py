from datetime import datetime
from decimal import Decimal
import enum
import os

import pytz
from sqlalchemy.orm import class_mapper

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")


def now() -> datetime:
    """Current time, timezone-aware, in the configured application timezone."""
    return datetime.now(pytz.timezone(APP_TIMEZONE))


def sqlalchemy_to_dict(obj):
    """Convert a SQLAlchemy object to a JSON-safe dictionary for audit snapshots."""
    if not obj:
        return None
    mapper = class_mapper(obj.__class__)
    result = {}
    for c in mapper.columns:
        value = getattr(obj, c.key)
        # Convert datetime objects to ISO format strings
        if hasattr(value, 'isoformat'):
            value = value.isoformat()
        # Keep Decimal exact; floats would reintroduce rounding noise
        elif isinstance(value, Decimal):
            value = str(value)
        # Convert enum types to strings
        elif isinstance(value, enum.Enum):
            value = value.name
        result[c.key] = value
    return result

__all__ = ['now', 'sqlalchemy_to_dict']
