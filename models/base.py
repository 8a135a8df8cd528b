from datetime import datetime, timezone
from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the storage convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# ENUMS
# ============================================================================

class SyncSource(str, enum.Enum):
    """Where an entity is synchronized from"""
    WAREHOUSE = "warehouse"
    PMS = "pms"


class SyncStatus(str, enum.Enum):
    """Outcome of a sync run"""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


# ============================================================================
# MIXINS
# ============================================================================

class TimestampMixin:
    """
    Local bookkeeping timestamps.

    created_at is set once on first observation and never rewritten by sync;
    updated_at is the time of the latest write touching the row.
    """
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
