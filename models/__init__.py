"""
SQLAlchemy ORM models for database tables.

This package defines the local relational mirror of the warehouse and PMS
entities. Every synchronized table carries a natural key (unique constraint)
used as the upsert conflict target, plus local created_at / updated_at
bookkeeping columns.

Models:
    base: Base declarative class, shared enums and the timestamp mixin
    warehouse: Entities pulled from the analytics warehouse (units, leases,
        payments, ledger entries, contacts, leads, touches, GA events,
        managers, pricing groups, historical spaces, unit turnover)
    pms: Entities pulled from the property-management system (facilities,
        tenants)

Usage:
    from models import Base, Facility, Tenant, Lease

Example:
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
"""

from models.base import Base, SyncSource, SyncStatus, TimestampMixin, utcnow
from models.warehouse import (
    Unit,
    Lease,
    Payment,
    BookEntry,
    Contact,
    Lead,
    CustomerTouch,
    GAEvent,
    Manager,
    PricingGroup,
    SpaceHistorical,
    UnitTurnover,
)
from models.pms import Facility, Tenant

__all__ = [
    "Base",
    "SyncSource",
    "SyncStatus",
    "TimestampMixin",
    "utcnow",
    "Unit",
    "Lease",
    "Payment",
    "BookEntry",
    "Contact",
    "Lead",
    "CustomerTouch",
    "GAEvent",
    "Manager",
    "PricingGroup",
    "SpaceHistorical",
    "UnitTurnover",
    "Facility",
    "Tenant",
]
