from sqlalchemy import (
    Column, String, Integer, BigInteger, Date, DateTime, Float, Boolean, Text, Index, UniqueConstraint
)
from models.base import Base, TimestampMixin


class Unit(TimestampMixin, Base):
    """Rentable storage unit. Natural key: unit_id."""
    __tablename__ = "units"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unit_id = Column(String(64), nullable=False, unique=True)
    facility_id = Column(String(64), nullable=True, index=True)
    pg_id = Column(String(64), nullable=True, index=True)
    unit_number = Column(String(64), nullable=True)
    unit_type = Column(String(100), nullable=True)
    status = Column(String(50), nullable=True)
    rate_managed = Column(Float, nullable=True)
    unit_width = Column(Float, nullable=True)
    unit_depth = Column(Float, nullable=True)
    unit_height = Column(Float, nullable=True)


class Lease(TimestampMixin, Base):
    """Lease on a unit. Natural key: lease_id."""
    __tablename__ = "leases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lease_id = Column(String(64), nullable=False, unique=True)
    unit_id = Column(String(64), nullable=True, index=True)
    contact_id = Column(String(64), nullable=True, index=True)
    facility_id = Column(String(64), nullable=True, index=True)
    is_active = Column(Boolean, nullable=True)

    lease_started = Column(Date, nullable=True)
    lease_ended = Column(Date, nullable=True)
    lease_rent_next_chg_date = Column(Date, nullable=True)
    lease_rent_last_chg_date = Column(Date, nullable=True)
    status_late_since_date = Column(Date, nullable=True)
    status_paid_through_date = Column(Date, nullable=True)
    status_paid_on_date = Column(Date, nullable=True)

    lease_rent_original = Column(Float, nullable=True)
    lease_rent_current = Column(Float, nullable=True)
    lease_rent_next = Column(Float, nullable=True)
    ins_premium = Column(Float, nullable=True)
    ins_coverage_level = Column(Float, nullable=True)
    lease_lifetime_payments = Column(Float, nullable=True)
    balance_ar = Column(Float, nullable=True)
    balance_deposit = Column(Float, nullable=True)
    balance_prepaid = Column(Float, nullable=True)


class Payment(TimestampMixin, Base):
    """Payment received. Natural key: payment_id."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(String(64), nullable=False, unique=True)
    facility_id = Column(String(64), nullable=True, index=True)
    contact_id = Column(String(64), nullable=True, index=True)
    lease_id = Column(String(64), nullable=True)
    payment_status = Column(String(50), nullable=True)
    payment_method = Column(String(50), nullable=True)
    payment_date = Column(Date, nullable=True, index=True)
    payment_datetime = Column(DateTime, nullable=True)
    payment_amount = Column(Float, nullable=True)


class BookEntry(TimestampMixin, Base):
    """Accounting ledger line. Natural key: txn_id."""
    __tablename__ = "book_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    txn_id = Column(String(64), nullable=False, unique=True)
    facility = Column(String(64), nullable=True, index=True)
    account = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    entry_date_time = Column(DateTime, nullable=True, index=True)
    accrual_start = Column(Date, nullable=True)
    amount = Column(Float, nullable=True)
    amt_revenue = Column(Float, nullable=True)
    amt_payment = Column(Float, nullable=True)
    amt_asset = Column(Float, nullable=True)
    amt_liability = Column(Float, nullable=True)
    amt_transfer = Column(Float, nullable=True)


class Contact(TimestampMixin, Base):
    """Person known to the operator. Natural key: contact_id."""
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contact_id = Column(String(64), nullable=False, unique=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)


class Lead(TimestampMixin, Base):
    """Sales lead. Natural key: lead_id."""
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(String(64), nullable=False, unique=True)
    contact_id = Column(String(64), nullable=True, index=True)
    facility_id = Column(String(64), nullable=True)
    status = Column(String(50), nullable=True)
    lead_source = Column(String(100), nullable=True)
    converted_datetime = Column(DateTime, nullable=True)


class CustomerTouch(TimestampMixin, Base):
    """Marketing touchpoint. Natural key: ga_session."""
    __tablename__ = "customer_touches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ga_session = Column(String(128), nullable=False, unique=True)
    contact_id = Column(String(64), nullable=True, index=True)
    lease_id = Column(String(64), nullable=True)
    lead_id = Column(String(64), nullable=True)
    channel = Column(String(100), nullable=True)
    touch_type = Column(String(100), nullable=True)


class GAEvent(TimestampMixin, Base):
    """Google Analytics session event. Natural key: ga_session_id."""
    __tablename__ = "ga_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ga_session_id = Column(BigInteger, nullable=False, unique=True)
    org_id = Column(String(64), nullable=True, index=True)
    event_name = Column(String(100), nullable=True)
    event_date = Column(Date, nullable=True, index=True)
    page_location = Column(Text, nullable=True)
    traffic_source = Column(String(100), nullable=True)
    traffic_medium = Column(String(100), nullable=True)


class Manager(TimestampMixin, Base):
    """Facility manager. Natural key: manager_id."""
    __tablename__ = "managers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    manager_id = Column(String(64), nullable=False, unique=True)
    facility_id = Column(String(64), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)


class PricingGroup(TimestampMixin, Base):
    """Unit pricing group. Natural key: pg_id."""
    __tablename__ = "pricing_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pg_id = Column(String(64), nullable=False, unique=True)
    facility_id = Column(String(64), nullable=True, index=True)
    pg_name = Column(String(200), nullable=True)
    price = Column(Float, nullable=True)
    width = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    depth = Column(Float, nullable=True)


class SpaceHistorical(TimestampMixin, Base):
    """Daily occupancy snapshot of a unit. Natural key: (date, unit_id)."""
    __tablename__ = "spaces_historical"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    unit_id = Column(String(64), nullable=False)
    facility_id = Column(String(64), nullable=True, index=True)
    occ_start_dt = Column(Date, nullable=True)
    is_occupied = Column(Boolean, nullable=True)
    width = Column(Float, nullable=True)
    depth = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    street_rate = Column(Float, nullable=True)
    occ_rate = Column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint("date", "unit_id", name="uq_spaces_historical_date_unit"),
    )


class UnitTurnover(TimestampMixin, Base):
    """Move-in / move-out event on a unit. Natural key: (move_date, unit_id)."""
    __tablename__ = "unit_turnover"

    id = Column(Integer, primary_key=True, autoincrement=True)
    move_date = Column(Date, nullable=False)
    unit_id = Column(String(64), nullable=False)
    facility_id = Column(String(64), nullable=True, index=True)
    lease_id = Column(String(64), nullable=True)
    move_type = Column(String(20), nullable=True)
    lease_start_date = Column(Date, nullable=True)
    lease_end_date = Column(Date, nullable=True)
    unit_width = Column(Float, nullable=True)
    unit_depth = Column(Float, nullable=True)
    unit_height = Column(Float, nullable=True)
    lease_rent = Column(Float, nullable=True)
    ins_premium = Column(Float, nullable=True)
    ins_coverage_level = Column(Float, nullable=True)
    pg_standard_rate = Column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint("move_date", "unit_id", name="uq_unit_turnover_date_unit"),
        Index("idx_unit_turnover_facility_date", "facility_id", "move_date"),
    )
