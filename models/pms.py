from sqlalchemy import Column, String, Integer, Date, Boolean, Text, Index, UniqueConstraint
from models.base import Base, TimestampMixin


class Facility(TimestampMixin, Base):
    """
    Self-storage facility mirrored from the PMS.

    Keyed by the PMS's own identifier rather than a local serial key, so the
    same id is used by tenants, review campaigns and Google My Business links.
    """
    __tablename__ = "facilities"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)
    zip = Column(String(20), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    timezone = Column(String(64), nullable=True)
    status = Column(String(20), nullable=True)

    # Google My Business
    gmb_place_id = Column(String(255), nullable=True)
    gmb_link = Column(String(2048), nullable=True)

    context_notes = Column(Text, nullable=True)


class Tenant(TimestampMixin, Base):
    """
    Tenant occupying a unit at a facility.

    Identified locally by a serial id; sync reconciles on
    (facility_id, unit_number).
    """
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    facility_id = Column(String(64), nullable=False)
    unit_number = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    move_in_date = Column(Date, nullable=True)
    move_out_date = Column(Date, nullable=True)
    is_good_standing = Column(Boolean, nullable=False, default=False)
    notification_opt_in = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("facility_id", "unit_number", name="uq_tenants_facility_unit"),
        Index("idx_tenants_facility_standing", "facility_id", "is_good_standing"),
    )
