"""
Static filter structs for warehouse queries.

Each entity has one model with enumerated optional fields. Every field maps
to a fixed SQL condition using a BigQuery named parameter, so callers can
only ever supply values, never SQL.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, ClassVar, Dict, List, NamedTuple, Optional, Tuple
from datetime import date, datetime


class QueryParameter(NamedTuple):
    """A typed named parameter (name, BigQuery type, value)"""
    name: str
    type: str
    value: Any


class WarehouseFilter(BaseModel):
    """Base filter: no conditions"""

    model_config = ConfigDict(extra="forbid")

    # field name -> (condition using @field_name, BigQuery parameter type)
    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {}

    def to_query_parts(self) -> Tuple[List[str], List[QueryParameter]]:
        """Conditions and parameters for the fields that are set, in declaration order."""
        clauses = []
        params = []
        for name, (clause, param_type) in self.conditions.items():
            value = getattr(self, name)
            if value is None:
                continue
            clauses.append(clause)
            params.append(QueryParameter(name, param_type, value))
        return clauses, params


class UnitFilter(WarehouseFilter):
    unit_id: Optional[str] = None
    facility_id: Optional[str] = None
    pg_id: Optional[str] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "unit_id": ("unit_id = @unit_id", "STRING"),
        "facility_id": ("facility_id = @facility_id", "STRING"),
        "pg_id": ("pg_id = @pg_id", "STRING"),
    }


class LeaseFilter(WarehouseFilter):
    lease_id: Optional[str] = None
    contact_id: Optional[str] = None
    facility_id: Optional[str] = None
    is_active: Optional[int] = Field(default=None, ge=0, le=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "lease_id": ("lease_id = @lease_id", "STRING"),
        "contact_id": ("contact_id = @contact_id", "STRING"),
        "facility_id": ("facility_id = @facility_id", "STRING"),
        "is_active": ("is_active = @is_active", "INT64"),
        "start_date": ("lease_started >= @start_date", "DATE"),
        "end_date": ("lease_ended <= @end_date", "DATE"),
    }


class PaymentFilter(WarehouseFilter):
    facility_id: Optional[str] = None
    contact_id: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "facility_id": ("facility_id = @facility_id", "STRING"),
        "contact_id": ("contact_id = @contact_id", "STRING"),
        "status": ("payment_status = @status", "STRING"),
        "start_date": ("payment_date >= @start_date", "DATE"),
        "end_date": ("payment_date <= @end_date", "DATE"),
    }


class BookEntryFilter(WarehouseFilter):
    facility: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "facility": ("facility = @facility", "STRING"),
        "start_date": ("entry_date_time >= @start_date", "TIMESTAMP"),
        "end_date": ("entry_date_time <= @end_date", "TIMESTAMP"),
    }


class ContactFilter(WarehouseFilter):
    contact_id: Optional[str] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "contact_id": ("contact_id = @contact_id", "STRING"),
    }


class LeadFilter(WarehouseFilter):
    lead_id: Optional[str] = None
    contact_id: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "lead_id": ("lead_id = @lead_id", "STRING"),
        "contact_id": ("contact_id = @contact_id", "STRING"),
        "status": ("status = @status", "STRING"),
        "created_at": ("created_at >= @created_at", "TIMESTAMP"),
    }


class CustomerTouchFilter(WarehouseFilter):
    contact_id: Optional[str] = None
    lease_id: Optional[str] = None
    lead_id: Optional[str] = None
    ga_session: Optional[str] = None
    days: Optional[int] = Field(default=None, ge=1, description="Only touches from the last N days")

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "contact_id": ("contact_id = @contact_id", "STRING"),
        "lease_id": ("lease_id = @lease_id", "STRING"),
        "lead_id": ("lead_id = @lead_id", "STRING"),
        "ga_session": ("ga_session = @ga_session", "STRING"),
        "days": ("created_at >= TIMESTAMP_SUB(CURRENT_TIMESTAMP(), INTERVAL @days DAY)", "INT64"),
    }


class GAEventFilter(WarehouseFilter):
    org_id: Optional[str] = None
    event_name: Optional[str] = None
    ga_session_id: Optional[int] = None
    event_date: Optional[date] = None
    days: Optional[int] = Field(default=None, ge=1, description="Only events from the last N days")

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "org_id": ("org_id = @org_id", "STRING"),
        "event_name": ("event_name = @event_name", "STRING"),
        "ga_session_id": ("ga_session_id = @ga_session_id", "INT64"),
        "event_date": ("event_date = @event_date", "DATE"),
        "days": ("event_date >= DATE_SUB(CURRENT_DATE(), INTERVAL @days DAY)", "INT64"),
    }


class ManagerFilter(WarehouseFilter):
    manager_id: Optional[str] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "manager_id": ("manager_id = @manager_id", "STRING"),
    }


class PricingGroupFilter(WarehouseFilter):
    pg_id: Optional[str] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "pg_id": ("pg_id = @pg_id", "STRING"),
    }


class SpaceHistoricalFilter(WarehouseFilter):
    unit_id: Optional[str] = None
    facility_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "unit_id": ("unit_id = @unit_id", "STRING"),
        "facility_id": ("facility_id = @facility_id", "STRING"),
        "start_date": ("date >= @start_date", "DATE"),
        "end_date": ("date <= @end_date", "DATE"),
    }


class UnitTurnoverFilter(WarehouseFilter):
    unit_id: Optional[str] = None
    facility_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    conditions: ClassVar[Dict[str, Tuple[str, str]]] = {
        "unit_id": ("unit_id = @unit_id", "STRING"),
        "facility_id": ("facility_id = @facility_id", "STRING"),
        "start_date": ("move_date >= @start_date", "DATE"),
        "end_date": ("move_date <= @end_date", "DATE"),
    }
