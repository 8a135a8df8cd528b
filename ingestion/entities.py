"""
Registry of synchronized entity types.

Each entry ties a table to its natural key, its warehouse source view, the
recency column used for ordering and the field spec used by the normalizer.
"""

from typing import Dict, List, Mapping, Optional, Tuple, Type
from dataclasses import dataclass, field

from sqlalchemy import Table

from models import (
    Base,
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
    Facility,
    Tenant,
    SyncSource,
)
from schemas.filters import (
    WarehouseFilter,
    UnitFilter,
    LeaseFilter,
    PaymentFilter,
    BookEntryFilter,
    ContactFilter,
    LeadFilter,
    CustomerTouchFilter,
    GAEventFilter,
    ManagerFilter,
    PricingGroupFilter,
    SpaceHistoricalFilter,
    UnitTurnoverFilter,
)
from ingestion.transformers.normalizer import FieldKind

DATE = FieldKind.DATE
NUMERIC = FieldKind.NUMERIC

# Columns owned by the local store, never selected from the source
LOCAL_COLUMNS = ("id", "created_at", "updated_at")


@dataclass(frozen=True)
class EntityDefinition:
    name: str
    model: Type[Base]
    natural_key: Tuple[str, ...]
    label: str
    source: SyncSource = SyncSource.WAREHOUSE
    source_view: Optional[str] = None
    operation: Optional[str] = None
    order_by: Optional[str] = None
    field_spec: Mapping[str, FieldKind] = field(default_factory=dict)
    filter_class: Type[WarehouseFilter] = WarehouseFilter

    @property
    def table(self) -> Table:
        return self.model.__table__

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.table.columns]

    @property
    def source_columns(self) -> List[str]:
        """
        Columns selected from the source view.

        Local bookkeeping columns are skipped unless the source supplies
        them (declared in the field spec); ``updated_at`` is always local.
        """
        columns = []
        for name in self.column_names:
            if name in self.natural_key:
                columns.append(name)
            elif name == "updated_at":
                continue
            elif name in LOCAL_COLUMNS and name not in self.field_spec:
                continue
            else:
                columns.append(name)
        return columns


def _days(*names: str) -> Dict[str, FieldKind]:
    return {n: DATE for n in names}


def _numbers(*names: str) -> Dict[str, FieldKind]:
    return {n: NUMERIC for n in names}


WAREHOUSE_ENTITIES: Dict[str, EntityDefinition] = {
    e.name: e for e in [
        EntityDefinition(
            name="units",
            model=Unit,
            natural_key=("unit_id",),
            label="units",
            source_view="units",
            operation="getUnits",
            field_spec=_numbers("rate_managed", "unit_width", "unit_depth", "unit_height"),
            filter_class=UnitFilter,
        ),
        EntityDefinition(
            name="leases",
            model=Lease,
            natural_key=("lease_id",),
            label="leases",
            source_view="leases",
            operation="getLeases",
            order_by="lease_started",
            field_spec={
                **_days(
                    "lease_started", "lease_ended", "lease_rent_next_chg_date",
                    "lease_rent_last_chg_date", "status_late_since_date",
                    "status_paid_through_date", "status_paid_on_date",
                ),
                **_numbers(
                    "lease_rent_original", "lease_rent_current", "lease_rent_next",
                    "ins_premium", "ins_coverage_level", "lease_lifetime_payments",
                    "balance_ar", "balance_deposit", "balance_prepaid",
                ),
            },
            filter_class=LeaseFilter,
        ),
        EntityDefinition(
            name="payments",
            model=Payment,
            natural_key=("payment_id",),
            label="payments",
            source_view="payments",
            operation="getPayments",
            order_by="payment_date",
            field_spec={**_days("payment_date", "payment_datetime"), **_numbers("payment_amount")},
            filter_class=PaymentFilter,
        ),
        EntityDefinition(
            name="book_entries",
            model=BookEntry,
            natural_key=("txn_id",),
            label="book entries",
            source_view="book_entries",
            operation="getBookEntries",
            order_by="entry_date_time",
            field_spec={
                **_days("entry_date_time", "accrual_start"),
                **_numbers("amount", "amt_revenue", "amt_payment", "amt_asset", "amt_liability", "amt_transfer"),
            },
            filter_class=BookEntryFilter,
        ),
        EntityDefinition(
            name="contacts",
            model=Contact,
            natural_key=("contact_id",),
            label="contacts",
            source_view="contact",
            operation="getContacts",
            field_spec=_days("created_at", "updated_at", "date_of_birth"),
            filter_class=ContactFilter,
        ),
        EntityDefinition(
            name="leads",
            model=Lead,
            natural_key=("lead_id",),
            label="leads",
            source_view="leads",
            operation="getLeads",
            order_by="created_at",
            field_spec=_days("created_at", "updated_at", "converted_datetime"),
            filter_class=LeadFilter,
        ),
        EntityDefinition(
            name="customer_touches",
            model=CustomerTouch,
            natural_key=("ga_session",),
            label="customer touches",
            source_view="customer_touches",
            operation="getCustomerTouches",
            order_by="created_at",
            field_spec=_days("created_at", "updated_at"),
            filter_class=CustomerTouchFilter,
        ),
        EntityDefinition(
            name="ga_events",
            model=GAEvent,
            natural_key=("ga_session_id",),
            label="GA events",
            source_view="ga_events",
            operation="getGAEvents",
            order_by="event_date",
            field_spec=_days("event_date"),
            filter_class=GAEventFilter,
        ),
        EntityDefinition(
            name="managers",
            model=Manager,
            natural_key=("manager_id",),
            label="managers",
            source_view="managers",
            operation="getManagers",
            filter_class=ManagerFilter,
        ),
        EntityDefinition(
            name="pricing_groups",
            model=PricingGroup,
            natural_key=("pg_id",),
            label="pricing groups",
            source_view="pricing_group",
            operation="getPricingGroups",
            field_spec=_numbers("price", "width", "height", "depth"),
            filter_class=PricingGroupFilter,
        ),
        EntityDefinition(
            name="spaces_historical",
            model=SpaceHistorical,
            natural_key=("date", "unit_id"),
            label="historical spaces",
            source_view="spaces_historical",
            operation="getSpacesHistorical",
            order_by="date",
            field_spec={
                **_days("date", "occ_start_dt"),
                **_numbers("width", "depth", "height", "street_rate", "occ_rate"),
            },
            filter_class=SpaceHistoricalFilter,
        ),
        EntityDefinition(
            name="unit_turnover",
            model=UnitTurnover,
            natural_key=("move_date", "unit_id"),
            label="unit turnover",
            source_view="unit_turnover",
            operation="getUnitTurnover",
            order_by="move_date",
            field_spec={
                **_days("move_date", "lease_start_date", "lease_end_date"),
                **_numbers(
                    "unit_width", "unit_depth", "unit_height", "lease_rent",
                    "ins_premium", "ins_coverage_level", "pg_standard_rate",
                ),
            },
            filter_class=UnitTurnoverFilter,
        ),
    ]
}

FACILITIES = EntityDefinition(
    name="facilities",
    model=Facility,
    natural_key=("id",),
    label="facilities",
    source=SyncSource.PMS,
)

TENANTS = EntityDefinition(
    name="tenants",
    model=Tenant,
    natural_key=("facility_id", "unit_number"),
    label="tenants",
    source=SyncSource.PMS,
    field_spec={**_days("moveInDate", "moveOutDate", "createdAt"), **_numbers("balance")},
)


def get_entity(name: str) -> EntityDefinition:
    """
    Look up a warehouse entity by job name.

    Raises:
        KeyError: If the name is not registered
    """
    try:
        return WAREHOUSE_ENTITIES[name]
    except KeyError:
        raise KeyError(f"Unknown entity '{name}'. Known: {', '.join(WAREHOUSE_ENTITIES)}")
