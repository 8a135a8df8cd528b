"""
Pydantic schemas for validation and serialization.

Schemas:
    filters: Static warehouse filter structs, one per entity
    pms: PMS facility/tenant payloads and the webhook envelope
    sync: Sync run results and scheduled job snapshots
    api: API endpoint response models

Usage:
    from schemas.filters import LeaseFilter
    from schemas.sync import SyncResult

Example:
    # Filters only accept their declared fields
    filters = LeaseFilter(facility_id="F1", is_active=1)
    clauses, params = filters.to_query_parts()
    assert clauses == ["facility_id = @facility_id", "is_active = @is_active"]
"""

from schemas.filters import QueryParameter, WarehouseFilter
from schemas.pms import PMSFacility, PMSTenant, WebhookPayload
from schemas.sync import SyncResult, JobStatusResponse

__all__ = [
    "QueryParameter",
    "WarehouseFilter",
    "PMSFacility",
    "PMSTenant",
    "WebhookPayload",
    "SyncResult",
    "JobStatusResponse",
]
