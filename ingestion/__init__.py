"""
Sync pipeline components.

Modules:
    entities: Registry of synchronized entities (table, natural key, source
        view, field spec, filter struct)
    retry: Retry executor with exponential backoff
    metrics: In-memory call/sync/webhook counters and the health verdict
    runner: Warehouse sync service (extract, normalize, upsert)
    pms_sync: PMS facility/tenant sync and webhook handling
    scheduler: APScheduler-driven cron jobs with per-job overlap guard

Subpackages:
    extractors: Warehouse (BigQuery) and PMS (REST) clients
    transformers: Field normalization and required-field validation
    loaders: Upsert reconciler (batch ON CONFLICT or lookup strategy)

Architecture:
    Each sync follows three phases:

    1. Extract - Parameterized warehouse query or paginated PMS listing,
       every external call wrapped in the retry executor
    2. Transform - Normalize carriers/strings into plain values; rows missing
       required fields are skipped and counted
    3. Load - Upsert keyed on the natural key inside one transaction per
       batch; a storage error rolls the whole batch back

Usage:
    from ingestion.runner import WarehouseSyncService
    from ingestion.pms_sync import PMSSyncService
    from ingestion.scheduler import SyncScheduler, build_sync_jobs

Example:
    service = WarehouseSyncService(client, reconciler, metrics)
    result = await service.sync("leases", LeaseFilter(facility_id="F1"))
    print(f"Saved {result.success_count} leases")
"""

__all__ = [
    "WarehouseSyncService",
    "PMSSyncService",
    "SyncScheduler",
    "SyncMetrics",
    "RetryExecutor",
    "UpsertReconciler",
]
