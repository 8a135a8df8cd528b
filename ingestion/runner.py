# ============================================================================
# File: ingestion/runner.py
# Description: Warehouse sync orchestrator (extract, normalize, upsert)
# ============================================================================
"""
Warehouse sync runner.

For one entity: query the warehouse view, normalize each row with the
entity's field spec, drop rows that fail validation (counted, not fatal)
and upsert the rest in batch transactions. Every run records a sync sample
in the metrics aggregator.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging
import time

from core.exceptions import SyncException, TransformationError
from ingestion.entities import EntityDefinition, WAREHOUSE_ENTITIES, get_entity
from ingestion.extractors.warehouse_client import WarehouseClient
from ingestion.loaders.upsert_reconciler import UpsertReconciler
from ingestion.metrics import SyncMetrics
from ingestion.transformers.normalizer import normalize, require_fields
from schemas.filters import WarehouseFilter
from schemas.sync import MAX_REPORTED_ERRORS, SyncResult

logger = logging.getLogger(__name__)


def prepare_records(
    entity: EntityDefinition,
    rows: List[Mapping[str, Any]],
    reconciler: UpsertReconciler
) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Normalize and validate raw rows.

    Returns:
        (records ready for upsert, error messages for skipped rows)
    """
    records = []
    errors = []
    for index, row in enumerate(rows):
        try:
            record = normalize(row, entity.field_spec)
            require_fields(record, entity.natural_key, entity.label)
            records.append(reconciler.bind_record(entity, record))
        except TransformationError as e:
            errors.append(f"row {index}: {e.message}")
            logger.warning(f"Skipping {entity.label} row {index}: {e.message}")
    return records, errors


class WarehouseSyncService:
    """
    Syncs warehouse entities into the local store.

    Args:
        client: Warehouse extractor
        reconciler: Upsert reconciler bound to the session factory
        metrics: Shared metrics aggregator
        batch_size: Records per upsert transaction
    """

    def __init__(
        self,
        client: WarehouseClient,
        reconciler: UpsertReconciler,
        metrics: SyncMetrics,
        batch_size: int = 1000
    ):
        self.client = client
        self.reconciler = reconciler
        self.metrics = metrics
        self.batch_size = batch_size

    async def sync(self, entity_name: str, filters: Optional[WarehouseFilter] = None) -> SyncResult:
        """
        Run one sync of an entity.

        Raises:
            KeyError: Unknown entity name
            SyncException: Extraction failed after retries, or a batch was
                rolled back
        """
        entity = get_entity(entity_name)
        started = time.perf_counter()
        logger.info(f"Starting {entity.label} sync")

        try:
            # --------------------------------------------------
            # PHASE 1: EXTRACTION
            # --------------------------------------------------
            rows = await self.client.query(entity, filters)
            logger.info(f"Fetched {len(rows)} {entity.label} from warehouse")

            # --------------------------------------------------
            # PHASE 2: NORMALIZATION
            # --------------------------------------------------
            records, errors = prepare_records(entity, rows, self.reconciler)

            # --------------------------------------------------
            # PHASE 3: LOAD
            # --------------------------------------------------
            saved = await self.reconciler.upsert_batches(entity, records, self.batch_size)

        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            self.metrics.record_sync(entity.name, False, duration_ms)
            logger.error(f"{entity.label} sync failed: {e}")
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        self.metrics.record_sync(entity.name, True, duration_ms, records=saved)

        result = SyncResult(
            entity=entity.name,
            total=len(rows),
            success_count=saved,
            failure_count=len(errors),
            duration_ms=round(duration_ms, 2),
            errors=errors[:MAX_REPORTED_ERRORS],
        )
        logger.info(
            f"{entity.label} sync completed: {result.success_count} saved, "
            f"{result.failure_count} skipped in {result.duration_ms}ms"
        )
        return result

    async def sync_all(self) -> Dict[str, Optional[SyncResult]]:
        """
        Sync every warehouse entity in registry order.

        A failing entity is logged and reported as None; the rest still run.
        """
        results: Dict[str, Optional[SyncResult]] = {}
        for name in WAREHOUSE_ENTITIES:
            try:
                results[name] = await self.sync(name)
            except SyncException as e:
                logger.error(f"Skipping {name} after failure: {e.message}")
                results[name] = None
        return results
