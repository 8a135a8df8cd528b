"""
Property-management system sync: facilities, tenants and webhook-driven
incremental updates.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from functools import partial
import logging
import time

import pydantic
from sqlalchemy import select

from core.exceptions import ConfigurationError, TransformationError, UpsertError, ValidationError
from ingestion.entities import EntityDefinition, FACILITIES, TENANTS
from ingestion.extractors.pms_client import PMSClient
from ingestion.loaders.upsert_reconciler import BATCH, STRATEGIES, UpsertReconciler
from ingestion.metrics import SyncMetrics
from ingestion.retry import RetryExecutor
from ingestion.transformers.normalizer import normalize, require_fields
from models import Facility
from schemas.pms import PMSFacility, PMSTenant, WebhookEvent, WebhookPayload
from schemas.sync import MAX_REPORTED_ERRORS, SyncResult

logger = logging.getLogger(__name__)

FACILITY_REQUIRED = ("id", "name")
TENANT_REQUIRED = ("name", "unit_number")


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def determine_good_standing(tenant: Mapping[str, Any]) -> bool:
    """
    A tenant is in good standing when payments are current, no auction is
    pending and nothing is owed. A missing balance is not good standing.
    """
    payment_status = _pick(tenant, "payment_status", "paymentStatus")
    auction_status = _pick(tenant, "auction_status", "auctionStatus")
    balance = _pick(tenant, "balance")
    if balance is None:
        return False
    return payment_status == "current" and not auction_status and float(balance) <= 0


def map_facility(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return PMSFacility.model_validate(raw).to_record()


def map_tenant(facility_id: str, raw: Mapping[str, Any]) -> Dict[str, Any]:
    tenant = PMSTenant.model_validate(normalize(raw, TENANTS.field_spec))
    record = {
        "facility_id": str(facility_id),
        "unit_number": tenant.unit_number,
        "name": tenant.name,
        "phone": tenant.phone,
        "email": tenant.email,
        "move_in_date": tenant.move_in_date,
        "move_out_date": tenant.move_out_date,
        "is_good_standing": determine_good_standing(tenant.model_dump()),
        "notification_opt_in": bool(
            tenant.notification_preferences and tenant.notification_preferences.opt_in
        ),
    }
    if tenant.created_at:
        record["created_at"] = tenant.created_at
    return record


class PMSSyncService:
    """
    Args:
        client: PMS REST client
        reconciler: Upsert reconciler bound to the session factory
        metrics: Shared metrics aggregator
        retry: Executor wrapping every PMS call
        strategy: ``batch`` (ON CONFLICT upsert) or ``lookup`` (check-then-branch)
        batch_size: Records per upsert transaction
    """

    def __init__(
        self,
        client: PMSClient,
        reconciler: UpsertReconciler,
        metrics: SyncMetrics,
        retry: Optional[RetryExecutor] = None,
        strategy: str = BATCH,
        batch_size: int = 1000
    ):
        if strategy not in STRATEGIES:
            raise ConfigurationError(
                f"Unknown upsert strategy '{strategy}'",
                context={"allowed": list(STRATEGIES)}
            )
        self.client = client
        self.reconciler = reconciler
        self.metrics = metrics
        self.retry = retry or RetryExecutor()
        self.strategy = strategy
        self.batch_size = batch_size

    async def initialize(self) -> Any:
        """Verify the PMS is reachable."""
        result = await self.retry.run(self.client.health_check, "PMS health check")
        logger.info("PMS connection verified")
        return result

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _prepare(
        self,
        entity: EntityDefinition,
        raw_records: Sequence[Mapping[str, Any]],
        mapper: Callable[[Mapping[str, Any]], Dict[str, Any]],
        required: Tuple[str, ...]
    ) -> Tuple[List[Dict[str, Any]], List[str]]:
        records = []
        errors = []
        for index, raw in enumerate(raw_records):
            try:
                record = mapper(raw)
                require_fields(record, required, entity.label)
                records.append(self.reconciler.bind_record(entity, record))
            except TransformationError as e:
                errors.append(f"record {index}: {e.message}")
                logger.warning(f"Skipping invalid {entity.label} record {index}: {e.message}")
            except pydantic.ValidationError as e:
                errors.append(f"record {index}: {e.error_count()} invalid fields")
                logger.warning(f"Skipping malformed {entity.label} record {index}: {e.error_count()} invalid fields")
        return records, errors

    async def _save(self, entity: EntityDefinition, records: List[Dict[str, Any]], errors: List[str]) -> int:
        if self.strategy == BATCH:
            return await self.reconciler.upsert_batches(entity, records, self.batch_size)

        saved = 0
        for record in records:
            try:
                await self.reconciler.upsert_by_lookup(entity, record)
                saved += 1
            except UpsertError as e:
                errors.append(e.message)
        return saved

    async def _reconcile(
        self,
        entity: EntityDefinition,
        raw_records: Sequence[Mapping[str, Any]],
        mapper: Callable[[Mapping[str, Any]], Dict[str, Any]],
        required: Tuple[str, ...]
    ) -> SyncResult:
        started = time.perf_counter()
        records, errors = self._prepare(entity, raw_records, mapper, required)
        saved = await self._save(entity, records, errors)
        return SyncResult(
            entity=entity.name,
            total=len(raw_records),
            success_count=saved,
            failure_count=len(raw_records) - saved,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            errors=errors[:MAX_REPORTED_ERRORS],
        )

    async def _tracked(self, category: str, run) -> SyncResult:
        started = time.perf_counter()
        try:
            result = await run()
        except Exception:
            self.metrics.record_sync(category, False, (time.perf_counter() - started) * 1000)
            raise
        self.metrics.record_sync(
            category, True, (time.perf_counter() - started) * 1000, records=result.success_count
        )
        return result

    # ------------------------------------------------------------------
    # Full syncs
    # ------------------------------------------------------------------

    async def sync_facilities(self) -> SyncResult:
        """Pull every facility and reconcile it locally."""
        async def run():
            logger.info("Starting facility sync")
            raw = await self.client.list_facilities(call=self.retry.run)
            result = await self._reconcile(FACILITIES, raw, map_facility, FACILITY_REQUIRED)
            logger.info(
                f"Facility sync completed: {result.success_count} saved, {result.failure_count} failed"
            )
            return result

        return await self._tracked("facilities", run)

    async def sync_tenants(self, facility_id: str) -> SyncResult:
        """Pull every tenant of one facility and reconcile them locally."""
        async def run():
            logger.info(f"Starting tenant sync for facility {facility_id}")
            raw = await self.client.list_tenants(facility_id, call=self.retry.run)
            result = await self._reconcile(
                TENANTS, raw, partial(map_tenant, facility_id), TENANT_REQUIRED
            )
            logger.info(
                f"Tenant sync for facility {facility_id} completed: "
                f"{result.success_count} saved, {result.failure_count} failed"
            )
            return result

        return await self._tracked("tenants", run)

    async def sync_all_tenants(self) -> SyncResult:
        """
        Sync tenants for every locally known facility.

        One facility failing does not stop the others; its error is
        reported in the merged result.
        """
        async with self.reconciler.session_maker() as session:
            result = await session.execute(select(Facility.id).order_by(Facility.id))
            facility_ids = list(result.scalars().all())

        merged = SyncResult(entity=TENANTS.name)
        for facility_id in facility_ids:
            try:
                merged = merged.merge(await self.sync_tenants(facility_id))
            except Exception as e:
                logger.error(f"Tenant sync for facility {facility_id} failed: {e}")
                merged = merged.merge(
                    SyncResult(entity=TENANTS.name, errors=[f"facility {facility_id}: {e}"])
                )
        logger.info(
            f"Tenant sync over {len(facility_ids)} facilities: "
            f"{merged.success_count} saved, {merged.failure_count} failed"
        )
        return merged

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_tenant_details(self, tenant_id: str) -> Dict[str, Any]:
        return await self.retry.run(lambda: self.client.get_tenant(tenant_id), f"PMS get tenant {tenant_id}")

    async def get_facility_details(self, facility_id: str) -> Dict[str, Any]:
        return await self.retry.run(
            lambda: self.client.get_facility(facility_id), f"PMS get facility {facility_id}"
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def _apply_single(
        self,
        entity: EntityDefinition,
        data: Mapping[str, Any],
        mapper: Callable[[Mapping[str, Any]], Dict[str, Any]],
        required: Tuple[str, ...]
    ) -> SyncResult:
        result = await self._reconcile(entity, [data], mapper, required)
        if result.failure_count:
            raise ValidationError(
                f"Webhook {entity.label} record rejected: {'; '.join(result.errors)}",
                context={"entity": entity.name}
            )
        return result

    async def handle_webhook(self, payload: WebhookPayload) -> bool:
        """
        Apply an inbound webhook event.

        Returns:
            True if the event changed local data, False if it was ignored
        """
        event = payload.event
        data = payload.data
        try:
            if event in (WebhookEvent.TENANT_CREATED, WebhookEvent.TENANT_UPDATED):
                facility_id = _pick(data, "facilityId", "facility_id")
                if not facility_id:
                    raise ValidationError(
                        "Tenant webhook is missing facilityId",
                        context={"event": event, "missing_fields": ["facilityId"]}
                    )
                await self._apply_single(TENANTS, data, partial(map_tenant, facility_id), TENANT_REQUIRED)
                handled = True
            elif event in (WebhookEvent.FACILITY_CREATED, WebhookEvent.FACILITY_UPDATED):
                await self._apply_single(FACILITIES, data, map_facility, FACILITY_REQUIRED)
                handled = True
            else:
                logger.info(f"Ignoring unhandled webhook event: {event}")
                handled = False
        except Exception:
            self.metrics.record_webhook(event, False)
            raise

        self.metrics.record_webhook(event, True)
        if handled:
            logger.info(f"Processed webhook event {event}")
        return handled
