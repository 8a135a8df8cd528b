"""
Service container: every long-lived collaborator built once per process
and handed to the app and the scheduler explicitly.
"""

from typing import Optional
from dataclasses import dataclass
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from core.config import Settings, settings
from core.database import create_engine_from_settings, create_session_maker
from ingestion.extractors.pms_client import PMSClient
from ingestion.extractors.warehouse_client import WarehouseClient
from ingestion.loaders.upsert_reconciler import UpsertReconciler
from ingestion.metrics import SyncMetrics
from ingestion.pms_sync import PMSSyncService
from ingestion.retry import RetryExecutor, RetryPolicy
from ingestion.runner import WarehouseSyncService
from ingestion.scheduler import SyncScheduler, build_sync_jobs

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    engine: AsyncEngine
    session_maker: async_sessionmaker
    metrics: SyncMetrics
    warehouse_sync: WarehouseSyncService
    pms_sync: Optional[PMSSyncService]
    scheduler: SyncScheduler

    async def close(self):
        """Stop jobs, then release the HTTP client and the connection pool."""
        await self.scheduler.shutdown()
        if self.pms_sync is not None:
            await self.pms_sync.client.aclose()
        await self.engine.dispose()
        logger.info("Services closed")


def build_container(
    config: Settings = settings,
    engine: Optional[AsyncEngine] = None,
    metrics: Optional[SyncMetrics] = None,
    warehouse_client: Optional[WarehouseClient] = None,
    pms_client: Optional[PMSClient] = None,
    retry: Optional[RetryExecutor] = None
) -> ServiceContainer:
    """
    Wire the services from settings. Any collaborator may be passed in
    instead (tests inject fakes and an SQLite engine).

    The PMS sync is only built when a PMS client is given or
    CUBBY_API_URL / CUBBY_API_KEY are configured.
    """
    engine = engine or create_engine_from_settings(config)
    session_maker = create_session_maker(engine)
    metrics = metrics or SyncMetrics.from_settings(config)
    retry = retry or RetryExecutor(RetryPolicy.from_settings(config))
    reconciler = UpsertReconciler(session_maker)

    warehouse_client = warehouse_client or WarehouseClient.from_settings(
        config, retry=retry, metrics=metrics
    )
    warehouse_sync = WarehouseSyncService(
        warehouse_client, reconciler, metrics, batch_size=config.BIGQUERY_SYNC_BATCH_SIZE
    )

    if pms_client is None and config.CUBBY_API_URL and config.CUBBY_API_KEY:
        pms_client = PMSClient.from_settings(config, metrics=metrics)

    pms_sync = None
    if pms_client is not None:
        pms_sync = PMSSyncService(
            pms_client,
            reconciler,
            metrics,
            retry=retry,
            strategy=config.PMS_UPSERT_STRATEGY,
            batch_size=config.BIGQUERY_SYNC_BATCH_SIZE,
        )
    else:
        logger.warning("CUBBY_API_URL / CUBBY_API_KEY not set, PMS sync disabled")

    scheduler = SyncScheduler(build_sync_jobs(config, warehouse_sync, pms_sync))

    return ServiceContainer(
        settings=config,
        engine=engine,
        session_maker=session_maker,
        metrics=metrics,
        warehouse_sync=warehouse_sync,
        pms_sync=pms_sync,
        scheduler=scheduler,
    )
