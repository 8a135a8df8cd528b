"""
Warehouse extractor: parameterized queries against the BigQuery dataset of
authorized views.

Queries select the explicit column list of the target table and bind every
filter value as a named parameter. The BigQuery client is synchronous, so
each query runs in a worker thread to keep the event loop free.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import asyncio
import logging
import time

from google.api_core import exceptions as google_exceptions
from google.cloud import bigquery

from core.config import Settings
from core.exceptions import (
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    WarehouseQueryError,
)
from ingestion.entities import EntityDefinition
from ingestion.metrics import SyncMetrics
from ingestion.retry import RetryExecutor
from schemas.filters import QueryParameter, WarehouseFilter

logger = logging.getLogger(__name__)

QueryRunner = Callable[[str, Sequence[QueryParameter]], List[Dict[str, Any]]]


def build_query(
    dataset: str,
    entity: EntityDefinition,
    filters: Optional[WarehouseFilter] = None
) -> Tuple[str, List[QueryParameter]]:
    """
    Build the SQL text and parameters for an entity query.

    Identifiers come from the static entity registry; values only ever
    travel as named parameters.
    """
    if entity.source_view is None:
        raise ConfigurationError(
            f"Entity '{entity.name}' has no warehouse source view",
            context={"entity": entity.name}
        )
    if filters is not None and not isinstance(filters, entity.filter_class):
        raise ConfigurationError(
            f"{type(filters).__name__} cannot filter {entity.name}",
            context={"entity": entity.name, "expected": entity.filter_class.__name__}
        )

    sql = f"SELECT {', '.join(entity.source_columns)}\nFROM `{dataset}.{entity.source_view}`"
    clauses, params = filters.to_query_parts() if filters is not None else ([], [])
    if clauses:
        sql += "\nWHERE " + "\n  AND ".join(clauses)
    if entity.order_by:
        sql += f"\nORDER BY {entity.order_by} DESC"
    return sql, params


class WarehouseClient:
    """
    Read-only access to the warehouse.

    Args:
        project: Google Cloud project id
        dataset: Dataset holding the authorized views
        credentials_path: Service account JSON (falls back to application
            default credentials when unset)
        retry: Executor wrapping each query
        metrics: Receives one API-call sample per query attempt
        query_runner: Replaces the BigQuery call (tests)
    """

    def __init__(
        self,
        project: Optional[str] = None,
        dataset: str = "authorized_views",
        credentials_path: Optional[str] = None,
        retry: Optional[RetryExecutor] = None,
        metrics: Optional[SyncMetrics] = None,
        query_runner: Optional[QueryRunner] = None
    ):
        self.project = project
        self.dataset = dataset
        self.credentials_path = credentials_path
        self.retry = retry or RetryExecutor()
        self.metrics = metrics
        self._query_runner = query_runner or self._run_bigquery
        self._client: Optional[bigquery.Client] = None

    @classmethod
    def from_settings(cls, config: Settings, **kwargs) -> "WarehouseClient":
        return cls(
            project=config.GOOGLE_CLOUD_PROJECT,
            dataset=config.BIGQUERY_DATASET,
            credentials_path=config.GOOGLE_APPLICATION_CREDENTIALS,
            **kwargs
        )

    def _get_client(self) -> bigquery.Client:
        if self._client is None:
            if not self.project:
                raise ConfigurationError(
                    "GOOGLE_CLOUD_PROJECT must be set to query the warehouse"
                )
            if self.credentials_path:
                self._client = bigquery.Client.from_service_account_json(
                    self.credentials_path, project=self.project
                )
            else:
                self._client = bigquery.Client(project=self.project)
            logger.info(f"BigQuery client initialized for {self.project}.{self.dataset}")
        return self._client

    def _run_bigquery(self, sql: str, params: Sequence[QueryParameter]) -> List[Dict[str, Any]]:
        """Blocking query execution; runs in a worker thread."""
        client = self._get_client()
        job_config = bigquery.QueryJobConfig(
            query_parameters=[bigquery.ScalarQueryParameter(p.name, p.type, p.value) for p in params]
        )
        try:
            rows = client.query(sql, job_config=job_config).result()
            return [dict(row.items()) for row in rows]
        except google_exceptions.BadRequest as e:
            raise BadRequestError("Warehouse rejected query", original_exception=e)
        except (google_exceptions.Unauthorized, google_exceptions.Forbidden) as e:
            raise AuthenticationError("Warehouse credentials rejected", original_exception=e)
        except google_exceptions.GoogleAPIError as e:
            raise WarehouseQueryError("Warehouse query failed", original_exception=e)

    async def _execute(self, operation: str, sql: str, params: Sequence[QueryParameter]) -> List[Dict[str, Any]]:
        started = time.perf_counter()
        logger.debug(f"Executing {operation} query")
        try:
            rows = await asyncio.to_thread(self._query_runner, sql, params)
        except Exception:
            self._record(operation, False, started)
            raise
        self._record(operation, True, started)
        logger.debug(f"{operation} returned {len(rows)} rows")
        return rows

    def _record(self, operation: str, success: bool, started: float):
        if self.metrics is not None:
            self.metrics.record_call(operation, success, (time.perf_counter() - started) * 1000)

    async def query(
        self,
        entity: EntityDefinition,
        filters: Optional[WarehouseFilter] = None
    ) -> List[Dict[str, Any]]:
        """Fetch raw rows for an entity, most recent first where a recency column exists."""
        sql, params = build_query(self.dataset, entity, filters)
        operation = entity.operation or entity.name
        return await self.retry.run(
            lambda: self._execute(operation, sql, params),
            label=f"Warehouse {operation}"
        )

    async def list_views(self) -> List[str]:
        """Names of the views available in the dataset."""
        sql = (
            f"SELECT table_name FROM `{self.dataset}.INFORMATION_SCHEMA.TABLES` "
            f"WHERE table_type = 'VIEW'"
        )
        rows = await self.retry.run(
            lambda: self._execute("getViews", sql, []),
            label="Warehouse getViews"
        )
        return [row["table_name"] for row in rows]
