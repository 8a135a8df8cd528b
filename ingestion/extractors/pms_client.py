"""
Property-management system (Cubby) REST client.

Thin async wrapper over httpx: bearer authentication, response status
classification into the sync exception hierarchy and page-by-page tenant
listing. The client does not retry; callers wrap calls in a RetryExecutor.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging
import time

import httpx

from core.config import Settings
from core.exceptions import (
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    NetworkError,
    PMSRequestError,
    RateLimitError,
    ServerError,
)
from ingestion.metrics import SyncMetrics

logger = logging.getLogger(__name__)

# (operation factory, label) -> result; RetryExecutor.run fits this shape
CallWrapper = Callable[[Callable[[], Awaitable[Any]], str], Awaitable[Any]]

MAX_PAGES = 1000


async def _direct(operation: Callable[[], Awaitable[Any]], label: str) -> Any:
    return await operation()


class PMSClient:
    """
    Args:
        base_url: API root including version prefix, e.g. https://api.cubby.example/api/v1
        api_key: Bearer token
        timeout: Per-request timeout in seconds
        page_size: Records requested per page
        metrics: Receives one API-call sample per request
        transport: Custom httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        page_size: int = 100,
        metrics: Optional[SyncMetrics] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not base_url or not api_key:
            raise ConfigurationError("CUBBY_API_URL and CUBBY_API_KEY must be set")
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.metrics = metrics
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, config: Settings, **kwargs) -> "PMSClient":
        return cls(
            base_url=config.CUBBY_API_URL,
            api_key=config.CUBBY_API_KEY,
            timeout=config.CUBBY_TIMEOUT_SECONDS,
            page_size=config.CUBBY_PAGE_SIZE,
            **kwargs
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def _record(self, operation: str, success: bool, started: float):
        if self.metrics is not None:
            self.metrics.record_call(operation, success, (time.perf_counter() - started) * 1000)

    @staticmethod
    def _raise_for_status(response: httpx.Response, path: str):
        status = response.status_code
        if status < 400:
            return
        context = {"endpoint": path, "status_code": status}
        if status == 400:
            raise BadRequestError(f"PMS rejected request to {path}", context=context)
        if status in (401, 403):
            raise AuthenticationError(f"PMS authentication failed for {path}", context=context)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"PMS rate limit hit on {path}",
                context=context,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
            )
        raise ServerError(f"PMS returned HTTP {status} for {path}", context=context)

    async def _get(self, path: str, operation: str, params: Optional[Dict[str, Any]] = None) -> Any:
        started = time.perf_counter()
        try:
            response = await self._client.get(path, params=params)
            self._raise_for_status(response, path)
            data = response.json()
        except httpx.TimeoutException as e:
            self._record(operation, False, started)
            raise NetworkError(f"PMS request to {path} timed out", context={"endpoint": path}, original_exception=e)
        except httpx.TransportError as e:
            self._record(operation, False, started)
            raise NetworkError(f"PMS request to {path} failed", context={"endpoint": path}, original_exception=e)
        except ValueError as e:
            self._record(operation, False, started)
            raise PMSRequestError(f"PMS returned invalid JSON for {path}", context={"endpoint": path}, original_exception=e)
        except (PMSRequestError, BadRequestError, AuthenticationError):
            self._record(operation, False, started)
            raise

        self._record(operation, True, started)
        return data

    async def health_check(self) -> Any:
        return await self._get("/health", "healthCheck")

    async def get_facility(self, facility_id: str) -> Dict[str, Any]:
        return await self._get(f"/facilities/{facility_id}", "getFacility")

    async def get_tenant(self, tenant_id: str) -> Dict[str, Any]:
        return await self._get(f"/tenants/{tenant_id}", "getTenant")

    async def list_facilities(self, call: CallWrapper = _direct) -> List[Dict[str, Any]]:
        return await self._paginate("/facilities", "getFacilities", call)

    async def list_tenants(self, facility_id: str, call: CallWrapper = _direct) -> List[Dict[str, Any]]:
        return await self._paginate(f"/facilities/{facility_id}/tenants", "getTenants", call)

    async def _paginate(self, path: str, operation: str, call: CallWrapper) -> List[Dict[str, Any]]:
        """
        Collect every page of a listing endpoint.

        Accepts either a bare JSON list (last page when shorter than the
        page size) or an envelope ``{"data": [...], "has_next": bool}``.
        Each page request goes through ``call`` so it is retried on its own.
        """
        records: List[Dict[str, Any]] = []
        previous: Optional[List[Dict[str, Any]]] = None

        for page in range(1, MAX_PAGES + 1):
            params = {"page": page, "per_page": self.page_size}
            body = await call(
                lambda: self._get(path, operation, params=params),
                f"PMS {operation} page {page}"
            )

            if isinstance(body, dict):
                items = body.get("data") or []
                has_next = bool(body.get("has_next", body.get("hasNext", False)))
            else:
                items = body or []
                has_next = len(items) >= self.page_size

            if items and items == previous:
                logger.warning(f"{path} ignored pagination, stopping at page {page}")
                break

            records.extend(items)
            previous = items
            if not has_next or not items:
                break
        else:
            logger.warning(f"{path} exceeded {MAX_PAGES} pages, result truncated")

        return records
