"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import AsyncAdaptedQueuePool
from datetime import datetime, timedelta
from typing import Any, Dict, List

from models import Base
from ingestion.loaders.upsert_reconciler import UpsertReconciler
from ingestion.metrics import SyncMetrics
from ingestion.retry import RetryExecutor, RetryPolicy


class FakeClock:
    """Settable clock for metrics tests"""

    def __init__(self, now: datetime = datetime(2024, 1, 15, 12, 0, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers every delay"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """
    SQLite database with a single-connection pool.

    A session that is not returned to the pool makes the next checkout time
    out, so leaks show up as test failures.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'sync_test.db'}",
        echo=False,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=2,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def reconciler(session_maker):
    return UpsertReconciler(session_maker)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def metrics(clock):
    return SyncMetrics(
        tracked_categories=("facilities", "tenants"),
        freshness_window=timedelta(hours=6),
        min_success_rate=0.95,
        clock=clock,
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def retry(recording_sleep):
    return RetryExecutor(
        RetryPolicy(max_attempts=3, initial_delay=1.0, max_delay=10.0, backoff_factor=2.0),
        sleep=recording_sleep,
    )


@pytest.fixture
def unit_rows() -> List[Dict[str, Any]]:
    """Warehouse rows as the BigQuery client returns them"""
    return [
        {
            "unit_id": "U-100",
            "facility_id": "F1",
            "pg_id": "PG-1",
            "unit_number": "A100",
            "unit_type": "Climate Controlled",
            "status": "rented",
            "rate_managed": "129.00",
            "unit_width": 10,
            "unit_depth": "10",
            "unit_height": 8,
        },
        {
            "unit_id": "U-101",
            "facility_id": "F1",
            "pg_id": "PG-1",
            "unit_number": "A101",
            "unit_type": "Climate Controlled",
            "status": "vacant",
            "rate_managed": "129.00",
            "unit_width": 10,
            "unit_depth": 10,
            "unit_height": 8,
        },
        {
            "unit_id": "U-200",
            "facility_id": "F2",
            "pg_id": "PG-7",
            "unit_number": "B1",
            "unit_type": "Drive Up",
            "status": "rented",
            "rate_managed": None,
            "unit_width": 10,
            "unit_depth": 20,
            "unit_height": 10,
        },
    ]


@pytest.fixture
def pms_facilities() -> List[Dict[str, Any]]:
    return [
        {
            "id": "F1",
            "name": "Downtown Storage",
            "address": "1 Main St",
            "city": "Austin",
            "state": "TX",
            "zip": 78701,
            "timezone": "America/Chicago",
            "status": "active",
        },
        {
            "id": "F2",
            "name": "Northside Storage",
            "city": "Dallas",
            "state": "TX",
            "timezone": "America/Chicago",
        },
    ]


@pytest.fixture
def pms_tenants() -> List[Dict[str, Any]]:
    return [
        {
            "id": 501,
            "name": "Ada Lovelace",
            "unitNumber": "A100",
            "phone": "555-0100",
            "email": "ada@example.com",
            "moveInDate": "2023-06-01",
            "paymentStatus": "current",
            "auctionStatus": False,
            "balance": "0.00",
            "notificationPreferences": {"optIn": True},
        },
        {
            "id": 502,
            "name": "Grace Hopper",
            "unitNumber": "A101",
            "moveInDate": {"value": "2023-09-15"},
            "paymentStatus": "delinquent",
            "auctionStatus": False,
            "balance": 45.5,
        },
    ]
