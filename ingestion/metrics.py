"""
In-memory metrics and health for the sync pipeline.

Counters live for the lifetime of the process and only ever increase.
Duration samples are kept per series in a bounded window so long-running
processes do not grow without limit.
"""

from typing import Any, Callable, Deque, Dict, Iterable, Optional
from collections import deque
from datetime import datetime, timedelta
import logging

from core.config import Settings
from models.base import utcnow

logger = logging.getLogger(__name__)

DURATION_WINDOW = 100


def _average(samples: Iterable[float]) -> Optional[float]:
    samples = list(samples)
    if not samples:
        return None
    return round(sum(samples) / len(samples), 2)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class _CallSeries:
    def __init__(self):
        self.total = 0
        self.success = 0
        self.failure = 0
        self.durations: Deque[float] = deque(maxlen=DURATION_WINDOW)

    def record(self, success: bool, duration_ms: float):
        self.total += 1
        if success:
            self.success += 1
        else:
            self.failure += 1
        self.durations.append(duration_ms)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "success": self.success,
            "failure": self.failure,
            "avg_duration_ms": _average(self.durations),
        }


class _SyncSeries(_CallSeries):
    def __init__(self):
        super().__init__()
        self.records = 0
        self.last_sync: Optional[datetime] = None
        self.last_success: Optional[datetime] = None

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data.update({
            "records": self.records,
            "last_sync": _iso(self.last_sync),
            "last_success": _iso(self.last_success),
        })
        return data


class SyncMetrics:
    """
    Tracks external calls, sync runs and webhook deliveries.

    Health is a freshness heuristic: a tracked category is healthy while its
    last successful run is inside the freshness window, and the API is
    healthy once at least one call was recorded and the success ratio
    exceeds ``min_success_rate``.
    """

    def __init__(
        self,
        tracked_categories: Iterable[str] = ("facilities", "tenants"),
        freshness_window: timedelta = timedelta(hours=6),
        min_success_rate: float = 0.95,
        clock: Callable[[], datetime] = utcnow
    ):
        self.tracked_categories = list(tracked_categories)
        self.freshness_window = freshness_window
        self.min_success_rate = min_success_rate
        self._clock = clock
        self.started_at = clock()

        self._api_total = _CallSeries()
        self._api_by_operation: Dict[str, _CallSeries] = {}
        self._syncs: Dict[str, _SyncSeries] = {}
        self._webhooks = {"total": 0, "success": 0, "failure": 0}
        self._webhooks_by_event: Dict[str, Dict[str, int]] = {}

    @classmethod
    def from_settings(cls, config: Settings, **kwargs) -> "SyncMetrics":
        return cls(
            tracked_categories=config.tracked_categories,
            freshness_window=timedelta(hours=config.HEALTH_FRESHNESS_HOURS),
            min_success_rate=config.HEALTH_MIN_SUCCESS_RATE,
            **kwargs
        )

    def record_call(self, operation: str, success: bool, duration_ms: float):
        """Record one call to an external system."""
        self._api_total.record(success, duration_ms)
        series = self._api_by_operation.setdefault(operation, _CallSeries())
        series.record(success, duration_ms)

    def record_sync(self, category: str, success: bool, duration_ms: float, records: int = 0):
        """Record the outcome of one sync run for an entity category."""
        series = self._syncs.setdefault(category, _SyncSeries())
        series.record(success, duration_ms)
        now = self._clock()
        series.last_sync = now
        if success:
            series.last_success = now
            series.records += records

    def record_webhook(self, event: str, success: bool):
        key = "success" if success else "failure"
        self._webhooks["total"] += 1
        self._webhooks[key] += 1
        by_event = self._webhooks_by_event.setdefault(event, {"total": 0, "success": 0, "failure": 0})
        by_event["total"] += 1
        by_event[key] += 1

    @property
    def api_success_rate(self) -> Optional[float]:
        if self._api_total.total == 0:
            return None
        return self._api_total.success / self._api_total.total

    def get_metrics(self) -> Dict[str, Any]:
        """JSON-serializable snapshot of every counter."""
        api = self._api_total.snapshot()
        api["by_operation"] = {name: s.snapshot() for name, s in self._api_by_operation.items()}
        return {
            "started_at": _iso(self.started_at),
            "api_calls": api,
            "syncs": {name: s.snapshot() for name, s in self._syncs.items()},
            "webhooks": dict(self._webhooks, by_event={k: dict(v) for k, v in self._webhooks_by_event.items()}),
        }

    def get_health(self) -> Dict[str, Any]:
        now = self._clock()
        details: Dict[str, Any] = {}
        healthy = True

        for category in self.tracked_categories:
            series = self._syncs.get(category)
            last_success = series.last_success if series else None
            fresh = last_success is not None and now - last_success < self.freshness_window
            healthy = healthy and fresh
            details[category] = {
                "status": "healthy" if fresh else "unhealthy",
                "last_success": _iso(last_success),
                "last_sync": _iso(series.last_sync) if series else None,
            }

        rate = self.api_success_rate
        api_ok = rate is not None and rate > self.min_success_rate
        healthy = healthy and api_ok
        details["api"] = {
            "status": "healthy" if api_ok else "unhealthy",
            "total_calls": self._api_total.total,
            "success_rate": round(rate, 4) if rate is not None else None,
        }

        return {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": _iso(now),
            "details": details,
        }

    def log_metrics(self):
        health = self.get_health()
        logger.info(
            f"Sync health: {health['status']} | API calls: {self._api_total.total} "
            f"(success rate {health['details']['api']['success_rate']})"
        )
