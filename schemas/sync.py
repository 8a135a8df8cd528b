"""
Sync run result and job status schemas
"""

from pydantic import BaseModel, Field, computed_field
from typing import List, Optional
from datetime import datetime
from models.base import SyncStatus

MAX_REPORTED_ERRORS = 10


class SyncResult(BaseModel):
    """Outcome of one sync of an entity category"""
    entity: str
    total: int = 0
    success_count: int = 0
    failure_count: int = 0
    duration_ms: float = 0.0
    errors: List[str] = Field(default_factory=list, description="First few per-record errors")

    @computed_field
    @property
    def status(self) -> SyncStatus:
        if self.failure_count == 0:
            return SyncStatus.SUCCESS
        if self.success_count > 0:
            return SyncStatus.PARTIAL
        return SyncStatus.FAILED

    def merge(self, other: "SyncResult") -> "SyncResult":
        """Combine two results for the same category"""
        return SyncResult(
            entity=self.entity,
            total=self.total + other.total,
            success_count=self.success_count + other.success_count,
            failure_count=self.failure_count + other.failure_count,
            duration_ms=self.duration_ms + other.duration_ms,
            errors=(self.errors + other.errors)[:MAX_REPORTED_ERRORS],
        )


class JobStatusResponse(BaseModel):
    """Snapshot of a scheduled job"""
    name: str
    schedule: str
    state: str
    last_status: Optional[str] = None
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_error: Optional[str] = None
    runs: int = 0
    successes: int = 0
    failures: int = 0
    skipped: int = 0
