"""
In-process cron scheduling of sync jobs with APScheduler.

Every job is guarded against overlapping runs and isolated from the
others: an exception inside a job is logged and counted, never propagated
to the scheduler.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set
from dataclasses import dataclass
from functools import partial
import asyncio
import enum
import logging

from apscheduler.events import EVENT_JOB_MAX_INSTANCES
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from core.config import Settings
from ingestion.entities import WAREHOUSE_ENTITIES
from models.base import utcnow

logger = logging.getLogger(__name__)

JobOperation = Callable[[], Awaitable[Any]]


class JobState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class SyncJob:
    """A named operation fired on a 5-field cron schedule"""
    name: str
    schedule: str
    operation: JobOperation
    state: JobState = JobState.IDLE
    last_status: Optional[JobState] = None
    last_started_at: Optional[Any] = None
    last_finished_at: Optional[Any] = None
    last_error: Optional[str] = None
    runs: int = 0
    successes: int = 0
    failures: int = 0
    # Fires dropped because the previous run had not finished, whether refused
    # by APScheduler (max_instances) or by the in-process guard in run_job
    skipped: int = 0

    def __post_init__(self):
        # Fail fast on malformed expressions
        self.trigger = CronTrigger.from_crontab(self.schedule)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "schedule": self.schedule,
            "state": self.state.value,
            "last_status": self.last_status.value if self.last_status else None,
            "last_started_at": self.last_started_at,
            "last_finished_at": self.last_finished_at,
            "last_error": self.last_error,
            "runs": self.runs,
            "successes": self.successes,
            "failures": self.failures,
            "skipped": self.skipped,
        }


class SyncScheduler:
    """
    Owns the job list and the APScheduler instance.

    ``run_job`` is what APScheduler fires; it can also be awaited directly.
    ``shutdown`` stops new fires and waits for in-flight runs so shared
    resources (the connection pool) can be released afterwards.
    """

    def __init__(self, jobs: Iterable[SyncJob], scheduler: Optional[AsyncIOScheduler] = None):
        self.jobs: Dict[str, SyncJob] = {}
        for job in jobs:
            if job.name in self.jobs:
                raise ValueError(f"Duplicate job name: {job.name}")
            self.jobs[job.name] = job
        self.scheduler = scheduler or AsyncIOScheduler()
        self._in_flight: Set[asyncio.Task] = set()
        self._stopping = False

    def start(self):
        """Register every job and start firing. Needs a running event loop."""
        for job in self.jobs.values():
            self.scheduler.add_job(
                self.run_job,
                trigger=job.trigger,
                args=[job.name],
                id=job.name,
                name=job.name,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self.scheduler.add_listener(self._on_max_instances, EVENT_JOB_MAX_INSTANCES)
        self.scheduler.start()
        logger.info(f"Sync scheduler started with {len(self.jobs)} jobs")

    def _on_max_instances(self, event):
        job = self.jobs.get(event.job_id)
        if job is not None:
            job.skipped += 1
            logger.warning(f"Job {job.name} is still running, skipping this fire")

    async def run_job(self, name: str) -> bool:
        """
        Run one job now.

        Returns:
            True on success, False on failure or when the run was skipped
        """
        job = self.jobs[name]
        if self._stopping:
            logger.info(f"Scheduler stopping, not starting {name}")
            return False
        if job.state == JobState.RUNNING:
            job.skipped += 1
            logger.warning(f"Job {name} is still running, skipping this fire")
            return False

        task = asyncio.current_task()
        if task is not None:
            self._in_flight.add(task)

        job.state = JobState.RUNNING
        job.runs += 1
        job.last_started_at = utcnow()
        logger.info(f"Job {name} started")

        try:
            await job.operation()
        except Exception as e:
            job.failures += 1
            job.last_status = JobState.FAILED
            job.last_error = str(e)
            logger.exception(f"Job {name} failed: {e}")
            return False
        else:
            job.successes += 1
            job.last_status = JobState.SUCCESS
            job.last_error = None
            logger.info(f"Job {name} succeeded")
            return True
        finally:
            job.state = JobState.IDLE
            job.last_finished_at = utcnow()
            if task is not None:
                self._in_flight.discard(task)

    async def shutdown(self, timeout: Optional[float] = None):
        """Stop accepting fires, then wait for running jobs to finish."""
        self._stopping = True
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        pending = [t for t in self._in_flight if t is not asyncio.current_task()]
        if pending:
            logger.info(f"Waiting for {len(pending)} running jobs to finish")
            done, still_running = await asyncio.wait(pending, timeout=timeout)
            if still_running:
                logger.warning(f"{len(still_running)} jobs still running at shutdown")
        logger.info("Sync scheduler stopped")

    def get_jobs(self) -> List[Dict[str, Any]]:
        return [job.snapshot() for job in self.jobs.values()]


def build_sync_jobs(config: Settings, warehouse_sync, pms_sync=None) -> List[SyncJob]:
    """
    One job per warehouse entity, plus the PMS facility and tenant jobs when
    a PMS sync service is configured.
    """
    jobs = [
        SyncJob(
            name=name,
            schedule=config.sync_schedule(name),
            operation=partial(warehouse_sync.sync, name),
        )
        for name in WAREHOUSE_ENTITIES
    ]
    if pms_sync is not None:
        jobs.append(SyncJob("pms_facilities", config.CUBBY_SYNC_SCHEDULE, pms_sync.sync_facilities))
        jobs.append(SyncJob("pms_tenants", config.CUBBY_TENANT_SYNC_SCHEDULE, pms_sync.sync_all_tenants))
    return jobs
