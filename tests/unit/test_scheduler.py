"""
Unit tests for the sync scheduler
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from apscheduler.events import EVENT_JOB_MAX_INSTANCES, JobEvent
from core.config import Settings
from ingestion.entities import WAREHOUSE_ENTITIES
from ingestion.scheduler import JobState, SyncJob, SyncScheduler, build_sync_jobs


def _scheduler(*jobs):
    # APScheduler is never started in these tests
    return SyncScheduler(jobs, scheduler=MagicMock(running=False))


class TestSyncJob:

    def test_valid_cron_expression(self):
        job = SyncJob("units", "*/15 * * * *", AsyncMock())
        assert job.trigger is not None
        assert job.state == JobState.IDLE

    def test_invalid_cron_expression_raises(self):
        with pytest.raises(ValueError):
            SyncJob("units", "every tuesday", AsyncMock())

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            _scheduler(
                SyncJob("units", "0 0 * * *", AsyncMock()),
                SyncJob("units", "0 1 * * *", AsyncMock()),
            )


class TestRunJob:

    @pytest.mark.asyncio
    async def test_successful_run_updates_status(self):
        operation = AsyncMock()
        scheduler = _scheduler(SyncJob("units", "0 0 * * *", operation))

        assert await scheduler.run_job("units") is True

        job = scheduler.jobs["units"]
        operation.assert_awaited_once()
        assert job.last_status == JobState.SUCCESS
        assert job.state == JobState.IDLE
        assert (job.runs, job.successes, job.failures) == (1, 1, 0)

    @pytest.mark.asyncio
    async def test_failing_job_does_not_affect_others(self):
        failing = AsyncMock(side_effect=RuntimeError("warehouse down"))
        healthy = AsyncMock()
        scheduler = _scheduler(
            SyncJob("leases", "0 0 * * *", failing),
            SyncJob("units", "0 0 * * *", healthy),
        )

        assert await scheduler.run_job("leases") is False
        assert await scheduler.run_job("units") is True

        leases = scheduler.jobs["leases"]
        assert leases.last_status == JobState.FAILED
        assert leases.last_error == "warehouse down"
        assert leases.state == JobState.IDLE
        assert scheduler.jobs["units"].last_status == JobState.SUCCESS

    @pytest.mark.asyncio
    async def test_overlapping_run_is_skipped(self):
        release = asyncio.Event()
        calls = []

        async def slow_sync():
            calls.append(1)
            await release.wait()

        scheduler = _scheduler(SyncJob("payments", "* * * * *", slow_sync))

        first = asyncio.create_task(scheduler.run_job("payments"))
        await asyncio.sleep(0)
        assert scheduler.jobs["payments"].state == JobState.RUNNING

        assert await scheduler.run_job("payments") is False

        release.set()
        assert await first is True
        assert len(calls) == 1
        assert scheduler.jobs["payments"].skipped == 1

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_running_jobs(self):
        release = asyncio.Event()
        finished = []

        async def slow_sync():
            await release.wait()
            finished.append(True)

        scheduler = _scheduler(SyncJob("units", "* * * * *", slow_sync))
        task = asyncio.create_task(scheduler.run_job("units"))
        await asyncio.sleep(0)

        asyncio.get_running_loop().call_later(0.01, release.set)
        await scheduler.shutdown(timeout=2)

        assert finished == [True]
        assert task.done()

    @pytest.mark.asyncio
    async def test_no_new_runs_after_shutdown(self):
        operation = AsyncMock()
        scheduler = _scheduler(SyncJob("units", "0 0 * * *", operation))

        await scheduler.shutdown()

        assert await scheduler.run_job("units") is False
        operation.assert_not_awaited()

    def test_get_jobs_snapshot(self):
        scheduler = _scheduler(SyncJob("units", "0 0 * * *", AsyncMock()))

        jobs = scheduler.get_jobs()

        assert jobs[0]["name"] == "units"
        assert jobs[0]["state"] == "idle"
        assert jobs[0]["last_status"] is None

    def test_start_registers_jobs_and_overlap_listener(self):
        scheduler = _scheduler(SyncJob("units", "0 0 * * *", AsyncMock()))

        scheduler.start()

        add_job = scheduler.scheduler.add_job
        assert add_job.call_args.kwargs["id"] == "units"
        assert add_job.call_args.kwargs["max_instances"] == 1
        scheduler.scheduler.add_listener.assert_called_once_with(
            scheduler._on_max_instances, EVENT_JOB_MAX_INSTANCES
        )
        scheduler.scheduler.start.assert_called_once()

    def test_fires_dropped_by_apscheduler_are_counted(self):
        scheduler = _scheduler(SyncJob("units", "0 0 * * *", AsyncMock()))

        scheduler._on_max_instances(JobEvent(EVENT_JOB_MAX_INSTANCES, "units", "default"))
        scheduler._on_max_instances(JobEvent(EVENT_JOB_MAX_INSTANCES, "gone", "default"))

        assert scheduler.get_jobs()[0]["skipped"] == 1


class TestBuildSyncJobs:

    def test_warehouse_jobs_only(self):
        config = Settings(_env_file=None)
        jobs = build_sync_jobs(config, MagicMock())

        assert [job.name for job in jobs] == list(WAREHOUSE_ENTITIES)

    def test_pms_jobs_added_when_configured(self):
        config = Settings(_env_file=None, LEASES_SYNC_SCHEDULE="30 2 * * *")
        jobs = build_sync_jobs(config, MagicMock(), pms_sync=MagicMock())

        by_name = {job.name: job for job in jobs}
        assert len(jobs) == 14
        assert by_name["leases"].schedule == "30 2 * * *"
        assert by_name["pms_facilities"].schedule == "0 */6 * * *"
        assert by_name["pms_tenants"].schedule == "0 * * * *"

    @pytest.mark.asyncio
    async def test_warehouse_job_runs_entity_sync(self):
        warehouse_sync = MagicMock()
        warehouse_sync.sync = AsyncMock()
        jobs = build_sync_jobs(Settings(_env_file=None), warehouse_sync)
        scheduler = _scheduler(*jobs)

        await scheduler.run_job("ga_events")

        warehouse_sync.sync.assert_awaited_once_with("ga_events")
