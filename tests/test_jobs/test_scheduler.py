"""Tests for JobScheduler: hour quantization and retry backoff."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from cadence.jobs.scheduler import JobScheduler, compute_backoff
from cadence.schemas.job import JobStatus, JobType

pytestmark = pytest.mark.asyncio


@pytest.fixture
def scheduler(memory_store, clock) -> JobScheduler:
    return JobScheduler(memory_store, now=clock)


class TestScheduleJob:
    """Tests for schedule_job."""

    async def test_rounds_up_to_next_hour(self, scheduler, memory_store):
        """10:15:30 should be scheduled for 11:00:00."""
        job = await scheduler.schedule_job(
            "data-sync", "cust_1", datetime(2024, 1, 15, 10, 15, 30), {"source": "crm"}
        )

        assert job.next_run_at == datetime(2024, 1, 15, 11, 0, 0)
        assert job.status == JobStatus.SCHEDULED
        assert job.retry_count == 0
        assert job.max_retries == 3
        assert job.id.startswith("job_")

        stored = await memory_store.get(job.id)
        assert stored is not None
        assert stored.next_run_at == job.next_run_at

    async def test_on_the_hour_is_unchanged(self, scheduler):
        job = await scheduler.schedule_job("cleanup", "cust_1", datetime(2024, 1, 15, 10, 0), {})
        assert job.next_run_at == datetime(2024, 1, 15, 10, 0)

    async def test_aware_datetime_is_converted_to_utc(self, scheduler):
        run_at = datetime(2024, 1, 15, 12, 15, tzinfo=timezone(timedelta(hours=2)))
        job = await scheduler.schedule_job("cleanup", "cust_1", run_at, {})
        assert job.next_run_at == datetime(2024, 1, 15, 11, 0)

    async def test_accepts_job_type_enum(self, scheduler):
        job = await scheduler.schedule_job(
            JobType.EMAIL_SENDER, "cust_1", datetime(2024, 1, 15, 10, 0), {}
        )
        assert job.job_type == "email-sender"

    async def test_max_retries_override(self, scheduler):
        job = await scheduler.schedule_job(
            "cleanup", "cust_1", datetime(2024, 1, 15, 10, 0), {}, max_retries=5
        )
        assert job.max_retries == 5

    async def test_store_failure_propagates(self, clock):
        store = AsyncMock()
        store.create.side_effect = RuntimeError("db down")
        scheduler = JobScheduler(store, now=clock)

        with pytest.raises(RuntimeError, match="db down"):
            await scheduler.schedule_job("cleanup", "cust_1", datetime(2024, 1, 15, 10, 0), {})


class TestComputeBackoff:
    @pytest.mark.parametrize(("retry_count", "minutes"), [(0, 1), (1, 2), (2, 4), (3, 8), (4, 16)])
    async def test_exponential_minutes(self, retry_count, minutes):
        assert compute_backoff(retry_count) == timedelta(minutes=minutes)


class TestRescheduleJob:
    """Tests for reschedule_job."""

    async def test_first_retry(self, scheduler, memory_store, job_factory):
        """Now + 1 minute is rounded up to the next hour."""
        job = await memory_store.create(job_factory(status=JobStatus.FAILED))

        updated = await scheduler.reschedule_job(job)

        assert updated.retry_count == 1
        assert updated.status == JobStatus.SCHEDULED
        assert updated.next_run_at == datetime(2024, 1, 15, 11, 0)

    async def test_backoff_crossing_the_hour(self, memory_store, job_factory):
        scheduler = JobScheduler(memory_store, now=lambda: datetime(2024, 1, 15, 10, 50))
        job = await memory_store.create(
            job_factory(status=JobStatus.FAILED, retry_count=4, max_retries=5)
        )

        updated = await scheduler.reschedule_job(job)

        # 10:50 + 16 minutes = 11:06, rounded up
        assert updated.next_run_at == datetime(2024, 1, 15, 12, 0)
        assert updated.retry_count == 5

    async def test_exhausted_job_is_failed(self, scheduler, memory_store, job_factory):
        """Should mark the job failed without scheduling another attempt."""
        job = await memory_store.create(
            job_factory(status=JobStatus.RUNNING, retry_count=3, max_retries=3)
        )

        updated = await scheduler.reschedule_job(job)

        assert updated.status == JobStatus.FAILED
        assert updated.retry_count == 3
        assert updated.next_run_at == job.next_run_at

    async def test_retry_count_never_exceeds_max(self, scheduler, memory_store, job_factory):
        job = await memory_store.create(job_factory(max_retries=3))

        for _ in range(6):
            job = await scheduler.reschedule_job(job)
            assert job.retry_count <= job.max_retries

        assert job.retry_count == 3
        assert job.status == JobStatus.FAILED


class TestRetryFailedJobs:
    async def test_only_jobs_with_retries_left(self, scheduler, memory_store, job_factory):
        retryable = await memory_store.create(job_factory(status=JobStatus.FAILED, retry_count=1))
        exhausted = await memory_store.create(
            job_factory(status=JobStatus.FAILED, retry_count=3, max_retries=3)
        )
        await memory_store.create(job_factory(status=JobStatus.COMPLETED))

        rescheduled = await scheduler.retry_failed_jobs()

        assert [job.id for job in rescheduled] == [retryable.id]
        assert rescheduled[0].status == JobStatus.SCHEDULED
        assert rescheduled[0].retry_count == 2
        assert (await memory_store.get(exhausted.id)).status == JobStatus.FAILED


class TestCancelAndQuery:
    async def test_cancel_deletes_job(self, scheduler, memory_store, job_factory):
        job = await memory_store.create(job_factory())

        await scheduler.cancel_job(job.id)

        assert await memory_store.get(job.id) is None

    async def test_cancel_unknown_job_is_noop(self, scheduler):
        await scheduler.cancel_job("job_missing")

    async def test_get_scheduled_jobs(self, scheduler, memory_store, job_factory):
        mine = await memory_store.create(job_factory(customer_id="cust_a"))
        await memory_store.create(job_factory(customer_id="cust_a", status=JobStatus.COMPLETED))
        await memory_store.create(job_factory(customer_id="cust_b"))

        jobs = await scheduler.get_scheduled_jobs("cust_a")

        assert [job.id for job in jobs] == [mine.id]
