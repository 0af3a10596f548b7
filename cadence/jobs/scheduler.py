"""
Job scheduling and retry policy.

Jobs only ever run on whole-hour slots: requested run times are rounded up to
the next hour, and retry backoff is applied before the same rounding. This
trades run-time precision for predictable, auditable execution slots.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from cadence.core import metrics
from cadence.core.datetime_utils import round_to_next_hour, to_naive_utc, utc_now
from cadence.core.logging import get_logger
from cadence.jobs.store import JobStore
from cadence.schemas.job import JobFilter, JobStatus, JobType, ScheduledJob

logger = get_logger(__name__)

DEFAULT_MAX_RETRIES = 3


def compute_backoff(retry_count: int) -> timedelta:
    """Exponential retry delay before quantization: 1, 2, 4, 8... minutes."""
    return timedelta(minutes=2**retry_count)


class JobScheduler:
    """Creates, reschedules and cancels jobs in the store."""

    def __init__(
        self,
        store: JobStore,
        default_max_retries: int = DEFAULT_MAX_RETRIES,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._default_max_retries = default_max_retries
        self._now = now

    async def schedule_job(
        self,
        job_type: JobType | str,
        customer_id: str,
        run_at: datetime,
        payload: dict[str, Any],
        max_retries: int | None = None,
    ) -> ScheduledJob:
        """
        Schedule a job at the first whole hour at or after run_at.

        Args:
            job_type: Handler key, usually a JobType
            customer_id: Owning customer
            run_at: Requested run time (aware or naive UTC)
            payload: Handler-specific payload
            max_retries: Retry budget, defaults to the scheduler's

        Returns:
            The persisted job
        """
        job_type = job_type.value if isinstance(job_type, JobType) else job_type
        requested = to_naive_utc(run_at)
        next_run_at = round_to_next_hour(requested)
        now = self._now()

        job = ScheduledJob(
            job_type=job_type,
            customer_id=customer_id,
            next_run_at=next_run_at,
            status=JobStatus.SCHEDULED,
            retry_count=0,
            max_retries=self._default_max_retries if max_retries is None else max_retries,
            payload=payload,
            created_at=now,
            updated_at=now,
        )

        try:
            await self._store.create(job)
        except Exception as e:
            logger.bind(error=str(e)).error(
                "job_schedule_failed", job_type=job_type, customer_id=customer_id
            )
            raise

        logger.info(
            "job_scheduled",
            job_id=job.id,
            job_type=job_type,
            customer_id=customer_id,
            next_run_at=next_run_at.isoformat(),
            requested_run_at=requested.isoformat(),
        )
        metrics.jobs_scheduled_total.labels(job_type=job_type).inc()

        return job

    async def reschedule_job(self, job: ScheduledJob) -> ScheduledJob:
        """
        Reschedule a failed job with exponential backoff.

        Once retry_count has reached max_retries the job is marked failed
        for good and no further attempt is scheduled.

        Returns:
            The job as stored after the decision
        """
        if job.retry_count >= job.max_retries:
            logger.warning(
                "job_max_retries_exceeded",
                job_id=job.id,
                job_type=job.job_type,
                retry_count=job.retry_count,
            )
            updated = await self._store.update(job.id, status=JobStatus.FAILED)
            metrics.jobs_max_retries_exceeded_total.labels(job_type=job.job_type).inc()
            return updated

        next_run_at = round_to_next_hour(self._now() + compute_backoff(job.retry_count))

        updated = await self._store.update(
            job.id,
            next_run_at=next_run_at,
            retry_count=job.retry_count + 1,
            status=JobStatus.SCHEDULED,
        )

        logger.info(
            "job_rescheduled",
            job_id=job.id,
            job_type=job.job_type,
            retry_count=updated.retry_count,
            next_run_at=next_run_at.isoformat(),
        )
        metrics.jobs_rescheduled_total.labels(job_type=job.job_type).inc()

        return updated

    async def retry_failed_jobs(self) -> list[ScheduledJob]:
        """
        Apply the retry policy to every failed job.

        Jobs with retries left go back to scheduled; the rest stay failed.

        Returns:
            Jobs that were put back on the schedule
        """
        failed = await self._store.find_many(JobFilter(status=JobStatus.FAILED))
        rescheduled = []
        for job in failed:
            if job.retries_exhausted:
                continue
            rescheduled.append(await self.reschedule_job(job))

        if rescheduled:
            logger.info("failed_jobs_rescheduled", count=len(rescheduled))
        return rescheduled

    async def cancel_job(self, job_id: str) -> None:
        """Cancel a job by deleting it, whatever its status."""
        await self._store.delete(job_id)
        logger.info("job_cancelled", job_id=job_id)
        metrics.jobs_cancelled_total.inc()

    async def get_scheduled_jobs(self, customer_id: str) -> list[ScheduledJob]:
        """Pending jobs for a customer."""
        return await self._store.find_many(
            JobFilter(customer_id=customer_id, status=JobStatus.SCHEDULED)
        )
