"""
Job queue: poll the store for due jobs and run them.

Polling runs on an APScheduler interval trigger. Each pass runs every ready
job concurrently and records the per-attempt outcome (completed or failed)
on the job. The queue never reschedules on its own; turning a failure into a
future retry is JobScheduler's call.

Passes are not serialized: a slow batch may still be running when the next
tick fires. Up to ``concurrency`` passes are allowed in flight at once. Every
pass is a task owned by the queue, so stopping the interval never cancels one
and ``drain()`` waits for all of them.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cadence.core import metrics
from cadence.core.datetime_utils import elapsed_ms, utc_now
from cadence.core.logging import get_logger
from cadence.jobs.executor import JobExecutor
from cadence.jobs.store import JobStore
from cadence.schemas.job import (
    JobExecutionContext,
    JobFilter,
    JobStatus,
    QueueStats,
    ScheduledJob,
)

logger = get_logger(__name__)

POLL_JOB_ID = "job_queue_poll"


class JobQueue:
    """Polling dispatcher between the job store and the executor."""

    def __init__(
        self,
        store: JobStore,
        executor: JobExecutor,
        poll_interval: float = 60.0,
        job_timeout: float = 30.0,
        concurrency: int = 10,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the queue.

        Args:
            store: Job store to poll and update
            executor: Executor that runs each job
            poll_interval: Seconds between polls
            job_timeout: Timeout given to each attempt's execution context
            concurrency: Maximum overlapping poll passes
            now: Clock, injectable for tests
        """
        self._store = store
        self._executor = executor
        self.poll_interval = poll_interval
        self.job_timeout = job_timeout
        self.concurrency = concurrency
        self._now = now
        self._scheduler: AsyncIOScheduler | None = None
        self._passes: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Start polling. Runs one pass immediately, then one per interval."""
        if self._scheduler is not None:
            logger.warning("job_queue_already_running")
            return

        logger.info(
            "job_queue_starting",
            poll_interval=self.poll_interval,
            concurrency=self.concurrency,
        )

        scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        scheduler.add_job(
            self._tick,
            IntervalTrigger(seconds=self.poll_interval),
            id=POLL_JOB_ID,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        self._spawn_pass()

    def stop(self) -> None:
        """Stop polling. Passes already in flight are left to finish."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        logger.info("job_queue_stopped", in_flight=len(self._passes))

    async def drain(self) -> None:
        """Wait for passes started by this queue to finish."""
        while self._passes:
            await asyncio.gather(*list(self._passes), return_exceptions=True)

    async def _tick(self) -> None:
        # Returns at once; the pass itself is not owned by the scheduler
        self._spawn_pass()

    def _spawn_pass(self) -> bool:
        if len(self._passes) >= self.concurrency:
            logger.warning(
                "job_queue_pass_skipped",
                in_flight=len(self._passes),
                concurrency=self.concurrency,
            )
            return False

        task = asyncio.create_task(self.process_ready_jobs())
        self._passes.add(task)
        task.add_done_callback(self._passes.discard)
        return True

    async def process_ready_jobs(self) -> int:
        """
        Run one poll pass.

        Returns:
            Number of ready jobs dispatched
        """
        try:
            now = self._now()
            ready = await self._store.find_many(
                JobFilter(status=JobStatus.SCHEDULED, due_before=now)
            )

            if not ready:
                logger.debug("job_queue_no_ready_jobs")
                return 0

            logger.info("job_queue_processing", count=len(ready), timestamp=now.isoformat())
            metrics.job_queue_depth.set(len(ready))

            await asyncio.gather(*(self._execute_job(job) for job in ready))

            logger.info("job_queue_batch_completed", count=len(ready))
            return len(ready)

        except Exception as e:
            logger.bind(error=str(e)).exception("job_queue_pass_failed")
            metrics.job_queue_errors_total.inc()
            return 0

    async def _execute_job(self, job: ScheduledJob) -> None:
        started = time.monotonic()

        try:
            await self._store.update(job.id, status=JobStatus.RUNNING, last_run_at=self._now())

            logger.info(
                "job_started",
                job_id=job.id,
                job_type=job.job_type,
                customer_id=job.customer_id,
                attempt=job.retry_count + 1,
            )

            context = JobExecutionContext(
                job_id=job.id,
                customer_id=job.customer_id,
                start_time=self._now(),
                timeout=self.job_timeout,
                metadata={"attempt": job.retry_count + 1},
            )
            result = await self._executor.execute(job, context)
            duration = elapsed_ms(started, time.monotonic())

            if result.success:
                await self._store.update(job.id, status=JobStatus.COMPLETED)
                logger.info(
                    "job_completed",
                    job_id=job.id,
                    job_type=job.job_type,
                    duration_ms=duration,
                )
                metrics.jobs_finished_total.labels(job_type=job.job_type, outcome="completed").inc()
                metrics.job_duration_seconds.labels(job_type=job.job_type).observe(duration / 1000)
            else:
                await self._store.update(job.id, status=JobStatus.FAILED, last_error=result.error)
                logger.error(
                    "job_failed",
                    job_id=job.id,
                    job_type=job.job_type,
                    error=result.error,
                    duration_ms=duration,
                )
                metrics.jobs_finished_total.labels(job_type=job.job_type, outcome="failed").inc()

        except Exception as e:
            logger.bind(error=str(e)).error(
                "job_processing_error",
                job_id=job.id,
                job_type=job.job_type,
                duration_ms=elapsed_ms(started, time.monotonic()),
            )
            metrics.jobs_finished_total.labels(job_type=job.job_type, outcome="error").inc()
            await self._mark_failed(job, str(e))

    async def _mark_failed(self, job: ScheduledJob, error: str) -> None:
        try:
            await self._store.update(job.id, status=JobStatus.FAILED, last_error=error)
        except Exception as e:
            # The job stays in whatever state the store last saw
            logger.bind(error=str(e)).error("job_status_update_failed", job_id=job.id)

    async def get_stats(self) -> QueueStats:
        """Count jobs per status."""
        scheduled, running, completed, failed = await asyncio.gather(
            *(self._store.find_many(JobFilter(status=status)) for status in JobStatus)
        )
        return QueueStats(
            scheduled=len(scheduled),
            running=len(running),
            completed=len(completed),
            failed=len(failed),
        )
