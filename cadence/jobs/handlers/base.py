"""Abstract base class for job handlers."""

import asyncio
import random
import time
from abc import ABC, abstractmethod
from typing import Any

from cadence.core.datetime_utils import elapsed_ms
from cadence.core.logging import get_logger
from cadence.schemas.job import JobExecutionContext, JobResult, ScheduledJob

logger = get_logger(__name__)


class BaseJobHandler(ABC):
    """
    Validates and executes one job type.

    Subclasses declare the payload keys they need and implement run(); the
    base class turns run()'s output or error into a JobResult so expected
    failures never escape the handler.
    """

    job_type: str = "unknown"
    required_fields: tuple[str, ...] = ()

    def __init__(self, latency_scale: float = 1.0) -> None:
        """
        Initialize handler.

        Args:
            latency_scale: Multiplier for simulated downstream latency (0 disables it)
        """
        self.latency_scale = latency_scale

    def validate(self, payload: dict[str, Any]) -> bool:
        """Check that every required payload field is present and non-empty."""
        return all(payload.get(name) for name in self.required_fields)

    async def execute(self, job: ScheduledJob, context: JobExecutionContext) -> JobResult:
        """Run the job and report the outcome."""
        started = time.monotonic()
        try:
            output = await self.run(job, context)
        except Exception as e:
            duration = elapsed_ms(started, time.monotonic())
            logger.bind(error=str(e)).error(
                "job_handler_failed",
                job_id=job.id,
                job_type=self.job_type,
                customer_id=job.customer_id,
                duration_ms=duration,
            )
            return JobResult(success=False, duration_ms=duration, error=str(e))

        return JobResult(
            success=True,
            duration_ms=elapsed_ms(started, time.monotonic()),
            output=output,
        )

    @abstractmethod
    async def run(self, job: ScheduledJob, context: JobExecutionContext) -> Any:
        """
        Do the work for one attempt.

        Returns:
            Structured output stored on the JobResult

        Raises:
            Exception: Any failure; converted to an unsuccessful JobResult
        """
        pass

    async def simulate(self, low_ms: float, high_ms: float) -> None:
        """Spend a random amount of time standing in for downstream I/O."""
        if self.latency_scale <= 0:
            return
        await asyncio.sleep(random.uniform(low_ms, high_ms) / 1000 * self.latency_scale)
