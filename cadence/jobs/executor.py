"""
Job executor: dispatch a job to its handler under a timeout.

The executor never raises to its caller. Unknown job types, rejected
payloads, timeouts and handler errors all come back as an unsuccessful
JobResult with the measured duration. Retrying is not the executor's
decision; see JobScheduler.reschedule_job.

On timeout the handler's task is cancelled. Handlers that shield work from
cancellation may still finish it after the attempt has been reported as
timed out.
"""

import asyncio
import time
from typing import Protocol

from cadence.core.datetime_utils import elapsed_ms
from cadence.core.exceptions import (
    ExecutionTimeoutError,
    InvalidPayloadError,
    UnknownJobTypeError,
)
from cadence.core.logging import get_logger
from cadence.schemas.job import JobExecutionContext, JobResult, ScheduledJob

logger = get_logger(__name__)


class JobHandler(Protocol):
    """Capability set every job handler provides."""

    def validate(self, payload: dict) -> bool: ...

    async def execute(self, job: ScheduledJob, context: JobExecutionContext) -> JobResult: ...


class JobExecutor:
    """Routes jobs to handlers registered by job type name."""

    def __init__(self, handlers: dict[str, JobHandler] | None = None) -> None:
        self._handlers: dict[str, JobHandler] = dict(handlers or {})

    def register(self, job_type: str, handler: JobHandler) -> None:
        """Register or replace the handler for a job type."""
        self._handlers[job_type] = handler
        logger.debug("job_handler_registered", job_type=job_type)

    def registered_types(self) -> list[str]:
        return sorted(self._handlers)

    async def execute(self, job: ScheduledJob, context: JobExecutionContext) -> JobResult:
        started = time.monotonic()

        try:
            handler = self._handlers.get(job.job_type)
            if handler is None:
                raise UnknownJobTypeError(job.job_type)

            if not handler.validate(job.payload):
                raise InvalidPayloadError(job.job_type)

            logger.debug(
                "job_executing",
                job_id=job.id,
                job_type=job.job_type,
                customer_id=job.customer_id,
            )

            try:
                result = await asyncio.wait_for(handler.execute(job, context), context.timeout)
            except TimeoutError:
                raise ExecutionTimeoutError(context.timeout) from None

            return JobResult(
                success=result.success,
                duration_ms=elapsed_ms(started, time.monotonic()),
                error=result.error,
                output=result.output,
            )

        except Exception as e:
            duration = elapsed_ms(started, time.monotonic())
            logger.bind(error=str(e)).error(
                "job_execution_failed",
                job_id=job.id,
                job_type=job.job_type,
                duration_ms=duration,
            )
            return JobResult(success=False, duration_ms=duration, error=str(e))
