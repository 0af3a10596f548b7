"""Pydantic schemas for scheduled jobs and their execution."""

import enum
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cadence.core.datetime_utils import utc_now


class JobType(str, enum.Enum):
    """Built-in job types. Handlers for other type names may be registered."""

    DATA_SYNC = "data-sync"
    EMAIL_SENDER = "email-sender"
    REPORT_GENERATOR = "report-generator"
    CLEANUP = "cleanup"


class JobStatus(str, enum.Enum):
    """Lifecycle status of a scheduled job."""

    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:12]}"


class ScheduledJob(BaseModel):
    """A job persisted in the job store."""

    id: str = Field(default_factory=new_job_id)
    job_type: str
    customer_id: str
    next_run_at: datetime
    status: JobStatus = JobStatus.SCHEDULED
    retry_count: int = 0
    max_retries: int = 3
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_run_at: datetime | None = None
    last_error: str | None = None

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count >= self.max_retries


class JobFilter(BaseModel):
    """Store query. Unset fields are not filtered on."""

    status: JobStatus | None = None
    due_before: datetime | None = None  # next_run_at <= due_before
    customer_id: str | None = None

    def matches(self, job: ScheduledJob) -> bool:
        if self.status is not None and job.status != self.status:
            return False
        if self.due_before is not None and job.next_run_at > self.due_before:
            return False
        if self.customer_id is not None and job.customer_id != self.customer_id:
            return False
        return True


class JobExecutionContext(BaseModel):
    """Per-attempt execution context. Not persisted."""

    job_id: str
    customer_id: str
    start_time: datetime = Field(default_factory=utc_now)
    timeout: float = 30.0  # seconds
    metadata: dict[str, Any] = Field(default_factory=dict)


class JobResult(BaseModel):
    """Outcome of a single job attempt."""

    success: bool
    duration_ms: float = 0.0
    error: str | None = None
    output: Any = None


class QueueStats(BaseModel):
    """Job counts per status."""

    scheduled: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
