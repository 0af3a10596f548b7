from cadence.schemas.job import (
    JobExecutionContext,
    JobFilter,
    JobResult,
    JobStatus,
    JobType,
    QueueStats,
    ScheduledJob,
)
from cadence.schemas.workflow import (
    ExecutionStatus,
    StepExecutionResult,
    StepType,
    ValidationReport,
    Workflow,
    WorkflowExecution,
    WorkflowStatus,
    WorkflowStep,
)

__all__ = [
    "JobExecutionContext",
    "JobFilter",
    "JobResult",
    "JobStatus",
    "JobType",
    "QueueStats",
    "ScheduledJob",
    "ExecutionStatus",
    "StepExecutionResult",
    "StepType",
    "ValidationReport",
    "Workflow",
    "WorkflowExecution",
    "WorkflowStatus",
    "WorkflowStep",
]
