"""Pydantic schemas for workflows and their executions."""

import enum
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from cadence.core.datetime_utils import utc_now


class StepType(str, enum.Enum):
    """Kinds of workflow step the step runner can dispatch."""

    API_CALL = "api-call"
    TRANSFORMATION = "transformation"
    CONDITION = "condition"
    NOTIFICATION = "notification"


class WorkflowStatus(str, enum.Enum):
    """Definition lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class ExecutionStatus(str, enum.Enum):
    """Execution state. COMPLETED and FAILED are terminal."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowStep(BaseModel):
    """One unit of work within a workflow."""

    id: str
    name: str
    # Kept as a string so definitions with unknown types still load and fail at run time
    type: str
    step_number: int = Field(ge=1)
    config: dict[str, Any] = Field(default_factory=dict)
    timeout: float | None = None


class Workflow(BaseModel):
    """Ordered sequence of steps owned by a customer."""

    id: str
    customer_id: str
    name: str
    description: str | None = None
    steps: list[WorkflowStep] = Field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.ACTIVE

    @model_validator(mode="after")
    def _unique_step_numbers(self) -> "Workflow":
        numbers = [step.step_number for step in self.steps]
        duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate step numbers found: {', '.join(map(str, duplicates))}")
        return self

    def ordered_steps(self) -> list[WorkflowStep]:
        return sorted(self.steps, key=lambda step: step.step_number)


class StepExecutionResult(BaseModel):
    """Result of running one step."""

    step_id: str
    success: bool
    output: Any = None
    duration_ms: float = 0.0
    error: str | None = None


def new_execution_id() -> str:
    return f"exec_{uuid.uuid4().hex[:12]}"


class WorkflowExecution(BaseModel):
    """A single run of a workflow."""

    id: str = Field(default_factory=new_execution_id)
    workflow_id: str
    customer_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    current_step: int | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    step_results: list[StepExecutionResult] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status != ExecutionStatus.RUNNING


class ValidationReport(BaseModel):
    """Response of the external validation service."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    validated_at: datetime = Field(default_factory=utc_now)
    validation_duration_ms: float = 0.0
