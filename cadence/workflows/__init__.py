"""Workflow engine: validation, step dispatch and sequential execution."""

from .executor import WorkflowExecutor, step_output_key
from .job_handler import WORKFLOW_JOB_TYPE, WorkflowJobHandler
from .state_manager import WorkflowStateManager
from .step_runner import StepRunner
from .validation_service import ValidationServiceClient
from .validators import WorkflowValidator

__all__ = [
    "WORKFLOW_JOB_TYPE",
    "StepRunner",
    "ValidationServiceClient",
    "WorkflowExecutor",
    "WorkflowJobHandler",
    "WorkflowStateManager",
    "WorkflowValidator",
    "step_output_key",
]
