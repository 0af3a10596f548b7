"""Job handler that runs a workflow definition carried in the job payload."""

from typing import Any

from cadence.core.exceptions import StepFailure
from cadence.jobs.handlers.base import BaseJobHandler
from cadence.schemas.job import JobExecutionContext, ScheduledJob
from cadence.schemas.workflow import ExecutionStatus, Workflow
from cadence.workflows.executor import WorkflowExecutor
from cadence.workflows.validators import WorkflowValidator

WORKFLOW_JOB_TYPE = "workflow"


class WorkflowJobHandler(BaseJobHandler):
    """
    Payload:
        workflow: workflow definition (required)
        context: initial execution context (optional)
    """

    job_type = WORKFLOW_JOB_TYPE
    required_fields = ("workflow",)

    def __init__(
        self,
        executor: WorkflowExecutor,
        validator: WorkflowValidator | None = None,
    ) -> None:
        super().__init__(latency_scale=0)
        self.executor = executor
        self.validator = validator or WorkflowValidator()

    def validate(self, payload: dict[str, Any]) -> bool:
        if not super().validate(payload) or not isinstance(payload["workflow"], dict):
            return False
        valid, _ = self.validator.validate_definition(payload["workflow"])
        return valid

    async def run(self, job: ScheduledJob, context: JobExecutionContext) -> Any:
        workflow = Workflow.model_validate(job.payload["workflow"])
        initial = {
            "job_id": context.job_id,
            "customer_id": context.customer_id,
            **job.payload.get("context", {}),
        }

        execution = await self.executor.execute(workflow, initial)

        if execution.status != ExecutionStatus.COMPLETED:
            raise StepFailure(
                f"Workflow {workflow.id} failed at step {execution.current_step}: "
                f"{execution.error}"
            )

        return {
            "executionId": execution.id,
            "workflowId": workflow.id,
            "status": execution.status.value,
            "stepsCompleted": len(execution.step_results),
        }
