"""
Workflow executor: run a workflow's steps in order.

An execution moves from ``running`` to exactly one of ``completed`` or
``failed``. Each step's output is added to the shared context under
``step_<n>_output`` so later steps can read it. The first failed step halts
the execution; steps after it never run.
"""

from typing import Any

from cadence.core import metrics
from cadence.core.datetime_utils import utc_now
from cadence.core.logging import get_logger
from cadence.schemas.workflow import ExecutionStatus, Workflow, WorkflowExecution
from cadence.workflows.state_manager import WorkflowStateManager
from cadence.workflows.step_runner import StepRunner

logger = get_logger(__name__)


def step_output_key(step_number: int) -> str:
    return f"step_{step_number}_output"


class WorkflowExecutor:
    """Sequential, halt-on-first-failure workflow runner."""

    def __init__(
        self,
        step_runner: StepRunner | None = None,
        state_manager: WorkflowStateManager | None = None,
    ) -> None:
        """
        Initialize executor.

        Args:
            step_runner: Runs individual steps
            state_manager: If given, execution state is saved after every step
        """
        self.step_runner = step_runner or StepRunner()
        self.state_manager = state_manager

    async def execute(
        self, workflow: Workflow, context: dict[str, Any] | None = None
    ) -> WorkflowExecution:
        """
        Run every step of the workflow.

        Never raises; unexpected errors produce a failed execution.

        Args:
            workflow: Workflow definition
            context: Initial context, copied into the execution

        Returns:
            Execution in a terminal state
        """
        execution = WorkflowExecution(
            workflow_id=workflow.id,
            customer_id=workflow.customer_id,
            context=dict(context or {}),
        )

        logger.info(
            "workflow_execution_started",
            execution_id=execution.id,
            workflow_id=workflow.id,
            customer_id=workflow.customer_id,
            step_count=len(workflow.steps),
        )

        try:
            for step in workflow.ordered_steps():
                execution.current_step = step.step_number

                logger.debug(
                    "workflow_step_executing",
                    execution_id=execution.id,
                    workflow_id=workflow.id,
                    step_number=step.step_number,
                    step_name=step.name,
                )

                result = await self.step_runner.execute_step(step, execution.context)
                execution.step_results.append(result)

                if not result.success:
                    logger.error(
                        "workflow_step_failed",
                        execution_id=execution.id,
                        workflow_id=workflow.id,
                        step_number=step.step_number,
                        error=result.error,
                    )
                    return await self._finish(execution, ExecutionStatus.FAILED, result.error)

                execution.context[step_output_key(step.step_number)] = result.output
                await self._save(execution)

            return await self._finish(execution, ExecutionStatus.COMPLETED)

        except Exception as e:
            logger.bind(error=str(e)).exception(
                "workflow_execution_error",
                execution_id=execution.id,
                workflow_id=workflow.id,
            )
            execution.status = ExecutionStatus.FAILED
            execution.error = str(e)
            execution.completed_at = utc_now()
            metrics.workflow_executions_total.labels(status=execution.status.value).inc()
            return execution

    async def _finish(
        self,
        execution: WorkflowExecution,
        status: ExecutionStatus,
        error: str | None = None,
    ) -> WorkflowExecution:
        execution.status = status
        execution.error = error
        execution.completed_at = utc_now()
        await self._save(execution)

        logger.info(
            "workflow_execution_finished",
            execution_id=execution.id,
            workflow_id=execution.workflow_id,
            status=status.value,
            duration_ms=(execution.completed_at - execution.started_at).total_seconds() * 1000,
        )
        metrics.workflow_executions_total.labels(status=status.value).inc()
        return execution

    async def _save(self, execution: WorkflowExecution) -> None:
        if self.state_manager is not None:
            await self.state_manager.save_state(
                execution.id, execution.model_dump(mode="json")
            )
