"""Tests for sequential workflow execution."""

from unittest.mock import AsyncMock

import pytest

from cadence.core.cache import InMemoryCache
from cadence.schemas.workflow import ExecutionStatus
from cadence.workflows.executor import WorkflowExecutor
from cadence.workflows.state_manager import WorkflowStateManager
from cadence.workflows.step_runner import StepRunner

pytestmark = pytest.mark.asyncio


@pytest.fixture
def executor() -> WorkflowExecutor:
    return WorkflowExecutor(StepRunner(latency_scale=0))


class TestWorkflowExecutor:
    """Tests for WorkflowExecutor.execute."""

    async def test_all_steps_succeed(self, executor, workflow_factory):
        """Should complete with one output per step in the context."""
        workflow = workflow_factory(
            (1, "api-call", {"url": "https://x", "method": "GET"}),
            (2, "transformation", {"operation": "map"}),
            (3, "notification", {"recipient": "ops"}),
        )

        execution = await executor.execute(workflow, {"input": 1})

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.error is None
        assert execution.completed_at is not None
        assert execution.current_step == 3
        assert execution.id.startswith("exec_")
        for n in (1, 2, 3):
            assert f"step_{n}_output" in execution.context
        assert execution.context["input"] == 1
        assert [r.step_id for r in execution.step_results] == ["step_1", "step_2", "step_3"]

    async def test_halts_on_first_failure(self, executor, workflow_factory):
        """[ok, fail, ok] should fail at step 2 and never run step 3."""
        workflow = workflow_factory(
            (1, "api-call", {"url": "https://x", "method": "GET"}),
            (2, "condition", {"field": "missing", "required": True}),
            (3, "notification", {"recipient": "ops"}),
        )

        execution = await executor.execute(workflow)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.current_step == 2
        assert execution.error == "Condition not met: missing"
        assert execution.completed_at is not None
        assert "step_1_output" in execution.context
        assert "step_2_output" not in execution.context
        assert "step_3_output" not in execution.context
        assert len(execution.step_results) == 2

    async def test_runs_in_step_number_order(self, workflow_factory):
        order: list[int] = []
        runner = StepRunner(latency_scale=0)

        async def record(step, context):
            order.append(step.step_number)
            return step.step_number

        runner.register("transformation", record)
        workflow = workflow_factory(
            (3, "transformation", {}),
            (1, "transformation", {}),
            (2, "transformation", {}),
        )

        execution = await WorkflowExecutor(runner).execute(workflow)

        assert order == [1, 2, 3]
        assert execution.context["step_2_output"] == 2

    async def test_later_steps_see_earlier_outputs(self, executor, workflow_factory):
        workflow = workflow_factory(
            (1, "api-call", {"url": "https://x", "method": "GET"}),
            (
                2,
                "condition",
                {"field": "step_1_output.statusCode", "equals": 200, "required": True},
            ),
        )

        execution = await executor.execute(workflow)

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.context["step_2_output"]["conditionMet"] is True

    async def test_caller_context_is_not_mutated(self, executor, workflow_factory):
        context = {"input": 1}
        workflow = workflow_factory((1, "transformation", {"operation": "noop"}))

        await executor.execute(workflow, context)

        assert context == {"input": 1}

    async def test_unexpected_error_fails_execution(self, workflow_factory):
        runner = AsyncMock()
        runner.execute_step.side_effect = RuntimeError("runner crashed")
        workflow = workflow_factory((1, "transformation", {}))

        execution = await WorkflowExecutor(runner).execute(workflow)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.error == "runner crashed"
        assert execution.current_step == 1

    async def test_state_is_saved(self, workflow_factory):
        """Terminal execution state should be readable from the state manager."""
        state = WorkflowStateManager(InMemoryCache())
        executor = WorkflowExecutor(StepRunner(latency_scale=0), state)
        workflow = workflow_factory((1, "notification", {"recipient": "ops"}))

        execution = await executor.execute(workflow)
        saved = await state.get_state(execution.id)

        assert saved["status"] == "completed"
        assert "step_1_output" in saved["context"]
