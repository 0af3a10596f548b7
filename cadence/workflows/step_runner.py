"""Runs a single workflow step by type."""

import asyncio
import random
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from cadence.core import metrics
from cadence.core.datetime_utils import elapsed_ms, utc_now
from cadence.core.exceptions import StepFailure
from cadence.core.logging import get_logger
from cadence.schemas.workflow import StepExecutionResult, StepType, WorkflowStep

logger = get_logger(__name__)

StepHandler = Callable[[WorkflowStep, dict[str, Any]], Awaitable[Any]]

_MISSING = object()


def resolve_path(context: dict[str, Any], path: str) -> Any:
    """Look up a dotted path (``step_1_output.statusCode``) in the context."""
    value: Any = context
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


class StepRunner:
    """
    Dispatches steps to a handler per step type.

    execute_step() never raises: handler errors, step timeouts and unknown
    step types all produce an unsuccessful StepExecutionResult.
    """

    def __init__(self, latency_scale: float = 1.0) -> None:
        self.latency_scale = latency_scale
        self._handlers: dict[str, StepHandler] = {
            StepType.API_CALL.value: self._execute_api_call,
            StepType.TRANSFORMATION.value: self._execute_transformation,
            StepType.CONDITION.value: self._evaluate_condition,
            StepType.NOTIFICATION.value: self._send_notification,
        }

    def register(self, step_type: StepType | str, handler: StepHandler) -> None:
        """Replace or add the handler for a step type."""
        key = step_type.value if isinstance(step_type, StepType) else step_type
        self._handlers[key] = handler

    async def execute_step(
        self, step: WorkflowStep, context: dict[str, Any]
    ) -> StepExecutionResult:
        started = time.monotonic()

        logger.debug(
            "step_started",
            step_id=step.id,
            step_name=step.name,
            step_type=step.type,
        )

        try:
            handler = self._handlers.get(step.type)
            if handler is None:
                raise StepFailure(f"Unknown step type: {step.type}")

            if step.timeout:
                try:
                    output = await asyncio.wait_for(handler(step, context), step.timeout)
                except TimeoutError:
                    raise StepFailure(f"Step timed out after {step.timeout}s") from None
            else:
                output = await handler(step, context)

        except Exception as e:
            duration = elapsed_ms(started, time.monotonic())
            logger.bind(error=str(e)).error(
                "step_failed",
                step_id=step.id,
                step_name=step.name,
                duration_ms=duration,
            )
            metrics.workflow_step_duration_seconds.labels(
                step_type=step.type, outcome="failed"
            ).observe(duration / 1000)
            return StepExecutionResult(
                step_id=step.id,
                success=False,
                output=None,
                duration_ms=duration,
                error=str(e),
            )

        duration = elapsed_ms(started, time.monotonic())
        logger.debug("step_completed", step_id=step.id, step_name=step.name, duration_ms=duration)
        metrics.workflow_step_duration_seconds.labels(
            step_type=step.type, outcome="success"
        ).observe(duration / 1000)
        return StepExecutionResult(
            step_id=step.id,
            success=True,
            output=output,
            duration_ms=duration,
        )

    async def _simulate(self, low_ms: float, high_ms: float) -> None:
        if self.latency_scale > 0:
            await asyncio.sleep(random.uniform(low_ms, high_ms) / 1000 * self.latency_scale)

    async def _execute_api_call(self, step: WorkflowStep, context: dict[str, Any]) -> Any:
        await self._simulate(100, 300)
        return {
            "statusCode": 200,
            "url": step.config.get("url"),
            "method": step.config.get("method", "GET"),
            "data": {"result": "success", "requestedAt": utc_now().isoformat()},
        }

    async def _execute_transformation(self, step: WorkflowStep, context: dict[str, Any]) -> Any:
        await self._simulate(50, 150)
        return {
            "transformed": True,
            "operation": step.config.get("operation"),
            "inputKeys": sorted(context),
        }

    async def _evaluate_condition(self, step: WorkflowStep, context: dict[str, Any]) -> Any:
        """
        Compare a context value against an expected one.

        Config:
            field: dotted path into the context; without it the condition holds
            equals: expected value (default: the field just has to exist)
            required: fail the step when the condition does not hold
        """
        await self._simulate(20, 70)

        field = step.config.get("field")
        if field is None:
            met = True
        else:
            value = resolve_path(context, field)
            if "equals" in step.config:
                met = value is not _MISSING and value == step.config["equals"]
            else:
                met = value is not _MISSING

        if not met and step.config.get("required", False):
            raise StepFailure(f"Condition not met: {field}")

        return {"conditionMet": met, "evaluatedAt": utc_now().isoformat()}

    async def _send_notification(self, step: WorkflowStep, context: dict[str, Any]) -> Any:
        await self._simulate(80, 230)
        return {
            "sent": True,
            "notificationId": f"notif_{uuid.uuid4().hex[:9]}",
            "recipient": step.config.get("recipient"),
        }
