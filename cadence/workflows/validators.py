"""Local structural checks for workflow definitions."""

from typing import Any

from pydantic import ValidationError

from cadence.core.logging import get_logger
from cadence.schemas.workflow import StepType, Workflow, WorkflowStep

logger = get_logger(__name__)

VALID_STEP_TYPES = frozenset(t.value for t in StepType)

# Config keys each step type needs; any one key of a tuple satisfies the rule
REQUIRED_CONFIG: dict[str, list[tuple[str, ...]]] = {
    StepType.API_CALL.value: [("url",), ("method",)],
    StepType.TRANSFORMATION.value: [("operation",)],
    StepType.CONDITION.value: [("expression", "field")],
    StepType.NOTIFICATION.value: [("recipient",)],
}


def _format_error(err: dict[str, Any]) -> str:
    """Render a pydantic error in the validator's own wording."""
    loc = err["loc"]
    message = err["msg"].removeprefix("Value error, ")
    if len(loc) >= 3 and loc[0] == "steps" and isinstance(loc[1], int):
        if loc[2] == "step_number" and err["type"] == "greater_than_equal":
            message = "Step number must be positive"
        return f"Step {loc[1] + 1}: {message}"
    return message


class WorkflowValidator:
    """Reports every problem found rather than stopping at the first."""

    def validate_workflow(self, workflow: Workflow) -> tuple[bool, list[str]]:
        errors: list[str] = []

        if not workflow.id:
            errors.append("Workflow ID is required")
        if not workflow.name:
            errors.append("Workflow name is required")
        if not workflow.customer_id:
            errors.append("Customer ID is required")

        if not workflow.steps:
            errors.append("Workflow must have at least one step")
        for index, step in enumerate(workflow.steps, start=1):
            errors.extend(f"Step {index}: {err}" for err in self.validate_step(step))

        numbers = [step.step_number for step in workflow.steps]
        duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
        if duplicates:
            errors.append(f"Duplicate step numbers found: {', '.join(map(str, duplicates))}")

        valid = not errors
        if not valid:
            logger.warning("workflow_validation_failed", workflow_id=workflow.id, errors=errors)
        return valid, errors

    def validate_definition(self, data: dict[str, Any]) -> tuple[bool, list[str]]:
        """Validate a raw definition, including what the model itself rejects."""
        try:
            workflow = Workflow.model_validate(data)
        except ValidationError as e:
            errors = [_format_error(err) for err in e.errors()]
            logger.warning("workflow_definition_invalid", workflow_id=data.get("id"), errors=errors)
            return False, errors
        return self.validate_workflow(workflow)

    def validate_step(self, step: WorkflowStep) -> list[str]:
        errors: list[str] = []

        if not step.id:
            errors.append("Step ID is required")
        if not step.name:
            errors.append("Step name is required")
        if not step.type:
            errors.append("Step type is required")
        elif step.type not in VALID_STEP_TYPES:
            errors.append(f"Invalid step type: {step.type}")
        if step.step_number < 1:
            errors.append("Step number must be positive")
        if step.timeout is not None and step.timeout < 0:
            errors.append("Timeout must be non-negative")

        return errors

    def validate_step_config(self, step: WorkflowStep) -> tuple[bool, list[str]]:
        errors: list[str] = []

        for keys in REQUIRED_CONFIG.get(step.type, []):
            if not any(step.config.get(key) for key in keys):
                errors.append(f"{step.type} step requires {' or '.join(keys)} in config")

        return not errors, errors
