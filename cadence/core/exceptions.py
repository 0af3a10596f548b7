"""Error taxonomy shared across the pool, job and workflow layers.

Pool and transaction errors propagate to the caller. Job and step errors are
raised internally and converted into typed results at the executor and step
runner boundaries, so they never reach the polling or step loops.
"""


class CadenceError(Exception):
    """Base class for all cadence errors."""


class PoolTimeoutError(CadenceError):
    """No connection became available before the acquire deadline."""

    def __init__(self, pool_name: str, timeout: float) -> None:
        super().__init__("Connection pool timeout")
        self.pool_name = pool_name
        self.timeout = timeout


class PoolClosedError(CadenceError):
    """The pool has been closed and no longer hands out connections."""


class TransactionConflictError(CadenceError):
    """Serialization failure or deadlock; safe to retry the whole transaction."""


class JobNotFoundError(CadenceError):
    """No job exists with the given id."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class UnknownJobTypeError(CadenceError):
    """No handler is registered for the job's type."""

    def __init__(self, job_type: str) -> None:
        super().__init__(f"No handler registered for job type: {job_type}")
        self.job_type = job_type


class InvalidPayloadError(CadenceError):
    """The handler rejected the job payload."""

    def __init__(self, job_type: str) -> None:
        super().__init__(f"Invalid payload for job type: {job_type}")
        self.job_type = job_type


class ExecutionTimeoutError(CadenceError):
    """The handler did not finish within the context timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__("Job execution timeout")
        self.timeout = timeout


class StepFailure(CadenceError):
    """A workflow step could not complete; halts the owning execution."""


class ValidationServiceError(CadenceError):
    """The external validation service call failed."""
