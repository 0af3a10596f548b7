"""Tests for JobExecutor dispatch, validation and timeout."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from cadence.jobs.executor import JobExecutor
from cadence.jobs.handlers import DataSyncJob, default_handlers
from cadence.schemas.job import JobExecutionContext, JobResult

pytestmark = pytest.mark.asyncio


def _context(job, timeout: float = 30.0) -> JobExecutionContext:
    return JobExecutionContext(job_id=job.id, customer_id=job.customer_id, timeout=timeout)


def _mock_handler(valid: bool = True, result: JobResult | None = None) -> MagicMock:
    handler = MagicMock()
    handler.validate = MagicMock(return_value=valid)
    handler.execute = AsyncMock(return_value=result or JobResult(success=True, output={"ok": 1}))
    return handler


class TestJobExecutor:
    """Tests for JobExecutor.execute."""

    async def test_runs_registered_handler(self, job_factory):
        executor = JobExecutor({"data-sync": DataSyncJob(latency_scale=0)})
        job = job_factory()

        result = await executor.execute(job, _context(job))

        assert result.success is True
        assert result.error is None
        assert result.output["source"] == "crm"
        assert result.duration_ms >= 0

    async def test_unknown_job_type(self, job_factory):
        """Should return a failed result naming the type."""
        executor = JobExecutor()
        job = job_factory(job_type="nope")

        result = await executor.execute(job, _context(job))

        assert result.success is False
        assert result.error == "No handler registered for job type: nope"

    async def test_invalid_payload_skips_execute(self, job_factory):
        """Should not call the handler when validation rejects the payload."""
        handler = _mock_handler(valid=False)
        executor = JobExecutor({"data-sync": handler})
        job = job_factory()

        result = await executor.execute(job, _context(job))

        assert result.success is False
        assert result.error == "Invalid payload for job type: data-sync"
        handler.validate.assert_called_once_with(job.payload)
        handler.execute.assert_not_awaited()

    async def test_timeout(self, job_factory):
        """Should fail with a timeout once the context deadline passes."""

        async def slow(job, context):
            await asyncio.sleep(5)
            return JobResult(success=True)

        handler = _mock_handler()
        handler.execute = slow
        executor = JobExecutor({"data-sync": handler})
        job = job_factory()

        result = await executor.execute(job, _context(job, timeout=0.05))

        assert result.success is False
        assert result.error == "Job execution timeout"
        assert result.duration_ms >= 40

    async def test_handler_exception_becomes_result(self, job_factory):
        handler = _mock_handler()
        handler.execute.side_effect = RuntimeError("handler crashed")
        executor = JobExecutor({"data-sync": handler})
        job = job_factory()

        result = await executor.execute(job, _context(job))

        assert result.success is False
        assert result.error == "handler crashed"

    async def test_failed_handler_result_passes_through(self, job_factory):
        handler = _mock_handler(result=JobResult(success=False, error="downstream 503"))
        executor = JobExecutor({"data-sync": handler})
        job = job_factory()

        result = await executor.execute(job, _context(job))

        assert result.success is False
        assert result.error == "downstream 503"

    async def test_register_replaces_handler(self, job_factory):
        executor = JobExecutor(default_handlers(latency_scale=0))
        replacement = _mock_handler()
        executor.register("data-sync", replacement)
        job = job_factory()

        await executor.execute(job, _context(job))

        replacement.execute.assert_awaited_once()
        assert executor.registered_types() == [
            "cleanup",
            "data-sync",
            "email-sender",
            "report-generator",
        ]
