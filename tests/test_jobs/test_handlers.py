"""Tests for the built-in job handlers."""

import pytest

from cadence.jobs.handlers import (
    CleanupJob,
    DataSyncJob,
    EmailSenderJob,
    ReportGeneratorJob,
    default_handlers,
)
from cadence.schemas.job import JobExecutionContext

pytestmark = pytest.mark.asyncio


async def _run(handler, job_factory, payload):
    job = job_factory(job_type=handler.job_type, payload=payload)
    context = JobExecutionContext(job_id=job.id, customer_id=job.customer_id)
    return await handler.execute(job, context)


class TestValidate:
    """Required payload fields per handler."""

    @pytest.mark.parametrize(
        ("handler", "payload"),
        [
            (DataSyncJob(0), {"source": "a", "destination": "b", "entityType": "c"}),
            (EmailSenderJob(0), {"recipient": "a@b.c", "subject": "s", "body": "b"}),
            (ReportGeneratorJob(0), {"reportType": "r", "startDate": "x", "endDate": "y"}),
            (CleanupJob(0), {"resourceType": "logs", "olderThan": "30d"}),
        ],
    )
    async def test_complete_payload_is_valid(self, handler, payload):
        assert handler.validate(payload) is True
        for key in payload:
            partial = {k: v for k, v in payload.items() if k != key}
            assert handler.validate(partial) is False, f"missing {key} should be invalid"

    async def test_empty_value_is_invalid(self):
        assert EmailSenderJob(0).validate({"recipient": "", "subject": "s", "body": "b"}) is False


class TestDataSyncJob:
    async def test_output(self, job_factory):
        result = await _run(
            DataSyncJob(0),
            job_factory,
            {"source": "crm", "destination": "dw", "entityType": "contacts"},
        )

        assert result.success is True
        assert result.output["source"] == "crm"
        assert result.output["destination"] == "dw"
        assert result.output["batchSize"] == 100
        assert 100 <= result.output["recordsSynced"] < 1100


class TestEmailSenderJob:
    async def test_output(self, job_factory):
        result = await _run(
            EmailSenderJob(0),
            job_factory,
            {"recipient": "ops@example.com", "subject": "Hi", "body": "Hello"},
        )

        assert result.success is True
        assert result.output["recipient"] == "ops@example.com"
        assert result.output["messageId"].startswith("msg_")
        assert "sentAt" in result.output


class TestReportGeneratorJob:
    async def test_default_format(self, job_factory):
        result = await _run(
            ReportGeneratorJob(0),
            job_factory,
            {"reportType": "usage", "startDate": "2024-01-01", "endDate": "2024-01-31"},
        )

        assert result.success is True
        assert result.output["format"] == "pdf"
        assert result.output["reportId"].startswith("report_")
        assert result.output["downloadUrl"] == "/reports/cust_1/download"

    async def test_unsupported_format_fails(self, job_factory):
        result = await _run(
            ReportGeneratorJob(0),
            job_factory,
            {"reportType": "usage", "startDate": "a", "endDate": "b", "format": "docx"},
        )

        assert result.success is False
        assert "Unsupported report format" in result.error


class TestCleanupJob:
    async def test_deletes_identified_records(self, job_factory):
        result = await _run(
            CleanupJob(0), job_factory, {"resourceType": "logs", "olderThan": "30d"}
        )

        assert result.success is True
        assert result.output["recordsDeleted"] == result.output["recordsIdentified"]
        assert result.output["dryRun"] is False

    async def test_dry_run_deletes_nothing(self, job_factory):
        result = await _run(
            CleanupJob(0),
            job_factory,
            {"resourceType": "logs", "olderThan": "30d", "dryRun": True},
        )

        assert result.output["recordsDeleted"] == 0
        assert result.output["dryRun"] is True


async def test_default_handlers_keyed_by_type():
    handlers = default_handlers(latency_scale=0)
    assert set(handlers) == {"data-sync", "email-sender", "report-generator", "cleanup"}
    assert all(handler.latency_scale == 0 for handler in handlers.values())
