"""Report generator job."""

import random
import uuid
from typing import Any

from cadence.core.logging import get_logger
from cadence.schemas.job import JobExecutionContext, JobType, ScheduledJob

from .base import BaseJobHandler

logger = get_logger(__name__)

SUPPORTED_FORMATS = ("pdf", "csv", "xlsx")


class ReportGeneratorJob(BaseJobHandler):
    """Query, aggregate and render a customer report."""

    job_type = JobType.REPORT_GENERATOR.value
    required_fields = ("reportType", "startDate", "endDate")

    async def run(self, job: ScheduledJob, context: JobExecutionContext) -> dict[str, Any]:
        report_type = job.payload["reportType"]
        report_format = job.payload.get("format", "pdf")
        if report_format not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported report format: {report_format}")

        logger.info(
            "report_generation_started",
            job_id=job.id,
            customer_id=job.customer_id,
            report_type=report_type,
            start_date=job.payload["startDate"],
            end_date=job.payload["endDate"],
            format=report_format,
        )

        await self.simulate(300, 800)  # query
        await self.simulate(200, 600)  # aggregate
        await self.simulate(400, 1000)  # render file

        logger.info(
            "report_generated",
            job_id=job.id,
            customer_id=job.customer_id,
            report_type=report_type,
        )

        return {
            "reportId": f"report_{uuid.uuid4().hex[:9]}",
            "reportType": report_type,
            "format": report_format,
            "downloadUrl": f"/reports/{job.customer_id}/download",
            "fileSize": random.randint(1_000_000, 10_999_999),
        }
