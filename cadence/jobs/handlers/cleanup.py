"""Cleanup job: purge stale resources of one type."""

import random
from typing import Any

from cadence.core.logging import get_logger
from cadence.schemas.job import JobExecutionContext, JobType, ScheduledJob

from .base import BaseJobHandler

logger = get_logger(__name__)


class CleanupJob(BaseJobHandler):
    """Find and delete resources older than a cutoff. Dry runs only count them."""

    job_type = JobType.CLEANUP.value
    required_fields = ("resourceType", "olderThan")

    async def run(self, job: ScheduledJob, context: JobExecutionContext) -> dict[str, Any]:
        resource_type = job.payload["resourceType"]
        dry_run = bool(job.payload.get("dryRun", False))

        logger.info(
            "cleanup_started",
            job_id=job.id,
            customer_id=job.customer_id,
            resource_type=resource_type,
            older_than=job.payload["olderThan"],
            dry_run=dry_run,
        )

        await self.simulate(150, 400)  # find candidates
        identified = random.randint(10, 509)

        if not dry_run:
            await self.simulate(100, 300)  # delete

        deleted = 0 if dry_run else identified
        logger.info(
            "cleanup_completed",
            job_id=job.id,
            customer_id=job.customer_id,
            resource_type=resource_type,
            records_deleted=deleted,
        )

        return {
            "resourceType": resource_type,
            "recordsIdentified": identified,
            "recordsDeleted": deleted,
            "dryRun": dry_run,
        }
