"""Data sync job: copy one entity type from a source to a destination."""

import random
from typing import Any

from cadence.core.logging import get_logger
from cadence.schemas.job import JobExecutionContext, JobType, ScheduledJob

from .base import BaseJobHandler

logger = get_logger(__name__)


class DataSyncJob(BaseJobHandler):
    """Fetch, transform and write records between two systems."""

    job_type = JobType.DATA_SYNC.value
    required_fields = ("source", "destination", "entityType")

    async def run(self, job: ScheduledJob, context: JobExecutionContext) -> dict[str, Any]:
        source = job.payload["source"]
        destination = job.payload["destination"]
        entity_type = job.payload["entityType"]
        batch_size = job.payload.get("batchSize", 100)

        logger.info(
            "data_sync_started",
            job_id=job.id,
            customer_id=job.customer_id,
            source=source,
            destination=destination,
            entity_type=entity_type,
        )

        await self.simulate(200, 500)  # fetch from source
        await self.simulate(100, 300)  # transform
        await self.simulate(150, 400)  # write to destination

        records_synced = random.randint(100, 1099)

        logger.info(
            "data_sync_completed",
            job_id=job.id,
            customer_id=job.customer_id,
            entity_type=entity_type,
            records_synced=records_synced,
        )

        return {
            "recordsSynced": records_synced,
            "source": source,
            "destination": destination,
            "batchSize": batch_size,
        }
