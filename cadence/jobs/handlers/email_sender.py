"""Email sender job."""

import uuid
from typing import Any

from cadence.core.datetime_utils import utc_now
from cadence.core.logging import get_logger
from cadence.schemas.job import JobExecutionContext, JobType, ScheduledJob

from .base import BaseJobHandler

logger = get_logger(__name__)


class EmailSenderJob(BaseJobHandler):
    """Deliver one email through the SMTP relay."""

    job_type = JobType.EMAIL_SENDER.value
    required_fields = ("recipient", "subject", "body")

    async def run(self, job: ScheduledJob, context: JobExecutionContext) -> dict[str, Any]:
        recipient = job.payload["recipient"]
        attachments = job.payload.get("attachments") or []

        logger.info(
            "email_send_started",
            job_id=job.id,
            customer_id=job.customer_id,
            recipient=recipient,
            subject=job.payload["subject"],
            attachment_count=len(attachments),
        )

        await self.simulate(100, 300)  # connect to SMTP server
        await self.simulate(200, 600)  # send

        logger.info("email_sent", job_id=job.id, customer_id=job.customer_id, recipient=recipient)

        return {
            "messageId": f"msg_{uuid.uuid4().hex[:9]}",
            "recipient": recipient,
            "sentAt": utc_now().isoformat(),
        }
