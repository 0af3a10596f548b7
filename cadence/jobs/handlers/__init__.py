"""Built-in job handlers, keyed by job type."""

from .base import BaseJobHandler
from .cleanup import CleanupJob
from .data_sync import DataSyncJob
from .email_sender import EmailSenderJob
from .report_generator import ReportGeneratorJob

__all__ = [
    "BaseJobHandler",
    "CleanupJob",
    "DataSyncJob",
    "EmailSenderJob",
    "ReportGeneratorJob",
    "default_handlers",
]


def default_handlers(latency_scale: float = 1.0) -> dict[str, BaseJobHandler]:
    """One instance of each built-in handler."""
    handlers: list[BaseJobHandler] = [
        DataSyncJob(latency_scale),
        EmailSenderJob(latency_scale),
        ReportGeneratorJob(latency_scale),
        CleanupJob(latency_scale),
    ]
    return {handler.job_type: handler for handler in handlers}
