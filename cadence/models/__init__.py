from cadence.models.base import Base
from cadence.models.scheduled_job import ScheduledJobRecord

__all__ = [
    "Base",
    "ScheduledJobRecord",
]
