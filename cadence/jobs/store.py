"""
Job store interface and implementations.

The scheduler and queue only need filter-by-status, filter-by-due-time and
per-id updates, so the interface stays narrow. Three implementations:

- InMemoryJobStore: dict-backed, for tests and single-process runs
- SqlAlchemyJobStore: the scheduled_jobs table via an async session factory
- PooledJobStore: wraps another store and charges each call to one pooled
  connection
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cadence.core.datetime_utils import utc_now
from cadence.core.exceptions import JobNotFoundError
from cadence.core.logging import get_logger
from cadence.db.pool import ResourcePool
from cadence.models.scheduled_job import ScheduledJobRecord
from cadence.schemas.job import JobFilter, ScheduledJob

T = TypeVar("T")

logger = get_logger(__name__)

# Columns a patch may touch
UPDATABLE_FIELDS = frozenset(
    {
        "next_run_at",
        "status",
        "retry_count",
        "max_retries",
        "payload",
        "last_run_at",
        "last_error",
    }
)


def _check_patch(patch: dict[str, Any]) -> None:
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update job fields: {', '.join(sorted(unknown))}")


class JobStore(ABC):
    """Abstract record store for scheduled jobs."""

    @abstractmethod
    async def find_many(self, job_filter: JobFilter | None = None) -> list[ScheduledJob]:
        """Return jobs matching the filter, ordered by next_run_at."""
        pass

    @abstractmethod
    async def get(self, job_id: str) -> ScheduledJob | None:
        pass

    @abstractmethod
    async def create(self, job: ScheduledJob) -> ScheduledJob:
        pass

    @abstractmethod
    async def update(self, job_id: str, **patch: Any) -> ScheduledJob:
        """
        Apply a partial update and stamp updated_at.

        Raises:
            JobNotFoundError: No job with this id
        """
        pass

    @abstractmethod
    async def delete(self, job_id: str) -> None:
        """Delete a job. Unknown ids are ignored."""
        pass


class InMemoryJobStore(JobStore):
    """Dict-backed store. Returns copies so callers never share state with it."""

    def __init__(self) -> None:
        self._jobs: dict[str, ScheduledJob] = {}

    async def find_many(self, job_filter: JobFilter | None = None) -> list[ScheduledJob]:
        job_filter = job_filter or JobFilter()
        matches = [job for job in self._jobs.values() if job_filter.matches(job)]
        matches.sort(key=lambda job: job.next_run_at)
        return [job.model_copy(deep=True) for job in matches]

    async def get(self, job_id: str) -> ScheduledJob | None:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def create(self, job: ScheduledJob) -> ScheduledJob:
        self._jobs[job.id] = job.model_copy(deep=True)
        return job

    async def update(self, job_id: str, **patch: Any) -> ScheduledJob:
        _check_patch(patch)
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        updated = job.model_copy(update={**patch, "updated_at": utc_now()}, deep=True)
        self._jobs[job_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)


def _to_schema(record: ScheduledJobRecord) -> ScheduledJob:
    return ScheduledJob.model_validate(record, from_attributes=True)


class SqlAlchemyJobStore(JobStore):
    """Store backed by the scheduled_jobs table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_many(self, job_filter: JobFilter | None = None) -> list[ScheduledJob]:
        job_filter = job_filter or JobFilter()
        stmt = select(ScheduledJobRecord).order_by(ScheduledJobRecord.next_run_at)
        if job_filter.status is not None:
            stmt = stmt.where(ScheduledJobRecord.status == job_filter.status)
        if job_filter.due_before is not None:
            stmt = stmt.where(ScheduledJobRecord.next_run_at <= job_filter.due_before)
        if job_filter.customer_id is not None:
            stmt = stmt.where(ScheduledJobRecord.customer_id == job_filter.customer_id)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_schema(record) for record in result.scalars().all()]

    async def get(self, job_id: str) -> ScheduledJob | None:
        async with self._session_factory() as session:
            record = await session.get(ScheduledJobRecord, job_id)
            return _to_schema(record) if record else None

    async def create(self, job: ScheduledJob) -> ScheduledJob:
        async with self._session_factory() as session:
            session.add(ScheduledJobRecord(**job.model_dump()))
            await session.commit()
        return job

    async def update(self, job_id: str, **patch: Any) -> ScheduledJob:
        _check_patch(patch)
        async with self._session_factory() as session:
            record = await session.get(ScheduledJobRecord, job_id)
            if record is None:
                raise JobNotFoundError(job_id)

            for key, value in patch.items():
                setattr(record, key, value)
            record.updated_at = utc_now()
            await session.commit()
            await session.refresh(record)
            return _to_schema(record)

    async def delete(self, job_id: str) -> None:
        async with self._session_factory() as session:
            record = await session.get(ScheduledJobRecord, job_id)
            if record is not None:
                await session.delete(record)
                await session.commit()


class ConnectionRoutedStore(JobStore):
    """
    Store that runs each record operation as a statement on a pooled connection.

    Subclasses decide which connection a statement runs on.
    """

    def __init__(self, store: JobStore, pool: ResourcePool) -> None:
        self._store = store
        self._pool = pool

    @abstractmethod
    async def _run(self, statement: str, op: Callable[[], Awaitable[T]]) -> T:
        pass

    async def find_many(self, job_filter: JobFilter | None = None) -> list[ScheduledJob]:
        return await self._run(
            "SELECT * FROM scheduled_jobs WHERE ...", lambda: self._store.find_many(job_filter)
        )

    async def get(self, job_id: str) -> ScheduledJob | None:
        return await self._run(
            "SELECT * FROM scheduled_jobs WHERE id = ...", lambda: self._store.get(job_id)
        )

    async def create(self, job: ScheduledJob) -> ScheduledJob:
        return await self._run("INSERT INTO scheduled_jobs ...", lambda: self._store.create(job))

    async def update(self, job_id: str, **patch: Any) -> ScheduledJob:
        return await self._run(
            "UPDATE scheduled_jobs SET ...", lambda: self._store.update(job_id, **patch)
        )

    async def delete(self, job_id: str) -> None:
        await self._run(
            "DELETE FROM scheduled_jobs WHERE id = ...", lambda: self._store.delete(job_id)
        )


class PooledJobStore(ConnectionRoutedStore):
    """Each call holds one pooled connection for its duration."""

    async def _run(self, statement: str, op: Callable[[], Awaitable[T]]) -> T:
        async with self._pool.connection() as conn:
            await self._pool.execute(conn, statement)
            return await op()
