"""
Pytest configuration and fixtures for cadence tests.

Provides:
- A small connection pool and job stores (in-memory and SQLite)
- A fixed clock for deterministic scheduling
- Factory fixtures for jobs and workflows
"""

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from cadence.core.database import create_session_factory
from cadence.db.pool import ResourcePool
from cadence.jobs.store import InMemoryJobStore, SqlAlchemyJobStore
from cadence.models import Base
from cadence.schemas.job import JobStatus, ScheduledJob
from cadence.schemas.workflow import Workflow, WorkflowStep

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 10:15:30 UTC, deliberately off the hour
FIXED_NOW = datetime(2024, 1, 15, 10, 15, 30)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    """Clock callable pinned to FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest_asyncio.fixture
async def pool() -> AsyncGenerator[ResourcePool, None]:
    """Five-connection pool with a short acquire timeout."""
    test_pool = ResourcePool(size=5, connection_timeout=0.5, name="test")
    yield test_pool
    await test_pool.close()


@pytest.fixture
def memory_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def sql_store(db_engine) -> SqlAlchemyJobStore:
    return SqlAlchemyJobStore(create_session_factory(db_engine))


@pytest.fixture
def job_factory():
    """Build ScheduledJob instances with sensible defaults."""

    def _create(**overrides) -> ScheduledJob:
        defaults = {
            "job_type": "data-sync",
            "customer_id": "cust_1",
            "next_run_at": FIXED_NOW.replace(minute=0, second=0),
            "status": JobStatus.SCHEDULED,
            "payload": {"source": "crm", "destination": "warehouse", "entityType": "contacts"},
        }
        defaults.update(overrides)
        return ScheduledJob(**defaults)

    return _create


@pytest.fixture
def workflow_factory():
    """Build a workflow from (step_number, type, config) tuples."""

    def _create(*steps: tuple[int, str, dict], workflow_id: str = "wf_1") -> Workflow:
        return Workflow(
            id=workflow_id,
            customer_id="cust_1",
            name="Test workflow",
            steps=[
                WorkflowStep(
                    id=f"step_{number}",
                    name=f"Step {number}",
                    type=step_type,
                    step_number=number,
                    config=config,
                )
                for number, step_type, config in steps
            ],
        )

    return _create
