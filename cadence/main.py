"""
Runtime wiring.

Every collaborator is built here and handed to its dependents explicitly;
nothing below this module reaches for a global instance.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from cadence.config import AppConfig, get_config
from cadence.core.cache import InMemoryCache
from cadence.core.database import create_engine, create_session_factory, create_tables
from cadence.core.logging import get_logger
from cadence.db.pool import ResourcePool, SimulatedBackend
from cadence.db.transactions import TransactionCoordinator
from cadence.jobs.executor import JobExecutor
from cadence.jobs.handlers import default_handlers
from cadence.jobs.queue import JobQueue
from cadence.jobs.scheduler import JobScheduler
from cadence.jobs.store import InMemoryJobStore, JobStore, PooledJobStore, SqlAlchemyJobStore
from cadence.workflows import (
    StepRunner,
    ValidationServiceClient,
    WorkflowExecutor,
    WorkflowJobHandler,
    WorkflowStateManager,
    WorkflowValidator,
)

logger = get_logger(__name__)


@dataclass
class Runtime:
    """All long-lived components of one process."""

    config: AppConfig
    pool: ResourcePool
    store: JobStore
    transactions: TransactionCoordinator
    cache: InMemoryCache
    scheduler: JobScheduler
    executor: JobExecutor
    queue: JobQueue
    workflow_executor: WorkflowExecutor
    validator: WorkflowValidator
    validation_client: ValidationServiceClient
    engine: AsyncEngine | None = None


def build_runtime(config: AppConfig | None = None, in_memory: bool = False) -> Runtime:
    """
    Build the component graph.

    Args:
        config: Application config (defaults to the cached one)
        in_memory: Keep jobs in a dict instead of the database

    Returns:
        Runtime with nothing started yet
    """
    config = config or get_config()

    pool = ResourcePool(
        size=config.pool.size,
        connection_timeout=config.pool.connection_timeout,
        backend=SimulatedBackend(config.pool.latency_ms),
    )

    engine: AsyncEngine | None = None
    backing: JobStore
    if in_memory:
        backing = InMemoryJobStore()
    else:
        engine = create_engine(config.settings.database_url, echo=config.settings.debug)
        backing = SqlAlchemyJobStore(create_session_factory(engine))
    store = PooledJobStore(backing, pool)

    cache = InMemoryCache(default_ttl=config.cache.ttl)

    step_runner = StepRunner(latency_scale=config.jobs.latency_scale)
    workflow_executor = WorkflowExecutor(step_runner, WorkflowStateManager(cache, config.cache.ttl))
    validator = WorkflowValidator()

    executor = JobExecutor(default_handlers(config.jobs.latency_scale))
    workflow_handler = WorkflowJobHandler(workflow_executor, validator)
    executor.register(workflow_handler.job_type, workflow_handler)

    queue = JobQueue(
        store,
        executor,
        poll_interval=config.jobs.poll_interval,
        job_timeout=config.jobs.timeout,
        concurrency=config.jobs.concurrency,
    )

    logger.info(
        "runtime_built",
        store=type(backing).__name__,
        pool_size=pool.size,
        handlers=executor.registered_types(),
    )

    return Runtime(
        config=config,
        pool=pool,
        store=store,
        transactions=TransactionCoordinator(pool, backing, config.transactions),
        cache=cache,
        scheduler=JobScheduler(store, default_max_retries=config.jobs.max_retries),
        executor=executor,
        queue=queue,
        workflow_executor=workflow_executor,
        validator=validator,
        validation_client=ValidationServiceClient(config.validation_service),
        engine=engine,
    )


async def _cleanup_cache(cache: InMemoryCache, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        removed = cache.cleanup()
        if removed:
            logger.debug("cache_cleanup", removed=removed)


@asynccontextmanager
async def open_runtime(runtime: Runtime) -> AsyncGenerator[Runtime, None]:
    """Prepare storage and release it on exit, without starting the queue."""
    if runtime.engine is not None and runtime.engine.url.get_backend_name() == "sqlite":
        await create_tables(runtime.engine)
    try:
        yield runtime
    finally:
        await runtime.pool.close()
        if runtime.engine is not None:
            await runtime.engine.dispose()


@asynccontextmanager
async def lifespan(runtime: Runtime) -> AsyncGenerator[Runtime, None]:
    """Start polling and cache cleanup; on exit stop, drain and close."""
    async with open_runtime(runtime):
        cleanup = asyncio.create_task(
            _cleanup_cache(runtime.cache, runtime.config.cache.cleanup_interval)
        )
        runtime.queue.start()
        logger.info("runtime_started")
        try:
            yield runtime
        finally:
            runtime.queue.stop()
            await runtime.queue.drain()
            cleanup.cancel()
            await asyncio.gather(cleanup, return_exceptions=True)
            logger.info("runtime_stopped")
