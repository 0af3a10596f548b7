"""
Transaction coordination on top of the connection pool.

run_transaction() executes one unit of work on a single pooled connection
between BEGIN and COMMIT, rolling back on any error. with_transaction() adds
bounded retry for serialization failures and deadlocks.

Work functions receive a Transaction handle rather than the pool or a full
store: it exposes only the record operations that are valid inside a
transaction, so nested transactions cannot be opened by accident.
"""

import asyncio
import enum
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from cadence.config import TransactionConfig
from cadence.core import metrics
from cadence.core.exceptions import TransactionConflictError
from cadence.core.logging import get_logger
from cadence.core.retry import RetryConfig, retry_with_backoff
from cadence.db.pool import ConnectionState, PooledConnection, ResourcePool
from cadence.jobs.store import ConnectionRoutedStore, JobStore

T = TypeVar("T")

logger = get_logger(__name__)

# Backoff unit between conflict retries: attempt n sleeps 2**n * 100ms
CONFLICT_BACKOFF_UNIT = 0.1

_CONFLICT_MARKERS = ("serialization", "deadlock")


class IsolationLevel(str, enum.Enum):
    READ_UNCOMMITTED = "read_uncommitted"
    READ_COMMITTED = "read_committed"
    REPEATABLE_READ = "repeatable_read"
    SERIALIZABLE = "serializable"


@dataclass
class TransactionOptions:
    """Per-call overrides. Unset fields fall back to the coordinator defaults."""

    timeout: float | None = None
    isolation_level: IsolationLevel | str | None = None
    max_retries: int | None = None


def is_conflict(error: Exception) -> bool:
    """Whether an error is a serialization failure or deadlock."""
    if isinstance(error, TransactionConflictError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _CONFLICT_MARKERS)


class Transaction(ConnectionRoutedStore):
    """Record operations bound to one connection inside BEGIN/COMMIT."""

    def __init__(
        self,
        store: JobStore,
        pool: ResourcePool,
        conn: PooledConnection,
        isolation_level: IsolationLevel,
    ) -> None:
        super().__init__(store, pool)
        self._conn = conn
        self.isolation_level = isolation_level

    @property
    def id(self) -> str | None:
        return self._conn.transaction_id

    @property
    def connection_id(self) -> str:
        return self._conn.id

    async def _run(self, statement: str, op: Callable[[], Awaitable[T]]) -> T:
        await self._pool.execute(self._conn, statement)
        return await op()


class TransactionCoordinator:
    """Runs units of work in transactions on pooled connections."""

    def __init__(
        self,
        pool: ResourcePool,
        store: JobStore,
        defaults: TransactionConfig | None = None,
    ) -> None:
        self._pool = pool
        self._store = store
        self._default_timeout = defaults.timeout if defaults else 60.0
        self._default_isolation = IsolationLevel(
            defaults.isolation_level if defaults else IsolationLevel.READ_COMMITTED
        )
        self._default_max_retries = defaults.max_retries if defaults else 3

    async def run_transaction(
        self,
        work: Callable[[Transaction], Awaitable[T]],
        options: TransactionOptions | None = None,
    ) -> T:
        """
        Run work once inside BEGIN/COMMIT on a single connection.

        Any error (including the timeout) triggers ROLLBACK and propagates.
        The connection is always released.

        Raises:
            PoolTimeoutError: No connection could be acquired
            TimeoutError: The transaction exceeded its timeout
        """
        options = options or TransactionOptions()
        timeout = self._default_timeout if options.timeout is None else options.timeout
        isolation = IsolationLevel(
            self._default_isolation if options.isolation_level is None else options.isolation_level
        )

        conn = await self._pool.acquire()
        conn.state = ConnectionState.IDLE_IN_TRANSACTION
        conn.transaction_id = f"tx_{uuid.uuid4().hex[:9]}"
        tx = Transaction(self._store, self._pool, conn, isolation)
        started = time.monotonic()

        logger.debug(
            "transaction_started",
            connection_id=conn.id,
            transaction_id=conn.transaction_id,
            isolation_level=isolation.value,
        )

        try:
            await self._pool.execute(conn, "BEGIN")
            async with asyncio.timeout(timeout):
                result = await work(tx)
            await self._pool.execute(conn, "COMMIT")

            duration = time.monotonic() - started
            metrics.transaction_duration_seconds.labels(outcome="commit").observe(duration)
            logger.debug(
                "transaction_committed",
                connection_id=conn.id,
                transaction_id=conn.transaction_id,
                duration_ms=round(duration * 1000, 3),
            )
            return result
        except Exception as e:
            await self._pool.execute(conn, "ROLLBACK")

            duration = time.monotonic() - started
            metrics.transaction_duration_seconds.labels(outcome="rollback").observe(duration)
            logger.bind(error=str(e)).error(
                "transaction_rolled_back",
                connection_id=conn.id,
                transaction_id=conn.transaction_id,
                duration_ms=round(duration * 1000, 3),
            )
            raise
        finally:
            self._pool.release(conn)

    async def with_transaction(
        self,
        work: Callable[[Transaction], Awaitable[T]],
        options: TransactionOptions | None = None,
    ) -> T:
        """
        Run work in a transaction, retrying the whole transaction on conflicts.

        At most max_retries attempts are made. Attempt n that fails with a
        serialization failure or deadlock is followed by a 2**n * 100ms sleep.
        Any other error propagates immediately.

        Raises:
            TransactionConflictError: Every attempt hit a conflict
        """
        options = options or TransactionOptions()
        max_retries = (
            self._default_max_retries if options.max_retries is None else options.max_retries
        )

        def _retry_if(error: Exception) -> bool:
            if is_conflict(error):
                metrics.transaction_conflicts_total.inc()
                return True
            return False

        config = RetryConfig(
            max_attempts=max(1, max_retries),
            backoff_base=2 * CONFLICT_BACKOFF_UNIT,
            backoff_max=float("inf"),
            jitter=False,
            retry_if=_retry_if,
        )

        try:
            return await retry_with_backoff(
                lambda: self.run_transaction(work, options),
                config=config,
                operation_name="transaction",
            )
        except Exception as e:
            if is_conflict(e) and not isinstance(e, TransactionConflictError):
                raise TransactionConflictError(
                    f"Transaction failed after {config.max_attempts} attempts: {e}"
                ) from e
            raise

    async def batch_in_transaction(
        self, operations: list[Callable[[Transaction], Awaitable[Any]]]
    ) -> list[Any]:
        """Run operations in order inside one transaction and return their results."""

        async def _work(tx: Transaction) -> list[Any]:
            return [await operation(tx) for operation in operations]

        return await self.run_transaction(_work)
