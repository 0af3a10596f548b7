"""
Bounded connection pool with a FIFO wait queue.

The pool hands out at most ``size`` connections at a time. When none are
available, acquirers queue up and are served strictly in arrival order; each
waiter carries its own deadline and is dropped from the queue with
PoolTimeoutError when it passes.

All pool state is mutated synchronously inside a single event loop turn
(acquire fast path, release hand-off, timer expiry), so asyncio's
cooperative scheduling is what keeps the counters consistent. The pool must
only be used from the loop that created its waiters.
"""

import asyncio
import enum
import random
import time
import uuid
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from cadence.core import metrics
from cadence.core.datetime_utils import utc_now
from cadence.core.exceptions import PoolClosedError, PoolTimeoutError
from cadence.core.logging import get_logger

logger = get_logger(__name__)


class ConnectionState(str, enum.Enum):
    """Backend connection state."""

    ACTIVE = "active"
    IDLE = "idle"
    IDLE_IN_TRANSACTION = "idle_in_transaction"


@dataclass
class PooledConnection:
    """Handle for one checked-out pool slot."""

    id: str = field(default_factory=lambda: f"conn_{uuid.uuid4().hex[:9]}")
    state: ConnectionState = ConnectionState.ACTIVE
    acquired_at: datetime = field(default_factory=utc_now)
    query_count: int = 0
    transaction_id: str | None = None


@dataclass
class PoolStats:
    """Point-in-time pool counters."""

    total: int
    active: int
    available: int
    waiting: int
    idle_in_transaction: int


class ConnectionBackend(Protocol):
    """Executes statements on behalf of a pooled connection."""

    async def execute(self, conn: PooledConnection, statement: str) -> None: ...


class SimulatedBackend:
    """Stand-in database that only spends time."""

    def __init__(self, latency_ms: tuple[float, float] = (0.0, 0.0)) -> None:
        self.latency_ms = latency_ms

    async def execute(self, conn: PooledConnection, statement: str) -> None:
        low, high = self.latency_ms
        if high > 0:
            await asyncio.sleep(random.uniform(low, high) / 1000)


@dataclass(eq=False)
class _Waiter:
    future: asyncio.Future[PooledConnection]
    enqueued_at: float
    timer: asyncio.TimerHandle | None = None


class ResourcePool:
    """Fixed-capacity pool of backend connections."""

    def __init__(
        self,
        size: int,
        connection_timeout: float,
        backend: ConnectionBackend | None = None,
        name: str = "default",
    ) -> None:
        """
        Initialize the pool.

        Args:
            size: Maximum number of connections checked out at once
            connection_timeout: Seconds a queued acquirer waits before failing
            backend: Statement executor, defaults to a zero-latency simulation
            name: Label used in logs and metrics
        """
        if size < 1:
            raise ValueError("Pool size must be at least 1")

        self.size = size
        self.connection_timeout = connection_timeout
        self.name = name
        self._backend: ConnectionBackend = backend or SimulatedBackend()
        self._available = size
        self._connections: dict[str, PooledConnection] = {}
        self._waiters: deque[_Waiter] = deque()
        self._closed = False

        logger.info(
            "pool_initialized",
            pool=name,
            size=size,
            connection_timeout=connection_timeout,
        )

    @property
    def available(self) -> int:
        return self._available

    @property
    def active(self) -> int:
        return self.size - self._available

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    @property
    def closed(self) -> bool:
        return self._closed

    async def acquire(self) -> PooledConnection:
        """
        Check out a connection, queueing if the pool is exhausted.

        Returns:
            A fresh connection record in the ACTIVE state

        Raises:
            PoolTimeoutError: No connection was freed within connection_timeout
            PoolClosedError: The pool is closed
        """
        if self._closed:
            raise PoolClosedError(f"Pool {self.name} is closed")

        started = time.monotonic()

        if self._available > 0:
            self._available -= 1
            conn = self._mint()
            self._update_gauges()
            metrics.pool_acquire_wait_seconds.labels(pool=self.name).observe(
                time.monotonic() - started
            )
            return conn

        loop = asyncio.get_running_loop()
        waiter = _Waiter(future=loop.create_future(), enqueued_at=started)
        waiter.timer = loop.call_later(self.connection_timeout, self._expire, waiter)
        self._waiters.append(waiter)
        self._update_gauges()

        try:
            return await waiter.future
        except asyncio.CancelledError:
            self._abandon(waiter)
            raise

    def release(self, conn: PooledConnection) -> None:
        """
        Return a connection to the pool.

        If acquirers are queued, the freed slot goes straight to the head of
        the queue as a brand-new connection record and the available count
        is left untouched.
        """
        if self._connections.pop(conn.id, None) is None:
            logger.warning("pool_release_unknown_connection", pool=self.name, connection_id=conn.id)
            return

        if conn.state == ConnectionState.IDLE_IN_TRANSACTION:
            logger.debug(
                "connection_released_in_transaction",
                connection_id=conn.id,
                transaction_id=conn.transaction_id,
            )
        conn.state = ConnectionState.IDLE

        while self._waiters:
            waiter = self._waiters.popleft()
            if waiter.future.done():
                # Acquirer was cancelled but has not cleaned up yet
                continue
            if waiter.timer is not None:
                waiter.timer.cancel()
            waiter.future.set_result(self._mint())
            metrics.pool_acquired_after_wait_total.labels(pool=self.name).inc()
            metrics.pool_acquire_wait_seconds.labels(pool=self.name).observe(
                time.monotonic() - waiter.enqueued_at
            )
            self._update_gauges()
            return

        self._available += 1
        self._update_gauges()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[PooledConnection]:
        """Acquire a connection for the duration of the block."""
        conn = await self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    async def execute(self, conn: PooledConnection, statement: str) -> None:
        """Run a statement on a checked-out connection."""
        if conn.id not in self._connections:
            raise RuntimeError(f"Connection {conn.id} is not checked out of pool {self.name}")

        started = time.monotonic()
        conn.query_count += 1
        await self._backend.execute(conn, statement)
        duration = time.monotonic() - started
        metrics.db_query_duration_seconds.observe(duration)

        logger.debug(
            "query_executed",
            connection_id=conn.id,
            statement=statement[:50],
            state=conn.state.value,
            transaction_id=conn.transaction_id,
            duration_ms=round(duration * 1000, 3),
        )

    def stats(self) -> PoolStats:
        idle_in_transaction = sum(
            1
            for conn in self._connections.values()
            if conn.state == ConnectionState.IDLE_IN_TRANSACTION
        )
        return PoolStats(
            total=self.size,
            active=self.active,
            available=self._available,
            waiting=len(self._waiters),
            idle_in_transaction=idle_in_transaction,
        )

    def outstanding(self) -> list[PooledConnection]:
        """Connections currently checked out."""
        return list(self._connections.values())

    async def close(self) -> None:
        """Refuse new acquisitions and fail every queued waiter."""
        self._closed = True
        while self._waiters:
            waiter = self._waiters.popleft()
            if waiter.timer is not None:
                waiter.timer.cancel()
            if not waiter.future.done():
                waiter.future.set_exception(PoolClosedError(f"Pool {self.name} is closed"))
        self._update_gauges()
        logger.info("pool_closed", pool=self.name, outstanding=len(self._connections))

    def _mint(self) -> PooledConnection:
        conn = PooledConnection()
        self._connections[conn.id] = conn
        return conn

    def _expire(self, waiter: _Waiter) -> None:
        if waiter.future.done():
            return

        self._waiters.remove(waiter)
        metrics.pool_timeouts_total.labels(pool=self.name).inc()
        logger.error(
            "connection_pool_timeout",
            pool=self.name,
            size=self.size,
            available=self._available,
            wait_queue_depth=len(self._waiters),
            wait_time_ms=round((time.monotonic() - waiter.enqueued_at) * 1000, 3),
        )
        waiter.future.set_exception(PoolTimeoutError(self.name, self.connection_timeout))
        self._update_gauges()

    def _abandon(self, waiter: _Waiter) -> None:
        if waiter.timer is not None:
            waiter.timer.cancel()

        future = waiter.future
        if future.done() and not future.cancelled() and future.exception() is None:
            # Granted in the same turn the acquirer was cancelled
            self.release(future.result())
            return

        if waiter in self._waiters:
            self._waiters.remove(waiter)
        self._update_gauges()

    def _update_gauges(self) -> None:
        metrics.pool_connections_active.labels(pool=self.name).set(self.active)
        metrics.pool_queue_depth.labels(pool=self.name).set(len(self._waiters))
