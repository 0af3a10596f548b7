"""Tests for runtime wiring and lifespan."""

from datetime import datetime

import pytest

from cadence.config import AppConfig, Settings
from cadence.main import build_runtime, lifespan, open_runtime
from cadence.schemas.job import JobStatus

pytestmark = pytest.mark.asyncio


def _config(tmp_path, **settings) -> AppConfig:
    config_path = tmp_path / "config.yml"
    config_path.write_text("jobs:\n  latency_scale: 0\npool:\n  size: 4\n")
    return AppConfig(Settings(**settings), config_path=config_path)


class TestBuildRuntime:
    async def test_wires_components(self, tmp_path):
        runtime = build_runtime(_config(tmp_path), in_memory=True)

        assert runtime.pool.size == 4
        assert runtime.engine is None
        assert "workflow" in runtime.executor.registered_types()
        assert "data-sync" in runtime.executor.registered_types()
        assert runtime.queue.is_running is False

    async def test_lifespan_starts_and_stops_queue(self, tmp_path):
        runtime = build_runtime(_config(tmp_path), in_memory=True)

        async with lifespan(runtime):
            assert runtime.queue.is_running is True

        assert runtime.queue.is_running is False
        assert runtime.pool.closed is True

    async def test_due_job_runs_during_lifespan(self, tmp_path):
        runtime = build_runtime(_config(tmp_path), in_memory=True)
        job = await runtime.scheduler.schedule_job(
            "cleanup",
            "cust_1",
            datetime(2024, 1, 1, 9, 0),
            {"resourceType": "logs", "olderThan": "30d"},
        )

        async with lifespan(runtime):
            await runtime.queue.drain()
            stored = await runtime.store.get(job.id)

        assert stored.status == JobStatus.COMPLETED


class TestSqliteRuntime:
    async def test_jobs_persist_in_database(self, tmp_path):
        """open_runtime should create tables for a SQLite database."""
        url = f"sqlite+aiosqlite:///{tmp_path / 'cadence.db'}"
        runtime = build_runtime(_config(tmp_path, database_url=url))

        async with open_runtime(runtime):
            job = await runtime.scheduler.schedule_job(
                "data-sync",
                "cust_1",
                datetime(2024, 1, 15, 10, 15, 30),
                {"source": "crm", "destination": "dw", "entityType": "contacts"},
            )
            stored = await runtime.store.get(job.id)

        assert stored is not None
        assert stored.next_run_at == datetime(2024, 1, 15, 11, 0)
        assert runtime.pool.active == 0
