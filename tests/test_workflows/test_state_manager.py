"""Tests for WorkflowStateManager."""

from unittest.mock import AsyncMock

import pytest

from cadence.core.cache import InMemoryCache
from cadence.workflows.state_manager import WorkflowStateManager

pytestmark = pytest.mark.asyncio


class TestWorkflowStateManager:
    async def test_save_and_get(self):
        cache = InMemoryCache()
        manager = WorkflowStateManager(cache)

        await manager.save_state("exec_1", {"step": 2})

        assert await manager.get_state("exec_1") == {"step": 2}
        assert await cache.get("workflow:state:exec_1") == {"step": 2}

    async def test_uses_one_hour_ttl(self):
        cache = AsyncMock()
        manager = WorkflowStateManager(cache)

        await manager.save_state("exec_1", {"step": 1})

        cache.set.assert_awaited_once_with("workflow:state:exec_1", {"step": 1}, 3600)

    async def test_missing_state(self):
        assert await WorkflowStateManager(InMemoryCache()).get_state("exec_missing") is None

    async def test_delete(self):
        manager = WorkflowStateManager(InMemoryCache())
        await manager.save_state("exec_1", {"step": 1})

        await manager.delete_state("exec_1")

        assert await manager.get_state("exec_1") is None

    async def test_cache_errors_propagate(self):
        cache = AsyncMock()
        cache.set.side_effect = ConnectionError("cache down")

        with pytest.raises(ConnectionError):
            await WorkflowStateManager(cache).save_state("exec_1", {})
