"""Persists workflow execution state in the cache."""

import json
from typing import Any

from cadence.core.cache import BaseCache
from cadence.core.logging import get_logger

logger = get_logger(__name__)

STATE_TTL_SECONDS = 3600


def _state_key(execution_id: str) -> str:
    return f"workflow:state:{execution_id}"


class WorkflowStateManager:
    """Save, load and drop execution state keyed by execution id."""

    def __init__(self, cache: BaseCache, ttl_seconds: int = STATE_TTL_SECONDS) -> None:
        self._cache = cache
        self._ttl = ttl_seconds

    async def save_state(self, execution_id: str, state: dict[str, Any]) -> None:
        try:
            await self._cache.set(_state_key(execution_id), state, self._ttl)
        except Exception as e:
            logger.bind(error=str(e)).error("workflow_state_save_failed", execution_id=execution_id)
            raise

        logger.debug(
            "workflow_state_saved",
            execution_id=execution_id,
            state_size=len(json.dumps(state, default=str)),
        )

    async def get_state(self, execution_id: str) -> dict[str, Any] | None:
        try:
            state = await self._cache.get(_state_key(execution_id))
        except Exception as e:
            logger.bind(error=str(e)).error(
                "workflow_state_load_failed", execution_id=execution_id
            )
            raise

        if state is None:
            logger.debug("workflow_state_not_found", execution_id=execution_id)
        return state

    async def delete_state(self, execution_id: str) -> None:
        try:
            await self._cache.delete(_state_key(execution_id))
        except Exception as e:
            logger.bind(error=str(e)).error(
                "workflow_state_delete_failed", execution_id=execution_id
            )
            raise

        logger.debug("workflow_state_deleted", execution_id=execution_id)
