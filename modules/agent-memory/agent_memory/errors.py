"""Errors and the best-effort side effect policy."""

import logging
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


class AgentMemoryError(Exception):
    """Base class for errors raised by agent_memory."""


class MemoryValidationError(AgentMemoryError, ValueError):
    """Caller supplied a memory that cannot be processed. Never retried."""


async def best_effort(
    awaitable: Awaitable[Any], action: str, default: Optional[Any] = None
) -> Any:
    """Await a side effect whose failure must not fail the caller.

    Any exception is logged with its traceback and `default` is returned.
    """
    try:
        return await awaitable
    except Exception:
        logger.warning("Best-effort %s failed", action, exc_info=True)
        return default
