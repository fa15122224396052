"""Fire-and-forget background work: persistence writes and deferred session failures."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Optional, Set

from observability import log_event

logger = logging.getLogger(__name__)

_PENDING: Set["asyncio.Task[Any]"] = set()


async def _guarded(awaitable: Awaitable[Any], what: str, session_id: Optional[str]) -> None:
    try:
        await awaitable
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.warning("Background %s failed: %s", what, exc)
        log_event("background_failed", session_id, level=logging.WARNING, outcome=what, error=str(exc))


def spawn_detached(awaitable: Awaitable[Any], *, what: str, session_id: Optional[str] = None) -> "asyncio.Task[Any]":
    """Schedule ``awaitable`` without awaiting it; failures are logged, never raised."""

    task = asyncio.get_running_loop().create_task(_guarded(awaitable, what, session_id))
    _PENDING.add(task)
    task.add_done_callback(_PENDING.discard)
    return task


async def drain_detached() -> None:
    """Wait for outstanding background work. Used at shutdown and in tests."""

    while _PENDING:
        await asyncio.gather(*list(_PENDING), return_exceptions=True)


__all__ = ["drain_detached", "spawn_detached"]
