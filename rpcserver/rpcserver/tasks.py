"""Background task pool for fire-and-forget work.

Jobs run inside an ``anyio`` task group owned by the pool.  A failing job
is logged here and never reaches whoever scheduled it.  Leaving the pool
waits for outstanding jobs.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

import anyio
from anyio.abc import TaskGroup

log = logging.getLogger(__name__)


class TaskPool:
    """Owns a task group that detached jobs are started on.

    Usage::

        async with TaskPool() as pool:
            pool.start_soon(write_log, record)
    """

    def __init__(self, name: str = "tasks") -> None:
        self.name = name
        self._tg: TaskGroup | None = None
        self._pending = 0
        self.failures = 0

    # -- Lifecycle -----------------------------------------------------
    async def __aenter__(self) -> "TaskPool":
        self._tg = anyio.create_task_group()
        await self._tg.__aenter__()
        return self

    async def __aexit__(self, *exc: Any) -> bool | None:
        tg, self._tg = self._tg, None
        if tg is None:
            raise RuntimeError(f"task pool {self.name!r} is not running")
        return await tg.__aexit__(*exc)

    @property
    def running(self) -> bool:
        return self._tg is not None

    @property
    def pending(self) -> int:
        return self._pending

    # -- Public API ----------------------------------------------------
    def start_soon(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> None:
        """Schedule ``fn(*args)`` without waiting for it."""
        if self._tg is None:
            raise RuntimeError(f"task pool {self.name!r} is not running")

        async def _run() -> None:
            try:
                await fn(*args)
            except Exception:
                self.failures += 1
                log.exception("%s: background job %s failed", self.name, _describe(fn))
            finally:
                self._pending -= 1

        self._pending += 1
        self._tg.start_soon(_run)


def _describe(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", repr(fn))
