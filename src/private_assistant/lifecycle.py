"""Lazy, idempotent async initialization shared by collaborator services."""

from __future__ import annotations

import asyncio


class LazyInitMixin:
    """Runs `_initialize` once on first use.

    Concurrent callers await the same in-flight initialization instead of
    starting a new one. A failed initialization is not cached, so the next
    call retries. Cancelling one waiter leaves the shared load running.
    """

    _ready: bool = False
    _init_task: asyncio.Future[None] | None = None

    async def _initialize(self) -> None:
        """Load resources. Subclasses override."""

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        if self._ready:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        task = self._init_task
        try:
            # A cancelled waiter must not cancel the load other callers share.
            await asyncio.shield(task)
        except BaseException:
            if self._init_task is task and _failed(task):
                self._init_task = None
            raise
        self._ready = True

    def reset(self) -> None:
        """Forget the initialized state so the next call loads again."""
        self._ready = False
        self._init_task = None


def _failed(task: asyncio.Future[None]) -> bool:
    if not task.done():
        return False
    return task.cancelled() or task.exception() is not None
