from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from recall.errors import GenerationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskRegistry:
    """At most one running task per key; starting a new one cancels the old one."""

    def __init__(self) -> None:
        self._running: dict[str, asyncio.Task[Any]] = {}
        self._superseded: set[asyncio.Task[Any]] = set()

    def start_task(self, key: str, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        """Create an asyncio task under `key`, cancelling any task still pending there."""
        previous = self._running.get(key)
        if previous is not None and not previous.done():
            logger.info("Superseding pending task for %s", key)
            self._superseded.add(previous)
            previous.cancel()

        task = asyncio.create_task(coro, name=f"generate-{key}")
        self._running[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        return task

    def _forget(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._running.get(key) is task:
            del self._running[key]

    async def run_exclusive(self, key: str, coro: Coroutine[Any, Any, T]) -> T:
        """Run `coro` as the only task for `key` and wait for its result.

        Raises GenerationCancelledError if a newer call for the same key
        superseded this one before it finished.
        """
        task = self.start_task(key, coro)
        try:
            return await task
        except asyncio.CancelledError:
            if task in self._superseded:
                raise GenerationCancelledError(
                    f"Generation for {key} was replaced by a newer request"
                ) from None
            raise
        finally:
            self._superseded.discard(task)

    def get_task(self, key: str) -> asyncio.Task[Any] | None:
        return self._running.get(key)

    def is_running(self, key: str) -> bool:
        task = self._running.get(key)
        return task is not None and not task.done()


generation_slots = TaskRegistry()
