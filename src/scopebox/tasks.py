"""Deferred task scheduling.

A deferred task runs after the current synchronous unit of work has
finished and before the next one starts. Under a running asyncio event loop
a unit of work is one loop step, so tasks go through ``loop.call_soon``.
Without a loop, tasks queue on a ``TaskQueue`` which the caller drains at
the end of its unit of work.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator

logger = logging.getLogger(__name__)


class TaskQueue:
    """FIFO queue of callbacks waiting for the current unit of work to end.

    Example:
        queue = TaskQueue()
        with queue.unit_of_work():
            queue.defer(lambda: print("after"))
            print("during")
        # prints "during" then "after"
    """

    def __init__(self):
        self._pending: deque[Callable[[], None]] = deque()
        self._depth = 0

    def defer(self, callback: Callable[[], None]) -> None:
        """Queue ``callback`` to run when the queue is drained."""
        self._pending.append(callback)

    def drain(self) -> int:
        """Run every pending callback, including ones queued meanwhile.

        A callback that raises is logged and does not stop the others.

        Returns:
            Number of callbacks that ran.
        """
        ran = 0
        while self._pending:
            callback = self._pending.popleft()
            ran += 1
            try:
                callback()
            except Exception:
                logger.exception("Deferred task %r failed", callback)
        return ran

    @contextmanager
    def unit_of_work(self) -> Iterator["TaskQueue"]:
        """Run a block as one unit of work and drain on the way out.

        Nested units drain only when the outermost one exits.
        """
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            if self._depth == 0:
                self.drain()

    def __len__(self) -> int:
        return len(self._pending)

    def __bool__(self) -> bool:
        """A TaskQueue is always truthy (even when empty)."""
        return True


default_queue = TaskQueue()


def current_channel(queue: TaskQueue | None = None) -> asyncio.AbstractEventLoop | TaskQueue:
    """Where ``next_task`` would schedule right now: the running loop or a queue."""
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return queue if queue is not None else default_queue


def next_task(callback: Callable[[], None], queue: TaskQueue | None = None) -> None:
    """Schedule ``callback`` after the current unit of work.

    Args:
        callback: Zero-argument callable.
        queue: Queue to use when no event loop is running. Defaults to the
            process-wide queue.
    """
    channel = current_channel(queue)
    if isinstance(channel, TaskQueue):
        channel.defer(callback)
    else:
        channel.call_soon(callback)


def unit_of_work() -> ContextManager[TaskQueue]:
    """Shorthand for ``default_queue.unit_of_work()``."""
    return default_queue.unit_of_work()
