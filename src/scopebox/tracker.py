"""Process-wide state shared by every sandbox.

This module provides the two pieces of mutable state that cross sandbox
boundaries:
- RunningContextTracker: which sandboxed module is executing right now
- ActiveSandboxCounter: how many interception sandboxes are active

Both exist once per process. Sandboxes receive them by reference at
construction so tests can hand in fresh instances.
"""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Optional

from scopebox.core import RunningModule
from scopebox.tasks import current_channel, next_task

logger = logging.getLogger(__name__)

Scheduler = Callable[[Callable[[], None]], None]


class RunningContextTracker:
    """Single-slot record of the module that is currently executing.

    Setting a marker overwrites the previous one; nothing is queued. ``None``
    means execution is outside every sandboxed module.

    Consumers that cannot receive the sandbox explicitly (for example code
    patching host APIs) call ``get()`` to learn on whose behalf they run.
    """

    def __init__(self):
        self._current: Optional[RunningModule] = None
        # schedulers (or loops / queues) that already hold a pending clear
        self._pending: set[Hashable] = set()

    def get(self) -> Optional[RunningModule]:
        return self._current

    def set(self, marker: Optional[RunningModule]) -> None:
        self._current = marker

    def clear(self) -> None:
        """Forget the marker. Safe to call when nothing is marked."""
        self._current = None
        self._pending.clear()

    def mark(self, marker: RunningModule, scheduler: Scheduler | None = None) -> None:
        """Set ``marker`` and schedule its removal after the current unit of work.

        One removal is outstanding per channel: per scheduler when one is
        given, otherwise per running event loop or, without a loop, per
        task queue. A later mark on the same channel is cleared by the task
        already scheduled there; a mark on another channel (say a loop,
        after a clear was left waiting on an undrained queue)
        schedules its own.

        Args:
            marker: The module now executing.
            scheduler: Callable taking a zero-argument callback. Defaults to
                ``scopebox.tasks.next_task``.
        """
        self._current = marker
        channel = scheduler if scheduler is not None else current_channel()
        if channel in self._pending:
            return
        self._pending.add(channel)
        (scheduler or next_task)(self.clear)

    @property
    def clear_pending(self) -> bool:
        return bool(self._pending)

    def __repr__(self) -> str:
        name = self._current.name if self._current is not None else None
        return f"<RunningContextTracker(current={name!r})>"


class ActiveSandboxCounter:
    """Count of interception sandboxes that are currently active.

    When the count returns to zero no sandbox owns the escaped keys any more
    and they can be removed from the shared namespace.
    """

    def __init__(self):
        self._count = 0

    @property
    def value(self) -> int:
        return self._count

    def increment(self) -> int:
        self._count += 1
        return self._count

    def decrement(self) -> int:
        if self._count == 0:
            logger.warning("Active sandbox counter decremented below zero; ignoring")
            return 0
        self._count -= 1
        return self._count

    def reset(self) -> None:
        self._count = 0

    def __repr__(self) -> str:
        return f"<ActiveSandboxCounter(value={self._count})>"


running_context = RunningContextTracker()
active_sandboxes = ActiveSandboxCounter()


def get_current_running_module() -> Optional[RunningModule]:
    """Return the module marked as executing, if any."""
    return running_context.get()


def set_current_running_module(marker: Optional[RunningModule]) -> None:
    """Overwrite the process-wide running module marker."""
    running_context.set(marker)
