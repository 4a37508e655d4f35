"""Subscription to ambient error events.

Two topics are published:
- "error": an exception nobody caught (``sys.excepthook``)
- "unhandledrejection": an exception from an asyncio task or callback
  nothing handled (the event loop's exception handler)

``install()`` hooks both sources; handlers receive an ``ErrorEvent``.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import weakref
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Callable

logger = logging.getLogger(__name__)

ERROR = "error"
UNHANDLED_REJECTION = "unhandledrejection"
TOPICS = (ERROR, UNHANDLED_REJECTION)

ErrorHandler = Callable[["ErrorEvent"], Any]


@dataclass
class ErrorEvent:
    """An error published on one of the ambient topics."""

    topic: str
    error: BaseException | None
    context: dict = field(default_factory=dict)

    @property
    def message(self) -> str:
        if self.error is not None:
            return f"{type(self.error).__name__}: {self.error}"
        return str(self.context.get("message", ""))


_handlers: dict[str, list[ErrorHandler]] = {topic: [] for topic in TOPICS}
_previous_excepthook: Callable | None = None
# loop -> its exception handler before install(), weakly keyed
_hooked_loops: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()


def add_global_uncaught_error_handler(handler: ErrorHandler) -> None:
    """Subscribe ``handler`` to both topics."""
    for topic in TOPICS:
        if handler not in _handlers[topic]:
            _handlers[topic].append(handler)


def remove_global_uncaught_error_handler(handler: ErrorHandler) -> None:
    """Unsubscribe ``handler`` from both topics. Unknown handlers are ignored."""
    for topic in TOPICS:
        if handler in _handlers[topic]:
            _handlers[topic].remove(handler)


def dispatch(topic: str, event: ErrorEvent) -> int:
    """Deliver ``event`` to every handler of ``topic``.

    A handler that raises is logged; the others still run.

    Returns:
        Number of handlers called.
    """
    if topic not in _handlers:
        raise ValueError(f"Unknown error topic: {topic!r}")
    handlers = list(_handlers[topic])
    for handler in handlers:
        try:
            handler(event)
        except Exception:
            logger.exception("Error handler %r failed on %s", handler, topic)
    return len(handlers)


def _excepthook(
    exc_type: type[BaseException],
    exc: BaseException,
    tb: TracebackType | None,
) -> None:
    dispatch(ERROR, ErrorEvent(topic=ERROR, error=exc, context={"traceback": tb}))
    if _previous_excepthook is not None:
        _previous_excepthook(exc_type, exc, tb)


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    dispatch(
        UNHANDLED_REJECTION,
        ErrorEvent(topic=UNHANDLED_REJECTION, error=context.get("exception"), context=context),
    )
    previous = _hooked_loops.get(loop)
    if previous is not None:
        previous(loop, context)
    else:
        loop.default_exception_handler(context)


def install(loop: asyncio.AbstractEventLoop | None = None) -> None:
    """Publish uncaught exceptions and, given a loop, its unhandled ones."""
    global _previous_excepthook
    if _previous_excepthook is None:
        _previous_excepthook = sys.excepthook
        sys.excepthook = _excepthook

    if loop is not None and loop not in _hooked_loops:
        _hooked_loops[loop] = loop.get_exception_handler()
        loop.set_exception_handler(_loop_exception_handler)


def uninstall() -> None:
    """Restore the hooks replaced by ``install``."""
    global _previous_excepthook
    if _previous_excepthook is not None:
        sys.excepthook = _previous_excepthook
        _previous_excepthook = None

    for loop, previous in list(_hooked_loops.items()):
        if not loop.is_closed():
            loop.set_exception_handler(previous)
    _hooked_loops.clear()


def clear_handlers() -> None:
    """Drop every subscription (primarily for tests)."""
    for topic in TOPICS:
        _handlers[topic].clear()
