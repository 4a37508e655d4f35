"""Logging setup and formatting helpers for sandbox diagnostics.

Every module logs through ``logging.getLogger(__name__)``, so all records end
up under the ``scopebox`` logger. ``configure_logging`` attaches a handler to
it; without a configured level nothing is installed and records propagate to
whatever the host application set up.
"""

from __future__ import annotations

import logging
from pathlib import Path

from scopebox.config import Settings, get_settings

LOGGER_NAME = "scopebox"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def resolve_level(log_level: str | None, settings: Settings) -> int | None:
    """Pick the level for the scopebox logger.

    An explicit level wins, then ``SCOPEBOX_LOG_LEVEL``. Development mode
    without either logs at INFO, which is where the restore diagnostics are
    emitted.

    Raises:
        ValueError: If the level name is not a logging level.
    """
    name = log_level or settings.log_level
    if not name:
        return logging.INFO if settings.development else None
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {name}")
    return level


def configure_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    settings: Settings | None = None,
) -> None:
    """Send scopebox records to stderr or ``log_file``.

    Does nothing when no level is resolved and no file is given. A file
    without a level logs warnings and above.
    """
    settings = settings if settings is not None else get_settings()
    level = resolve_level(log_level, settings)
    if level is None and not log_file:
        return

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(path)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level if level is not None else logging.WARNING)
    logger.propagate = False
    logger.handlers = [handler]


def preview_source(source: str, limit: int = 80) -> str:
    """First line of ``source`` for a log line, with a count of the rest."""
    lines = source.strip().splitlines() or [""]
    head = lines[0] if len(lines[0]) <= limit else f"{lines[0][:limit]}..."
    if len(lines) > 1:
        return f"{head} (+{len(lines) - 1} lines)"
    return head


def format_keys(keys, limit: int = 200) -> str:
    """Render a key collection for a diagnostic line, truncated to ``limit``."""
    text = repr(list(keys))
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...]"
