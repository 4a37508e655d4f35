"""Filesystem locations used by the command line tools."""

from __future__ import annotations

import os
from pathlib import Path


SCOPEBOX_HOME = Path(os.getenv("SCOPEBOX_HOME", "~/.scopebox")).expanduser()

REPL_HISTORY_PATH = SCOPEBOX_HOME / "repl_history"


__all__ = [
    "SCOPEBOX_HOME",
    "REPL_HISTORY_PATH",
]
