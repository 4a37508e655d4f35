"""Sandbox that isolates by snapshotting and diffing the shared namespace.

For hosts that cannot put a mediation handle in front of module code. The
module works on the shared namespace directly. On activate the namespace is
snapshotted and the module's previous changes are replayed; on deactivate
every difference from the snapshot is recorded and undone.

Known limitation: while the sandbox is active, changes made by the host or
by another module are indistinguishable from this module's own and are
recorded and undone as if they were.
"""

from __future__ import annotations

import logging
from typing import Any

from scopebox.config import Settings, get_settings
from scopebox.core import MISSING, SandboxType
from scopebox.logging_utils import format_keys
from scopebox.namespace import Namespace, default_namespace
from scopebox.sandbox.base import Sandbox

logger = logging.getLogger("scopebox.sandbox")

# Always part of the snapshot, enumerable or not; hosts define it
# non-enumerable but modules routinely patch it.
LEGACY_SNAPSHOT_KEYS = ("clearInterval",)

# Immutable values compared by equality; everything else by identity.
SCALAR_TYPES = (str, bytes, int, float, bool, type(None))


def is_unchanged(current: Any, original: Any) -> bool:
    """Whether a value read at deactivate still counts as the snapshot value."""
    if current is original:
        return True
    return (
        type(current) is type(original)
        and isinstance(current, SCALAR_TYPES)
        and current == original
    )


def iter_snapshot_keys(namespace: Namespace) -> list[str]:
    """Keys covered by a snapshot: enumerable own keys plus the legacy keys."""
    keys = namespace.enumerable_keys()
    for key in LEGACY_SNAPSHOT_KEYS:
        if namespace.has(key) and key not in keys:
            keys.append(key)
    return keys


class SnapshotSandbox(Sandbox):
    """Diff based sandbox; the handle is the shared namespace itself.

    Example:
        namespace = Namespace.from_mapping({"x": "base"})
        sandbox = SnapshotSandbox("app1", namespace)
        sandbox.activate()
        namespace["x"] = "changed"
        sandbox.deactivate()
        namespace["x"]              # "base"
        sandbox.modified_map["x"]   # "changed"
    """

    def __init__(
        self,
        name: str,
        global_context: Namespace | None = None,
        *,
        settings: Settings | None = None,
    ):
        self.name = name
        self.type = SandboxType.SNAPSHOT
        self.global_context = global_context if global_context is not None else default_namespace()
        self.proxy = self.global_context
        self.settings = settings if settings is not None else get_settings()
        self.sandbox_running = True

        self._snapshot: dict[str, Any] | None = None
        self.modified_map: dict[str, Any] = {}

    def activate(self) -> None:
        namespace = self.global_context

        self._snapshot = {key: namespace.read(key) for key in iter_snapshot_keys(namespace)}

        # bring back what this module had changed before it was last deactivated
        for key, value in self.modified_map.items():
            if value is MISSING:
                namespace.delete(key)
            else:
                namespace.write(key, value)

        self.sandbox_running = True

    def deactivate(self) -> None:
        if self._snapshot is None:
            # never activated, there is no baseline to restore
            self.sandbox_running = False
            return

        namespace = self.global_context
        self.modified_map = {}

        tracked = iter_snapshot_keys(namespace)
        seen = set(tracked)
        # keys the module deleted are only known to the snapshot
        tracked.extend(key for key in self._snapshot if key not in seen)

        for key in tracked:
            current = namespace.read(key) if namespace.has(key) else MISSING
            original = self._snapshot.get(key, MISSING)
            if is_unchanged(current, original):
                continue

            self.modified_map[key] = current
            if original is MISSING:
                namespace.delete(key)
            else:
                namespace.write(key, original)

        if self.settings.development:
            logger.info(
                "[scopebox:sandbox] %s origin namespace restore... %s",
                self.name,
                format_keys(self.modified_map),
            )

        self.sandbox_running = False
