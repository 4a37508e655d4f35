"""Sandbox strategies for isolating modules that share one namespace.

- ProxySandbox: mediates every operation through a handle (preferred)
- SnapshotSandbox: snapshots and diffs the namespace (fallback)

Both implement the ``Sandbox`` contract; ``create_sandbox`` picks one.
"""

from __future__ import annotations

from scopebox.config import Settings, get_settings, parse_strategy
from scopebox.core import SandboxType
from scopebox.namespace import Namespace
from scopebox.sandbox.base import Sandbox
from scopebox.sandbox.proxy_sandbox import ProxySandbox, SandboxProxy
from scopebox.sandbox.snapshot_sandbox import SnapshotSandbox


def create_sandbox(
    name: str,
    global_context: Namespace | None = None,
    strategy: str | SandboxType | None = None,
    settings: Settings | None = None,
) -> Sandbox:
    """Create a sandbox for the module ``name``.

    Args:
        name: Name of the module.
        global_context: The shared namespace. Defaults to the process-wide one.
        strategy: "proxy", "snapshot" or a SandboxType. Defaults to the
            configured strategy.
        settings: Configuration. Defaults to the environment settings.

    Raises:
        ValueError: If ``strategy`` is not a known strategy.
    """
    settings = settings if settings is not None else get_settings()
    kind = parse_strategy(strategy) if strategy is not None else settings.default_strategy

    if kind is SandboxType.SNAPSHOT:
        return SnapshotSandbox(name, global_context, settings=settings)
    return ProxySandbox(name, global_context, settings=settings)


__all__ = [
    "Sandbox",
    "ProxySandbox",
    "SandboxProxy",
    "SnapshotSandbox",
    "create_sandbox",
]
