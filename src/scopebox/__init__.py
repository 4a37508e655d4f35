"""scopebox: isolation for modules sharing one mutable namespace.

Several independently loaded modules run, in turn or interleaved, against
one shared namespace. scopebox keeps their writes from leaking into each
other and into the host.

This package provides:
- A shared Namespace with per-key descriptors
- ProxySandbox: mediates every namespace operation through a handle
- SnapshotSandbox: snapshots and diffs the namespace for hosts that cannot
  mediate
- A tracker recording which sandboxed module is currently executing
- A runner executing module source against a sandbox handle

Example:
    from scopebox import Namespace, ProxySandbox, run_source

    namespace = Namespace()
    app1 = ProxySandbox("app1", namespace)
    app2 = ProxySandbox("app2", namespace)

    run_source(app1, "counter = 1")
    app2.proxy.get("counter")   # None
    namespace.has("counter")    # False
"""

from scopebox.binding import get_target_value, host_method
from scopebox.core import (
    MISSING,
    ExecutionResult,
    PropertyDescriptor,
    RunningModule,
    SandboxType,
)
from scopebox.namespace import (
    Namespace,
    NamespaceError,
    NonConfigurableKeyError,
    ObjectProtocol,
    ReadOnlyKeyError,
    default_namespace,
)
from scopebox.runner import run_file, run_source
from scopebox.sandbox import (
    ProxySandbox,
    Sandbox,
    SandboxProxy,
    SnapshotSandbox,
    create_sandbox,
)
from scopebox.tasks import TaskQueue, next_task
from scopebox.tracker import (
    ActiveSandboxCounter,
    RunningContextTracker,
    get_current_running_module,
    set_current_running_module,
)

__version__ = "0.1.0"

__all__ = [
    # Namespace
    "Namespace",
    "ObjectProtocol",
    "PropertyDescriptor",
    "NamespaceError",
    "ReadOnlyKeyError",
    "NonConfigurableKeyError",
    "default_namespace",
    "MISSING",
    # Sandboxes
    "Sandbox",
    "SandboxType",
    "ProxySandbox",
    "SandboxProxy",
    "SnapshotSandbox",
    "create_sandbox",
    # Running context
    "RunningModule",
    "RunningContextTracker",
    "ActiveSandboxCounter",
    "get_current_running_module",
    "set_current_running_module",
    "TaskQueue",
    "next_task",
    # Helpers
    "host_method",
    "get_target_value",
    "run_source",
    "run_file",
    "ExecutionResult",
]
