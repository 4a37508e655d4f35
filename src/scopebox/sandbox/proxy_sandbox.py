"""Sandbox that mediates every namespace operation through a handle.

Module code receives a ``SandboxProxy`` instead of the shared namespace.
Writes land in a per-sandbox shadow namespace; reads prefer the shadow and
fall back to the shared namespace. Nothing the module writes reaches the
shared namespace unless its key is on the escape whitelist.

Key classes:
- SandboxProxy: The mediation handle module code sees as its namespace
- ProxySandbox: Owns the shadow, the handle and the lifecycle
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Iterable

from scopebox.binding import get_target_value
from scopebox.config import Settings, escape_keys, get_settings
from scopebox.core import PropertyDescriptor, RunningModule, SandboxType
from scopebox.logging_utils import format_keys
from scopebox.namespace import Namespace, ObjectProtocol, default_namespace
from scopebox.sandbox.base import Sandbox
from scopebox.tracker import (
    ActiveSandboxCounter,
    RunningContextTracker,
    active_sandboxes,
    running_context,
)

logger = logging.getLogger("scopebox.sandbox")

# Keys that name the environment itself. Reading them through the handle
# returns the handle, so module code cannot reach the real namespace with
# `self["window"]`-style lookups.
SELF_KEYS = frozenset({"window", "self", "globalThis"})

# Keys that name the enclosing environment. They escape only when the real
# namespace is nested inside another one.
PARENT_KEYS = frozenset({"top", "parent"})
TEST_PARENT_KEYS = frozenset({"mockTop", "mockSafariTop"})

# Identifiers nobody overwrites; `has` reports them without looking anything up.
UNSCOPABLES = frozenset(
    {
        "None",
        "True",
        "False",
        "object",
        "type",
        "int",
        "float",
        "str",
        "bool",
        "len",
    }
)

# Returned straight from the real namespace, never rebound.
PASSTHROUGH_KEYS = frozenset({"document", "eval"})

HAS_OWN_KEY = "hasOwnProperty"

_TARGET = "target"
_RAW = "raw"


def uniq(keys: Iterable[str]) -> list[str]:
    """Deduplicate keys, keeping the first occurrence of each."""
    return list(dict.fromkeys(keys))


def create_fake_namespace(
    global_context: Namespace,
    test_allowances: bool = False,
) -> tuple[Namespace, frozenset[str]]:
    """Build the shadow namespace for a new sandbox.

    Every non-configurable key of ``global_context`` is copied, because the
    handle may only report a key as non-configurable when the namespace it
    exposes really has it that way. Configurable keys are left out and only
    enter the shadow when the module writes them.

    Self-reference keys are made configurable (and writable when they are
    data descriptors) so the handle can return itself for them.

    Returns:
        Tuple of (shadow namespace, keys backed by accessor descriptors).
    """
    self_reference = SELF_KEYS | PARENT_KEYS
    if test_allowances:
        self_reference = self_reference | TEST_PARENT_KEYS

    fake = Namespace()
    accessor_keys: set[str] = set()

    for key in global_context.own_keys():
        descriptor = global_context.describe(key)
        if descriptor is None or descriptor.configurable:
            continue

        if key in self_reference:
            descriptor = replace(
                descriptor,
                configurable=True,
                writable=descriptor.writable or not descriptor.is_accessor,
            )

        if descriptor.is_accessor:
            accessor_keys.add(key)

        # descriptors are frozen, nothing can alter the copy later
        fake.define(key, descriptor)

    return fake, frozenset(accessor_keys)


class SandboxProxy(ObjectProtocol):
    """The namespace handle a sandboxed module works with.

    Implements the full object protocol on top of the sandbox's shadow
    namespace and the real one. It also answers attribute access for
    public names (``proxy.counter = 1``) and reports the real namespace's
    type as its ``__class__``, so ``isinstance(proxy, Namespace)`` holds.
    """

    def __init__(
        self,
        sandbox: "ProxySandbox",
        global_context: Namespace,
        fake: Namespace,
        accessor_keys: frozenset[str],
    ):
        self._sandbox = sandbox
        self._raw = global_context
        self._fake = fake
        self._accessor_keys = accessor_keys
        self._descriptor_targets: dict[str, str] = {}
        self._bound: dict[Callable, Any] = {}
        self._parent_keys = (
            PARENT_KEYS | TEST_PARENT_KEYS if sandbox.settings.test_allowances else PARENT_KEYS
        )

    # -- object protocol ---------------------------------------------------

    def read(self, key: str) -> Any:
        self._sandbox._register_running_app()

        if key in SELF_KEYS:
            return self

        if key in self._parent_keys:
            # a top-level namespace has nothing above it to escape to
            if self._raw.is_top_level:
                return self
            return self._enclosing(key)

        # hasOwnProperty would otherwise answer for the real namespace only
        if key == HAS_OWN_KEY:
            return self.owns

        if key in PASSTHROUGH_KEYS:
            return self._raw.read(key)

        if key in self._accessor_keys:
            value = self._raw.read(key)
        elif self._fake.has_own(key):
            value = self._fake.read(key)
        else:
            value = self._raw.read(key)
        return get_target_value(self._raw, value, self._bound)

    def write(self, key: str, value: Any) -> bool:
        sandbox = self._sandbox
        if not sandbox.sandbox_running:
            if sandbox.settings.development:
                logger.warning(
                    "[scopebox] Set namespace.%s while sandbox destroyed or inactive in %s!",
                    key,
                    sandbox.name,
                )
            # a suspended module's late write must not fail the caller
            return True

        sandbox._register_running_app()

        # keep the flags of a key the real namespace already has
        if not self._fake.has_own(key) and self._raw.has(key):
            descriptor = self._raw.describe(key)
            if descriptor is not None and descriptor.writable and not descriptor.is_accessor:
                self._fake.define(
                    key,
                    PropertyDescriptor(
                        value=value,
                        writable=descriptor.writable,
                        enumerable=descriptor.enumerable,
                        configurable=descriptor.configurable,
                    ),
                )
        else:
            self._fake.write(key, value)

        if key in sandbox.escape_keys:
            self._raw.write(key, value)

        sandbox._updated_keys[key] = None
        sandbox.latest_set_key = key
        return True

    def has(self, key: str) -> bool:
        return key in UNSCOPABLES or self._fake.has_own(key) or self._raw.has(key)

    def delete(self, key: str) -> bool:
        self._sandbox._register_running_app()
        if self._fake.has_own(key):
            self._fake.delete(key)
            self._sandbox._updated_keys.pop(key, None)
        return True

    def own_keys(self) -> list[str]:
        return uniq(self._raw.own_keys() + self._fake.own_keys())

    def describe(self, key: str) -> PropertyDescriptor | None:
        if self._fake.has_own(key):
            self._descriptor_targets[key] = _TARGET
            return self._fake.describe(key)

        if self._raw.has(key):
            self._descriptor_targets[key] = _RAW
            descriptor = self._raw.describe(key)
            # the shadow does not hold this key, so it cannot be reported
            # as non-configurable
            if descriptor is not None and not descriptor.configurable:
                descriptor = replace(descriptor, configurable=True)
            return descriptor

        return None

    def define(self, key: str, descriptor: PropertyDescriptor) -> bool:
        # a descriptor read from the real namespace goes back to it
        if self._descriptor_targets.get(key) == _RAW:
            return self._raw.define(key, descriptor)
        return self._fake.define(key, descriptor)

    def identity(self) -> type:
        return self._raw.identity()

    # -- helpers -----------------------------------------------------------

    def owns(self, key: str) -> bool:
        """Whether ``key`` is an own key of the shadow or the real namespace."""
        return self._fake.has_own(key) or self._raw.has(key)

    def resolves(self, key: str) -> bool:
        if key in SELF_KEYS or key in self._parent_keys or key == HAS_OWN_KEY:
            return True
        # unscopable-only keys must fall through to builtins during name lookup
        return self.owns(key)

    def clear(self) -> None:
        """Drop every key this sandbox wrote. The real namespace is untouched."""
        for key in self._fake.own_keys():
            self.delete(key)

    def _enclosing(self, key: str) -> Any:
        if self._raw.has(key):
            return self._raw.read(key)
        parent = self._raw.parent
        if key == "top":
            while parent is not None and not parent.is_top_level:
                parent = parent.parent
        return parent

    @property
    def __class__(self):
        return self.identity()

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or not self.resolves(name):
            raise AttributeError(name)
        return self.read(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return
        self.write(name, value)

    def __delattr__(self, name: str) -> None:
        if name.startswith("_"):
            object.__delattr__(self, name)
            return
        self.delete(name)

    def __repr__(self) -> str:
        return f"<SandboxProxy(name='{self._sandbox.name}')>"


class ProxySandbox(Sandbox):
    """Sandbox isolating a module behind a ``SandboxProxy``.

    The sandbox starts out running, as a freshly loaded module is, and is
    counted as active from construction on.

    Example:
        namespace = Namespace()
        app1 = ProxySandbox("app1", namespace)
        app1.proxy["counter"] = 1
        namespace.has("counter")  # False
        app1.deactivate()
    """

    def __init__(
        self,
        name: str,
        global_context: Namespace | None = None,
        *,
        settings: Settings | None = None,
        tracker: RunningContextTracker | None = None,
        counter: ActiveSandboxCounter | None = None,
        scheduler: Callable[[Callable[[], None]], None] | None = None,
    ):
        """Create a sandbox for one module.

        Args:
            name: Name of the module.
            global_context: The shared namespace. Defaults to the
                process-wide one.
            settings: Configuration. Defaults to the environment settings.
            tracker: Running module tracker. Defaults to the process-wide one.
            counter: Active sandbox counter. Defaults to the process-wide one.
            scheduler: Deferred task scheduler used to clear the running
                module marker. Defaults to ``scopebox.tasks.next_task``.
        """
        self.name = name
        self.type = SandboxType.PROXY
        self.global_context = global_context if global_context is not None else default_namespace()
        self.settings = settings if settings is not None else get_settings()
        self.escape_keys = escape_keys(self.settings)
        self.sandbox_running = True
        self.latest_set_key: str | None = None

        self._tracker = tracker if tracker is not None else running_context
        self._counter = counter if counter is not None else active_sandboxes
        self._scheduler = scheduler
        self._updated_keys: dict[str, None] = {}

        fake, accessor_keys = create_fake_namespace(
            self.global_context,
            test_allowances=self.settings.test_allowances,
        )
        self.proxy = SandboxProxy(self, self.global_context, fake, accessor_keys)
        self._marker = RunningModule(name=name, proxy=self.proxy)

        self._counter.increment()

    @property
    def updated_keys(self) -> list[str]:
        """Keys this module has written and not deleted, in write order."""
        return list(self._updated_keys)

    def _register_running_app(self) -> None:
        if self.sandbox_running:
            # cleared after the current unit of work, so code running later
            # on behalf of the host is not attributed to this module
            self._tracker.mark(self._marker, self._scheduler)

    def activate(self) -> None:
        if not self.sandbox_running:
            self._counter.increment()
        self.sandbox_running = True

    def deactivate(self) -> None:
        if self.settings.development:
            logger.info(
                "[scopebox:sandbox] %s modified global properties restore... %s",
                self.name,
                format_keys(self._updated_keys),
            )

        if self.sandbox_running and self._counter.decrement() == 0:
            # no sandbox is left to own the escaped keys
            for key in self.escape_keys:
                if self.proxy.owns(key):
                    self.global_context.delete(key)

        self.sandbox_running = False
