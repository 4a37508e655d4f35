"""Core abstractions for the namespace isolation layer.

This module defines the fundamental types used throughout the system:
- PropertyDescriptor: Per-key metadata of a namespace entry
- SandboxType: Which isolation strategy a sandbox implements
- RunningModule: Marker for the module that is currently executing
- MISSING: Sentinel for "no such key"
- ExecutionResult: The result of running module source in a sandbox
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable


class _Missing:
    """Sentinel type for a key that does not exist."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Missing, ())


MISSING: Any = _Missing()


class SandboxType(Enum):
    """Isolation strategy implemented by a sandbox."""

    PROXY = "Proxy"
    """Every namespace operation goes through a mediation handle."""

    SNAPSHOT = "Snapshot"
    """The namespace is snapshotted on activate and diffed on deactivate."""


@dataclass(frozen=True)
class PropertyDescriptor:
    """What a namespace knows about one of its keys.

    A descriptor is either a data descriptor (``value`` + ``writable``) or an
    accessor descriptor (``get`` and/or ``set``). Accessors are called with
    the owning namespace as their only argument (``get``) or with the
    namespace and the new value (``set``).

    Descriptors are immutable; use ``with_value`` or ``dataclasses.replace``
    to derive a changed copy.
    """

    value: Any = None
    get: Callable[[Any], Any] | None = None
    set: Callable[[Any, Any], None] | None = None
    writable: bool = False
    enumerable: bool = False
    configurable: bool = False

    @classmethod
    def data(
        cls,
        value: Any,
        writable: bool = True,
        enumerable: bool = True,
        configurable: bool = True,
    ) -> "PropertyDescriptor":
        """Build a data descriptor (all flags on by default)."""
        return cls(
            value=value,
            writable=writable,
            enumerable=enumerable,
            configurable=configurable,
        )

    @classmethod
    def accessor(
        cls,
        get: Callable[[Any], Any] | None = None,
        set: Callable[[Any, Any], None] | None = None,
        enumerable: bool = True,
        configurable: bool = True,
    ) -> "PropertyDescriptor":
        """Build an accessor descriptor."""
        return cls(get=get, set=set, enumerable=enumerable, configurable=configurable)

    @property
    def is_accessor(self) -> bool:
        return self.get is not None or self.set is not None

    def with_value(self, value: Any) -> "PropertyDescriptor":
        return replace(self, value=value)

    def __str__(self) -> str:
        flags = []
        if not self.is_accessor and self.writable:
            flags.append("writable")
        if self.enumerable:
            flags.append("enumerable")
        if self.configurable:
            flags.append("configurable")
        kind = "accessor" if self.is_accessor else f"value={self.value!r}"
        return f"<{kind} {' '.join(flags) or 'frozen'}>"


@dataclass(frozen=True)
class RunningModule:
    """Marker for the sandboxed module that is executing right now."""

    name: str
    """Name of the module (the sandbox name)."""

    proxy: Any
    """The handle the module sees as its namespace."""


@dataclass
class ExecutionResult:
    """The result of running module source inside a sandbox."""

    success: bool
    """Whether execution completed without errors."""

    module: str = ""
    """Name of the sandbox the source ran in."""

    output: str = ""
    """Captured stdout from execution."""

    error: str = ""
    """Error message if execution failed."""

    return_value: Any = None
    """Return value if the source was an expression."""

    def __str__(self) -> str:
        """Format as readable output."""
        if self.success:
            parts = []
            if self.output:
                parts.append(self.output.rstrip())
            if self.return_value is not None:
                parts.append(f"=> {self.return_value!r}")
            return "\n".join(parts) if parts else "(no output)"
        return f"Error: {self.error}"
