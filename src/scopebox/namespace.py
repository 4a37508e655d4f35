"""The shared namespace and the object protocol every handle implements.

``ObjectProtocol`` declares one method per namespace operation (read, write,
has, delete, own_keys, describe, define, identity) and derives the mapping
protocol from them. That way the unmediated ``Namespace`` and a sandbox's
mediation handle are interchangeable: both can be passed to ``exec`` as the
top-level name mapping, and module code cannot tell which one it got.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any

from scopebox.core import PropertyDescriptor

logger = logging.getLogger(__name__)


class NamespaceError(Exception):
    """Base class for errors raised at the mapping boundary of a namespace."""


class ReadOnlyKeyError(NamespaceError, TypeError):
    """Assignment to a key whose descriptor rejects writes."""

    def __init__(self, key: str):
        super().__init__(f"Cannot assign to read only key '{key}'")
        self.key = key


class NonConfigurableKeyError(NamespaceError, TypeError):
    """Deletion of a key whose descriptor is not configurable."""

    def __init__(self, key: str):
        super().__init__(f"Cannot delete non-configurable key '{key}'")
        self.key = key


class ObjectProtocol(MutableMapping):
    """Operations module code can perform against a namespace.

    Subclasses implement the eight operations; the mapping protocol is
    derived from them:

    - ``ns[key]`` reads a key that resolves, ``KeyError`` otherwise
    - ``ns[key] = value`` writes, ``ReadOnlyKeyError`` when rejected
    - ``del ns[key]`` deletes, ``NonConfigurableKeyError`` when rejected
    - ``key in ns`` is ``has``; iteration and ``len`` follow ``own_keys``
    """

    @abstractmethod
    def read(self, key: str) -> Any:
        """Return the value of ``key`` or None when it is absent."""

    @abstractmethod
    def write(self, key: str, value: Any) -> bool:
        """Assign ``value`` to ``key``. Returns False when rejected."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Existence check."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Deleting an absent key succeeds."""

    @abstractmethod
    def own_keys(self) -> list[str]:
        """Keys in enumeration order."""

    @abstractmethod
    def describe(self, key: str) -> PropertyDescriptor | None:
        """Descriptor of ``key`` or None."""

    @abstractmethod
    def define(self, key: str, descriptor: PropertyDescriptor) -> bool:
        """Install ``descriptor`` for ``key``. Returns False when rejected."""

    @abstractmethod
    def identity(self) -> type:
        """The type module code should see when it inspects the namespace."""

    # Namespaces are compared by identity, never by content.
    __eq__ = object.__eq__
    __ne__ = object.__ne__
    __hash__ = object.__hash__

    def resolves(self, key: str) -> bool:
        """Whether ``self[key]`` finds a value (used by name lookup)."""
        return self.has(key)

    def __getitem__(self, key: str) -> Any:
        if not self.resolves(key):
            raise KeyError(key)
        return self.read(key)

    def __setitem__(self, key: str, value: Any) -> None:
        if not self.write(key, value):
            raise ReadOnlyKeyError(key)

    def __delitem__(self, key: str) -> None:
        if not self.resolves(key):
            raise KeyError(key)
        if not self.delete(key):
            raise NonConfigurableKeyError(key)

    def __contains__(self, key: object) -> bool:
        return self.has(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.own_keys())

    def __len__(self) -> int:
        return len(self.own_keys())


class Namespace(ObjectProtocol):
    """A shared, mutable key -> descriptor store.

    This is the real environment every sandbox mediates access to. It holds
    descriptors, not bare values, so that writability, enumerability and
    configurability survive across sandboxes.

    Example:
        ns = Namespace()
        ns["answer"] = 42
        ns.define("VERSION", PropertyDescriptor.data("1.0", writable=False,
                                                     configurable=False))
        ns.write("VERSION", "2.0")  # False, value unchanged
    """

    def __init__(self, parent: "Namespace | None" = None):
        """Create an empty namespace.

        Args:
            parent: The enclosing namespace, if this one is nested. A
                namespace without a parent (or whose parent is itself) is
                top-level.
        """
        self._descriptors: dict[str, PropertyDescriptor] = {}
        self.parent = parent

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        parent: "Namespace | None" = None,
    ) -> "Namespace":
        """Create a namespace holding plain writable entries for ``values``."""
        namespace = cls(parent=parent)
        for key, value in values.items():
            namespace.write(key, value)
        return namespace

    @property
    def is_top_level(self) -> bool:
        return self.parent is None or self.parent is self

    def has_own(self, key: str) -> bool:
        return key in self._descriptors

    def read(self, key: str) -> Any:
        descriptor = self._descriptors.get(key)
        if descriptor is None:
            return None
        if descriptor.is_accessor:
            return descriptor.get(self) if descriptor.get is not None else None
        return descriptor.value

    def write(self, key: str, value: Any) -> bool:
        descriptor = self._descriptors.get(key)
        if descriptor is None:
            self._descriptors[key] = PropertyDescriptor.data(value)
            return True
        if descriptor.is_accessor:
            if descriptor.set is None:
                return False
            descriptor.set(self, value)
            return True
        if not descriptor.writable:
            return False
        self._descriptors[key] = descriptor.with_value(value)
        return True

    def has(self, key: str) -> bool:
        return key in self._descriptors

    def delete(self, key: str) -> bool:
        descriptor = self._descriptors.get(key)
        if descriptor is None:
            return True
        if not descriptor.configurable:
            return False
        del self._descriptors[key]
        return True

    def own_keys(self) -> list[str]:
        return list(self._descriptors)

    def enumerable_keys(self) -> list[str]:
        return [key for key, descriptor in self._descriptors.items() if descriptor.enumerable]

    def describe(self, key: str) -> PropertyDescriptor | None:
        return self._descriptors.get(key)

    def define(self, key: str, descriptor: PropertyDescriptor) -> bool:
        current = self._descriptors.get(key)
        if current is None or current.configurable:
            self._descriptors[key] = descriptor
            return True
        if not self._compatible_redefinition(current, descriptor):
            logger.debug("Rejected redefinition of non-configurable key %r", key)
            return False
        self._descriptors[key] = descriptor
        return True

    @staticmethod
    def _compatible_redefinition(
        current: PropertyDescriptor,
        descriptor: PropertyDescriptor,
    ) -> bool:
        """Changes allowed on a non-configurable key.

        Only a writable data descriptor may change: its value, or its
        ``writable`` flag from True to False. Anything else must be identical.
        """
        if descriptor == current:
            return True
        if descriptor.configurable or descriptor.enumerable != current.enumerable:
            return False
        if current.is_accessor or descriptor.is_accessor:
            return False
        return current.writable

    def identity(self) -> type:
        return type(self)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(keys={len(self._descriptors)})>"


_default_namespace: Namespace | None = None


def default_namespace() -> Namespace:
    """Get or create the process-wide namespace."""
    global _default_namespace
    if _default_namespace is None:
        _default_namespace = Namespace()
    return _default_namespace


def reset_default_namespace() -> None:
    """Drop the process-wide namespace (primarily for tests)."""
    global _default_namespace
    _default_namespace = None
