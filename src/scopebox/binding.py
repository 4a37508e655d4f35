"""Rebinding of host functions read through a sandbox.

Some functions stored in the shared namespace are host methods: they take
the environment itself as their first argument and must receive the real
namespace, never a sandbox handle. Mark them with ``@host_method``; when
module code reads one through a mediation handle, ``get_target_value``
returns it bound to the real namespace so the module calls it without the
receiver, exactly as it would outside the sandbox.
"""

from __future__ import annotations

import inspect
import types
from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

HOST_METHOD_ATTR = "__scopebox_host_method__"


def host_method(func: F) -> F:
    """Mark ``func`` as expecting the real namespace as its first argument.

    Example:
        @host_method
        def set_timeout(env, callback, delay):
            env["timers"].append((callback, delay))

        namespace["set_timeout"] = set_timeout
        sandbox.proxy["set_timeout"](cb, 10)  # env is the real namespace
    """
    setattr(func, HOST_METHOD_ATTR, True)
    return func


def is_host_method(value: Any) -> bool:
    return callable(value) and getattr(value, HOST_METHOD_ATTR, False) is True


def is_bound_function(value: Any) -> bool:
    """True for methods already carrying a receiver."""
    if isinstance(value, types.MethodType):
        return True
    if isinstance(value, types.BuiltinMethodType):
        owner = getattr(value, "__self__", None)
        return owner is not None and not isinstance(owner, types.ModuleType)
    return False


def is_constructable(value: Any) -> bool:
    """True for classes; instances of them are built, not called on a receiver."""
    return inspect.isclass(value)


def get_target_value(
    target: Any,
    value: Any,
    cache: "dict[Callable, types.MethodType] | None" = None,
) -> Any:
    """Return ``value`` as module code should see it when read from ``target``.

    Host methods are bound to ``target``. Classes, bound methods and any
    other value come back unchanged.

    Args:
        target: The receiver host methods get bound to.
        value: The value that was read.
        cache: Optional function -> bound method map owned by the caller.
            With a cache, repeated reads of the same function return the
            same bound object.
    """
    if not is_host_method(value) or is_constructable(value) or is_bound_function(value):
        return value

    if cache is None:
        return types.MethodType(value, target)

    bound = cache.get(value)
    if bound is None:
        bound = types.MethodType(value, target)
        cache[value] = bound
    return bound
