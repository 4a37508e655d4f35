"""The contract every sandbox strategy satisfies.

An orchestrator creates one sandbox per loaded module, calls ``activate()``
before running module code and ``deactivate()`` after unmounting or
suspending it. Both may be called any number of times across remounts.
Module code only ever sees ``sandbox.proxy``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from scopebox.core import SandboxType


class Sandbox(ABC):
    """Base class for isolation strategies.

    Subclasses should:
    - Set ``name``, ``type`` and ``proxy`` in ``__init__``
    - Implement ``activate()`` and ``deactivate()``
    - Keep ``sandbox_running`` in sync with the lifecycle
    """

    name: str
    """Name of the module this sandbox isolates."""

    type: SandboxType
    """Strategy implemented by this sandbox."""

    proxy: Any
    """The namespace handle given to module code."""

    sandbox_running: bool = True

    @property
    def is_running(self) -> bool:
        return self.sandbox_running

    @abstractmethod
    def activate(self) -> None:
        """Start (or resume) isolating the module."""

    @abstractmethod
    def deactivate(self) -> None:
        """Stop isolating the module and put the shared namespace back."""

    def __repr__(self) -> str:
        state = "running" if self.sandbox_running else "inactive"
        return f"<{self.__class__.__name__}(name='{self.name}', {state})>"
