"""Shared fixtures for the scopebox tests."""

import logging

import pytest

from scopebox.config import Settings, reset_settings
from scopebox.namespace import Namespace, reset_default_namespace
from scopebox.sandbox import ProxySandbox, SnapshotSandbox
from scopebox.tasks import TaskQueue, default_queue
from scopebox.tracker import (
    ActiveSandboxCounter,
    RunningContextTracker,
    active_sandboxes,
    running_context,
)

ENV_VARS = (
    "SCOPEBOX_ENV",
    "SCOPEBOX_DEVELOPMENT",
    "SCOPEBOX_ESCAPE_KEYS",
    "SCOPEBOX_SANDBOX",
    "SCOPEBOX_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_process_state(monkeypatch):
    """Every test starts with default settings and empty process-wide state."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    logger = logging.getLogger("scopebox")
    saved = (logger.level, logger.propagate, list(logger.handlers))

    reset_settings()
    reset_default_namespace()
    active_sandboxes.reset()
    running_context.clear()
    default_queue.drain()

    yield

    reset_settings()
    reset_default_namespace()
    active_sandboxes.reset()
    running_context.clear()
    default_queue.drain()
    level, propagate, handlers = saved
    logger.setLevel(level)
    logger.propagate = propagate
    logger.handlers = handlers


@pytest.fixture
def namespace():
    return Namespace()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def dev_settings():
    return Settings(environment="development")


@pytest.fixture
def tracker():
    return RunningContextTracker()


@pytest.fixture
def counter():
    return ActiveSandboxCounter()


@pytest.fixture
def queue():
    return TaskQueue()


@pytest.fixture
def make_sandbox(namespace, settings, tracker, counter, queue):
    """Factory for proxy sandboxes wired to the test's own state."""

    def factory(name, global_context=None, settings=settings):
        return ProxySandbox(
            name,
            global_context if global_context is not None else namespace,
            settings=settings,
            tracker=tracker,
            counter=counter,
            scheduler=queue.defer,
        )

    return factory


@pytest.fixture
def make_snapshot(namespace, settings):
    """Factory for snapshot sandboxes over the test namespace."""

    def factory(name, global_context=None, settings=settings):
        return SnapshotSandbox(
            name,
            global_context if global_context is not None else namespace,
            settings=settings,
        )

    return factory
