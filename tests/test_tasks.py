"""Tests for deferred task scheduling."""

import asyncio
import logging

from scopebox.tasks import TaskQueue, default_queue, next_task, unit_of_work


class TestTaskQueue:
    """Tests for TaskQueue."""

    def test_drain_runs_in_order(self):
        """Callbacks run first in, first out."""
        queue = TaskQueue()
        calls = []

        queue.defer(lambda: calls.append(1))
        queue.defer(lambda: calls.append(2))

        assert queue.drain() == 2
        assert calls == [1, 2]
        assert len(queue) == 0

    def test_drain_runs_callbacks_queued_meanwhile(self):
        """A callback deferring another one is drained in the same pass."""
        queue = TaskQueue()
        calls = []

        def first():
            calls.append("first")
            queue.defer(lambda: calls.append("second"))

        queue.defer(first)

        assert queue.drain() == 2
        assert calls == ["first", "second"]

    def test_failing_callback_logged(self, caplog):
        """One failing callback does not stop the rest."""
        queue = TaskQueue()
        calls = []

        def broken():
            raise RuntimeError("boom")

        queue.defer(broken)
        queue.defer(lambda: calls.append("after"))

        with caplog.at_level(logging.ERROR, logger="scopebox.tasks"):
            queue.drain()

        assert calls == ["after"]
        assert "Deferred task" in caplog.text

    def test_unit_of_work_drains_on_exit(self):
        """Deferred callbacks run after the block, not inside it."""
        queue = TaskQueue()
        calls = []

        with queue.unit_of_work():
            queue.defer(lambda: calls.append("deferred"))
            calls.append("sync")
            assert len(queue) == 1

        assert calls == ["sync", "deferred"]

    def test_nested_units_drain_once(self):
        """Only the outermost unit of work drains."""
        queue = TaskQueue()
        calls = []

        with queue.unit_of_work():
            with queue.unit_of_work():
                queue.defer(lambda: calls.append("deferred"))
            assert calls == []

        assert calls == ["deferred"]

    def test_unit_of_work_drains_on_error(self):
        """Callbacks still run when the block raises."""
        queue = TaskQueue()
        calls = []

        try:
            with queue.unit_of_work():
                queue.defer(lambda: calls.append("deferred"))
                raise ValueError("boom")
        except ValueError:
            pass

        assert calls == ["deferred"]

    def test_empty_queue_is_truthy(self):
        """An empty queue is still a queue."""
        assert TaskQueue()


class TestNextTask:
    """Tests for next_task()."""

    def test_without_loop_uses_queue(self):
        """Without an event loop the callback waits on the given queue."""
        queue = TaskQueue()
        calls = []

        next_task(lambda: calls.append(1), queue=queue)

        assert calls == []
        queue.drain()
        assert calls == [1]

    def test_without_loop_defaults_to_process_queue(self):
        """The process-wide queue is used when none is given."""
        calls = []

        with unit_of_work():
            next_task(lambda: calls.append(1))
            assert len(default_queue) == 1

        assert calls == [1]

    def test_with_running_loop_runs_after_current_step(self):
        """Under asyncio the callback runs after the synchronous code."""
        calls = []

        async def main():
            next_task(lambda: calls.append("deferred"))
            calls.append("sync")
            await asyncio.sleep(0)
            calls.append("after")

        asyncio.run(main())

        assert calls == ["sync", "deferred", "after"]

    def test_with_running_loop_ignores_queue(self):
        """A running loop takes precedence over the fallback queue."""
        queue = TaskQueue()
        calls = []

        async def main():
            next_task(lambda: calls.append("deferred"), queue=queue)
            await asyncio.sleep(0)

        asyncio.run(main())

        assert calls == ["deferred"]
        assert len(queue) == 0
