"""Running module source against a sandbox handle.

The sandbox's ``proxy`` becomes the mapping that top-level names of the
module resolve against: assignments, deletions and lookups at module level
all go through the handle, and functions the module defines read their free
names from it as well (see ``ModuleGlobals``). Builtins stay reachable
because the handle does not resolve names it does not hold.

The run is one unit of work: deferred tasks it schedules, such as clearing
the running module marker, run when it is over.
"""

from __future__ import annotations

import builtins
import contextlib
import logging
import traceback
from io import StringIO
from pathlib import Path

from scopebox.core import ExecutionResult
from scopebox.logging_utils import preview_source
from scopebox.sandbox.base import Sandbox
from scopebox.tasks import TaskQueue, default_queue

logger = logging.getLogger(__name__)


class ModuleGlobals(dict):
    """Globals of sandboxed module code that fall back to the sandbox handle.

    Top-level statements already resolve names through the handle (it is
    their locals mapping). Functions and lambdas the module defines look
    names up in their globals instead; a missing key here is read from the
    handle, so they see the module's own names and the shared namespace the
    same way top-level code does. Names the handle does not resolve fall
    through to builtins.
    """

    def __init__(self, handle, **entries):
        super().__init__(**entries)
        self.handle = handle

    def __missing__(self, key):
        return self.handle[key]


def _module_globals(sandbox: Sandbox, filename: str) -> ModuleGlobals:
    return ModuleGlobals(
        sandbox.proxy,
        __builtins__=builtins,
        __name__=sandbox.name,
        __file__=filename,
    )


def run_source(
    sandbox: Sandbox,
    source: str,
    filename: str = "<module>",
    queue: TaskQueue | None = None,
) -> ExecutionResult:
    """Execute ``source`` as code of the module isolated by ``sandbox``.

    Expressions are evaluated and their value returned; anything else is
    executed as statements.

    Args:
        sandbox: The sandbox whose handle the code runs against.
        source: Python source code.
        filename: Name used in tracebacks.
        queue: Task queue drained after the run. Defaults to the
            process-wide queue.

    Returns:
        ExecutionResult with captured stdout, and the error if the code raised.
    """
    queue = queue if queue is not None else default_queue
    namespace = sandbox.proxy
    module_globals = _module_globals(sandbox, filename)
    captured_output = StringIO()

    logger.debug("Running %s in %s: %s", filename, sandbox.name, preview_source(source))

    with queue.unit_of_work(), contextlib.redirect_stdout(captured_output):
        try:
            # Try to evaluate as expression first (for return value)
            try:
                code = compile(source, filename, "eval")
            except SyntaxError:
                code = None

            if code is not None:
                result = eval(code, module_globals, namespace)
                return ExecutionResult(
                    success=True,
                    module=sandbox.name,
                    output=captured_output.getvalue(),
                    return_value=result,
                )

            exec(compile(source, filename, "exec"), module_globals, namespace)
            return ExecutionResult(
                success=True,
                module=sandbox.name,
                output=captured_output.getvalue(),
            )

        except Exception as e:
            tb = traceback.format_exc()
            logger.debug("Module %s raised %s", sandbox.name, type(e).__name__)
            return ExecutionResult(
                success=False,
                module=sandbox.name,
                output=captured_output.getvalue(),
                error=f"{type(e).__name__}: {e}\n{tb}",
            )


def run_file(
    sandbox: Sandbox,
    path: str | Path,
    queue: TaskQueue | None = None,
) -> ExecutionResult:
    """Read ``path`` and run it with ``run_source``."""
    path = Path(path)
    source = path.read_text(encoding="utf-8")
    return run_source(sandbox, source, filename=str(path), queue=queue)
