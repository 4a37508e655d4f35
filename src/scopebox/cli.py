"""Command line tools for trying modules out in sandboxes.

Usage:
    # Run each file in its own sandbox over one shared namespace
    scopebox run app1.py app2.py --strategy proxy

    # Interactive prompt with one sandbox per module name
    scopebox repl app1 app2
"""

from __future__ import annotations

import argparse
import codeop
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings

from scopebox.config import get_settings, parse_strategy
from scopebox.core import SandboxType
from scopebox.logging_utils import configure_logging
from scopebox.namespace import Namespace
from scopebox.paths import REPL_HISTORY_PATH
from scopebox.runner import run_file, run_source
from scopebox.sandbox import Sandbox, create_sandbox

REPL_COMMANDS = ":use <name>, :keys, :global, :on, :off, :quit"


def changed_keys(sandbox: Sandbox) -> list[str]:
    """Keys the module behind ``sandbox`` has changed so far."""
    if sandbox.type is SandboxType.SNAPSHOT:
        return list(sandbox.modified_map)
    return sandbox.updated_keys


def run_modules(
    paths: Sequence[Path],
    strategy: SandboxType,
    development: bool = False,
    out=None,
) -> int:
    """Run each file in its own sandbox and report what it changed.

    Returns:
        Process exit code: 0 when every module ran, 1 otherwise.
    """
    out = out or sys.stdout
    settings = get_settings()
    if development:
        settings = replace(settings, development_flag=True)
    namespace = Namespace()
    exit_code = 0

    for path in paths:
        sandbox = create_sandbox(path.stem, namespace, strategy=strategy, settings=settings)
        sandbox.activate()
        before = set(namespace.own_keys())

        result = run_file(sandbox, path)
        escaped = [key for key in namespace.own_keys() if key not in before]
        sandbox.deactivate()

        status = "ok" if result.success else "failed"
        print(f"[{sandbox.name}] {status}", file=out)
        if result.output:
            print(result.output.rstrip(), file=out)
        if not result.success:
            print(result.error.rstrip(), file=out)
            exit_code = 1
        print(f"  changed: {', '.join(changed_keys(sandbox)) or '(none)'}", file=out)
        if sandbox.type is SandboxType.PROXY:
            print(f"  escaped: {', '.join(escaped) or '(none)'}", file=out)

    print(f"shared namespace: {', '.join(namespace.own_keys()) or '(empty)'}", file=out)
    return exit_code


class Shell:
    """State behind the interactive prompt."""

    def __init__(self, names: Sequence[str], strategy: SandboxType):
        self.namespace = Namespace()
        self.sandboxes: dict[str, Sandbox] = {
            name: create_sandbox(name, self.namespace, strategy=strategy) for name in names
        }
        self.current = names[0]
        self.strategy = strategy
        if strategy is SandboxType.SNAPSHOT:
            # only one snapshot sandbox may be active at a time
            for sandbox in self.sandboxes.values():
                sandbox.deactivate()
            self.sandbox.activate()

    @property
    def sandbox(self) -> Sandbox:
        return self.sandboxes[self.current]

    def use(self, name: str) -> str:
        if name not in self.sandboxes:
            return f"[error] unknown module: {name}"
        if self.strategy is SandboxType.SNAPSHOT and name != self.current:
            self.sandbox.deactivate()
            self.sandboxes[name].activate()
        self.current = name
        return f"using {name}"

    def handle_line(self, line: str) -> tuple[bool, str]:
        """Handle one input; returns (keep going, text to print)."""
        stripped = line.strip()

        if not stripped:
            return True, ""
        if stripped in {":q", ":quit", ":exit"}:
            return False, ""
        if stripped.startswith(":use "):
            return True, self.use(stripped.split(" ", 1)[1].strip())
        if stripped == ":keys":
            return True, ", ".join(changed_keys(self.sandbox)) or "(none)"
        if stripped == ":global":
            return True, ", ".join(self.namespace.own_keys()) or "(empty)"
        if stripped == ":on":
            self.sandbox.activate()
            return True, f"{self.current} active"
        if stripped == ":off":
            self.sandbox.deactivate()
            return True, f"{self.current} inactive"
        if stripped.startswith(":"):
            return True, f"[error] unknown command; commands: {REPL_COMMANDS}"

        return True, str(run_source(self.sandbox, line, filename=f"<{self.current}>"))


def _input_complete(text: str) -> bool:
    try:
        return codeop.compile_command(text, symbol="exec") is not None
    except (SyntaxError, ValueError, OverflowError):
        return True


def interactive(shell: Shell, history_path: Path = REPL_HISTORY_PATH) -> None:
    history_path.parent.mkdir(parents=True, exist_ok=True)
    key_bindings = KeyBindings()

    @key_bindings.add("enter")
    def _(event) -> None:
        buffer = event.current_buffer
        if buffer.cursor_position != len(buffer.text):
            buffer.insert_text("\n")
        elif _input_complete(buffer.text):
            buffer.validate_and_handle()
        else:
            buffer.insert_text("\n")

    @key_bindings.add("escape", "enter")
    def _(event) -> None:
        event.current_buffer.insert_text("\n")

    session = PromptSession(
        multiline=True,
        key_bindings=key_bindings,
        history=FileHistory(str(history_path)),
    )

    print(f"Modules: {', '.join(shell.sandboxes)}. Commands: {REPL_COMMANDS}")
    print("Tip: Enter submits when complete; Esc+Enter inserts a newline.")
    while True:
        try:
            line = session.prompt(f"{shell.current}> ")
        except (EOFError, KeyboardInterrupt):
            print()
            break
        keep_going, text = shell.handle_line(line)
        if text:
            print(text)
        if not keep_going:
            break


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scopebox",
        description="Run modules in sandboxes over one shared namespace.",
    )
    parser.add_argument("--log-level", help="Log level for the scopebox logger")
    parser.add_argument("--log-file", help="Write logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run module files, one sandbox each")
    run_parser.add_argument("files", nargs="+", type=Path, help="Python source files")
    run_parser.add_argument(
        "--strategy",
        choices=("proxy", "snapshot"),
        help="Sandbox strategy (default: SCOPEBOX_SANDBOX or proxy)",
    )
    run_parser.add_argument(
        "--development",
        action="store_true",
        help="Log changed keys on every deactivate",
    )

    repl_parser = subparsers.add_parser("repl", help="Interactive prompt")
    repl_parser.add_argument("names", nargs="+", help="Module names, one sandbox each")
    repl_parser.add_argument("--strategy", choices=("proxy", "snapshot"))

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    strategy = parse_strategy(args.strategy) if args.strategy else get_settings().default_strategy

    if args.command == "run":
        missing = [str(path) for path in args.files if not path.is_file()]
        if missing:
            parser.error(f"file not found: {', '.join(missing)}")
        return run_modules(args.files, strategy, development=args.development)

    interactive(Shell(args.names, strategy))
    return 0


__all__ = [
    "main",
    "run_modules",
    "Shell",
    "changed_keys",
]
