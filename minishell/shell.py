"""The interactive shell: reads lines, checks, parses, expands and runs them."""

from __future__ import annotations

import os
import signal
import sys
from collections.abc import Iterable, Mapping
from typing import TextIO

from .builtins import ShellExit
from .environment import Environment
from .executor import Executor
from .expansion import expand_commands
from .history import History
from .lexer import ShellSyntaxError, check_syntax
from .line_editor import LineEditor
from .parser import parse

PROMPT = "\033[1;35mminishell> \033[0m"
INTERRUPTED_STATUS = 1
_SIGNAL_STATUS_BASE = 128


class Shell:
    """A shell session: its variables, history and last exit status."""

    def __init__(
        self,
        environ: Mapping[str, str] | Iterable[str] | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        if environ is None:
            environ = os.environ
        self.stdout = sys.stdout if stdout is None else stdout
        self.stderr = sys.stderr if stderr is None else stderr
        self.env = Environment.from_environ(environ)
        self.executor = Executor(self.env, self.stdout, self.stderr)
        self.history = History.load(self.env.lookup("HOME") or None)
        self.editor = LineEditor(self.history, self.stderr)

    @property
    def status(self) -> int:
        """The exit status of the last command."""
        return self.executor.status

    @status.setter
    def status(self, value: int) -> None:
        self.executor.status = value

    def execute(self, line: str) -> int:
        """Run one command line and return the resulting status.

        ShellExit from the ``exit`` builtin is passed on.
        """
        try:
            line = check_syntax(line)
        except ShellSyntaxError as exc:
            self.stderr.write(exc.message + "\n")
            self.status = exc.status
            return self.status
        commands = expand_commands(parse(line), self.env, self.status)
        return self.executor.run(commands)

    def repl(self, fd: int = 0) -> int:
        """Prompt for and run lines from ``fd`` until exit; return the exit status."""
        try:
            while True:
                self.stderr.write(PROMPT)
                self.stderr.flush()
                line = self.editor.read_command(fd)
                if self.editor.interrupted:
                    self.status = INTERRUPTED_STATUS
                if not line:
                    continue
                try:
                    self.execute(line)
                except KeyboardInterrupt:
                    self.stderr.write("\n")
                    self.status = _SIGNAL_STATUS_BASE + signal.SIGINT
        except ShellExit as exc:
            self.history.save()
            return exc.status


def _ignore_signal(signum, frame) -> None:
    pass


def main(argv: list[str] | None = None) -> int:
    """Start an interactive shell on standard input."""
    if hasattr(signal, "SIGQUIT"):
        signal.signal(signal.SIGQUIT, _ignore_signal)
    shell = Shell()
    return shell.repl(sys.stdin.fileno())


if __name__ == "__main__":
    raise SystemExit(main())