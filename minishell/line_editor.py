"""Interactive line input with history navigation on a raw terminal."""

from __future__ import annotations

import os
import re
import sys
import termios
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

from .builtins import exit_command
from .history import History

SAVE_CURSOR = "\0337"
RESTORE_CURSOR = "\0338"
CLEAR_TO_END = "\033[J"
CURSOR_LEFT = "\b"
BELL = "\a"
READ_SIZE = 4095

KEY_UP = "\x1b[A"
KEY_DOWN = "\x1b[B"
KEY_BACKSPACE = "\x7f"
KEY_INTERRUPT = "\x03"
KEY_END_OF_FILE = "\x04"
KEY_NEWLINE = "\n"

# Input is handled in units: an escape sequence, one control character,
# or a run of ordinary text.
_UNITS = re.compile(
    r"\x1b(?:\[[0-9;]*[A-Za-z~]?|.)?|[\x00-\x1f\x7f]|[^\x00-\x1f\x7f]+",
    re.DOTALL,
)


@contextmanager
def _raw_mode(fd: int) -> Iterator[None]:
    """Turn off echo, signals and line buffering on a terminal for a while."""
    if not os.isatty(fd):
        yield
        return
    basic = termios.tcgetattr(fd)
    custom = list(basic)
    custom[3] &= ~(termios.ECHO | termios.ISIG | termios.ICANON)
    termios.tcsetattr(fd, termios.TCSANOW, custom)
    try:
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSANOW, basic)


class LineEditor:
    """Builds one command line from key presses, echoing them to ``out``.

    After a line is finished, ``line`` holds it (None for an empty,
    interrupted or comment line) and ``interrupted`` tells whether
    Ctrl-C ended it.
    """

    def __init__(self, history: History, out: TextIO | None = None) -> None:
        self.history = history
        self.out = sys.stderr if out is None else out
        self._pending = ""
        self._start()

    def _start(self) -> None:
        self.line: str | None = ""
        self.done = False
        self.interrupted = False
        self._saved: str | None = None
        self._position: int | None = None

    def _write(self, text: str) -> None:
        self.out.write(text)
        try:
            self.out.flush()
        except (AttributeError, OSError, ValueError):
            pass

    @staticmethod
    def _bell() -> None:
        sys.stderr.write(BELL)
        sys.stderr.flush()

    def feed(self, data: str | bytes) -> bool:
        """Process input; return True once a line has been finished.

        Input that follows the end of the line is kept for the next line.
        """
        if isinstance(data, bytes):
            data = data.decode("utf-8", "surrogateescape")
        if self.done:
            self._start()
        units = _UNITS.findall(data)
        for position, unit in enumerate(units):
            if self._handle(unit):
                self._pending = "".join(units[position + 1:])
                return True
        return False

    def _handle(self, unit: str) -> bool:
        if unit == KEY_NEWLINE:
            self._new_line()
            return True
        if unit == KEY_INTERRUPT:
            self._interrupt()
            return True
        if unit == KEY_END_OF_FILE:
            self._end_of_file()
        elif unit == KEY_UP:
            self.previous_command()
        elif unit == KEY_DOWN:
            self.next_command()
        elif unit == KEY_BACKSPACE:
            self.backspace()
        elif unit[0] < " " or unit[0] == "\x7f":
            pass
        else:
            self._write(unit)
            self.line = (self.line or "") + unit
        return False

    def _new_line(self) -> None:
        self._write("\n")
        if self.line:
            self.history.add(self.line)
            if self.line.startswith("#"):
                self.line = None
        else:
            self.line = None
        self.done = True

    def _interrupt(self) -> None:
        self._write("\n")
        self.line = None
        self.interrupted = True
        self.done = True

    def _end_of_file(self) -> None:
        if not self.line:
            exit_command(())
        else:
            self._bell()

    def previous_command(self) -> str | None:
        """Show the next older history entry in place of the line."""
        count = len(self.history)
        if not count or (self._position is not None and self._position == count - 1):
            self._bell()
            return self.line
        self._write(RESTORE_CURSOR + CLEAR_TO_END)
        if self._position is None:
            self._saved = self.line
            self._position = 0
        else:
            self._position += 1
        self.line = self.history[self._position]
        self._write(self.line)
        return self.line

    def next_command(self) -> str | None:
        """Show the next newer history entry, or the line being typed."""
        if self._position is None:
            self._bell()
            return self.line
        self._write(RESTORE_CURSOR + CLEAR_TO_END)
        self._position -= 1
        if self._position < 0:
            self._position = None
            self.line = self._saved or ""
            self._saved = None
        else:
            self.line = self.history[self._position]
        self._write(self.line)
        return self.line

    def backspace(self) -> str | None:
        """Delete the last character of the line."""
        if self.line:
            self.line = self.line[:-1]
            self._write(CURSOR_LEFT + CLEAR_TO_END)
        else:
            self._bell()
        return self.line

    def read_command(self, fd: int = 0) -> str | None:
        """Read one command line from ``fd``.

        Ctrl-D on an empty line, or the end of input with nothing typed,
        leaves the shell by raising ShellExit.
        """
        self._start()
        pending, self._pending = self._pending, ""
        with _raw_mode(fd):
            self._write(SAVE_CURSOR)
            if pending and self.feed(pending):
                return self.line
            while True:
                data: str | bytes = os.read(fd, READ_SIZE)
                if not data:
                    data = KEY_NEWLINE if self.line else KEY_END_OF_FILE
                if self.feed(data):
                    return self.line