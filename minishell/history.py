"""Command history kept in a file in the user's home directory."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

HISTORY_FILE = ".bash_history"
_FALLBACK_HOME = "/tmp"
_MODE = 0o600


def _open_text(fd: int, mode: str):
    return open(fd, mode, encoding="utf-8", errors="surrogateescape", newline="")


class History:
    """Lines entered so far; index 0 is the most recent."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lines: list[str] = []

    @classmethod
    def load(cls, home: str | None = None) -> History:
        """Read the history file under ``home``, creating it if missing.

        Without ``home`` the HOME variable is used, then ``/tmp``.
        Only newline-terminated lines are read.
        """
        if home is None:
            home = os.environ.get("HOME")
        if home is None:
            home = _FALLBACK_HOME
        history = cls(f"{home}/{HISTORY_FILE}")
        try:
            fd = os.open(history.path, os.O_RDONLY | os.O_CREAT, _MODE)
        except OSError:
            return history
        with _open_text(fd, "r") as stream:
            content = stream.read()
        history._lines.extend(content.split("\n")[:-1])
        return history

    def add(self, line: str) -> None:
        """Record ``line`` as the most recent entry."""
        self._lines.append(line)

    def save(self) -> None:
        """Write every entry, oldest first, replacing the file's contents."""
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, _MODE)
        except OSError:
            return
        with _open_text(fd, "w") as stream:
            stream.writelines(f"{line}\n" for line in self._lines)

    def __iter__(self) -> Iterator[str]:
        return reversed(list(self._lines))

    def __len__(self) -> int:
        return len(self._lines)

    def __getitem__(self, index):
        return self._lines[::-1][index]