"""The shell's variable table and helpers for its entries."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Iterator, Mapping

from .scanning import get_value

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMERIC = re.compile(r" *[+-]?[0-9]+")
_INT_PREFIX = re.compile(r"[\t\n\v\f\r ]*([+-]?)([0-9]*)")

_INT_MAX = 2**31 - 1
_MAX_SHELL_LEVEL = 999


def env_key(item: str) -> str:
    """Return the name part of a ``KEY=VALUE`` entry."""
    return item.partition("=")[0]


def env_value(item: str) -> str | None:
    """Return the value part of an entry, or None when it has no ``=``."""
    key, sep, value = item.partition("=")
    return value if sep else None


def is_valid_identifier(name: str | None) -> bool:
    """Tell whether ``name`` may be used as a variable name."""
    return name is not None and _IDENTIFIER.fullmatch(name) is not None


def is_numeric_argument(text: str) -> bool:
    """Tell whether ``text`` is an optionally signed integer after leading spaces."""
    return _NUMERIC.fullmatch(text) is not None


def parse_int(text: str) -> int:
    """Read a leading integer the way the C library ``atoi`` family does.

    Values beyond the 32-bit range collapse to -1 (too large) or 0 (too small).
    """
    match = _INT_PREFIX.match(text)
    sign = -1 if match.group(1) == "-" else 1
    digits = match.group(2)
    number = int(digits) % 2**64 if digits else 0
    if sign < 0 and number > _INT_MAX + 1:
        number = 0
    if sign > 0 and number > _INT_MAX:
        return -1
    return sign * number


def increase_shell_level(value: str) -> str:
    """Return the ``SHLVL`` entry for a shell started under level ``value``."""
    if not is_numeric_argument(value):
        return "SHLVL=1"
    level = parse_int(value)
    if level >= _MAX_SHELL_LEVEL:
        return "SHLVL="
    return f"SHLVL={level + 1}"


class Environment:
    """Ordered list of ``KEY=VALUE`` (or bare ``KEY``) entries."""

    def __init__(self, entries: Iterable[str] = ()) -> None:
        self._entries = list(entries)

    @classmethod
    def from_environ(
        cls, env: Mapping[str, str] | Iterable[str], cwd: str | None = None
    ) -> Environment:
        """Build the start-up table: copy ``env`` and add OLDPWD, PWD and SHLVL."""
        if isinstance(env, Mapping):
            entries = [f"{key}={value}" for key, value in env.items()]
        else:
            entries = list(env)
        table = cls(entries)
        if cwd is None:
            cwd = os.getcwd()
        shell_level = increase_shell_level(table.get("SHLVL"))
        for entry in ("OLDPWD", f"PWD={cwd}", shell_level):
            table.set(entry)
        return table

    def index_of(self, key: str) -> int | None:
        """Return the position of the entry named ``key``, or None."""
        for index, entry in enumerate(self._entries):
            if not entry:
                break
            if entry.startswith(key) and entry[len(key):len(key) + 1] in ("", "="):
                return index
        return None

    def get(self, key: str) -> str:
        """Return the value of ``key``; ``""`` when unset or without a value."""
        return get_value(self._entries, key)

    def lookup(self, key: str) -> str | None:
        """Return the value of ``key``, or None when unset or without a value."""
        for entry in self._entries:
            if env_key(entry) == key:
                return env_value(entry)
        return None

    def set(self, entry: str) -> None:
        """Add ``entry``, replacing any entry with the same name."""
        index = self.index_of(env_key(entry))
        if index is None:
            self._entries.append(entry)
        else:
            self._entries[index] = entry

    def replace_value(self, key: str, value: str) -> None:
        """Give an existing variable a new value; absent names are left alone."""
        index = self.index_of(key)
        if index is not None:
            self._entries[index] = f"{key}={value}"

    def unset(self, name: str) -> None:
        """Remove the first entry named ``name``, if any."""
        for index, entry in enumerate(self._entries):
            if env_key(entry) == name:
                del self._entries[index]
                return

    def path(self) -> str | None:
        """Return the value of PATH, or None."""
        return self.lookup("PATH")

    def exported(self) -> list[str]:
        """Return the entries in sorted order."""
        return sorted(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)