"""Variable expansion and quote removal for parsed commands."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import replace

from .parser import Command
from .scanning import get_value, skip_quotes, skip_shielding

SHELL_NAME = "minishell"

# A ``$`` followed by one of these is left as it is.
_LITERAL_AFTER_DOLLAR = " $%+,./:=\\^~"
_NAME = re.compile(r"[A-Za-z0-9_]*")
_SHIELDED = re.compile(r"""\\(.?)|"((?:[^"\\]|\\.?)*)"?|'([^']*)'?""", re.DOTALL)
_DOUBLE_QUOTED_ESCAPE = re.compile(r'\\([\\"$]|\Z)')


def _at(text: str, index: int) -> str:
    return text[index] if 0 <= index < len(text) else ""


def _is_alpha(char: str) -> bool:
    return char.isascii() and char.isalpha()


def _unshield(match: re.Match[str]) -> str:
    escaped, double, single = match.groups()
    if escaped is not None:
        return escaped
    if double is not None:
        return _DOUBLE_QUOTED_ESCAPE.sub(r"\1", double)
    return single


def remove_shielding(text: str) -> str:
    """Strip quotes and backslashes, keeping what they protect."""
    return _SHIELDED.sub(_unshield, text)


def expand_variables(text: str, env: Iterable[str], status: int = 0) -> str:
    """Replace ``$NAME``, ``$?`` and ``$0`` in ``text``.

    Text inside single quotes is left alone, as is a ``$`` escaped by a
    backslash or followed by a character that cannot start a name.
    """
    env = list(env)
    parts: list[str] = []
    rest = text
    quotes = ""
    i = 0
    while _at(rest, i):
        char = rest[i]
        if quotes == char:
            quotes = ""
        if char == '"':
            quotes = char
        i = skip_shielding(rest, i)
        if _at(rest, i) == "'" and not quotes:
            _, i = skip_quotes(rest, i)
        char, following = _at(rest, i), _at(rest, i + 1)
        if not char or not following:
            parts.append(rest)
            rest = ""
            break
        if char == "$" and following not in _LITERAL_AFTER_DOLLAR:
            parts.append(rest[:i])
            rest = rest[i:]
            i = 0
            if not _is_alpha(following):
                if following == "0":
                    parts.append(SHELL_NAME)
                    rest = rest[2:]
                elif following == "?":
                    parts.append(str(status))
                    rest = rest[2:]
                else:
                    rest = rest[1:]
            else:
                key = _NAME.match(rest, 1).group()
                parts.append(get_value(env, key))
                rest = rest[1 + len(key):]
        elif char != "\\":
            i += 1
    parts.append(rest)
    return "".join(parts)


def expand_word(text: str, env: Iterable[str], status: int = 0) -> str:
    """Expand variables in ``text`` and then remove its quoting."""
    return remove_shielding(expand_variables(text, env, status))


def expand_commands(
    commands: Iterable[Command], env: Iterable[str], status: int = 0
) -> list[Command]:
    """Return copies of ``commands`` with every word and redirect expanded."""
    env = list(env)
    return [
        replace(
            command,
            argv=[expand_word(word, env, status) for word in command.argv],
            redirects=[expand_word(spec, env, status) for spec in command.redirects],
        )
        for command in commands
    ]