"""Scanning helpers shared by the lexer, parser and expander.

Positions are plain indexes into a string.  Reading past the end of the
string yields an empty string, which plays the role of the terminator.
"""

from __future__ import annotations

from collections.abc import Iterable

QUOTES = ("'", '"')


def _at(text: str, index: int) -> str:
    return text[index] if 0 <= index < len(text) else ""


def skip_shielding(text: str, index: int) -> int:
    """Step over a backslash and the character it escapes."""
    if _at(text, index) == "\\" and _at(text, index + 1):
        return index + 2
    return index


def skip_spaces(text: str, index: int) -> int:
    """Return the index of the first non-space character at or after ``index``."""
    while _at(text, index) == " ":
        index += 1
    return index


def after_spaces(text: str) -> str:
    """Return the first character of ``text`` that is not a space, or ``""``."""
    return text.lstrip(" ")[:1]


def skip_quotes(text: str, index: int) -> tuple[str, int]:
    """Step over consecutive quoted sections starting at ``index``.

    Returns the quote character that was left open (``""`` when every
    section was closed) and the index just past the skipped text.
    """
    quote = ""
    while _at(text, index) in QUOTES:
        quote = text[index]
        index += 1
        while _at(text, index) and quote:
            if quote == '"':
                index = skip_shielding(text, index)
            if _at(text, index) == quote:
                quote = ""
            index += 1
    return quote, index


def get_value(env: Iterable[str], key: str) -> str:
    """Return the value of ``key`` among ``KEY=VALUE`` entries, or ``""``."""
    prefix = key + "="
    for entry in env:
        if entry.startswith(prefix):
            return entry[len(prefix):]
    return ""