"""Splitting a checked command line into commands, arguments and redirects."""

from __future__ import annotations

from dataclasses import dataclass, field

from .scanning import after_spaces, skip_quotes, skip_shielding, skip_spaces

# Marks characters that separate words once quoting has been taken into account.
SPLITTER = "\uffff"

_UNCONSUMED = "'\"\\"
_REDIRECT_CHARS = "<>"
_WORD_END = " <>"
_SEPARATORS = ";|"


@dataclass
class Command:
    """One simple command: its words, whether it feeds a pipe, its redirects."""

    argv: list[str]
    pipe: bool = False
    redirects: list[str] = field(default_factory=list)


def _at(text: str, index: int) -> str:
    return text[index] if 0 <= index < len(text) else ""


def _among(char: str, chars: str) -> bool:
    # The end of the string counts as a member of every set.
    return char == "" or char in chars


def find_redirects(text: str) -> tuple[str, list[str]]:
    """Pull the redirects (``<file``, ``> file``, ``>>file``) out of ``text``.

    Returns ``text`` with every redirect overwritten by SPLITTER characters,
    and the redirects in the order they appear.
    """
    redirects: list[str] = []
    i = 0
    while _at(text, i):
        before = i
        i = skip_spaces(text, i)
        i = skip_shielding(text, i)
        _, i = skip_quotes(text, i)
        char = _at(text, i)
        if char and char in _REDIRECT_CHARS:
            start = i
            i += 1
            if _at(text, i) == ">":
                i += 1
            i = skip_spaces(text, i)
            while _at(text, i) and text[i] not in _WORD_END:
                i += 1
            redirects.append(text[start:i])
            text = text[:start] + SPLITTER * (i - start) + text[i:]
        elif char and (char not in _UNCONSUMED or i == before):
            i += 1
    return text, redirects


def build_command(text: str, pipe: bool = False) -> Command:
    """Build a Command from the text of one simple command."""
    masked, redirects = find_redirects(text)
    chars = list(masked)
    i = 0
    while _at(masked, i):
        before = i
        i = skip_shielding(masked, i)
        _, i = skip_quotes(masked, i)
        while _at(masked, i) == " ":
            chars[i] = SPLITTER
            i += 1
        char = _at(masked, i)
        if char and (char not in _UNCONSUMED or i == before):
            i += 1
    argv = [word for word in "".join(chars).split(SPLITTER) if word]
    return Command(argv=argv, pipe=pipe, redirects=redirects)


def parse(line: str) -> list[Command]:
    """Split a syntax-checked line on ``;`` and ``|`` into Commands."""
    commands: list[Command] = []
    i = start = 0
    while _at(line, i):
        before = i
        i = skip_spaces(line, i)
        i = skip_shielding(line, i)
        _, i = skip_quotes(line, i)
        char = _at(line, i)
        split = _among(char, _SEPARATORS)
        if not split and char != "\\" and _among(after_spaces(line[i + 1:]), _SEPARATORS):
            i += 1
            split = True
        if split:
            pipe = after_spaces(line[i:]) == "|"
            commands.append(build_command(line[start:i], pipe))
            while _at(line, i) in (" ", "|", ";"):
                i += 1
                start = i
        char = _at(line, i)
        if char and (char not in _UNCONSUMED or i == before):
            i += 1
    return commands