"""Syntax checking of a command line before it is parsed."""

from __future__ import annotations

from .scanning import QUOTES, after_spaces, skip_quotes, skip_shielding, skip_spaces

SYNTAX_ERROR_STATUS = 258


def _message(token: str) -> str:
    return f"minishell: syntax error near unexpected token `{token}'"


PIPE = _message("|")
DOUBLE_PIPE = _message("||")
OPEN_PAREN = _message("(")
CLOSE_PAREN = _message(")")
SEMICOLON = _message(";")
DOUBLE_SEMICOLON = _message(";;")
SINGLE_QUOTE = _message("'")
DOUBLE_QUOTE = _message('"')
NEWLINE = _message("newline")
LESS = _message("<")
GREATER = _message(">")
HEREDOC = _message("<<")
BACKSLASH = _message("\\")


class ShellSyntaxError(Exception):
    """A command line that cannot be run; carries the shell's exit status."""

    def __init__(self, message: str, status: int = SYNTAX_ERROR_STATUS) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


def _at(text: str, index: int) -> str:
    return text[index] if 0 <= index < len(text) else ""


def _among(char: str, chars: str) -> bool:
    # The end of the string counts as a member of every set.
    return char == "" or char in chars


def _check_token(line: str, i: int) -> tuple[str | None, int]:
    char = _at(line, i)
    if char == "\\" and not _at(line, i + 1):
        return BACKSLASH, i
    quote = ""
    if char in QUOTES:
        quote, i = skip_quotes(line, i)
    char = _at(line, i)
    if quote == "'" and not after_spaces(line[i:]):
        return SINGLE_QUOTE, i
    if quote == '"' and not after_spaces(line[i:]):
        return DOUBLE_QUOTE, i
    if line.startswith(";;", i):
        return DOUBLE_SEMICOLON, i
    if char == "(":
        return OPEN_PAREN, i
    if char == ")":
        return CLOSE_PAREN, i
    if (char == ">" and after_spaces(line[i + 1:]) == "<") or (
        char == "<" and after_spaces(line[i + 2:]) == "<"
    ):
        return LESS, i
    if (char == "<" and after_spaces(line[i + 1:]) == ">") or (
        char == ">" and _at(line, i + 1) != ">" and after_spaces(line[i + 1:]) == ">"
    ):
        return GREATER, i
    return None, i


def _check_operator(rest: str, prev: str, error: str | None) -> str | None:
    head = rest[:1]
    if error is None and head == ";" and _among(prev, "<>|"):
        return SEMICOLON
    if rest.startswith("||") and (_among(prev, "<>;") or not after_spaces(rest[2:])):
        return DOUBLE_PIPE
    if head == "|" and (_among(prev, "<>|;") or _among(after_spaces(rest[1:]), "#")):
        return PIPE
    if rest.startswith("<<"):
        return HEREDOC
    if head in ("<", ">") and not after_spaces(rest[1:]):
        return NEWLINE
    return error


def check_syntax(line: str) -> str:
    """Validate ``line`` and return it with any trailing comment removed.

    Raises ShellSyntaxError describing the first offending token.
    """
    i = 0
    prev = ""
    error: str | None = None
    while i < len(line) and error is None:
        if line[i] == " " and after_spaces(line[i:]) == "#":
            line = line[:i]
        i = skip_spaces(line, i)
        i = skip_shielding(line, i)
        error, i = _check_token(line, i)
        error = _check_operator(line[i:], prev, error)
        prev = _at(line, i)
        if prev and prev not in "'\"\\":
            i += 1
    if error is not None:
        raise ShellSyntaxError(error)
    return line