"""Commands the shell runs itself instead of starting a program."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Sequence
from typing import TextIO

from .environment import (
    Environment,
    env_key,
    env_value,
    is_numeric_argument,
    is_valid_identifier,
    parse_int,
)

SHELL_NAME = "minishell"
BUILTINS = frozenset({"cd", "echo", "env", "exit", "export", "pwd", "unset"})
NON_NUMERIC_EXIT_STATUS = 255


class ShellExit(Exception):
    """Raised by ``exit``; the shell should save its history and stop."""

    def __init__(self, status: int = 0) -> None:
        super().__init__(status)
        self.status = status


def _stream(stream: TextIO | None, default: TextIO) -> TextIO:
    return default if stream is None else stream


def _getcwd() -> str | None:
    try:
        return os.getcwd()
    except OSError:
        return None


def print_error(message: str, command: str | None = None, err: TextIO | None = None) -> None:
    """Write ``minishell: [command: ]message`` to ``err``."""
    err = _stream(err, sys.stderr)
    prefix = f"{SHELL_NAME}: "
    if command:
        prefix += f"{command}: "
    err.write(f"{prefix}{message}\n")


def _not_identifier(command: str, arg: str, err: TextIO | None) -> None:
    print_error(f"`{arg}': not a valid identifier", command, err)


def is_n_flag(text: str) -> bool:
    """Tell whether ``text`` is ``-n`` or ``-`` followed only by ``n``s."""
    return text.startswith("-n") and text[2:].strip("n") == ""


def cd(args: Sequence[str], env: Environment, err: TextIO | None = None) -> int:
    """Change directory to ``args[0]`` or to HOME, updating PWD and OLDPWD."""
    old_pwd = _getcwd()
    if not args:
        target, message = env.get("HOME"), "HOME not set"
    else:
        target, message = args[0], None
    try:
        os.chdir(target)
    except OSError as exc:
        print_error(message or exc.strerror or str(exc), "cd", err)
        return 1
    pwd_now = _getcwd()
    if pwd_now is not None:
        env.replace_value("PWD", pwd_now)
    if old_pwd is not None:
        env.replace_value("OLDPWD", old_pwd)
    return 0


def echo(args: Sequence[str], out: TextIO | None = None) -> int:
    """Print the arguments separated by spaces; leading ``-n`` flags drop the newline."""
    out = _stream(out, sys.stdout)
    words = list(args)
    newline = True
    while words and is_n_flag(words[0]):
        newline = False
        words.pop(0)
    out.write(" ".join(words) + ("\n" if newline else ""))
    return 0


def env_command(env: Iterable[str], out: TextIO | None = None) -> int:
    """Print every entry that has a value."""
    out = _stream(out, sys.stdout)
    out.writelines(f"{entry}\n" for entry in env if "=" in entry)
    return 0


def exit_command(
    args: Sequence[str], out: TextIO | None = None, err: TextIO | None = None
) -> int:
    """Leave the shell by raising ShellExit.

    With more than one numeric argument nothing happens and 1 is returned.
    """
    _stream(out, sys.stdout).write("exit\n")
    if not args:
        raise ShellExit(0)
    if not is_numeric_argument(args[0]):
        print_error(f"{args[0]}: numeric argument required", "exit", err)
        raise ShellExit(NON_NUMERIC_EXIT_STATUS)
    if len(args) == 1:
        raise ShellExit(parse_int(args[0]) % 256)
    print_error("too many arguments", "exit", err)
    return 1


def format_export(entries: Iterable[str]) -> str:
    """Render entries, sorted, as ``declare -x`` lines."""
    lines = []
    for entry in sorted(entries):
        value = env_value(entry)
        line = f"declare -x {env_key(entry)}"
        if value is not None:
            line += f'="{value}"'
        lines.append(line + "\n")
    return "".join(lines)


def export(
    args: Sequence[str],
    env: Environment,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Set variables from ``KEY[=VALUE]`` arguments, or list them all."""
    if not args:
        _stream(out, sys.stdout).write(format_export(env))
        return 0
    status = 0
    for arg in args:
        if is_valid_identifier(env_key(arg)):
            env.set(arg)
        else:
            _not_identifier("export", arg, err)
            status = 1
    return status


def pwd(out: TextIO | None = None) -> int:
    """Print the current directory."""
    _stream(out, sys.stdout).write(f"{os.getcwd()}\n")
    return 0


def unset(args: Sequence[str], env: Environment, err: TextIO | None = None) -> int:
    """Remove the named variables."""
    status = 0
    for name in args:
        if is_valid_identifier(name):
            env.unset(name)
        else:
            _not_identifier("unset", name, err)
            status = 1
    return status


def run_builtin(
    name: str,
    args: Sequence[str],
    env: Environment,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Run builtin ``name`` with ``args`` (without the name) and return its status."""
    if name == "cd":
        return cd(args, env, err)
    if name == "echo":
        return echo(args, out)
    if name == "env":
        return env_command(env, out)
    if name == "exit":
        return exit_command(args, out, err)
    if name == "export":
        return export(args, env, out, err)
    if name == "pwd":
        return pwd(out)
    if name == "unset":
        return unset(args, env, err)
    raise ValueError(f"not a builtin: {name}")