"""A small interactive command shell with pipes, redirections and history."""

__version__ = "0.1.0"
__all__ = [
    "builtins",
    "environment",
    "executor",
    "expansion",
    "history",
    "lexer",
    "line_editor",
    "parser",
    "scanning",
    "shell",
]