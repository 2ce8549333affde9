# minishell

A small interactive command shell. It reads a line, checks it for syntax
errors, splits it into commands joined by `;` and `|`, expands variables,
removes quoting and runs the result, either as a builtin or as an external
program found on `PATH`.

It needs a POSIX system: the line editor uses the `termios` module to put
the terminal into raw mode.

## Features

- Commands separated by `;` and connected by `|`
- Redirections `<`, `>` and `>>`
- Single and double quotes, backslash escapes
- Variable expansion: `$NAME`, `$?` (last exit status), `$0` (expands to
  `minishell`)
- Builtins: `cd`, `echo` (with `-n`), `env`, `exit`, `export`, `pwd`, `unset`
- Command history kept in `.bash_history` in the home directory (`/tmp` when
  `HOME` is not set), browsed with the up and down arrow keys
- Syntax errors reported in the usual form, for example
  ``minishell: syntax error near unexpected token `|'``, with exit status 258
- A program that is not found gives status 127; one that is not executable
  gives 126

At start-up the shell sets `PWD` to the current directory, adds a bare
`OLDPWD` entry and raises `SHLVL` by one.

## Installation

```
pip install .
```

## Usage

Start the interactive shell:

```
minishell
```

Type commands at the `minishell> ` prompt. `Ctrl-C` discards the current
line, `Ctrl-D` on an empty line leaves the shell, and `exit [status]` ends it
with the given status. The history is written back when the shell exits.
Lines beginning with `#` are not run, and text after ` #` is treated as a
comment.

## Using it from Python

The shell can also be driven from code. Each call to `Shell.execute` runs one
line and returns the resulting status. Variables on a line are expanded
before any of its commands run, so a variable set with `export` is seen from
the next line on:

```python
from minishell.shell import Shell

shell = Shell({"PATH": "/usr/bin:/bin", "HOME": "/tmp"})
shell.execute("export GREETING=hello")
shell.execute("echo $GREETING world")   # prints "hello world"
print(shell.status)                     # 0
```

Creating a `Shell` loads (and if needed creates) the history file under the
given `HOME`. `Shell.execute` lets `minishell.builtins.ShellExit` through
when the line runs `exit`; its `status` attribute holds the exit status.

The pieces it is built from can be used on their own:

```python
from minishell.lexer import check_syntax, ShellSyntaxError
from minishell.parser import parse
from minishell.expansion import expand_word

try:
    check_syntax("ls | | wc")
except ShellSyntaxError as error:
    print(error.message, error.status)

commands = parse("cat < input.txt | grep x > out.txt")
# [Command(argv=['cat'], pipe=True, redirects=['< input.txt']),
#  Command(argv=['grep', 'x'], pipe=False, redirects=['> out.txt'])]

expand_word("'$HOME' is \"$HOME\"", ["HOME=/home/user"])
# "$HOME is /home/user"
```

`minishell.environment.Environment` is the ordered variable table,
`minishell.executor.Executor` runs parsed commands against it, and
`minishell.history.History` holds the history list.

## What it does not do

- No `&&` or `||`, no subshells with `(` `)`, and no here-documents: `||`,
  `(`, `)` and `<<` are reported as syntax errors.
- No wildcard expansion, no job control and no `&` background commands.
- The line editor has no cursor movement within the line: only typing,
  backspace and history browsing.
- A builtin inside a pipeline runs on a copy of the variables, so `cd`,
  `export` or `unset` there has no lasting effect.

## Running the tests

```
pip install ".[test]"
pytest
```