import errno
import io
import os
import stat
import sys

import pytest

from minishell.builtins import ShellExit
from minishell.environment import Environment
from minishell.executor import (
    CommandError,
    Executor,
    Redirect,
    bin_path,
    parse_redirect,
    resolve_command,
)
from minishell.parser import Command

PY = sys.executable
UPPER = "import sys; sys.stdout.write(sys.stdin.read().upper())"


def make_executor(entries=()):
    out, err = io.StringIO(), io.StringIO()
    return Executor(Environment(entries), out, err), out, err


def make_tool(directory, name="tool", executable=True):
    directory.mkdir(exist_ok=True)
    tool = directory / name
    tool.write_text("#!/bin/sh\nexit 0\n")
    mode = stat.S_IRUSR | stat.S_IWUSR
    if executable:
        mode |= stat.S_IXUSR
    tool.chmod(mode)
    return tool


@pytest.mark.parametrize(
    "spec, expected",
    [
        (">>out", Redirect("out", output=True, append=True)),
        ("> out", Redirect("out", output=True)),
        ("<  in", Redirect("in")),
    ],
)
def test_parse_redirect(spec, expected):
    assert parse_redirect(spec) == expected


def test_parse_redirect_rejects_other_text():
    with pytest.raises(ValueError):
        parse_redirect("file")


def test_bin_path():
    assert bin_path(None, "ls") == "ls"
    assert bin_path("/usr/bin", "ls") == "/usr/bin/ls"


def test_resolve_searches_path_in_order(tmp_path):
    first, second = tmp_path / "a", tmp_path / "b"
    first.mkdir()
    tool = make_tool(second)
    assert resolve_command("tool", f"{first}:{second}") == str(tool)


def test_resolve_not_found(tmp_path):
    with pytest.raises(CommandError) as info:
        resolve_command("tool", str(tmp_path))
    assert info.value.status == 127
    assert info.value.message == "command not found"


def test_resolve_empty_path_is_not_found():
    with pytest.raises(CommandError) as info:
        resolve_command("tool", "")
    assert info.value.message == "command not found"


def test_resolve_non_executable_stops_search(tmp_path):
    make_tool(tmp_path / "a", executable=False)
    make_tool(tmp_path / "b")
    with pytest.raises(CommandError) as info:
        resolve_command("tool", f"{tmp_path / 'a'}:{tmp_path / 'b'}")
    assert info.value.status == 126
    assert info.value.message == os.strerror(errno.EACCES)


def test_resolve_directory_given_directly(tmp_path):
    with pytest.raises(CommandError) as info:
        resolve_command(str(tmp_path), "/usr/bin")
    assert info.value.status == 127
    assert info.value.message == os.strerror(errno.EISDIR)


def test_resolve_missing_relative(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(CommandError) as info:
        resolve_command("./nope", "/usr/bin")
    assert info.value.message == os.strerror(errno.ENOENT)


def test_resolve_without_path_uses_name(tmp_path, monkeypatch):
    make_tool(tmp_path)
    monkeypatch.chdir(tmp_path)
    assert resolve_command("tool", None) == "tool"


def test_echo_builtin():
    executor, out, _ = make_executor()
    assert executor.run([Command(["echo", "hi", "there"])]) == 0
    assert out.getvalue() == "hi there\n"


def test_builtin_output_redirect(tmp_path):
    target = tmp_path / "out"
    executor, out, _ = make_executor()
    executor.run([Command(["echo", "one"], redirects=[f">{target}"])])
    executor.run([Command(["echo", "two"], redirects=[f">> {target}"])])
    assert target.read_text() == "one\ntwo\n"
    assert out.getvalue() == ""


def test_redirect_failure_skips_command(tmp_path):
    missing = tmp_path / "missing"
    executor, out, err = make_executor()
    status = executor.run([Command(["echo", "x"], redirects=[f"<{missing}"])])
    assert status == 1
    assert out.getvalue() == ""
    assert err.getvalue() == f"minishell: {missing}: {os.strerror(errno.ENOENT)}\n"


def test_export_changes_environment():
    executor, _, _ = make_executor()
    executor.run([Command(["export", "A=1"])])
    assert executor.env.get("A") == "1"


def test_external_exit_status():
    executor, _, _ = make_executor()
    assert executor.run([Command([PY, "-c", "import sys; sys.exit(3)"])]) == 3


def test_external_with_input_redirect(tmp_path):
    source = tmp_path / "in"
    source.write_text("abc\n")
    executor, out, _ = make_executor()
    executor.run([Command([PY, "-c", UPPER], redirects=[f"<{source}"])])
    assert out.getvalue() == "ABC\n"


def test_external_with_output_redirect(tmp_path):
    target = tmp_path / "out"
    executor, out, _ = make_executor()
    executor.run([Command([PY, "-c", "print('data')"], redirects=[f">{target}"])])
    assert target.read_text() == "data\n"
    assert out.getvalue() == ""


def test_command_not_found(tmp_path):
    executor, _, err = make_executor([f"PATH={tmp_path}"])
    assert executor.run([Command(["nosuchcmd"])]) == 127
    assert err.getvalue() == "minishell: nosuchcmd: command not found\n"


def test_environment_passed_to_program():
    executor, out, _ = make_executor(["GREETING=hey", "OLDPWD"])
    code = "import os; print(os.environ['GREETING'], 'OLDPWD' in os.environ)"
    executor.run([Command([PY, "-c", code])])
    assert out.getvalue() == "hey False\n"


def test_exit_raises_outside_pipeline():
    executor, out, _ = make_executor()
    with pytest.raises(ShellExit) as info:
        executor.run([Command(["exit", "7"])])
    assert info.value.status == 7
    assert out.getvalue() == "exit\n"


def test_pipeline_builtin_into_program():
    executor, out, _ = make_executor()
    status = executor.run(
        [Command(["echo", "hello"], pipe=True), Command([PY, "-c", UPPER])]
    )
    assert status == 0
    assert out.getvalue() == "HELLO\n"


def test_pipeline_between_programs():
    executor, out, _ = make_executor()
    executor.run(
        [
            Command([PY, "-c", "print('abc')"], pipe=True),
            Command([PY, "-c", UPPER], pipe=True),
            Command([PY, "-c", "import sys; sys.stdout.write(sys.stdin.read()[::-1])"]),
        ]
    )
    assert out.getvalue() == "\nCBA"


def test_pipeline_builtin_does_not_change_environment():
    executor, _, _ = make_executor()
    executor.run([Command(["export", "B=2"], pipe=True), Command([PY, "-c", "pass"])])
    assert executor.env.lookup("B") is None


def test_pipeline_status_is_last_stage():
    executor, _, _ = make_executor()
    status = executor.run(
        [Command(["echo", "x"], pipe=True), Command([PY, "-c", "import sys; sys.exit(2)"])]
    )
    assert status == 2


def test_exit_inside_pipeline_does_not_raise():
    executor, _, _ = make_executor()
    assert executor.run([Command(["exit", "5"], pipe=True), Command([PY, "-c", "pass"])]) == 0
    assert executor.run([Command([PY, "-c", "pass"], pipe=True), Command(["exit", "5"])]) == 5


def test_output_redirect_takes_precedence_over_pipe(tmp_path):
    target = tmp_path / "f"
    executor, out, _ = make_executor()
    executor.run(
        [
            Command(["echo", "a"], pipe=True, redirects=[f">{target}"]),
            Command([PY, "-c", UPPER]),
        ]
    )
    assert target.read_text() == "a\n"
    assert out.getvalue() == ""


def test_cd_in_pipeline_keeps_directory(tmp_path, monkeypatch):
    (tmp_path / "sub").mkdir()
    monkeypatch.chdir(tmp_path)
    executor, _, _ = make_executor()
    status = executor.run(
        [Command(["cd", "sub"], pipe=True), Command([PY, "-c", "import sys; sys.exit(6)"])]
    )
    assert status == 6
    assert os.getcwd() == str(tmp_path)


def test_cd_alone_changes_directory(tmp_path, monkeypatch):
    sub = tmp_path / "sub"
    sub.mkdir()
    monkeypatch.chdir(tmp_path)
    executor, _, _ = make_executor([f"PWD={tmp_path}"])
    executor.run([Command(["cd", str(sub)])])
    assert os.getcwd() == str(sub)
    assert executor.env.get("PWD") == str(sub)


def test_pwd_leaves_status(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    executor, out, _ = make_executor([f"PATH={tmp_path}"])
    executor.run([Command(["nosuchcmd"])])
    assert executor.run([Command(["pwd"])]) == 127
    assert out.getvalue() == f"{os.getcwd()}\n"


def test_empty_command_creates_redirect_file(tmp_path):
    target = tmp_path / "f"
    executor, _, _ = make_executor()
    executor.run([Command([], redirects=[f">{target}"])])
    assert target.exists()
    assert target.read_text() == ""


def test_run_command_returns_status():
    executor, _, _ = make_executor()
    assert executor.run_command(Command([PY, "-c", "import sys; sys.exit(4)"])) == 4
    assert executor.status == 4