"""Running parsed commands: builtins, programs found on PATH, and pipelines."""

from __future__ import annotations

import errno
import io
import os
import stat
import subprocess
import sys
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import BinaryIO, TextIO

from .builtins import BUILTINS, ShellExit, print_error, run_builtin
from .environment import Environment
from .parser import Command

NOT_EXECUTABLE_STATUS = 126
NOT_FOUND_STATUS = 127
REDIRECT_FAILURE_STATUS = 1
NOT_FOUND_MESSAGE = "command not found"
_SIGNAL_STATUS_BASE = 128
_FILE_MODE = 0o644
_ENCODING = "utf-8"
_DIRECT_PREFIXES = ("./", "../", "/")


@dataclass(frozen=True)
class Redirect:
    """One redirection: the file, whether it replaces stdout, whether it appends."""

    path: str
    output: bool = False
    append: bool = False


class CommandError(Exception):
    """A program that cannot be started; carries the status the shell reports."""

    def __init__(self, command: str, message: str, status: int) -> None:
        super().__init__(f"{command}: {message}")
        self.command = command
        self.message = message
        self.status = status


def parse_redirect(spec: str) -> Redirect:
    """Read a redirect such as ``<in``, ``> out`` or ``>>log``."""
    if spec.startswith(">>"):
        return Redirect(spec[2:].lstrip(" "), output=True, append=True)
    if spec.startswith("<"):
        return Redirect(spec[1:].lstrip(" "))
    if spec.startswith(">"):
        return Redirect(spec[1:].lstrip(" "), output=True)
    raise ValueError(f"not a redirect: {spec!r}")


def bin_path(directory: str | None, command: str) -> str:
    """Join a PATH directory and a command name; without a directory, the name."""
    if directory is None:
        return command
    return f"{directory}/{command}"


def resolve_command(name: str, path: str | None) -> str:
    """Find the file to run for ``name`` given the value of PATH.

    Names starting with ``./``, ``../`` or ``/``, and every name when PATH is
    unset, are used as they are. Raises CommandError when nothing runnable
    is found; a file without the owner's execute bit or a directory stops
    the search.
    """
    direct = path is None or name.startswith(_DIRECT_PREFIXES)
    if direct:
        candidates = [bin_path(None, name)]
    else:
        candidates = [bin_path(directory, name) for directory in path.split(":") if directory]
    failure = 0
    for candidate in candidates:
        try:
            mode = os.stat(candidate).st_mode
        except OSError:
            failure = errno.ENOENT
            continue
        if not mode & stat.S_IXUSR:
            failure = errno.EACCES
            break
        if stat.S_ISDIR(mode):
            failure = errno.EISDIR
            break
        return candidate
    if failure == errno.EACCES:
        raise CommandError(name, os.strerror(errno.EACCES), NOT_EXECUTABLE_STATUS)
    message = os.strerror(failure) if direct else NOT_FOUND_MESSAGE
    raise CommandError(name, message, NOT_FOUND_STATUS)


def _open_redirect(redirect: Redirect) -> int:
    if not redirect.output:
        flags = os.O_RDONLY
    elif redirect.append:
        flags = os.O_CREAT | os.O_WRONLY | os.O_APPEND
    else:
        flags = os.O_CREAT | os.O_WRONLY | os.O_TRUNC
    return os.open(redirect.path, flags, _FILE_MODE)


def _fileno(stream: TextIO) -> int | None:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _decode(data: bytes) -> str:
    return data.decode(_ENCODING, "replace")


def _write_all(fd: int, data: bytes) -> None:
    while data:
        written = os.write(fd, data)
        data = data[written:]


def _process_env(env: Iterable[str]) -> dict[str, str]:
    pairs = (entry.partition("=") for entry in env)
    return {key: value for key, sep, value in pairs if sep}


def _exit_status(returncode: int) -> int:
    if returncode < 0:
        return _SIGNAL_STATUS_BASE - returncode
    return returncode


def _feed(fd: int, data: bytes) -> threading.Thread:
    def write() -> None:
        try:
            with open(fd, "wb") as pipe:
                pipe.write(data)
        except BrokenPipeError:
            pass

    thread = threading.Thread(target=write, daemon=True)
    thread.start()
    return thread


class _Drain:
    """Collects everything a child writes to a pipe, then hands it to a stream."""

    def __init__(self, source: BinaryIO, target: TextIO) -> None:
        self._source = source
        self._target = target
        self._chunks: list[bytes] = []
        self._thread = threading.Thread(target=self._read, daemon=True)
        self._thread.start()

    def _read(self) -> None:
        with self._source:
            self._chunks.append(self._source.read())

    def finish(self) -> None:
        self._thread.join()
        data = b"".join(self._chunks)
        if data:
            self._target.write(_decode(data))


@dataclass
class _Redirections:
    stdin: int | None = None
    stdout: int | None = None
    ok: bool = True

    def replace(self, redirect: Redirect, fd: int) -> None:
        old = self.stdout if redirect.output else self.stdin
        if old is not None:
            os.close(old)
        if redirect.output:
            self.stdout = fd
        else:
            self.stdin = fd

    def close(self) -> None:
        for fd in (self.stdin, self.stdout):
            if fd is not None:
                os.close(fd)
        self.stdin = self.stdout = None


@dataclass
class _Stage:
    process: subprocess.Popen | None = None
    status: int | None = None
    feeders: list[threading.Thread] = field(default_factory=list)
    drains: list[_Drain] = field(default_factory=list)


class Executor:
    """Runs commands against an Environment and keeps the last exit status."""

    def __init__(
        self,
        env: Environment,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.env = env
        self.stdout = sys.stdout if stdout is None else stdout
        self.stderr = sys.stderr if stderr is None else stderr
        self.status = 0
        self._stages: list[_Stage] = []
        self._previous_read: int | None = None

    def run(self, commands: Iterable[Command]) -> int:
        """Run ``commands`` in order and return the final status.

        ShellExit from ``exit`` outside a pipeline is passed on.
        """
        for command in commands:
            self.run_command(command)
        if self._stages:
            self._finish_pipeline()
        return self.status

    def run_command(self, command: Command) -> int:
        """Run one command, or add it to the pipeline it belongs to.

        A pipeline is waited for once its last command has been started.
        """
        redirections = self._open_redirects(command.redirects)
        try:
            if self._stages or command.pipe:
                self._start_stage(command, redirections)
            elif redirections.ok:
                self._run_single(command, redirections)
        finally:
            redirections.close()
        if self._stages and not command.pipe:
            self._finish_pipeline()
        return self.status

    def _open_redirects(self, specs: Iterable[str]) -> _Redirections:
        redirections = _Redirections()
        for spec in specs:
            redirect = parse_redirect(spec)
            try:
                fd = _open_redirect(redirect)
            except OSError as exc:
                print_error(exc.strerror or str(exc), redirect.path, self.stderr)
                self.status = REDIRECT_FAILURE_STATUS
                redirections.ok = False
                break
            redirections.replace(redirect, fd)
        return redirections

    def _flush(self) -> None:
        for stream in (self.stdout, self.stderr):
            try:
                stream.flush()
            except (AttributeError, OSError, ValueError):
                pass

    def _deliver(self, text: str, fd: int | None) -> None:
        if fd is None:
            self.stdout.write(text)
        else:
            _write_all(fd, text.encode(_ENCODING))

    def _run_single(self, command: Command, redirections: _Redirections) -> None:
        if not command.argv:
            return
        name = command.argv[0]
        if name in BUILTINS:
            out = io.StringIO()
            try:
                status = run_builtin(name, command.argv[1:], self.env, out, self.stderr)
            finally:
                self._deliver(out.getvalue(), redirections.stdout)
            # pwd leaves the previous status as it was.
            if name != "pwd":
                self.status = status
            return
        try:
            executable = resolve_command(name, self.env.path())
        except CommandError as exc:
            print_error(exc.message, exc.command, self.stderr)
            self.status = exc.status
            return
        stdout_fd = redirections.stdout
        if stdout_fd is None:
            stdout_fd = _fileno(self.stdout)
        stderr_fd = _fileno(self.stderr)
        self._flush()
        try:
            process = subprocess.Popen(
                command.argv,
                executable=executable,
                stdin=redirections.stdin,
                stdout=subprocess.PIPE if stdout_fd is None else stdout_fd,
                stderr=subprocess.PIPE if stderr_fd is None else stderr_fd,
                env=_process_env(self.env),
            )
        except OSError as exc:
            print_error(exc.strerror or str(exc), name, self.stderr)
            self.status = NOT_EXECUTABLE_STATUS
            return
        out, err = process.communicate()
        if out:
            self.stdout.write(_decode(out))
        if err:
            self.stderr.write(_decode(err))
        self.status = _exit_status(process.returncode)

    def _start_stage(self, command: Command, redirections: _Redirections) -> None:
        read_fd, write_fd = os.pipe()
        to_pipe = command.pipe and (
            not command.redirects or command.redirects[0].startswith("<")
        )
        stdin_fd = self._previous_read
        if stdin_fd is None:
            stdin_fd = redirections.stdin
        stage = _Stage()
        try:
            if redirections.ok:
                self._launch(
                    stage,
                    command,
                    stdin_fd,
                    write_fd if to_pipe else None,
                    redirections.stdout,
                )
        finally:
            os.close(write_fd)
            if self._previous_read is not None:
                os.close(self._previous_read)
            self._previous_read = read_fd
            self._stages.append(stage)

    def _launch(
        self,
        stage: _Stage,
        command: Command,
        stdin_fd: int | None,
        pipe_fd: int | None,
        file_fd: int | None,
    ) -> None:
        if not command.argv:
            stage.status = 0
            return
        name = command.argv[0]
        if name in BUILTINS:
            text = self._run_isolated_builtin(command)
            stage.status = self._isolated_status
            if pipe_fd is not None:
                stage.feeders.append(_feed(os.dup(pipe_fd), text.encode(_ENCODING)))
            else:
                self._deliver(text, file_fd)
            return
        try:
            executable = resolve_command(name, self.env.path())
        except CommandError as exc:
            print_error(exc.message, exc.command, self.stderr)
            stage.status = exc.status
            return
        stdout_fd = pipe_fd if pipe_fd is not None else file_fd
        if stdout_fd is None:
            stdout_fd = _fileno(self.stdout)
        stderr_fd = _fileno(self.stderr)
        self._flush()
        try:
            process = subprocess.Popen(
                command.argv,
                executable=executable,
                stdin=stdin_fd,
                stdout=subprocess.PIPE if stdout_fd is None else stdout_fd,
                stderr=subprocess.PIPE if stderr_fd is None else stderr_fd,
                env=_process_env(self.env),
            )
        except OSError as exc:
            print_error(exc.strerror or str(exc), name, self.stderr)
            stage.status = NOT_EXECUTABLE_STATUS
            return
        stage.process = process
        if process.stdout is not None:
            stage.drains.append(_Drain(process.stdout, self.stdout))
        if process.stderr is not None:
            stage.drains.append(_Drain(process.stderr, self.stderr))

    def _run_isolated_builtin(self, command: Command) -> str:
        """Run a builtin as a pipeline member: its changes do not outlive it."""
        out = io.StringIO()
        env = Environment(self.env)
        try:
            cwd = os.getcwd()
        except OSError:
            cwd = None
        self._isolated_status = 0
        try:
            run_builtin(command.argv[0], command.argv[1:], env, out, self.stderr)
        except ShellExit as exc:
            self._isolated_status = exc.status
        finally:
            if cwd is not None:
                os.chdir(cwd)
        return out.getvalue()

    def _finish_pipeline(self) -> None:
        if self._previous_read is not None:
            os.close(self._previous_read)
            self._previous_read = None
        stages, self._stages = self._stages, []
        for stage in stages:
            for feeder in stage.feeders:
                feeder.join()
            status = stage.status
            if stage.process is not None:
                returncode = stage.process.wait()
                status = returncode if returncode >= 0 else None
            for drain in stage.drains:
                drain.finish()
            if status is not None:
                self.status = status