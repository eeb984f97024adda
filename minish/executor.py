"""Running parsed pipelines: redirections, here-documents, builtins and programs."""

from __future__ import annotations

import contextlib
import os
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from typing import Iterator, Protocol, TextIO

from minish.builtins import (
    cd,
    echo,
    exit_builtin,
    export,
    is_builtin,
    print_env,
    pwd,
    unset,
)
from minish.environment import Environment, ShellState, resolve_path
from minish.linereader import LineReader
from minish.parser import Command, Redirection, RedirectionType

HEREDOC_FILE = "heredoc.txt"
ERR_CMD_NOT_FOUND = " : command not found\n"

_INTERRUPTED = 130
_QUIT = 131
_BROKEN_PIPE = 141
_PARENT_ONLY = frozenset({"cd", "exit", "unset"})

_READ_FLAGS = os.O_RDONLY
_TRUNC_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
_APPEND_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_APPEND
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class _Reader(Protocol):
    def readline(self) -> str | None: ...


@dataclass
class Job:
    """One command of a pipeline, with the descriptors it reads and writes."""

    cmd: str
    args: list[str]
    redirections: list[Redirection] = field(default_factory=list)
    fd_in: int = 0
    fd_out: int = 1
    infile: str | None = None
    outfile: str | None = None
    cancel: bool = False
    pipe_in: int = -1
    pipe_out: int = -1

    @property
    def input_fd(self) -> int | None:
        """Descriptor the job reads from; None means the shell's own input."""
        if self.fd_in > 2:
            return self.fd_in
        if self.pipe_in >= 0:
            return self.pipe_in
        return None

    @property
    def output_fd(self) -> int:
        """Descriptor the job writes to."""
        if self.fd_out > 2:
            return self.fd_out
        if self.pipe_out >= 0:
            return self.pipe_out
        return 1

    def close_files(self) -> None:
        """Close the files opened for this job's redirections."""
        if self.fd_in > 2:
            with contextlib.suppress(OSError):
                os.close(self.fd_in)
            self.fd_in = 0
        if self.fd_out > 2:
            with contextlib.suppress(OSError):
                os.close(self.fd_out)
            self.fd_out = 1


def replace_home(word: str, env: Environment) -> str:
    """Replace a leading '~' in ``word`` with the value of HOME."""
    if not word.startswith("~"):
        return word
    home = env.find("HOME")
    if home is None or home.value is None:
        return word
    return home.value + word[1:]


def build_jobs(commands: list[Command], env: Environment) -> list[Job]:
    """Turn parsed commands into jobs, expanding '~' in the name and arguments."""
    return [
        Job(
            cmd=replace_home(command.cmd, env),
            args=[replace_home(arg, env) for arg in command.args],
            redirections=list(command.redirections),
        )
        for command in commands
    ]


def _remove_heredoc(path: str = HEREDOC_FILE) -> None:
    with contextlib.suppress(FileNotFoundError):
        os.unlink(path)


def _open_file(path: str, flags: int) -> tuple[int, OSError | None]:
    try:
        return os.open(path, flags, 0o644), None
    except OSError as exc:
        return -1, exc


def _report(name: str | None, error: OSError | None) -> None:
    label = name or ""
    if error is not None:
        sys.stderr.write(f"{label}: {error.strerror}\n")
    else:
        sys.stderr.write(f"{label}\n")
    sys.stderr.flush()


def write_here_doc(delimiter: str, reader: _Reader, dest: TextIO, prompt: TextIO) -> bool:
    """Copy lines from ``reader`` to ``dest`` until a line equal to ``delimiter``.

    Returns True when the delimiter was seen, False at end of input.
    """
    terminator = delimiter + "\n"
    while True:
        prompt.write("> ")
        prompt.flush()
        line = reader.readline()
        if line is None:
            return False
        if line == terminator:
            return True
        dest.write(line)


def here_doc(delimiter: str, shell: ShellState, path: str = HEREDOC_FILE) -> bool:
    """Read a here-document from standard input into ``path``.

    Returns True when it was interrupted; the file is then removed.
    """
    # One byte per read so nothing past the delimiter is taken from stdin.
    reader = LineReader(sys.stdin.fileno(), buffer_size=1)
    with open(path, "w", encoding=_ENCODING, errors=_ERRORS) as dest:
        try:
            complete = write_here_doc(delimiter, reader, dest, sys.stderr)
        except KeyboardInterrupt:
            shell.exit_status = _INTERRUPTED
            complete = False
    if not complete and shell.exit_status != _INTERRUPTED:
        sys.stdout.write(f"here-doc delimited by EOF (wanted '{delimiter}')\n")
        sys.stdout.flush()
    if shell.exit_status == _INTERRUPTED:
        _remove_heredoc(path)
        return True
    return False


def _redirect_input(jobs: list[Job], index: int, redirection: Redirection,
                    shell: ShellState) -> None:
    job = jobs[index]
    if job.fd_in > 2:
        os.close(job.fd_in)
        job.fd_in = 0
    payload = redirection.payload
    error: OSError | None = None
    if redirection.type is RedirectionType.INPUT:
        job.fd_in, error = _open_file(payload or "", _READ_FLAGS)
        job.infile = payload
    elif payload is None:
        here_doc("", shell, HEREDOC_FILE)
    elif here_doc(payload, shell, HEREDOC_FILE):
        for later in jobs[index:]:
            later.cancel = True
        _remove_heredoc()
    elif os.path.exists(HEREDOC_FILE):
        job.fd_in, error = _open_file(HEREDOC_FILE, _READ_FLAGS)
        job.infile = HEREDOC_FILE
    if job.fd_in == -1:
        job.args.append(payload or "")
        _report(job.infile, error)


def _redirect_output(job: Job, redirection: Redirection) -> None:
    if job.fd_out > 2:
        os.close(job.fd_out)
        job.fd_out = 1
    flags = _TRUNC_FLAGS if redirection.type is RedirectionType.OUTPUT else _APPEND_FLAGS
    payload = redirection.payload or ""
    job.fd_out, error = _open_file(payload, flags)
    job.outfile = payload
    if job.fd_out == -1:
        _report(job.outfile, error)


def apply_redirections(jobs: list[Job], shell: ShellState) -> None:
    """Read every here-document, then open the input and output files of each job."""
    for index, job in enumerate(jobs):
        for redirection in job.redirections:
            if redirection.type is RedirectionType.HERE_DOC:
                _redirect_input(jobs, index, redirection, shell)
    for index, job in enumerate(jobs):
        for redirection in job.redirections:
            if redirection.type is RedirectionType.INPUT:
                _redirect_input(jobs, index, redirection, shell)
            elif redirection.type in (RedirectionType.OUTPUT, RedirectionType.APPEND):
                _redirect_output(job, redirection)


@contextlib.contextmanager
def _writer(fd: int) -> Iterator[TextIO]:
    if fd == 1:
        try:
            yield sys.stdout
        finally:
            sys.stdout.flush()
        return
    stream = open(fd, "w", encoding=_ENCODING, errors=_ERRORS, closefd=False)
    try:
        yield stream
    finally:
        stream.close()


def run_builtin(job: Job, shell: ShellState, in_child: bool = False) -> int:
    """Run a builtin job and return its status.

    In a pipeline (``in_child``) cd, exit and unset do nothing.
    Raises ValueError when the job is not a builtin.
    """
    if shell.exit_status == _INTERRUPTED and job.cancel:
        return 0
    name = job.cmd
    if not is_builtin(name):
        raise ValueError(f"not a builtin: {name!r}")
    if in_child and name in _PARENT_ONLY:
        return 0
    with _writer(job.output_fd) as out:
        if name == "echo":
            return echo(job.args, out)
        if name == "cd":
            try:
                return cd(job.args, shell)
            except OSError as exc:
                sys.stderr.write(f"cd: {exc.strerror}\n")
                sys.stderr.flush()
                return 0
        if name == "exit":
            return exit_builtin(job.args, sys.stderr)
        if name == "unset":
            return unset(job.args, shell)
        if name == "export":
            return export(job.args, shell, out, sys.stderr)
        if name == "env":
            return print_env(shell, out)
        return pwd(out)


def _env_dict(shell: ShellState) -> dict[str, str]:
    pairs = (entry.partition("=") for entry in shell.env.to_strings())
    return {name: value for name, equal, value in pairs if equal}


def _spawn(job: Job, shell: ShellState) -> subprocess.Popen | None:
    path = resolve_path(job.cmd, shell.env)
    if "/" not in path:
        path = os.path.join(os.curdir, path)
    output = job.output_fd
    sys.stdout.flush()
    try:
        return subprocess.Popen(
            job.args,
            executable=path,
            stdin=job.input_fd,
            stdout=None if output == 1 else output,
            env=_env_dict(shell),
        )
    except OSError:
        sys.stderr.write(job.cmd + ERR_CMD_NOT_FOUND)
        sys.stderr.flush()
        return None


class _BuiltinThread(threading.Thread):
    """Runs a builtin of a pipeline on its own copy of the shell state."""

    def __init__(self, job: Job, shell: ShellState):
        super().__init__(daemon=True)
        self.job = job
        self.shell = shell
        self.status = 0

    def run(self) -> None:
        try:
            self.status = run_builtin(self.job, self.shell, True)
        except BrokenPipeError:
            self.status = _BROKEN_PIPE
        finally:
            if self.job.pipe_out >= 0:
                os.close(self.job.pipe_out)


def _child_shell(shell: ShellState) -> ShellState:
    return ShellState(
        env=shell.env.copy(),
        last_status=shell.last_status,
        exit_status=shell.exit_status,
    )


def _wait(runner: subprocess.Popen | _BuiltinThread | None, status: int) -> int:
    if runner is None:
        return status
    if isinstance(runner, _BuiltinThread):
        runner.join()
        return runner.status
    code = runner.wait()
    return 128 - code if code < 0 else code


def _run_pipeline(jobs: list[Job], shell: ShellState) -> None:
    runners: list[tuple[subprocess.Popen | _BuiltinThread | None, int]] = []
    previous_read = -1
    for index, job in enumerate(jobs):
        job.pipe_in = previous_read
        read_end = -1
        if index + 1 < len(jobs):
            read_end, job.pipe_out = os.pipe()
        if job.cmd == "":
            job.cancel = True
        runner: subprocess.Popen | _BuiltinThread | None = None
        status = shell.exit_status
        if is_builtin(job.cmd) and shell.exit_status != _INTERRUPTED:
            runner = _BuiltinThread(job, _child_shell(shell))
            runner.start()
        else:
            if not job.cancel and shell.exit_status not in (_INTERRUPTED, _QUIT):
                runner = _spawn(job, shell)
                if runner is None:
                    status = 127
            if job.pipe_out >= 0:
                os.close(job.pipe_out)
        if previous_read >= 0:
            os.close(previous_read)
        runners.append((runner, status))
        previous_read = read_end
    # Waited from the last job back to the first: the first one's status is kept.
    for runner, status in reversed(runners):
        shell.exit_status = _wait(runner, status)


def execute(commands: list[Command], shell: ShellState) -> int:
    """Run a parsed pipeline and return its status, also kept as ``last_status``.

    A lone builtin runs in the shell itself; ``exit`` raises ShellExit.
    """
    jobs = build_jobs(commands, shell.env)
    try:
        if len(jobs) == 1 and is_builtin(jobs[0].cmd):
            job = jobs[0]
            if job.cmd != "exit":
                apply_redirections(jobs, shell)
            status = run_builtin(job, shell, False)
            if status:
                shell.exit_status = status
        else:
            apply_redirections(jobs, shell)
            _run_pipeline(jobs, shell)
    finally:
        shell.last_status = shell.exit_status
        shell.exit_status = 0
        for job in jobs:
            job.close_files()
        _remove_heredoc()
    return shell.last_status