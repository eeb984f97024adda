"""Interactive loop of the shell: prompt, signal handling and line execution."""

from __future__ import annotations

import contextlib
import enum
import os
import signal
import sys
from typing import Callable

from minish.builtins import ShellExit
from minish.environment import Environment, ShellState
from minish.executor import HEREDOC_FILE, execute
from minish.parser import parse_line
from minish.quoting import ShellSyntaxError

PROMPT = "\033[32mMinishell : \033[0m"
ERR_ARGC = "too much argument to launch minishell ! "
SYNTAX_ERROR = "syntax error\n"

_SIGQUIT = getattr(signal, "SIGQUIT", None)

_Handler = Callable[[int, object], None]


class SignalMode(enum.Enum):
    """What the shell is doing, which decides how it reacts to signals."""

    PROMPT = 0
    EXEC = 1
    HERE_DOC = 2


def _emit(text: str) -> None:
    # Written straight to the descriptor: a handler may interrupt a buffered write.
    os.write(1, text.encode())


def _handlers(mode: SignalMode, shell: ShellState) -> dict[int, object]:
    """Return the handler for SIGINT and SIGQUIT in ``mode``."""

    def prompt_interrupt(signum: int, frame: object) -> None:
        _emit("^C\n")
        shell.exit_status = signum + 128
        raise KeyboardInterrupt

    def exec_interrupt(signum: int, frame: object) -> None:
        _emit("\n")
        shell.exit_status = signum + 128
        raise KeyboardInterrupt

    def exec_quit(signum: int, frame: object) -> None:
        _emit("Quit (core dumped)\n")
        shell.exit_status = signum + 128

    def here_doc_interrupt(signum: int, frame: object) -> None:
        _emit("\n")
        shell.exit_status = signum + 128
        raise KeyboardInterrupt

    def here_doc_quit(signum: int, frame: object) -> None:
        _emit("\b\b  \b\b")
        shell.exit_status = signum + 128

    if mode is SignalMode.PROMPT:
        interrupt, quit_ = prompt_interrupt, signal.SIG_IGN
    elif mode is SignalMode.EXEC:
        interrupt, quit_ = exec_interrupt, exec_quit
    else:
        interrupt, quit_ = here_doc_interrupt, here_doc_quit
    handlers: dict[int, object] = {signal.SIGINT: interrupt}
    if _SIGQUIT is not None:
        handlers[_SIGQUIT] = quit_
    return handlers


def setup_signals(mode: SignalMode, shell: ShellState) -> dict[int, object]:
    """Install the SIGINT and SIGQUIT handlers for ``mode``.

    Interrupts record their status in ``shell.exit_status``. Returns the
    handlers that were in place before. Must be called from the main thread.
    """
    previous: dict[int, object] = {}
    for signum, handler in _handlers(mode, shell).items():
        previous[signum] = signal.signal(signum, handler)
    return previous


def _restore(previous: dict[int, object]) -> None:
    for signum, handler in previous.items():
        if handler is not None:
            signal.signal(signum, handler)


def run_line(line: str, shell: ShellState) -> int:
    """Parse and run one command line; return its status.

    Raises ShellSyntaxError for invalid syntax and ShellExit for ``exit``.
    """
    return execute(parse_line(line, shell), shell)


def repl(shell: ShellState, read_line: Callable[[], str | None]) -> int:
    """Read and run lines until end of input or ``exit``; return the exit code.

    ``read_line`` returns the next line, or None at end of input.
    """
    previous = setup_signals(SignalMode.PROMPT, shell)
    try:
        while True:
            try:
                setup_signals(SignalMode.PROMPT, shell)
                line = read_line()
                if line is None:
                    return 0
                if not line:
                    continue
                setup_signals(SignalMode.EXEC, shell)
                try:
                    run_line(line, shell)
                except ShellSyntaxError:
                    sys.stdout.write(SYNTAX_ERROR)
                    sys.stdout.flush()
            except KeyboardInterrupt:
                continue
            except ShellExit as exc:
                return exc.code
    finally:
        _restore(previous)
        with contextlib.suppress(FileNotFoundError):
            os.unlink(HEREDOC_FILE)


def _read_terminal() -> str | None:
    try:
        return input(PROMPT)
    except EOFError:
        return None


def main(argv: list[str] | None = None) -> int:
    """Start an interactive shell on the process environment."""
    args = sys.argv[1:] if argv is None else list(argv)
    if args:
        sys.stderr.write(ERR_ARGC + "\n")
        sys.stderr.flush()
        return 1
    shell = ShellState(
        env=Environment.from_strings(f"{key}={value}" for key, value in os.environ.items())
    )
    with contextlib.suppress(ImportError):
        import readline  # noqa: F401  (line editing and history for input())
    return repl(shell, _read_terminal)