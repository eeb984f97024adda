"""Turning a command line into commands with their redirections."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

from minish.environment import ShellState
from minish.expansion import trim_command_quotes, trim_payload_quotes, trim_quotes
from minish.quoting import (
    ShellSyntaxError,
    check_syntax,
    is_in_double_quotes,
    is_in_quotes,
    split_input,
)

_WHITESPACE = " \t\n\v\f\r"
_REDIRECT_CHARS = "<>"
_HEAD = re.compile(r"[ \t\n\v\f\r]*([^ \t\n\v\f\r]*)[ \t\n\v\f\r]*")


class RedirectionType(enum.Enum):
    """Kind of a redirection operator."""

    NONE = 0
    INPUT = 1
    OUTPUT = 2
    HERE_DOC = 3
    APPEND = 4


@dataclass
class Redirection:
    """One redirection: its kind, its unquoted target, and whether the
    target was written as an explicit empty string ``""``."""

    type: RedirectionType = RedirectionType.NONE
    payload: str | None = None
    quoted_empty: bool = False


@dataclass
class Command:
    """One command of a pipeline."""

    cmd: str
    options: list[str] = field(default_factory=list)
    redirections: list[Redirection] = field(default_factory=list)

    @property
    def args(self) -> list[str]:
        """The argument vector: the command name followed by its options."""
        return [self.cmd, *self.options]


def _is_quoted(line: str, index: int) -> bool:
    return is_in_quotes(line, index) or is_in_double_quotes(line, index)


def _skip_while(text: str, index: int, predicate) -> int:
    while index < len(text) and predicate(text[index]):
        index += 1
    return index


def _payload_bounds(line: str, index: int) -> tuple[int, int]:
    """Return the start and end of the target of the operator at ``index``."""
    start = _skip_while(line, index, lambda char: char in _REDIRECT_CHARS)
    start = _skip_while(line, start, lambda char: char in _WHITESPACE)
    end = _skip_while(
        line, start, lambda char: char not in _WHITESPACE and char not in _REDIRECT_CHARS
    )
    return start, end


def _redirection_type(line: str, index: int) -> RedirectionType:
    operator = line[index:index + 2]
    if operator == "<<":
        return RedirectionType.HERE_DOC
    if operator == ">>":
        return RedirectionType.APPEND
    if line[index] == "<":
        return RedirectionType.INPUT
    return RedirectionType.OUTPUT


def get_redirections(line: str) -> list[Redirection]:
    """Collect the unquoted redirections of one pipeline element, in order."""
    redirections = []
    index = 0
    while index < len(line):
        if line[index] in _REDIRECT_CHARS and not _is_quoted(line, index):
            start, end = _payload_bounds(line, index)
            raw = line[start:end]
            redirections.append(
                Redirection(
                    type=_redirection_type(line, index),
                    payload=trim_payload_quotes(raw),
                    quoted_empty=raw == '""',
                )
            )
            index = end
        else:
            index += 1
    return redirections


def trim_redirections(line: str) -> str:
    """Remove every unquoted redirection and its target from ``line``."""
    kept = []
    index = 0
    while index < len(line):
        if line[index] in _REDIRECT_CHARS and not _is_quoted(line, index):
            _, index = _payload_bounds(line, index)
            if index < len(line) and line[index] not in _REDIRECT_CHARS:
                index += 1
        else:
            kept.append(line[index])
            index += 1
    return "".join(kept)


def get_command(line: str, shell: ShellState) -> str:
    """Return the command name: the first word, unquoted and expanded."""
    word = _HEAD.match(line).group(1).strip(" ")
    return trim_command_quotes(word, shell)


def get_options(line: str, shell: ShellState) -> list[str]:
    """Return the words after the command name, unquoted and expanded."""
    rest = line[_HEAD.match(line).end():]
    if not rest:
        return []
    return trim_quotes(split_input(rest, " "), shell)


def check_payload(commands: list[Command]) -> None:
    """Raise ShellSyntaxError when a command's first redirection lacks a target."""
    for command in commands:
        if not command.redirections:
            continue
        first = command.redirections[0]
        if first.payload is None or (first.payload == "" and not first.quoted_empty):
            raise ShellSyntaxError("missing redirection target")


def _build_command(instruction: str, shell: ShellState) -> Command:
    redirections = get_redirections(instruction)
    if redirections:
        instruction = trim_redirections(instruction)
    cmd = get_command(instruction, shell)
    options = get_options(instruction, shell)
    return Command(cmd=cmd, options=options, redirections=redirections)


def parse_line(line: str, shell: ShellState) -> list[Command]:
    """Parse a full command line into the commands of its pipeline."""
    check_syntax(line)
    commands = [_build_command(piece, shell) for piece in split_input(line, "|")]
    check_payload(commands)
    return commands