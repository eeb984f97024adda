"""Variable expansion and quote removal for command words."""

from __future__ import annotations

import re

from minish.environment import ShellState

_KEPT = frozenset(" .+-^,*/%=\"")
_NAME = re.compile(r"[A-Za-z0-9_]*")

_OUTSIDE = 0
_IN_SINGLE = 1
_IN_DOUBLE = 2


def is_kept(char: str) -> bool:
    """Tell whether a '$' followed by ``char`` stays literal ("" is end of text)."""
    return char == "" or char in _KEPT


def quote_state(char: str, state: int) -> int:
    """Advance the quote state (0 outside, 1 single, 2 double) past ``char``."""
    if char == "'":
        if state == _OUTSIDE:
            return _IN_SINGLE
        if state == _IN_SINGLE:
            return _OUTSIDE
    elif char == '"':
        if state == _OUTSIDE:
            return _IN_DOUBLE
        if state == _IN_DOUBLE:
            return _OUTSIDE
    return state


def _status_text(shell: ShellState) -> str:
    if shell.exit_status > 0:
        value = shell.exit_status
        shell.exit_status = 0
    else:
        value = shell.last_status
    return str(value)


def _lookup(name: str, shell: ShellState) -> str:
    prefix = name + "="
    return next(
        (entry[len(prefix):] for entry in shell.env.to_strings() if entry.startswith(prefix)),
        "",
    )


def _expansion(text: str, index: int, shell: ShellState) -> tuple[str | None, int]:
    """Return the value for the '$' at ``index`` and the index past its name.

    The value is None when the '$' stays literal.
    """
    following = text[index + 1:index + 2]
    if following == "?":
        return _status_text(shell), index + 2
    if is_kept(following):
        return None, index + 1
    match = _NAME.match(text, index + 1)
    return _lookup(match.group(), shell), match.end()


def expand_at(text: str, shell: ShellState, index: int) -> tuple[str, int]:
    """Expand the '$' at ``index``.

    Returns the new text and the index just past the inserted value.
    """
    if text[index:index + 1] != "$":
        raise ValueError(f"no '$' at index {index}")
    value, end = _expansion(text, index, shell)
    if value is None:
        return text, end
    return text[:index] + value + text[end:], index + len(value)


def expand_variables(text: str, shell: ShellState) -> str:
    """Expand every '$' in ``text``, ignoring quotes."""
    pieces = []
    index = 0
    while (dollar := text.find("$", index)) != -1:
        pieces.append(text[index:dollar])
        value, index = _expansion(text, dollar, shell)
        pieces.append("$" if value is None else value)
    pieces.append(text[index:])
    return "".join(pieces)


def _unquote(word: str, shell: ShellState | None, state: int) -> tuple[str, int]:
    """Drop delimiting quotes and, when a shell is given, expand variables."""
    out = []
    index = 0
    while index < len(word):
        char = word[index]
        previous, state = state, quote_state(char, state)
        if state != previous:
            index += 1
            continue
        if char == "$" and shell is not None and state != _IN_SINGLE:
            value, index = _expansion(word, index, shell)
            out.append("$" if value is None else value)
            continue
        out.append(char)
        index += 1
    return "".join(out), state


def trim_quotes(options: list[str], shell: ShellState) -> list[str]:
    """Unquote and expand each option; the quote state carries across words."""
    state = _OUTSIDE
    result = []
    for option in options:
        word, state = _unquote(option, shell, state)
        result.append(word)
    return result


def trim_command_quotes(cmd: str, shell: ShellState) -> str:
    """Unquote and expand a command name."""
    return _unquote(cmd, shell, _OUTSIDE)[0]


def trim_payload_quotes(text: str) -> str:
    """Remove delimiting quotes from a redirection target without expanding."""
    return _unquote(text, None, _OUTSIDE)[0]