"""Quote tracking, syntax checks and quote-aware splitting of command lines."""

from __future__ import annotations

_WHITESPACE = " \t\n\v\f\r"
_BAD_REDIRECTIONS = ("<>", "><", "<<<", "<<>", ">><", ">>>")


class ShellSyntaxError(ValueError):
    """Raised when a command line is not valid shell syntax."""


def is_in_quotes(text: str, index: int) -> bool:
    """Tell whether an odd number of single quotes precede ``index``."""
    return text[: max(index, 0)].count("'") % 2 == 1


def is_in_double_quotes(text: str, index: int) -> bool:
    """Tell whether an odd number of double quotes precede ``index``."""
    return text[: max(index, 0)].count('"') % 2 == 1


def is_interpreted(text: str, index: int) -> bool:
    """Tell whether the character at ``index`` is open to expansion.

    It is not when the nearest quote before it is a single quote and an odd
    number of single quotes precede it.
    """
    before = text[: max(index, 0)]
    nearest = next((char for char in reversed(before) if char in "'\""), None)
    return not (nearest == "'" and before.count("'") % 2 == 1)


def _quoted_flags(text: str) -> list[bool]:
    """For each position, whether it lies inside single or double quotes."""
    singles = doubles = 0
    flags = []
    for char in text:
        flags.append(singles % 2 == 1 or doubles % 2 == 1)
        if char == "'":
            singles += 1
        elif char == '"':
            doubles += 1
    return flags


def check_quotes(text: str) -> bool:
    """Tell whether every quote opened in ``text`` is closed."""
    index = 0
    while index < len(text):
        char = text[index]
        if char in "'\"":
            closing = text.find(char, index + 1)
            if closing == -1:
                return False
            index = closing + 1
        else:
            index += 1
    return True


def _check_pipes_and_ampersand(text: str, quoted: list[bool]) -> None:
    if not text.strip(_WHITESPACE):
        raise ShellSyntaxError("empty command line")
    first = len(text) - len(text.lstrip(_WHITESPACE))
    last = len(text.rstrip(_WHITESPACE)) - 1
    for index in (first, last):
        if text[index] == "|" and not quoted[index]:
            raise ShellSyntaxError("unexpected '|'")
    if any(char == "&" and not inside for char, inside in zip(text, quoted)):
        raise ShellSyntaxError("unexpected '&'")


def _check_space_between_pipes(text: str, quoted: list[bool]) -> None:
    for index, (char, inside) in enumerate(zip(text, quoted)):
        if char == "|" and not inside:
            if text[index + 1:].lstrip(_WHITESPACE).startswith("|"):
                raise ShellSyntaxError("empty command between pipes")


def _check_redirections(text: str, quoted: list[bool]) -> None:
    for index, (char, inside) in enumerate(zip(text, quoted)):
        if char in "<>" and not inside and text.startswith(_BAD_REDIRECTIONS, index):
            raise ShellSyntaxError("invalid redirection")


def check_syntax(text: str) -> None:
    """Raise ShellSyntaxError when ``text`` is not a valid command line."""
    quoted = _quoted_flags(text)
    _check_pipes_and_ampersand(text, quoted)
    _check_space_between_pipes(text, quoted)
    _check_redirections(text, quoted)
    if not check_quotes(text):
        raise ShellSyntaxError("unclosed quote")


def split_input(text: str, sep: str) -> list[str]:
    """Split ``text`` on runs of ``sep`` that are not inside quotes.

    Separators at both ends are dropped first; empty pieces never appear.
    """
    trimmed = text.strip(sep)
    pieces: list[str] = []
    current: list[str] = []
    for char, inside in zip(trimmed, _quoted_flags(trimmed)):
        if char == sep and not inside:
            if current:
                pieces.append("".join(current))
                current = []
        else:
            current.append(char)
    if current:
        pieces.append("".join(current))
    return pieces