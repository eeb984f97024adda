"""Commands the shell runs itself: echo, cd, pwd, export, unset, env, exit."""

from __future__ import annotations

import errno
import os
from typing import TextIO

from minish.environment import EnvVar, ShellState, valid_name

BUILTINS = frozenset({"echo", "cd", "exit", "unset", "export", "env", "pwd"})

EXIT_NO_NUM_ERR = "exit : numeric argument required\n"
EXIT_ARGS_ERROR = "exit : too many arguments\n"

_LLONG_MAX = 9223372036854775807
_ULLONG_MOD = 1 << 64
_SPACES = "\t\n\v\f\r "


class ShellExit(Exception):
    """Raised by the ``exit`` builtin; ``code`` is the status to exit with."""

    def __init__(self, code: int):
        super().__init__(f"exit {code}")
        self.code = code


def is_builtin(name: str) -> bool:
    """Tell whether ``name`` is run by the shell itself."""
    return name in BUILTINS


def check_option_n(word: str) -> bool:
    """Tell whether ``word`` is an ``-n`` option such as ``-n`` or ``-nnn``."""
    return word.startswith("-") and word[1:].strip("n") == ""


def echo(args: list[str], out: TextIO) -> int:
    """Print the arguments separated by spaces; a leading ``-n`` drops the newline."""
    if len(args) < 2:
        out.write("\n")
        return 0
    skip = 1 if check_option_n(args[1]) else 0
    out.write(" ".join(args[skip + 1:]))
    if not check_option_n(args[skip]):
        out.write("\n")
    return 0


def _home(shell: ShellState) -> str:
    var = shell.env.find("HOME")
    if var is None or var.value is None:
        raise OSError(errno.ENOENT, "HOME not set")
    return var.value


def _update_pwd(shell: ShellState) -> None:
    for var in shell.env:
        if var.name.startswith("OLDPWD"):
            current = shell.env.find("PWD")
            var.value = current.value if current is not None else None
        if var.name.startswith("PWD"):
            var.value = os.getcwd()


def cd(args: list[str], shell: ShellState) -> int:
    """Change the working directory and refresh PWD and OLDPWD.

    Raises OSError when the directory cannot be entered.
    """
    if len(args) == 2:
        target = args[1]
        if target.startswith("~"):
            target = _home(shell) + target[1:]
        os.chdir(target)
    elif len(args) == 1:
        os.chdir(_home(shell))
    _update_pwd(shell)
    return 0


def pwd(out: TextIO) -> int:
    """Print the working directory."""
    out.write(os.getcwd() + "\n")
    return 0


def _starts_identifier(word: str) -> bool:
    first = word[:1]
    return first == "_" or (first.isascii() and first.isalpha())


def _format_export(var: EnvVar) -> str:
    line = "declare -x " + var.name
    if var.value is None and "=" not in var.name:
        pass
    elif not var.value:
        line += '""'
    else:
        line += f'"{var.value}"'
    return line + "\n"


def export(args: list[str], shell: ShellState, out: TextIO, err: TextIO) -> int:
    """List the variables sorted by name, or add and update the given ones.

    Returns 1 when an argument is not a valid identifier, else 0.
    """
    if len(args) == 1:
        for var in sorted(shell.env.copy(), key=lambda item: item.name):
            if var.name != "_=":
                out.write(_format_export(var))
        return 0
    status = 0
    for word in args[1:]:
        var, append = shell.env.find_export(word)
        if append and valid_name(word):
            shell.env.append_value(var, word)
        elif var is not None:
            shell.env.set_value(var, word)
        elif _starts_identifier(word) and valid_name(word):
            shell.env.add(EnvVar.parse(word))
        else:
            err.write(f"export : {word} : not an valid identifier\n")
            status = 1
    return status


def unset(args: list[str], shell: ShellState) -> int:
    """Remove, for each word, the first variable whose name starts with it."""
    for word in args:
        match = next((var for var in shell.env if var.name.startswith(word)), None)
        if match is not None:
            shell.env.remove(match)
    return 0


def print_env(shell: ShellState, out: TextIO) -> int:
    """Print the variables that carry a value."""
    out.write(shell.env.format_env())
    return 0


def parse_exit_code(text: str) -> int:
    """Convert an ``exit`` argument to a status in 0..255.

    Raises ValueError when it is not a number or overflows a 64-bit integer.
    """
    rest = text.lstrip(_SPACES)
    negative = False
    if rest[:1] in ("-", "+"):
        negative = rest[0] == "-"
        rest = rest[1:]
    limit = _LLONG_MAX + 1 if negative else _LLONG_MAX
    value = 0
    bad = False
    for char in rest:
        if "0" <= char <= "9":
            value = (value * 10 + ord(char) - ord("0")) % _ULLONG_MOD
        else:
            bad = True
        if value > limit:
            bad = True
    if bad:
        raise ValueError(f"numeric argument required: {text!r}")
    return (-value if negative else value) % 256


def exit_builtin(args: list[str], err: TextIO) -> int:
    """Leave the shell by raising ShellExit.

    With too many arguments, report it and return 1 without leaving.
    """
    if len(args) == 2:
        try:
            code = parse_exit_code(args[1])
        except ValueError:
            err.write(EXIT_NO_NUM_ERR)
            raise ShellExit(2) from None
        raise ShellExit(code)
    if len(args) > 2:
        err.write(EXIT_ARGS_ERROR)
        return 1
    raise ShellExit(0)