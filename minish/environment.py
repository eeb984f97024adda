"""Shell environment: an ordered list of variables and the state of a session."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable, Iterator

_INVALID_NAME_CHARS = frozenset("\\-*%.")


def _position(text: str, char: str) -> int:
    """Return the index just past the first ``char`` in ``text``, or -1."""
    index = text.find(char)
    return index + 1 if index >= 0 else -1


def _tail_after(text: str, char: str) -> str:
    """Return what follows the first ``char`` in ``text``, or "" when absent."""
    index = text.find(char)
    return text[index + 1:] if index >= 0 else ""


@dataclass
class EnvVar:
    """One variable. ``name`` keeps its trailing '=' when a value was assigned."""

    name: str
    value: str | None = None

    @classmethod
    def parse(cls, text: str) -> "EnvVar":
        """Build a variable from a ``NAME=value`` or bare ``NAME`` entry."""
        if "=" in text:
            cut = text.index("=") + 1
            return cls(text[:cut], text[cut:])
        return cls(text, None)

    def render(self) -> str:
        """Return the entry as it appears in an environment block."""
        return self.name + (self.value or "")


def _new_var(name: str, value: str | None) -> EnvVar:
    if value is None:
        return EnvVar.parse(name)
    return EnvVar(name, value)


def valid_name(name: str) -> bool:
    """Tell whether ``name`` may be used as an exported identifier."""
    for index, char in enumerate(name):
        if char in _INVALID_NAME_CHARS:
            return False
        if char == "+" and index + 1 < len(name) and name[index + 1] != "=":
            return False
    return True


def _export_key(text: str) -> tuple[str | None, int]:
    """Extract the variable name targeted by an export argument."""
    equal = _position(text, "=")
    plus = _position(text, "+")
    if equal == plus + 1 or (equal == -1 and plus == len(text) - 1):
        key = text[: max(plus - 1, 0)]
    elif equal != -1 and plus == -1:
        key = text[: equal - 1]
    else:
        key = text
    if not valid_name(key) or (equal == -1 and plus != len(text)):
        return None, plus
    return key, plus


@dataclass
class Environment:
    """Ordered collection of shell variables."""

    vars: list[EnvVar] = field(default_factory=list)

    @classmethod
    def from_strings(cls, entries: Iterable[str]) -> "Environment":
        """Build an environment from ``NAME=value`` strings."""
        return cls([EnvVar.parse(entry) for entry in entries])

    def __iter__(self) -> Iterator[EnvVar]:
        return iter(self.vars)

    def __len__(self) -> int:
        return len(self.vars)

    def find(self, key: str) -> EnvVar | None:
        """Find a variable by ``NAME`` or ``NAME=...``."""
        if "=" in key:
            wanted = key[: key.index("=") + 1]
        else:
            wanted = key + "="
        for var in self.vars:
            if var.name == wanted or var.name == key:
                return var
        return None

    def add(self, var: EnvVar) -> EnvVar:
        """Append ``var`` at the end and return it."""
        self.vars.append(var)
        return var

    def remove(self, var: EnvVar) -> None:
        """Remove this exact variable object."""
        self.vars = [item for item in self.vars if item is not var]

    def copy(self) -> "Environment":
        """Return an independent copy."""
        return Environment([_new_var(var.name, var.value) for var in self.vars])

    def to_strings(self) -> list[str]:
        """Render every variable as an environment block entry."""
        return [var.render() for var in self.vars]

    def set_value(self, var: EnvVar, text: str) -> None:
        """Assign the value carried by ``NAME=value`` text to ``var``."""
        if not var.name.endswith("=") and "=" not in var.name:
            var.name += "="
        var.value = _tail_after(text, "=")

    def find_export(self, text: str) -> tuple[EnvVar | None, bool]:
        """Find the variable an export argument refers to.

        Returns the variable (or None) and whether the argument contains '+'.
        """
        key, plus = _export_key(text)
        if key is None:
            return None, plus > 0
        with_equal = key + "="
        for var in self.vars:
            if var.name == with_equal or var.name == key:
                return var, plus > 0
        return None, plus > 0

    def append_value(self, var: EnvVar | None, text: str) -> EnvVar:
        """Apply a ``NAME+=value`` argument, creating the variable if needed."""
        plus = _position(text, "+")
        new_name = text[: max(plus - 1, 0)] + "="
        new_value = _tail_after(text, "=")
        if var is None:
            return self.add(EnvVar(new_name, new_value))
        var.value = (var.value or "") + new_value
        var.name = new_name
        return var

    def format_env(self) -> str:
        """Return the listing printed by the ``env`` builtin."""
        lines = []
        for var in self.vars:
            if var.value:
                lines.append(f"{var.name}{var.value}\n")
            elif "=" in var.name:
                lines.append(f"{var.name}\n")
        return "".join(lines)


@dataclass
class ShellState:
    """Everything a running shell session carries between command lines."""

    env: Environment = field(default_factory=Environment)
    last_status: int = 0
    exit_status: int = 0


def resolve_path(cmd: str, env: Environment) -> str:
    """Resolve ``cmd`` against PATH; return it unchanged when not found."""
    if "/" in cmd:
        return cmd
    node = env.find("PATH")
    if node is None:
        return cmd
    for directory in filter(None, (node.value or "").split(":")):
        candidate = f"{directory}/{cmd}"
        if os.access(candidate, os.F_OK | os.X_OK):
            return candidate
    return cmd