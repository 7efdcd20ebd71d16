"""Variable (``$NAME``, ``${NAME}``, ``$?``, ``$$``) and tilde expansion."""

from __future__ import annotations

import os
from string import ascii_letters, digits
from typing import Protocol

# Stands for the exit status; swapped for the real value just before a command runs.
EXIT_STATUS_MARKER = "\x1dEXIT_STATUS\x1d"

_VAR_CHARS = frozenset(ascii_letters + digits + "_")
_VAR_START = frozenset(ascii_letters + "_?${")


class _Lookup(Protocol):
    def get(self, key: str) -> str | None: ...


def _extract_var_name(text: str, index: int) -> tuple[str, int]:
    if text[index:index + 1] in ("?", "$"):
        return text[index], index + 1
    end = index
    while end < len(text) and text[end] in _VAR_CHARS:
        end += 1
    return text[index:end], end


def extract_variable(text: str, index: int, env: _Lookup) -> tuple[str, int]:
    """Expand the variable whose name starts at *index* (just past the ``$``).

    Returns the expanded value and the index just past the name.
    """
    if text[index:index + 1] == "{":
        name, index = _extract_var_name(text, index + 1)
        if text[index:index + 1] == "}":
            index += 1
    else:
        name, index = _extract_var_name(text, index)
    if name == "?":
        return EXIT_STATUS_MARKER, index
    if name == "$":
        return str(os.getpid()), index
    if not name:
        return "$", index
    value = env.get(name)
    return ("" if value is None else value), index


def expand_variables(text: str, env: _Lookup, exit_status: int) -> str:
    """Expand every variable reference in *text*.

    ``\\$`` yields a literal ``$``; ``$?`` yields :data:`EXIT_STATUS_MARKER`,
    so *exit_status* is not substituted here.
    """
    del exit_status
    parts: list[str] = []
    index = 0
    while index < len(text):
        ch = text[index]
        following = text[index + 1:index + 2]
        if ch == "\\" and following == "$":
            parts.append("$")
            index += 2
        elif ch == "$" and following and following in _VAR_START:
            value, index = extract_variable(text, index + 1, env)
            parts.append(value)
        else:
            parts.append(ch)
            index += 1
    return "".join(parts)


def expand_tilde(value: str, env: _Lookup) -> str:
    """Replace a leading ``~`` (alone or before ``/``) with ``$HOME`` when it is set."""
    if not value or value[0] != "~":
        return value
    home = env.get("HOME")
    if home is None:
        return value
    if value == "~":
        return home
    if value[1] == "/":
        return home + value[1:]
    return value