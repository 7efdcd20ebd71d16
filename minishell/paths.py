"""Locating executables through ``PATH``."""

from __future__ import annotations

import os
from typing import Protocol


class _Lookup(Protocol):
    def get(self, key: str) -> str | None: ...


def join_path(directory: str, name: str) -> str:
    """Join *directory* and *name* with a single ``/``."""
    return f"{directory}/{name}"


def find_executable(name: str | None, env: _Lookup) -> str | None:
    """Return the path to run for *name*, or None if no executable is found.

    A name containing ``/`` is used as it is; otherwise each non-empty
    directory in ``PATH`` is tried in order.
    """
    if not name:
        return None
    if "/" in name:
        return name if os.access(name, os.X_OK) else None
    path_env = env.get("PATH")
    if path_env is None:
        return None
    for directory in filter(None, path_env.split(":")):
        candidate = join_path(directory, name)
        if os.access(candidate, os.X_OK):
            return candidate
    return None