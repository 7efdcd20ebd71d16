"""Mutable state shared by every part of a running shell."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from minishell.environment import Environment


@dataclass
class ShellState:
    """Environment, last exit status and job-control details of one shell."""

    env: Environment = field(default_factory=Environment)
    exit_status: int = 0
    current_cmd: Any = None
    should_exit: bool = False
    interactive: bool = False
    terminal_fd: int = 0
    pgid: int | None = None


def new_shell_state(environ: Mapping[str, str] | Iterable[str] | None = None) -> ShellState:
    """Create a fresh state holding a copy of *environ* (the process environment by default)."""
    if environ is None:
        environ = os.environ
    if isinstance(environ, Mapping):
        entries = [f"{key}={value}" for key, value in environ.items()]
    else:
        entries = list(environ)
    return ShellState(env=Environment(entries))