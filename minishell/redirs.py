"""Applying file redirections and collecting here-document input."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Callable
from typing import Protocol

from minishell.expansion import EXIT_STATUS_MARKER, expand_variables
from minishell.parser import Command, Redirect, RedirType

STDIN_FD = 0
HEREDOC_PROMPT = "> "
_OUTPUT_MODE = 0o644


class _Lookup(Protocol):
    def get(self, key: str) -> str | None: ...


class _Shell(Protocol):
    env: _Lookup
    exit_status: int


class RedirectionError(Exception):
    """Raised when a redirection cannot be set up."""


def _dup_onto(fd: int, target_fd: int, what: str) -> None:
    try:
        os.dup2(fd, target_fd)
    except OSError as exc:
        raise RedirectionError(f"dup2 error ({what}): {exc.strerror}") from exc


def _open_and_dup(filename: str, flags: int, target_fd: int, what: str) -> None:
    try:
        fd = os.open(filename, flags, _OUTPUT_MODE)
    except OSError as exc:
        raise RedirectionError(f"{filename}: {exc.strerror}") from exc
    try:
        _dup_onto(fd, target_fd, what)
    finally:
        os.close(fd)


def _apply_heredoc(command: Command) -> None:
    if command.heredoc_fd is None:
        raise RedirectionError("heredoc error: invalid file descriptor.")
    _dup_onto(command.heredoc_fd, STDIN_FD, "heredoc STDIN")


def _apply_one(redirect: Redirect, command: Command) -> None:
    if redirect.type is RedirType.IN:
        _open_and_dup(redirect.filename, os.O_RDONLY, redirect.source_fd, "input")
    elif redirect.type is RedirType.OUT:
        flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
        _open_and_dup(redirect.filename, flags, redirect.source_fd, "output")
    elif redirect.type is RedirType.APPEND:
        flags = os.O_WRONLY | os.O_CREAT | os.O_APPEND
        _open_and_dup(redirect.filename, flags, redirect.source_fd, "output")
    elif redirect.type is RedirType.HEREDOC:
        _apply_heredoc(command)


def apply_redirections(command: Command) -> None:
    """Apply the command's redirections in order.

    Stops at the first one that fails and raises :class:`RedirectionError`.
    """
    for redirect in command.redirs:
        _apply_one(redirect, command)


def _prompt_line(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


def _fd_with_content(data: bytes) -> int:
    fd, path = tempfile.mkstemp(prefix="minishell-heredoc-")
    try:
        os.unlink(path)
        view = memoryview(data)
        while view:
            written = os.write(fd, view)
            view = view[written:]
        os.lseek(fd, 0, os.SEEK_SET)
    except OSError:
        os.close(fd)
        raise
    return fd


def process_heredoc(
    redirect: Redirect,
    shell: _Shell,
    read_line: Callable[[str], str | None] | None = None,
) -> int:
    """Read here-document lines until the delimiter or end of input.

    *read_line* is called with the prompt and returns a line, or None at end of
    input; by default lines are read from standard input. Lines are expanded
    unless the delimiter was single-quoted. Returns a readable file descriptor
    holding the collected text. Raises :class:`RedirectionError` when input is
    interrupted.
    """
    reader = read_line or _prompt_line
    lines: list[str] = []
    try:
        while True:
            line = reader(HEREDOC_PROMPT)
            if line is None or line == redirect.filename:
                break
            if redirect.expand_heredoc:
                line = expand_variables(line, shell.env, shell.exit_status)
                line = line.replace(EXIT_STATUS_MARKER, str(shell.exit_status))
            lines.append(line + "\n")
    except KeyboardInterrupt as exc:
        raise RedirectionError("heredoc interrupted") from exc
    try:
        return _fd_with_content("".join(lines).encode("utf-8", "surrogateescape"))
    except OSError as exc:
        raise RedirectionError(f"pipe for heredoc failed: {exc.strerror}") from exc