"""Running parsed commands: builtins, external programs and pipelines."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import NoReturn

from minishell.builtins import (
    builtin_exit,
    exec_builtin,
    find_builtin,
    is_builtin_parent_executable,
)
from minishell.expansion import EXIT_STATUS_MARKER
from minishell.jobs import (
    exit_status_from_wait,
    ignored_signals,
    set_child_signals,
    set_foreground_process,
)
from minishell.parser import Command, RedirType
from minishell.paths import find_executable
from minishell.redirs import RedirectionError, apply_redirections, process_heredoc
from minishell.state import ShellState

STDIN_FD = 0
STDOUT_FD = 1
STDERR_FD = 2
NOT_FOUND_STATUS = 127
FAILURE_STATUS = 1


def _err(text: str) -> None:
    data = memoryview(text.encode("utf-8", "surrogateescape"))
    while data:
        written = os.write(STDERR_FD, data)
        data = data[written:]


def _flush() -> None:
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass


def _env_mapping(shell: ShellState) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for entry in shell.env:
        key, sep, value = entry.partition("=")
        if sep:
            mapping.setdefault(key, value)
    return mapping


def _record_status(shell: ShellState, raw_status: int) -> None:
    status = exit_status_from_wait(raw_status)
    if status is not None:
        shell.exit_status = status


def _child_exit(status: int) -> NoReturn:
    _flush()
    os._exit(status & 0xFF)


@contextmanager
def _saved_stdio() -> Iterator[None]:
    _flush()
    saved_stdin = os.dup(STDIN_FD)
    saved_stdout = os.dup(STDOUT_FD)
    try:
        yield
    finally:
        _flush()
        os.dup2(saved_stdin, STDIN_FD)
        os.dup2(saved_stdout, STDOUT_FD)
        os.close(saved_stdin)
        os.close(saved_stdout)


def late_expand_exit_status(command: Command | None, shell: ShellState) -> None:
    """Replace every argument holding the exit-status marker with the current status."""
    if command is None or not command.args:
        return
    status = str(shell.exit_status)
    command.args[:] = [status if EXIT_STATUS_MARKER in arg else arg for arg in command.args]


def _exec_command(shell: ShellState, command: Command, path: str | None = None) -> int:
    """Replace this process with the command; returns a status only on failure."""
    if path is None:
        path = find_executable(command.cmd, shell.env)
        if path is None:
            _err(f"{command.cmd}: command not found\n")
            return NOT_FOUND_STATUS
    try:
        os.execve(path, command.args, _env_mapping(shell))
    except OSError as exc:
        _err(f"minishell: execve failed: {exc.strerror}\n")
    return FAILURE_STATUS


def _external_child(shell: ShellState, command: Command, path: str) -> NoReturn:
    status = FAILURE_STATUS
    try:
        set_child_signals()
        try:
            os.setpgid(0, 0)
        except OSError:
            pass
        apply_redirections(command)
        status = _exec_command(shell, command, path)
    except RedirectionError as exc:
        _err(f"{exc}\n")
    except OSError as exc:
        _err(f"minishell: {exc}\n")
    finally:
        _child_exit(status)


def exec_external(shell: ShellState, command: Command) -> int:
    """Run a program in a child process and wait for it.

    Returns 127 when no executable is found, 1 when the fork fails and 0
    otherwise; the program's status goes into ``shell.exit_status``.
    """
    name = command.args[0] if command.args else None
    path = find_executable(name, shell.env)
    if path is None:
        _err(f"{name or ''}: command not found\n")
        shell.exit_status = NOT_FOUND_STATUS
        return NOT_FOUND_STATUS
    with ignored_signals():
        _flush()
        try:
            pid = os.fork()
        except OSError as exc:
            _err(f"minishell: fork failed: {exc.strerror}\n")
            return FAILURE_STATUS
        if pid == 0:
            _external_child(shell, command, path)
        if shell.interactive:
            try:
                os.setpgid(pid, pid)
            except OSError:
                pass
            set_foreground_process(shell.terminal_fd, pid)
        _, raw_status = os.waitpid(pid, os.WUNTRACED)
        if shell.interactive and shell.pgid is not None:
            set_foreground_process(shell.terminal_fd, shell.pgid)
        _record_status(shell, raw_status)
    return 0


def _pipe_child(
    shell: ShellState,
    command: Command,
    prev_read: int | None,
    pipe_fds: tuple[int, int] | None,
) -> NoReturn:
    status = FAILURE_STATUS
    try:
        set_child_signals()
        if prev_read is not None:
            os.dup2(prev_read, STDIN_FD)
            os.close(prev_read)
        if pipe_fds is not None:
            read_fd, write_fd = pipe_fds
            os.close(read_fd)
            os.dup2(write_fd, STDOUT_FD)
            os.close(write_fd)
        apply_redirections(command)
        func = find_builtin(command.args[0]) if command.args else None
        if func is not None:
            status = func(shell, command.args)
        elif not command.args:
            status = 0
        else:
            status = _exec_command(shell, command)
    except RedirectionError as exc:
        _err(f"{exc}\n")
    except OSError as exc:
        _err(f"minishell: {exc}\n")
    finally:
        _child_exit(status)


def _fork_pipe_command(
    shell: ShellState, command: Command, prev_read: int | None
) -> tuple[int, int | None] | None:
    """Fork a pipeline member; returns its pid and the read end of its output pipe."""
    pipe_fds: tuple[int, int] | None = None
    if command.is_pipe:
        try:
            pipe_fds = os.pipe()
        except OSError as exc:
            _err(f"minishell: pipe failed: {exc.strerror}\n")
            return None
    _flush()
    try:
        pid = os.fork()
    except OSError as exc:
        _err(f"minishell: fork failed: {exc.strerror}\n")
        if pipe_fds is not None:
            os.close(pipe_fds[0])
            os.close(pipe_fds[1])
        return None
    if pid == 0:
        _pipe_child(shell, command, prev_read, pipe_fds)
    if pipe_fds is None:
        return pid, None
    os.close(pipe_fds[1])
    return pid, pipe_fds[0]


def _wait_for_children(shell: ShellState, pids: Sequence[int]) -> None:
    if not pids:
        return
    *others, last = pids
    try:
        _, raw_status = os.waitpid(last, 0)
    except ChildProcessError:
        pass
    else:
        _record_status(shell, raw_status)
    for pid in others:
        try:
            os.waitpid(pid, 0)
        except ChildProcessError:
            pass


def exec_pipeline(shell: ShellState, commands: Iterable[Command]) -> None:
    """Run *commands* connected by pipes and wait for them.

    The exit status of the last forked command becomes ``shell.exit_status``.
    """
    pids: list[int] = []
    with ignored_signals():
        prev_read: int | None = None
        try:
            for command in commands:
                late_expand_exit_status(command, shell)
                command.prev_pipe_read_fd = prev_read
                if is_builtin_parent_executable(command):
                    shell.current_cmd = command
                    exec_builtin(shell)
                    continue
                forked = _fork_pipe_command(shell, command, prev_read)
                if forked is None:
                    break
                pid, next_read = forked
                if prev_read is not None:
                    os.close(prev_read)
                prev_read = next_read
                pids.append(pid)
        finally:
            if prev_read is not None:
                os.close(prev_read)
        if shell.interactive and shell.pgid is not None:
            set_foreground_process(shell.terminal_fd, shell.pgid)
        _wait_for_children(shell, pids)


def _apply_redirections_only(shell: ShellState, command: Command) -> None:
    with _saved_stdio():
        try:
            apply_redirections(command)
        except RedirectionError as exc:
            _err(f"{exc}\n")
            shell.exit_status = FAILURE_STATUS
        else:
            shell.exit_status = 0


def _execute_simple(shell: ShellState, command: Command) -> None:
    late_expand_exit_status(command, shell)
    shell.current_cmd = command
    if not command.args:
        _apply_redirections_only(shell, command)
    elif command.args[0] == "exit":
        builtin_exit(shell, command.args)
    elif not exec_builtin(shell):
        exec_external(shell, command)


def _collect_heredocs(shell: ShellState, commands: Iterable[Command]) -> bool:
    for command in commands:
        for redirect in command.redirs:
            if redirect.type is not RedirType.HEREDOC:
                continue
            try:
                fd = process_heredoc(redirect, shell)
            except RedirectionError as exc:
                _err(f"minishell: {exc}\n")
                shell.exit_status = FAILURE_STATUS
                return False
            if command.heredoc_fd is not None:
                os.close(command.heredoc_fd)
            command.heredoc_fd = fd
    return True


def _close_heredocs(commands: Iterable[Command]) -> None:
    for command in commands:
        if command.heredoc_fd is not None:
            os.close(command.heredoc_fd)
            command.heredoc_fd = None


def _segments(commands: Iterable[Command]) -> Iterator[list[Command]]:
    pending: list[Command] = []
    for command in commands:
        pending.append(command)
        if not command.is_pipe:
            yield pending
            pending = []
    if pending:
        yield pending


def execute(shell: ShellState, commands: Iterable[Command]) -> None:
    """Run a parsed command line: ``;``-separated parts in turn, pipelines together.

    Here-documents are all read first; if one is interrupted nothing runs.
    """
    commands = list(commands)
    if not commands:
        return
    try:
        if not _collect_heredocs(shell, commands):
            return
        for segment in _segments(commands):
            if len(segment) == 1 and not segment[0].is_pipe:
                _execute_simple(shell, segment[0])
            else:
                exec_pipeline(shell, segment)
    finally:
        _close_heredocs(commands)