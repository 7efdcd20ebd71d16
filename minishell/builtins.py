"""Commands the shell runs itself: cd, echo, env, exit, export, pwd and unset."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Sequence

from minishell.environment import Environment, InvalidIdentifierError
from minishell.parser import Command
from minishell.redirs import RedirectionError, apply_redirections
from minishell.state import ShellState

STDIN_FD = 0
STDOUT_FD = 1
STDERR_FD = 2
NON_NUMERIC_EXIT_STATUS = 255

BuiltinFunc = Callable[[ShellState, Sequence[str]], int]

_PARENT_BUILTINS = frozenset({"cd", "exit", "export", "unset"})
_ASCII_DIGITS = frozenset("0123456789")


def _write(fd: int, text: str) -> None:
    sys.stdout.flush()
    data = memoryview(text.encode("utf-8", "surrogateescape"))
    while data:
        written = os.write(fd, data)
        data = data[written:]


def _out(text: str) -> None:
    _write(STDOUT_FD, text)


def _err(text: str) -> None:
    _write(STDERR_FD, text)


def is_builtin_parent_executable(command: Command | None) -> bool:
    """Return True for cd, exit, export and unset when they are not part of a pipeline."""
    if command is None or not command.args:
        return False
    if command.args[0] not in _PARENT_BUILTINS:
        return False
    return not command.is_pipe and command.prev_pipe_read_fd is None


def get_cd_path(shell: ShellState, args: Sequence[str]) -> str | None:
    """Return the directory ``cd`` should change to, or None when it cannot be known.

    No argument means ``$HOME``; ``-`` means ``$OLDPWD``, which is also printed.
    """
    if len(args) < 2:
        home = shell.env.get("HOME")
        if home is None:
            _err("cd: HOME not set\n")
        return home
    if args[1] == "-":
        oldpwd = shell.env.get("OLDPWD")
        if oldpwd is None:
            _err("cd: OLDPWD not set\n")
            return None
        _out(oldpwd + "\n")
        return oldpwd
    return args[1]


def update_pwd_vars(shell: ShellState, oldpwd: str) -> None:
    """Record *oldpwd* as ``OLDPWD`` and the current directory as ``PWD``."""
    shell.env.set(f"OLDPWD={oldpwd}")
    try:
        cwd = os.getcwd()
    except OSError:
        return
    shell.env.set(f"PWD={cwd}")


def is_valid_exit_arg(text: str | None) -> bool:
    """Return True if *text* is an optional sign followed by one or more ASCII digits."""
    if not text:
        return False
    digits = text[1:] if text[0] in "+-" else text
    return bool(digits) and all(ch in _ASCII_DIGITS for ch in digits)


def builtin_cd(shell: ShellState, args: Sequence[str]) -> int:
    """Change the working directory and update ``PWD`` and ``OLDPWD``."""
    path = get_cd_path(shell, args)
    if path is None:
        return 1
    try:
        oldpwd = os.getcwd()
    except OSError as exc:
        _err(f"minishell: cd: getcwd: {exc.strerror}\n")
        return 1
    try:
        os.chdir(path)
    except OSError as exc:
        _err(f"minishell: cd: {path}: {exc.strerror}\n")
        return 1
    update_pwd_vars(shell, oldpwd)
    return 0


def builtin_echo(shell: ShellState, args: Sequence[str]) -> int:
    """Print the arguments separated by spaces; a first argument ``-n`` drops the newline."""
    del shell
    words = list(args[1:])
    newline = True
    if words and words[0] == "-n":
        newline = False
        words = words[1:]
    _out(" ".join(words) + ("\n" if newline else ""))
    return 0


def builtin_env(shell: ShellState | None, args: Sequence[str]) -> int:
    """Print every environment entry on its own line."""
    del args
    if shell is None or shell.env is None:
        return 1
    _out("".join(f"{entry}\n" for entry in shell.env))
    return 0


def builtin_exit(shell: ShellState, args: Sequence[str]) -> int:
    """Ask the shell to exit, with the status given as argument or the last one."""
    if shell.interactive:
        _out("exit\n")
    if len(args) > 2:
        _err("minishell: exit: too many arguments\n")
        shell.exit_status = 1
        return 1
    if len(args) == 2:
        arg = args[1]
        if is_valid_exit_arg(arg):
            shell.exit_status = int(arg) & 0xFF
        else:
            _err(f"minishell: exit: {arg}: numeric argument required\n")
            shell.exit_status = NON_NUMERIC_EXIT_STATUS
    shell.should_exit = True
    return shell.exit_status


def builtin_export(shell: ShellState | None, args: Sequence[str]) -> int:
    """Set variables, or with no arguments list them sorted as ``declare -x`` lines."""
    if shell is None or shell.env is None:
        return 1
    if len(args) < 2:
        # Listing leaves the environment itself in sorted order.
        shell.env = Environment(shell.env.sorted_entries())
        _out("".join(f"declare -x {entry}\n" for entry in shell.env))
        return 0
    status = 0
    for var in args[1:]:
        try:
            shell.env.set(var)
        except InvalidIdentifierError:
            _err(f"minishell: export: `{var}': not a valid identifier\n")
            status = 1
    return status


def builtin_pwd(shell: ShellState, args: Sequence[str]) -> int:
    """Print the current working directory."""
    del shell, args
    try:
        cwd = os.getcwd()
    except OSError as exc:
        _err(f"pwd: {exc.strerror}\n")
        return 1
    _out(cwd + "\n")
    return 0


def builtin_unset(shell: ShellState | None, args: Sequence[str]) -> int:
    """Remove the named variables from the environment."""
    if shell is None or shell.env is None or len(args) < 2:
        return 0
    shell.env.unset(args[1:])
    return 0


_BUILTINS: dict[str, BuiltinFunc] = {
    "cd": builtin_cd,
    "echo": builtin_echo,
    "env": builtin_env,
    "exit": builtin_exit,
    "unset": builtin_unset,
    "pwd": builtin_pwd,
    "export": builtin_export,
}


def find_builtin(name: str | None) -> BuiltinFunc | None:
    """Return the function implementing builtin *name*, or None if it is not one."""
    if name is None:
        return None
    return _BUILTINS.get(name)


def exec_builtin(shell: ShellState | None) -> bool:
    """Run ``shell.current_cmd`` in this process if it is a builtin.

    Redirections apply only while the builtin runs. Returns False when the
    command is not a builtin (or standard streams cannot be saved), True
    otherwise; the builtin's status is stored in ``shell.exit_status``.
    """
    if shell is None or shell.current_cmd is None or not shell.current_cmd.args:
        return False
    command = shell.current_cmd
    func = find_builtin(command.args[0])
    if func is None:
        return False
    try:
        saved_stdin = os.dup(STDIN_FD)
    except OSError as exc:
        _err(f"minishell: dup failed in builtin setup: {exc.strerror}\n")
        return False
    try:
        saved_stdout = os.dup(STDOUT_FD)
    except OSError as exc:
        os.close(saved_stdin)
        _err(f"minishell: dup failed in builtin setup: {exc.strerror}\n")
        return False
    try:
        try:
            apply_redirections(command)
        except RedirectionError as exc:
            _err(f"{exc}\n")
            shell.exit_status = 1
        else:
            shell.exit_status = func(shell, command.args)
    finally:
        sys.stdout.flush()
        os.dup2(saved_stdin, STDIN_FD)
        os.dup2(saved_stdout, STDOUT_FD)
        os.close(saved_stdin)
        os.close(saved_stdout)
    return True