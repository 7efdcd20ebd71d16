"""The interactive read-parse-execute loop and the program entry point."""

from __future__ import annotations

import os
import signal
import sys

from minishell.executor import execute
from minishell.jobs import setup_signal_handling
from minishell.lexer import UnmatchedQuoteError, tokenize
from minishell.parser import ShellSyntaxError, parse_tokens
from minishell.state import ShellState, new_shell_state

STDIN_FD = 0
PROMPT_TEXT = "minishell:~$ "
_GREEN = "\033[0;32m"
_CYAN = "\033[0;36m"
_RESET = "\033[0m"


def _report(message: str) -> None:
    print(message, file=sys.stderr, flush=True)


def init_job_control(shell: ShellState) -> None:
    """Detect an interactive terminal and, if so, take control of it."""
    shell.interactive = os.isatty(STDIN_FD)
    if not shell.interactive:
        return
    shell.terminal_fd = STDIN_FD
    for signum in (signal.SIGTTIN, signal.SIGTTOU, signal.SIGTSTP):
        signal.signal(signum, signal.SIG_IGN)
    pid = os.getpid()
    try:
        os.setpgid(pid, pid)
    except OSError as exc:
        _report(f"minishell: setpgid failed: {exc.strerror}")
    try:
        os.tcsetpgrp(shell.terminal_fd, pid)
    except OSError as exc:
        _report(f"minishell: tcsetpgrp failed: {exc.strerror}")
    shell.pgid = pid


def _enable_history() -> None:
    try:
        import readline  # noqa: F401  (gives input() line editing and history)
    except ImportError:
        pass


def _prompt() -> str:
    if os.isatty(STDIN_FD):
        return f"{_GREEN} {PROMPT_TEXT}{_RESET}"
    return PROMPT_TEXT


def _read_interactive() -> str | None:
    _enable_history()
    prompt = _prompt()
    while True:
        try:
            return input(prompt)
        except EOFError:
            return None
        except KeyboardInterrupt:
            continue


def _read_stream() -> str | None:
    while True:
        try:
            line = sys.stdin.readline()
        except KeyboardInterrupt:
            continue
        if not line:
            return None
        return line[:-1] if line.endswith("\n") else line


def read_input(shell: ShellState) -> str | None:
    """Read one command line, or return None at end of input.

    Interactive shells show a prompt and print ``exit`` at end of input.
    """
    if not shell.interactive:
        return _read_stream()
    line = _read_interactive()
    if line is None:
        sys.stdout.write("exit\n")
        sys.stdout.flush()
    return line


def process_loop(shell: ShellState) -> None:
    """Read, parse and run lines until end of input or until ``exit`` is run."""
    while True:
        line = read_input(shell)
        if line is None:
            break
        try:
            tokens = tokenize(line, shell.env, shell.exit_status)
        except UnmatchedQuoteError:
            _report("minishell: error: unmatched quote")
            continue
        if not tokens:
            continue
        try:
            commands = parse_tokens(tokens, shell)
        except ShellSyntaxError as exc:
            _report(f"minishell: {exc}")
            commands = []
        shell.current_cmd = commands
        if commands:
            execute(shell, commands)
        shell.current_cmd = None
        if shell.should_exit:
            break


def main(argv: list[str] | None = None) -> int:
    """Start the shell; returns the last exit status."""
    del argv
    shell = new_shell_state()
    setup_signal_handling()
    init_job_control(shell)
    print(f"{_CYAN}Initializing Minishell..{_RESET}", flush=True)
    process_loop(shell)
    return shell.exit_status


if __name__ == "__main__":
    sys.exit(main())