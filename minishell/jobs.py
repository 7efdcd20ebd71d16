"""Signal handling, foreground process groups and wait-status decoding."""

from __future__ import annotations

import os
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType

_child_running = False


def exit_status_from_wait(raw_status: int) -> int | None:
    """Turn a raw wait status into a shell exit status.

    A normal exit gives its code, a signal gives ``128 + signal``; a stopped
    process gives None. A death by SIGQUIT is reported on standard error.
    """
    if os.WIFEXITED(raw_status):
        return os.WEXITSTATUS(raw_status)
    if os.WIFSIGNALED(raw_status):
        signum = os.WTERMSIG(raw_status)
        if signum == signal.SIGQUIT:
            print("Quit (core dumped)", file=sys.stderr)
        return 128 + signum
    return None


def set_foreground_process(fd: int, pgid: int) -> None:
    """Make *pgid* the foreground process group of the terminal *fd*.

    Failure is reported on standard error, not raised.
    """
    try:
        os.tcsetpgrp(fd, pgid)
    except OSError as exc:
        print(f"minishell: ioctl TIOCSPGRP failed: {exc.strerror}", file=sys.stderr)


def _restore(signum: int, handler: object) -> None:
    signal.signal(signum, signal.SIG_DFL if handler is None else handler)


@contextmanager
def ignored_signals() -> Iterator[None]:
    """Ignore SIGINT and SIGQUIT while a child runs, restoring them afterwards."""
    global _child_running
    old_int = signal.signal(signal.SIGINT, signal.SIG_IGN)
    old_quit = signal.signal(signal.SIGQUIT, signal.SIG_IGN)
    _child_running = True
    try:
        yield
    finally:
        _restore(signal.SIGINT, old_int)
        _restore(signal.SIGQUIT, old_quit)
        _child_running = False


def set_child_signals() -> None:
    """Give SIGINT and SIGQUIT their default behaviour, as a child process needs."""
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    signal.signal(signal.SIGQUIT, signal.SIG_DFL)


def sigint_handler(signum: int, frame: FrameType | None) -> None:
    """Handle Ctrl+C: print a newline and, at the prompt, abandon the current line.

    While no child runs, :class:`KeyboardInterrupt` is raised so that the
    input loop discards the line and shows a fresh prompt.
    """
    del signum, frame
    sys.stdout.write("\n")
    sys.stdout.flush()
    if not _child_running:
        raise KeyboardInterrupt


def setup_signal_handling() -> None:
    """Install the shell's SIGINT handler and ignore SIGQUIT."""
    signal.signal(signal.SIGINT, sigint_handler)
    signal.signal(signal.SIGQUIT, signal.SIG_IGN)