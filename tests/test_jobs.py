import os
import signal
import sys
from pathlib import Path

import pytest

import minishell.jobs as jobs_module
from minishell.jobs import (
    exit_status_from_wait,
    ignored_signals,
    set_foreground_process,
    sigint_handler,
)

_NO_CORE = "import resource\nresource.setrlimit(resource.RLIMIT_CORE, (0, 0))\n"


@pytest.fixture
def saved_signals():
    old_int = signal.getsignal(signal.SIGINT)
    old_quit = signal.getsignal(signal.SIGQUIT)
    yield
    signal.signal(signal.SIGINT, old_int)
    signal.signal(signal.SIGQUIT, old_quit)


def _raw_status_of(code):
    env = dict(os.environ)
    root = str(Path(jobs_module.__file__).resolve().parent.parent)
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = os.pathsep.join([root, existing]) if existing else root
    pid = os.posix_spawn(sys.executable, [sys.executable, "-c", code], env)
    _, raw = os.waitpid(pid, 0)
    return raw


def test_exit_status_from_normal_exit():
    raw = _raw_status_of("raise SystemExit(7)")
    assert exit_status_from_wait(raw) == 7


def test_exit_status_zero():
    raw = _raw_status_of("pass")
    assert exit_status_from_wait(raw) == 0


def test_exit_status_from_signal():
    raw = _raw_status_of("import os, signal\nos.kill(os.getpid(), signal.SIGKILL)\n")
    assert exit_status_from_wait(raw) == 128 + signal.SIGKILL


def test_sigquit_reports_quit(capsys):
    raw = int(signal.SIGQUIT)
    assert exit_status_from_wait(raw) == 128 + signal.SIGQUIT
    assert "Quit (core dumped)" in capsys.readouterr().err


def test_stopped_status_gives_none():
    raw = (int(signal.SIGSTOP) << 8) | 0x7F
    assert exit_status_from_wait(raw) is None


def test_set_foreground_process_reports_failure(capsys):
    read_fd, write_fd = os.pipe()
    try:
        set_foreground_process(read_fd, os.getpgrp())
    finally:
        os.close(read_fd)
        os.close(write_fd)
    assert "minishell: ioctl TIOCSPGRP failed" in capsys.readouterr().err


def test_ignored_signals_ignores_inside_block():
    code = (
        "import os, signal, time\n"
        "from minishell.jobs import ignored_signals\n"
        "signal.signal(signal.SIGINT, signal.SIG_DFL)\n"
        "with ignored_signals():\n"
        "    os.kill(os.getpid(), signal.SIGINT)\n"
        "    time.sleep(0.05)\n"
        "    raise SystemExit(3)\n"
    )
    assert exit_status_from_wait(_raw_status_of(code)) == 3


def test_ignored_signals_restores_after_block():
    code = (
        "import os, signal, time\n"
        "from minishell.jobs import ignored_signals\n"
        "signal.signal(signal.SIGINT, signal.SIG_DFL)\n"
        "with ignored_signals():\n"
        "    pass\n"
        "os.kill(os.getpid(), signal.SIGINT)\n"
        "time.sleep(0.05)\n"
        "raise SystemExit(8)\n"
    )
    assert exit_status_from_wait(_raw_status_of(code)) == 128 + signal.SIGINT


def test_ignored_signals_restores_after_exception():
    code = (
        "import os, signal, time\n"
        "from minishell.jobs import ignored_signals\n"
        "signal.signal(signal.SIGINT, signal.SIG_DFL)\n"
        "try:\n"
        "    with ignored_signals():\n"
        "        raise RuntimeError('boom')\n"
        "except RuntimeError:\n"
        "    pass\n"
        "os.kill(os.getpid(), signal.SIGINT)\n"
        "time.sleep(0.05)\n"
        "raise SystemExit(8)\n"
    )
    assert exit_status_from_wait(_raw_status_of(code)) == 128 + signal.SIGINT


@pytest.mark.parametrize("signame", ["SIGINT", "SIGQUIT"])
def test_set_child_signals_restores_defaults(signame):
    code = (
        _NO_CORE
        + "import os, signal, time\n"
        "from minishell.jobs import set_child_signals\n"
        f"signal.signal(signal.{signame}, signal.SIG_IGN)\n"
        "set_child_signals()\n"
        f"os.kill(os.getpid(), signal.{signame})\n"
        "time.sleep(0.05)\n"
        "raise SystemExit(5)\n"
    )
    expected = 128 + int(getattr(signal, signame))
    assert exit_status_from_wait(_raw_status_of(code)) == expected


def test_setup_signal_handling_installs_handlers():
    code = (
        "import os, signal, time\n"
        "from minishell.jobs import setup_signal_handling\n"
        "setup_signal_handling()\n"
        "os.kill(os.getpid(), signal.SIGQUIT)\n"
        "time.sleep(0.05)\n"
        "try:\n"
        "    os.kill(os.getpid(), signal.SIGINT)\n"
        "    time.sleep(1)\n"
        "except KeyboardInterrupt:\n"
        "    raise SystemExit(4)\n"
        "raise SystemExit(6)\n"
    )
    assert exit_status_from_wait(_raw_status_of(code)) == 4


def test_sigint_at_prompt_interrupts_line(capsys):
    with pytest.raises(KeyboardInterrupt):
        sigint_handler(signal.SIGINT, None)
    assert capsys.readouterr().out == "\n"


def test_sigint_while_child_runs_only_prints_newline(saved_signals, capsys):
    with ignored_signals():
        sigint_handler(signal.SIGINT, None)
    assert capsys.readouterr().out == "\n"