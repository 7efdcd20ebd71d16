import os

import pytest

from minishell.executor import exec_external, exec_pipeline, execute, late_expand_exit_status
from minishell.expansion import EXIT_STATUS_MARKER
from minishell.lexer import tokenize
from minishell.parser import Command, parse_tokens
from minishell.state import new_shell_state


@pytest.fixture
def shell(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return new_shell_state(
        {"PATH": os.environ.get("PATH", "/usr/bin:/bin"), "HOME": str(tmp_path)}
    )


def parse(shell, line):
    return parse_tokens(tokenize(line, shell.env, shell.exit_status), shell)


def run(shell, line):
    execute(shell, parse(shell, line))


def test_late_expand_replaces_marked_arguments(shell):
    command = Command(cmd="echo", args=["echo", EXIT_STATUS_MARKER, "x" + EXIT_STATUS_MARKER, "plain"])
    shell.exit_status = 42
    late_expand_exit_status(command, shell)
    assert command.args == ["echo", "42", "42", "plain"]


def test_exec_external_not_found(shell, capfd):
    command = Command(cmd="no-such-command-xyz", args=["no-such-command-xyz"])
    assert exec_external(shell, command) == 127
    assert shell.exit_status == 127
    assert "no-such-command-xyz: command not found" in capfd.readouterr().err


def test_exec_external_records_child_status(shell):
    command = Command(cmd="false", args=["false"])
    assert exec_external(shell, command) == 0
    assert shell.exit_status == 1


def test_simple_builtin_echo(shell, capfd):
    run(shell, "echo hi there")
    assert capfd.readouterr().out == "hi there\n"
    assert shell.exit_status == 0


def test_sequence_runs_in_order(shell, capfd):
    run(shell, "echo one ; echo two")
    assert capfd.readouterr().out == "one\ntwo\n"
    assert shell.exit_status == 0


def test_exec_pipeline_connects_output(shell, capfd):
    exec_pipeline(shell, parse(shell, "echo piped | cat"))
    assert capfd.readouterr().out == "piped\n"


@pytest.mark.parametrize("line, expected", [("true | false", 1), ("false | true", 0)])
def test_pipeline_status_is_last_command(shell, line, expected):
    run(shell, line)
    assert shell.exit_status == expected


def test_pipeline_builtin_does_not_touch_parent(shell):
    run(shell, "export PIPED=1 | cat")
    assert shell.env.get("PIPED") is None
    run(shell, "export SIMPLE=1")
    assert shell.env.get("SIMPLE") == "1"


def test_output_redirection_and_restore(shell, tmp_path, capfd):
    run(shell, "echo hi > out.txt")
    assert shell.exit_status == 0
    assert (tmp_path / "out.txt").read_text() == "hi\n"
    run(shell, "echo after")
    assert capfd.readouterr().out == "after\n"
    assert shell.exit_status == 0


def test_append_redirection(shell, tmp_path):
    run(shell, "echo a > f.txt ; echo b >> f.txt")
    assert shell.exit_status == 0
    assert (tmp_path / "f.txt").read_text() == "a\nb\n"


def test_input_redirection_for_external(shell, tmp_path, capfd):
    (tmp_path / "in.txt").write_text("content line\n")
    run(shell, "cat < in.txt")
    assert shell.exit_status == 0
    assert capfd.readouterr().out == "content line\n"


def test_missing_input_file_fails(shell, capfd):
    run(shell, "cat < missing.txt")
    assert shell.exit_status == 1
    assert "missing.txt" in capfd.readouterr().err


def test_redirection_without_command_creates_file(shell, tmp_path):
    run(shell, "> empty.txt")
    assert shell.exit_status == 0
    assert (tmp_path / "empty.txt").read_bytes() == b""


def test_heredoc_feeds_stdin_with_expansion(shell, tmp_path, monkeypatch, capfd):
    lines = iter(["hello world", "$HOME", "EOF"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
    run(shell, "cat << EOF")
    assert shell.exit_status == 0
    assert capfd.readouterr().out == f"hello world\n{tmp_path}\n"


def test_exit_sets_status_and_flag(shell):
    run(shell, "exit 3")
    assert shell.should_exit is True
    assert shell.exit_status == 3


def test_exit_status_variable_uses_last_status(shell, capfd):
    run(shell, "false")
    assert shell.exit_status == 1
    run(shell, "echo $?")
    assert shell.exit_status == 0
    assert capfd.readouterr().out == "1\n"