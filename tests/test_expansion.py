import os

import pytest

from minishell.environment import Environment
from minishell.expansion import (
    EXIT_STATUS_MARKER,
    expand_tilde,
    expand_variables,
    extract_variable,
)

HOME = "/home/user"


@pytest.fixture
def env():
    return Environment([f"HOME={HOME}", "NAME=world", "EMPTY="])


def test_expands_plain_variable(env):
    assert expand_variables("hello $NAME", env, 0) == "hello " + "world"


def test_expands_braced_variable(env):
    assert expand_variables("${NAME}s", env, 0) == "world" + "s"


def test_missing_variable_is_empty(env):
    assert expand_variables("a$MISSING", env, 0) == "a"


def test_escaped_dollar_is_literal(env):
    assert expand_variables("\\$NAME", env, 0) == "$NAME"


def test_exit_status_becomes_marker(env):
    assert expand_variables("$?", env, 42) == EXIT_STATUS_MARKER


def test_pid_variable(env):
    assert expand_variables("$$", env, 0) == str(os.getpid())


@pytest.mark.parametrize("text", ["$", "cost $5", "a $ b", "end$"])
def test_non_variable_dollar_is_unchanged(env, text):
    assert expand_variables(text, env, 0) == text


def test_empty_braces_give_dollar(env):
    assert expand_variables("${}", env, 0) == "$"


def test_text_without_dollar_is_unchanged(env):
    text = "plain text with 'quotes' and \\ backslash"
    assert expand_variables(text, env, 0) == text


def test_extract_variable_returns_next_index(env):
    text = "$NAME/rest"
    value, index = extract_variable(text, 1, env)
    assert value == "world"
    assert text[index:] == "/rest"


def test_extract_variable_braced_consumes_brace(env):
    text = "${HOME}x"
    value, index = extract_variable(text, 1, env)
    assert value == HOME
    assert text[index:] == "x"


def test_extract_variable_empty_value(env):
    value, index = extract_variable("$EMPTY", 1, env)
    assert value == ""
    assert index == len("$EMPTY")


def test_tilde_alone(env):
    assert expand_tilde("~", env) == HOME


def test_tilde_with_path(env):
    assert expand_tilde("~/docs", env) == HOME + "/docs"


@pytest.mark.parametrize("value", ["~other", "a~", "", "plain"])
def test_tilde_left_alone(env, value):
    assert expand_tilde(value, env) == value


def test_tilde_without_home():
    assert expand_tilde("~/x", Environment([])) == "~/x"