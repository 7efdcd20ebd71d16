"""Turn a token list into a sequence of commands with their redirections."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from minishell.expansion import expand_tilde, expand_variables
from minishell.lexer import Token, TokenType

STDIN_FD = 0
STDOUT_FD = 1
SYNTAX_ERROR_STATUS = 258

_WORD_TYPES = frozenset(
    {TokenType.WORD, TokenType.SINGLE_QUOTED, TokenType.DOUBLE_QUOTED}
)
_REDIR_TYPES = frozenset(
    {TokenType.REDIR_IN, TokenType.REDIR_OUT, TokenType.APPEND, TokenType.HEREDOC}
)
_SEPARATOR_TYPES = frozenset({TokenType.PIPE, TokenType.SEMICOLON})


class _Lookup(Protocol):
    def get(self, key: str) -> str | None: ...


class _Shell(Protocol):
    env: _Lookup
    exit_status: int


class RedirType(enum.Enum):
    """Kinds of redirection."""

    IN = enum.auto()
    OUT = enum.auto()
    APPEND = enum.auto()
    HEREDOC = enum.auto()


@dataclass
class Redirect:
    """One redirection attached to a command."""

    type: RedirType
    filename: str
    source_fd: int
    expand_heredoc: bool = True


@dataclass
class Command:
    """A simple command: its name, arguments, redirections and pipe flag."""

    cmd: str | None = None
    args: list[str] = field(default_factory=list)
    redirs: list[Redirect] = field(default_factory=list)
    is_pipe: bool = False
    heredoc_fd: int | None = None
    prev_pipe_read_fd: int | None = None

    def add_word(self, value: str) -> None:
        """Record *value* as the command name if none is set yet, and as an argument."""
        if self.cmd is None:
            self.cmd = value
        self.args.append(value)


class ShellSyntaxError(ValueError):
    """Raised when the token sequence is not a valid command line."""

    status = SYNTAX_ERROR_STATUS

    def __init__(self, token: str | None = None) -> None:
        self.token = "newline" if token is None else token
        super().__init__(f"syntax error near unexpected token `{self.token}`")


def is_all_digits(text: str | None) -> bool:
    """Return True if *text* is non-empty and made only of ASCII digits."""
    return bool(text) and text.isascii() and text.isdigit()


def get_redir_type(token: Token) -> RedirType:
    """Map a redirection operator token to its redirection type."""
    return {
        TokenType.REDIR_IN: RedirType.IN,
        TokenType.REDIR_OUT: RedirType.OUT,
        TokenType.APPEND: RedirType.APPEND,
    }.get(token.type, RedirType.HEREDOC)


def is_token_cmd(token: Token | None) -> bool:
    """Return True for word-like tokens (command names, arguments, file names)."""
    return token is not None and token.type in _WORD_TYPES


def is_token_redir(token: Token | None) -> bool:
    """Return True for redirection operator tokens."""
    return token is not None and token.type in _REDIR_TYPES


def expand_token_list(tokens: Iterable[Token], shell: _Shell) -> None:
    """Apply tilde and variable expansion in place to every token not single-quoted."""
    for token in tokens:
        if token.type is TokenType.SINGLE_QUOTED:
            continue
        expanded = expand_tilde(token.value, shell.env)
        token.value = expand_variables(expanded, shell.env, shell.exit_status)


def _default_fd(redir_type: RedirType) -> int:
    if redir_type in (RedirType.IN, RedirType.HEREDOC):
        return STDIN_FD
    return STDOUT_FD


def _build_redirect(operator: Token, filename: Token | None) -> Redirect:
    if not is_token_cmd(filename):
        raise ShellSyntaxError("newline")
    redir_type = get_redir_type(operator)
    return Redirect(
        type=redir_type,
        filename=filename.value,
        source_fd=_default_fd(redir_type),
        expand_heredoc=filename.type is not TokenType.SINGLE_QUOTED,
    )


def parse_tokens(tokens: Sequence[Token], shell: _Shell) -> list[Command]:
    """Expand *tokens* in place and group them into commands.

    Returns an empty list when the first command has neither a name nor a
    redirection. Raises :class:`ShellSyntaxError` on a malformed line.
    """
    tokens = list(tokens)
    expand_token_list(tokens, shell)
    commands = [Command()]
    index = 0
    while index < len(tokens):
        token = tokens[index]
        current = commands[-1]
        if is_token_redir(token):
            following = tokens[index + 1] if index + 1 < len(tokens) else None
            current.redirs.append(_build_redirect(token, following))
            index += 2
        elif token.type in _SEPARATOR_TYPES:
            if token.type is TokenType.PIPE:
                current.is_pipe = True
            commands.append(Command())
            index += 1
        elif is_token_cmd(token):
            current.add_word(token.value)
            index += 1
        else:
            raise ShellSyntaxError(token.value)
    first = commands[0]
    if first.cmd is None and not first.redirs:
        return []
    return commands