"""Split an input line into words, quoted strings and operators."""

from __future__ import annotations

import enum
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol

from minishell.expansion import expand_variables

DELIMITERS = " \t\n"
_QUOTES = ("'", '"')
_OPERATOR_CHARS = frozenset("|<>")
_DOUBLE_QUOTE_ESCAPE = re.compile(r'\\([$"\\])')
_WORD_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


class _Lookup(Protocol):
    def get(self, key: str) -> str | None: ...


class TokenType(enum.Enum):
    """Kinds of token the lexer produces."""

    WORD = enum.auto()
    SINGLE_QUOTED = enum.auto()
    DOUBLE_QUOTED = enum.auto()
    PIPE = enum.auto()
    REDIR_IN = enum.auto()
    REDIR_OUT = enum.auto()
    APPEND = enum.auto()
    HEREDOC = enum.auto()
    SEMICOLON = enum.auto()


@dataclass
class Token:
    """One lexical token."""

    type: TokenType
    value: str
    fd: int = -1


class UnmatchedQuoteError(ValueError):
    """Raised when a quoted string has no closing quote."""

    def __init__(self) -> None:
        super().__init__("unmatched quote")


_MULTI_CHAR_OPERATORS = {">>": TokenType.APPEND, "<<": TokenType.HEREDOC}
_SINGLE_CHAR_OPERATORS = {
    "|": TokenType.PIPE,
    "<": TokenType.REDIR_IN,
    ">": TokenType.REDIR_OUT,
    ";": TokenType.SEMICOLON,
}


def is_token_operator(char: str) -> bool:
    """Return True for the characters that end an unquoted word: ``|``, ``<`` and ``>``."""
    return char in _OPERATOR_CHARS


def extract_operator(text: str, pos: int) -> tuple[Token | None, int]:
    """Read an operator at *pos*.

    Returns the token and the position after it, or ``(None, pos)`` when no
    operator starts there.
    """
    pair = text[pos:pos + 2]
    if pair in _MULTI_CHAR_OPERATORS:
        return Token(_MULTI_CHAR_OPERATORS[pair], pair), pos + 2
    char = text[pos:pos + 1]
    if char in _SINGLE_CHAR_OPERATORS:
        return Token(_SINGLE_CHAR_OPERATORS[char], char), pos + 1
    return None, pos


def _find_closing_quote(text: str, pos: int, quote_char: str) -> int:
    length = len(text)
    while pos < length:
        char = text[pos]
        if quote_char == '"' and char == "\\":
            pos += 2 if pos + 1 < length else 1
        elif char == quote_char:
            return pos
        else:
            pos += 1
    return length


def extract_quoted(text: str, pos: int, quote_char: str) -> tuple[str, int]:
    """Read the quoted string whose opening quote is at *pos*.

    Returns its content, with ``\\$``, ``\\"`` and ``\\\\`` unescaped inside
    double quotes, and the position just past the closing quote.
    """
    start = pos + 1
    end = _find_closing_quote(text, start, quote_char)
    if end >= len(text):
        raise UnmatchedQuoteError()
    content = text[start:end]
    if quote_char == '"':
        content = _DOUBLE_QUOTE_ESCAPE.sub(r"\1", content)
    return content, end + 1


def _find_unquoted_end(text: str, pos: int, delimiters: str) -> int:
    length = len(text)
    while pos < length:
        char = text[pos]
        if char == "\\" and pos + 1 < length:
            pos += 2
            continue
        if char in delimiters or char in _QUOTES or is_token_operator(char):
            break
        pos += 1
    return pos


def extract_word(text: str, pos: int, delimiters: str = DELIMITERS) -> tuple[str, int]:
    """Read a word made of unquoted and quoted segments starting at *pos*.

    The word ends at a delimiter or an operator character. Returns the word and
    the position after it.
    """
    parts: list[str] = []
    length = len(text)
    while pos < length:
        char = text[pos]
        if char in _QUOTES:
            content, pos = extract_quoted(text, pos, char)
            parts.append(content)
        elif char in delimiters or is_token_operator(char):
            break
        else:
            end = _find_unquoted_end(text, pos, delimiters)
            parts.append(_WORD_ESCAPE.sub(r"\1", text[pos:end]))
            pos = end
    return "".join(parts), pos


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in DELIMITERS:
        pos += 1
    return pos


def _iter_tokens(line: str, env: _Lookup, exit_status: int) -> Iterator[Token]:
    pos = 0
    while True:
        pos = _skip_whitespace(line, pos)
        if pos >= len(line):
            return
        token, pos = extract_operator(line, pos)
        if token is not None:
            yield token
            continue
        quote_char = line[pos]
        if quote_char == '"':
            content, pos = extract_quoted(line, pos, quote_char)
            yield Token(TokenType.WORD, expand_variables(content, env, exit_status))
        elif quote_char == "'":
            content, pos = extract_quoted(line, pos, quote_char)
            yield Token(TokenType.SINGLE_QUOTED, content)
        else:
            word, pos = extract_word(line, pos, DELIMITERS)
            if not word:
                return
            yield Token(TokenType.WORD, word)


def tokenize(line: str, env: _Lookup, exit_status: int = 0) -> list[Token]:
    """Split *line* into tokens.

    A token that starts with a double quote has its variables expanded here;
    other words are left for later expansion. Raises
    :class:`UnmatchedQuoteError` when a quote is not closed.
    """
    return list(_iter_tokens(line, env, exit_status))