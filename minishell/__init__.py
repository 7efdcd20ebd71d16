"""A small POSIX-style shell with pipes, redirections, heredocs and builtins."""

__version__ = "0.1.0"
__all__ = [
    "builtins",
    "environment",
    "executor",
    "expansion",
    "jobs",
    "lexer",
    "parser",
    "paths",
    "redirs",
    "shell",
    "state",
]