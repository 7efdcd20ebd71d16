# minishell

A small POSIX-style command shell. It reads command lines from a terminal
or from standard input and runs them. On a terminal it shows a prompt and,
where Python's `readline` module is available, offers line editing and
history.

## Features

- Single and double quotes. Outside quotes a backslash escapes the next
  character; inside double quotes it escapes only `$`, `"` and `\`.
- Variable expansion: `$NAME`, `${NAME}`, `$?` (last exit status) and `$$`
  (process id). Single-quoted text is never expanded. An argument that
  contains `$?` is replaced as a whole by the exit status.
- Tilde expansion for `~` and `~/path` using `HOME`.
- Pipelines with `|` and command sequences with `;`.
- Redirections `<`, `>`, `>>` and heredocs `<<`. A heredoc whose delimiter
  is single-quoted is not expanded. All heredocs on a line are read before
  anything runs; if reading one is interrupted, the line is not run.
- Builtins: `cd` (including `cd -`, and `cd` alone to go to `HOME`), `echo`
  (with `-n`), `env`, `export` (without arguments it lists the variables
  sorted, as `declare -x` lines), `unset`, `pwd` and `exit`.
- Other commands are looked up on `PATH` (or used as given when they
  contain `/`) and run as child processes; a command that cannot be found
  sets the status to 127. Ctrl-C interrupts the running command, not the
  shell.

## Installation

```
pip install .
```

## Usage

Start an interactive session:

```
minishell
```

Or feed it a script on standard input:

```
printf 'export GREETING=hello\necho $GREETING world | cat\n' | minishell
```

The shell exits with the status of the last command it ran, or with the
value given to `exit` (taken modulo 256; a non-numeric value gives 255).
A syntax error or an unmatched quote is reported on standard error and the
line is skipped.

## Library use

The pieces can be used on their own:

```python
from minishell.state import new_shell_state
from minishell.lexer import tokenize
from minishell.parser import parse_tokens

shell = new_shell_state({"HOME": "/home/user", "PATH": "/usr/bin:/bin"})
tokens = tokenize('echo "hi $HOME" > out.txt', shell.env, shell.exit_status)
commands = parse_tokens(tokens, shell)
```

- `minishell.environment.Environment` holds the shell's variables as
  `KEY=VALUE` entries, with `get`, `set`, `unset` and `sorted_entries`.
- `minishell.expansion.expand_variables` and `expand_tilde` perform `$` and
  `~` expansion on a string.
- `minishell.paths.find_executable` resolves a command name through `PATH`.
- `minishell.executor.execute` runs a list of parsed `Command` objects, and
  `minishell.shell.process_loop` drives the whole read-parse-run loop.

## What it does not do

There is no `&&` or `||`, no subshells or command substitution, no
wildcard (glob) expansion, no background jobs with `&`, and no file
descriptor numbers in front of redirections: `2> file` passes `2` as an
argument and redirects standard output.

## Running the tests

```
pip install .[test]
pytest
```