# minish

A small interactive shell. It reads a line, checks its syntax, expands
variables, splits it into a pipeline and runs each command, either as a
builtin or as an external program found on `PATH`.

## Installing

```
pip install .
```

## Running

```
minish
```

The shell takes no arguments (given any, it prints an error and exits
with status 1). It prints `Minishell : ` as its prompt and leaves on end
of input (Ctrl-D) with status 0, or through the `exit` builtin.

## What it understands

- Pipelines: `ls -l | grep py | wc -l`
- Redirections: `< infile`, `> outfile`, `>> outfile`, and here-documents
  `<< DELIM`, read from standard input until a line equal to `DELIM`.
  Here-document text is kept in a file named `heredoc.txt` in the
  current directory, which is removed once the command line has run.
- Single quotes (taken literally) and double quotes (with `$` expansion)
- Variables: `$NAME`, and `$?` for the status of the last command line
- A leading `~` in the command name or an argument is replaced by `$HOME`
- Builtins: `echo [-n]`, `cd`, `pwd`, `export`, `unset`, `env`, `exit`

A builtin that runs alone on a line acts on the shell itself. Inside a
pipeline a builtin works on a copy of the environment, and `cd`, `exit`
and `unset` do nothing there.

Lines with an unclosed quote, a leading or trailing `|`, an empty
command between pipes, an `&`, or a malformed redirection such as `<>`
are rejected with `syntax error`.

Ctrl-C at the prompt prints `^C` and shows a fresh prompt; `$?` then
gives 130. Ctrl-C while reading a here-document cancels it.

## Using it from Python

```python
from minish.environment import Environment, ShellState
from minish.shell import run_line

env = Environment.from_strings(["HOME=/tmp", "PATH=/usr/bin:/bin"])
shell = ShellState(env=env)
run_line("export GREETING=hello", shell)
run_line("echo $GREETING | cat", shell)
```

`run_line` returns the status of the line. It raises
`minish.quoting.ShellSyntaxError` for invalid syntax and
`minish.builtins.ShellExit` (with its `code`) when `exit` runs.

Other pieces can be used on their own:

- `minish.quoting.check_syntax` validates a command line, and
  `minish.quoting.split_input` splits it on unquoted separators.
- `minish.parser.parse_line` turns a line into `Command` objects with
  their `Redirection`s, without running anything.
- `minish.executor.execute` runs parsed commands against a `ShellState`.
- `minish.linereader.LineReader` and `minish.multireader.MultiLineReader`
  read newline-terminated lines from file descriptors.

## What it does not do

There is no `;`, `&&` or `||`, no background jobs or job control, no
subshells or command substitution, no filename globbing and no
scripting language (variables assignments, `if`, loops). It does not
read script files or startup files, and it keeps no history file;
line editing and in-session history come from Python's `readline`
module when it is available.