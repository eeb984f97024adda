import io
import os
import sys

import pytest

from minish.builtins import ShellExit
from minish.environment import Environment, ShellState
from minish.executor import (
    HEREDOC_FILE,
    Job,
    apply_redirections,
    build_jobs,
    execute,
    here_doc,
    replace_home,
    run_builtin,
    write_here_doc,
)
from minish.parser import Command, Redirection, RedirectionType


@pytest.fixture
def shell(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return ShellState(
        env=Environment.from_strings(
            ["HOME=/home/user", f"PATH={os.environ.get('PATH', '')}", "LANG=C"]
        )
    )


class _Lines:
    def __init__(self, lines):
        self._lines = iter(lines)

    def readline(self):
        return next(self._lines, None)


class _FakeStdin:
    def __init__(self, fd):
        self._fd = fd

    def fileno(self):
        return self._fd


def _feed_stdin(monkeypatch, data):
    read_end, write_end = os.pipe()
    os.write(write_end, data)
    os.close(write_end)
    monkeypatch.setattr(sys, "stdin", _FakeStdin(read_end))
    return read_end


def _read(path):
    with open(path, encoding="utf-8") as handle:
        return handle.read()


def test_replace_home_expands_leading_tilde(shell):
    assert replace_home("~/docs", shell.env) == "/home/user/docs"
    assert replace_home("~", shell.env) == "/home/user"


def test_replace_home_leaves_other_words():
    env = Environment.from_strings(["HOME=/home/user"])
    assert replace_home("a~b", env) == "a~b"
    assert replace_home("~/x", Environment()) == "~/x"


def test_build_jobs_expands_name_and_arguments(shell):
    jobs = build_jobs([Command("~/bin/tool", ["~", "x"])], shell.env)
    assert len(jobs) == 1
    job = jobs[0]
    assert job.cmd == "/home/user/bin/tool"
    assert job.args == ["/home/user/bin/tool", "/home/user", "x"]
    assert (job.fd_in, job.fd_out, job.cancel) == (0, 1, False)


def test_write_here_doc_stops_at_delimiter():
    dest, prompt = io.StringIO(), io.StringIO()
    done = write_here_doc("END", _Lines(["a\n", "b\n", "END\n", "c\n"]), dest, prompt)
    assert done is True
    assert dest.getvalue() == "a\nb\n"
    assert prompt.getvalue() == "> " * 3


def test_write_here_doc_reports_end_of_input():
    dest = io.StringIO()
    assert write_here_doc("END", _Lines(["a\n"]), dest, io.StringIO()) is False
    assert dest.getvalue() == "a\n"


def test_write_here_doc_needs_the_whole_line():
    dest = io.StringIO()
    assert write_here_doc("END", _Lines(["END \n", "END\n"]), dest, io.StringIO())
    assert dest.getvalue() == "END \n"


def test_here_doc_reads_stdin_and_leaves_the_rest(shell, monkeypatch):
    read_end = _feed_stdin(monkeypatch, b"one\ntwo\nEOF\nrest\n")
    assert here_doc("EOF", shell, HEREDOC_FILE) is False
    assert _read(HEREDOC_FILE) == "one\ntwo\n"
    assert os.read(read_end, 100) == b"rest\n"
    os.close(read_end)


def test_here_doc_warns_at_end_of_input(shell, monkeypatch, capsys):
    read_end = _feed_stdin(monkeypatch, b"x\n")
    assert here_doc("STOP", shell, HEREDOC_FILE) is False
    assert capsys.readouterr().out == "here-doc delimited by EOF (wanted 'STOP')\n"
    assert _read(HEREDOC_FILE) == "x\n"
    os.close(read_end)


def test_apply_redirections_opens_output_file(shell, tmp_path):
    job = Job("echo", ["echo"], [Redirection(RedirectionType.OUTPUT, "out.txt")])
    apply_redirections([job], shell)
    assert job.fd_out > 2
    assert job.outfile == "out.txt"
    job.close_files()
    assert job.fd_out == 1
    assert (tmp_path / "out.txt").read_text() == ""


def test_missing_input_file_is_reported(shell, capsys):
    job = Job("cat", ["cat"], [Redirection(RedirectionType.INPUT, "missing.txt")])
    apply_redirections([job], shell)
    assert job.fd_in == -1
    assert job.args == ["cat", "missing.txt"]
    assert capsys.readouterr().err.startswith("missing.txt: ")


def test_run_builtin_echo_writes_to_redirected_file(shell, tmp_path):
    job = Job("echo", ["echo", "a", "b"], [Redirection(RedirectionType.OUTPUT, "o.txt")])
    apply_redirections([job], shell)
    assert run_builtin(job, shell, False) == 0
    job.close_files()
    assert (tmp_path / "o.txt").read_text() == "a b\n"


def test_run_builtin_rejects_programs(shell):
    with pytest.raises(ValueError):
        run_builtin(Job("ls", ["ls"]), shell, False)


def test_run_builtin_skips_cd_in_a_pipeline(shell, tmp_path):
    (tmp_path / "sub").mkdir()
    assert run_builtin(Job("cd", ["cd", "sub"]), shell, True) == 0
    assert os.getcwd() == str(tmp_path)


def test_execute_append_redirection(shell, tmp_path):
    command = Command("echo", ["x"], [Redirection(RedirectionType.APPEND, "log.txt")])
    execute([command], shell)
    execute([command], shell)
    assert (tmp_path / "log.txt").read_text() == "x\nx\n"
    assert shell.last_status == 0
    assert shell.exit_status == 0


def test_execute_export_updates_environment(shell):
    execute([Command("export", ["NEW=value"])], shell)
    assert shell.env.find("NEW").value == "value"


def test_export_inside_pipeline_keeps_environment(shell, tmp_path):
    commands = [
        Command("export", ["NEW=1"]),
        Command("echo", ["hi"], [Redirection(RedirectionType.OUTPUT, "p.txt")]),
    ]
    execute(commands, shell)
    assert shell.env.find("NEW") is None
    assert (tmp_path / "p.txt").read_text() == "hi\n"


def test_execute_exit_raises(shell):
    with pytest.raises(ShellExit) as info:
        execute([Command("exit", ["3"])], shell)
    assert info.value.code == 3


def test_execute_exit_with_too_many_arguments(shell, capsys):
    assert execute([Command("exit", ["1", "2"])], shell) == 1
    assert shell.last_status == 1
    assert capsys.readouterr().err == "exit : too many arguments\n"


def test_pipeline_from_builtin_into_program(shell, capfd):
    script = "import sys; sys.stdout.write(sys.stdin.read().upper())"
    commands = [Command("echo", ["hello"]), Command(sys.executable, ["-c", script])]
    execute(commands, shell)
    assert capfd.readouterr().out == "HELLO\n"


def test_unknown_command(shell, capfd):
    status = execute([Command("no_such_command_for_minish")], shell)
    assert status == 127
    assert capfd.readouterr().err == "no_such_command_for_minish : command not found\n"


def test_program_exit_status(shell):
    status = execute([Command(sys.executable, ["-c", "raise SystemExit(7)"])], shell)
    assert status == 7
    assert shell.last_status == 7


def test_here_doc_feeds_program_and_is_removed(shell, monkeypatch, capfd):
    read_end = _feed_stdin(monkeypatch, b"line\nEOF\n")
    script = "import sys; sys.stdout.write(sys.stdin.read())"
    command = Command(
        sys.executable, ["-c", script], [Redirection(RedirectionType.HERE_DOC, "EOF")]
    )
    execute([command], shell)
    assert capfd.readouterr().out == "line\n"
    assert not os.path.exists(HEREDOC_FILE)
    os.close(read_end)