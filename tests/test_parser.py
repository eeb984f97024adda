import pytest

from minish.environment import Environment, ShellState
from minish.parser import (
    Command,
    Redirection,
    RedirectionType,
    check_payload,
    get_command,
    get_options,
    get_redirections,
    parse_line,
    trim_redirections,
)
from minish.quoting import ShellSyntaxError


@pytest.fixture
def shell():
    return ShellState(env=Environment.from_strings(["HOME=/home/u", "USER=alice"]))


def test_input_and_output_redirections():
    result = get_redirections("cat < in > out")
    assert [(r.type, r.payload) for r in result] == [
        (RedirectionType.INPUT, "in"),
        (RedirectionType.OUTPUT, "out"),
    ]


def test_append_and_here_doc():
    assert get_redirections("echo >> log")[0].type is RedirectionType.APPEND
    heredoc = get_redirections("cat << EOF")[0]
    assert heredoc.type is RedirectionType.HERE_DOC
    assert heredoc.payload == "EOF"


def test_quoted_operator_is_not_a_redirection():
    assert get_redirections('echo "<" x') == []


def test_payload_quotes_are_removed():
    redirection = get_redirections('cat < "my"')[0]
    assert redirection.payload == "my"
    assert redirection.quoted_empty is False


def test_explicit_empty_payload():
    redirection = get_redirections('cat << ""')[0]
    assert redirection.payload == ""
    assert redirection.quoted_empty is True


def test_trim_redirections():
    assert trim_redirections("cat < in > out") == "cat "
    assert trim_redirections("< in cat") == "cat"


def test_trim_keeps_quoted_operator():
    assert trim_redirections('echo "<" x') == 'echo "<" x'


def test_get_command(shell):
    assert get_command("  ls -l", shell) == "ls"
    assert get_command('"e"cho hi', shell) == "echo"
    assert get_command("$USER", shell) == "alice"


def test_get_command_empty(shell):
    assert get_command("   ", shell) == ""


def test_get_options(shell):
    assert get_options("ls -l -a", shell) == ["-l", "-a"]
    assert get_options("ls", shell) == []


def test_get_options_quotes_and_expansion(shell):
    assert get_options("echo \"a b\" '$USER' $USER", shell) == ["a b", "$USER", "alice"]


def test_parse_pipeline(shell):
    commands = parse_line("ls -l | wc -l", shell)
    assert [c.args for c in commands] == [["ls", "-l"], ["wc", "-l"]]


def test_parse_with_redirections(shell):
    first, second = parse_line("cat < in > out | wc -l", shell)
    assert first.cmd == "cat"
    assert first.options == []
    assert [r.payload for r in first.redirections] == ["in", "out"]
    assert second.redirections == []


def test_parse_exit_status(shell):
    shell.last_status = 3
    assert parse_line("echo $?", shell)[0].options == ["3"]


def test_missing_target_is_error(shell):
    with pytest.raises(ShellSyntaxError):
        parse_line("cat >", shell)


def test_empty_pipe_is_error(shell):
    with pytest.raises(ShellSyntaxError):
        parse_line("echo a | | b", shell)


def test_empty_here_doc_delimiter_accepted(shell):
    commands = parse_line('cat << ""', shell)
    assert commands[0].redirections[0].quoted_empty is True


def test_check_payload_only_first_redirection():
    ok = Command(
        cmd="cat",
        redirections=[
            Redirection(RedirectionType.INPUT, "in"),
            Redirection(RedirectionType.OUTPUT, ""),
        ],
    )
    check_payload([ok])
    bad = Command(cmd="cat", redirections=[Redirection(RedirectionType.INPUT, None)])
    with pytest.raises(ShellSyntaxError):
        check_payload([ok, bad])