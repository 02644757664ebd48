import io

import pytest

from xvkit.shell import (
    MAXARGS,
    O_CREATE,
    O_RDONLY,
    O_WRONLY,
    BackCmd,
    ExecCmd,
    ListCmd,
    PipeCmd,
    RedirCmd,
    ShellSyntaxError,
    getcmd,
    gettoken,
    parsecmd,
    peek,
)

WRITE = O_WRONLY | O_CREATE


def test_gettoken_word():
    s = "  ls -l"
    tok = gettoken(s, 0)
    assert tok.kind == "a"
    assert s[tok.start:tok.end] == "ls"
    assert s[tok.pos:] == "-l"


def test_gettoken_append_and_symbols():
    assert gettoken(">> f", 0).kind == "+"
    assert gettoken("> f", 0).kind == ">"
    assert gettoken("|x", 0).kind == "|"
    assert gettoken("   ", 0).kind == ""


def test_gettoken_word_stops_at_symbol():
    s = "abc|def"
    tok = gettoken(s, 0)
    assert s[tok.start:tok.end] == "abc"
    assert s[tok.pos] == "|"


def test_peek():
    s = "   |x"
    matched, pos = peek(s, 0, "|")
    assert matched and s[pos] == "|"
    assert peek(s, 0, "&")[0] is False
    assert peek(s, 0, "")[0] is False


def test_simple_exec():
    assert parsecmd("echo hi\n") == ExecCmd(["echo", "hi"])


def test_empty_line():
    assert parsecmd("\n") == ExecCmd([])


def test_redirections_nest_in_order():
    assert parsecmd("cat < in > out\n") == RedirCmd(
        RedirCmd(ExecCmd(["cat"]), "in", O_RDONLY, 0), "out", WRITE, 1
    )


def test_append_redirection_before_command():
    assert parsecmd(">> log echo x") == RedirCmd(ExecCmd(["echo", "x"]), "log", WRITE, 1)


def test_pipe_is_right_associative():
    assert parsecmd("a | b | c") == PipeCmd(
        ExecCmd(["a"]), PipeCmd(ExecCmd(["b"]), ExecCmd(["c"]))
    )


def test_list_and_background():
    assert parsecmd("a ; b &") == ListCmd(ExecCmd(["a"]), BackCmd(ExecCmd(["b"])))
    assert parsecmd("a & &") == BackCmd(BackCmd(ExecCmd(["a"])))


def test_block_with_redirection():
    assert parsecmd("(a ; b) > f") == RedirCmd(
        ListCmd(ExecCmd(["a"]), ExecCmd(["b"])), "f", WRITE, 1
    )


def test_argument_limit():
    assert parsecmd(" ".join(["w"] * (MAXARGS - 1))) == ExecCmd(["w"] * (MAXARGS - 1))
    with pytest.raises(ShellSyntaxError, match="too many args"):
        parsecmd(" ".join(["w"] * MAXARGS))


@pytest.mark.parametrize(
    "line, message",
    [
        ("echo >", "missing file for redirection"),
        ("echo > |", "missing file for redirection"),
        ("(echo", "missing \\)"),
        ("echo )", "leftovers: \\)"),
        ("a & b", "leftovers: b"),
        ("echo (", "syntax"),
    ],
)
def test_syntax_errors(line, message):
    with pytest.raises(ShellSyntaxError, match=message):
        parsecmd(line)


def test_getcmd_reads_lines_then_eof(capsys):
    stream = io.BytesIO(b"ls\nrest")
    assert getcmd(stream, 100) == "ls\n"
    assert getcmd(stream, 100) == "rest"
    assert getcmd(stream, 100) is None
    assert capsys.readouterr().err == "$ $ $ "


def test_getcmd_truncates_to_buffer():
    stream = io.BytesIO(b"abcdef\n")
    assert getcmd(stream, 4) == "abc"
    assert getcmd(stream, 100) == "def\n"