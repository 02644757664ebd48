"""Command-line parsing for a small Unix-like shell."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import BinaryIO, NamedTuple, Union

from xvkit.cstring import gets

O_RDONLY = 0x000
O_WRONLY = 0x001
O_RDWR = 0x002
O_CREATE = 0x200

MAXARGS = 10

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"


class ShellSyntaxError(ValueError):
    """The command line could not be parsed."""


@dataclass
class ExecCmd:
    argv: list[str] = field(default_factory=list)


@dataclass
class RedirCmd:
    cmd: "Command"
    file: str
    mode: int
    fd: int


@dataclass
class PipeCmd:
    left: "Command"
    right: "Command"


@dataclass
class ListCmd:
    left: "Command"
    right: "Command"


@dataclass
class BackCmd:
    cmd: "Command"


Command = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]


class Token(NamedTuple):
    """A token: kind ('' at end, 'a' for a word, '+' for '>>'), its span, and where scanning resumes."""

    kind: str
    start: int
    end: int
    pos: int


def _skip(s: str, pos: int) -> int:
    while pos < len(s) and s[pos] in WHITESPACE:
        pos += 1
    return pos


def gettoken(s: str, pos: int) -> Token:
    """Scan the next token of s starting at pos."""
    pos = _skip(s, pos)
    start = pos
    if pos >= len(s):
        kind = ""
    elif s[pos] in "|();&<":
        kind = s[pos]
        pos += 1
    elif s[pos] == ">":
        kind = ">"
        pos += 1
        if pos < len(s) and s[pos] == ">":
            kind = "+"
            pos += 1
    else:
        kind = "a"
        while pos < len(s) and s[pos] not in WHITESPACE and s[pos] not in SYMBOLS:
            pos += 1
    return Token(kind, start, pos, _skip(s, pos))


def peek(s: str, pos: int, toks: str) -> tuple[bool, int]:
    """Skip whitespace; report whether the next character is one of toks."""
    pos = _skip(s, pos)
    return pos < len(s) and s[pos] in toks, pos


class _Parser:
    def __init__(self, s: str) -> None:
        self.s = s
        self.pos = 0

    def peek(self, toks: str) -> bool:
        matched, self.pos = peek(self.s, self.pos, toks)
        return matched

    def next(self) -> Token:
        token = gettoken(self.s, self.pos)
        self.pos = token.pos
        return token

    def line(self) -> Command:
        cmd = self.pipe()
        while self.peek("&"):
            self.next()
            cmd = BackCmd(cmd)
        if self.peek(";"):
            self.next()
            cmd = ListCmd(cmd, self.line())
        return cmd

    def pipe(self) -> Command:
        cmd = self.exec()
        if self.peek("|"):
            self.next()
            cmd = PipeCmd(cmd, self.pipe())
        return cmd

    def redirs(self, cmd: Command) -> Command:
        while self.peek("<>"):
            kind = self.next().kind
            target = self.next()
            if target.kind != "a":
                raise ShellSyntaxError("missing file for redirection")
            file = self.s[target.start:target.end]
            if kind == "<":
                cmd = RedirCmd(cmd, file, O_RDONLY, 0)
            else:
                cmd = RedirCmd(cmd, file, O_WRONLY | O_CREATE, 1)
        return cmd

    def block(self) -> Command:
        if not self.peek("("):
            raise ShellSyntaxError("parseblock")
        self.next()
        cmd = self.line()
        if not self.peek(")"):
            raise ShellSyntaxError("syntax - missing )")
        self.next()
        return self.redirs(cmd)

    def exec(self) -> Command:
        if self.peek("("):
            return self.block()
        command = ExecCmd()
        ret: Command = self.redirs(command)
        while not self.peek("|)&;"):
            token = self.next()
            if token.kind == "":
                break
            if token.kind != "a":
                raise ShellSyntaxError("syntax")
            command.argv.append(self.s[token.start:token.end])
            if len(command.argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            ret = self.redirs(ret)
        return ret


def parsecmd(s: str) -> Command:
    """Parse one command line into a command tree."""
    s = s.split("\0", 1)[0]
    parser = _Parser(s)
    cmd = parser.line()
    parser.peek("")
    if parser.pos != len(s):
        raise ShellSyntaxError(f"leftovers: {s[parser.pos:]}")
    return cmd


def getcmd(stream: BinaryIO, nbuf: int) -> str | None:
    """Prompt on stderr and read one line of at most nbuf-1 bytes; None at end of input."""
    sys.stderr.write("$ ")
    sys.stderr.flush()
    line = gets(stream, nbuf)
    if not line or line[0] == 0:
        return None
    return line.split(b"\0", 1)[0].decode("utf-8", errors="surrogateescape")