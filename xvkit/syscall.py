"""System call numbers, argument fetching from user memory, and dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Mapping

_U32 = 0xFFFFFFFF

log = logging.getLogger(__name__)


class SyscallError(Exception):
    """A system call argument was invalid."""


class Syscall(IntEnum):
    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21


class ProcessMemory:
    """A process's user address space and the stack pointer of its trap."""

    def __init__(self, image: bytes, esp: int) -> None:
        self.image = bytes(image)
        self.esp = esp

    @property
    def sz(self) -> int:
        return len(self.image)

    def fetchint(self, addr: int) -> int:
        """The signed 32-bit word at addr."""
        addr &= _U32
        if addr >= self.sz or addr + 4 > self.sz:
            raise SyscallError(f"word at {addr:#x} outside process memory")
        return int.from_bytes(self.image[addr:addr + 4], "little", signed=True)

    def fetchstr(self, addr: int) -> bytes:
        """The NUL-terminated string at addr, without its terminator."""
        addr &= _U32
        if addr >= self.sz:
            raise SyscallError(f"string at {addr:#x} outside process memory")
        end = self.image.find(b"\0", addr)
        if end < 0:
            raise SyscallError(f"string at {addr:#x} is not terminated")
        return self.image[addr:end]

    def argint(self, n: int) -> int:
        """The nth 32-bit argument on the user stack."""
        return self.fetchint((self.esp + 4 + 4 * n) & _U32)

    def argptr(self, n: int, size: int) -> int:
        """The nth argument as the address of size bytes inside the process."""
        addr = self.argint(n) & _U32
        if size < 0 or addr >= self.sz or addr + size > self.sz:
            raise SyscallError(f"buffer at {addr:#x} of {size} bytes outside process memory")
        return addr

    def argstr(self, n: int) -> bytes:
        """The nth argument as a NUL-terminated string."""
        return self.fetchstr(self.argint(n))


@dataclass
class Process:
    """The calling process as seen by system call handlers."""

    pid: int
    name: str
    memory: ProcessMemory
    killed: bool = False


Handler = Callable[[Process], int]


class Dispatcher:
    """Routes system call numbers to handlers."""

    def __init__(self, handlers: Mapping[int, Handler]) -> None:
        self.handlers: dict[Syscall, Handler] = {}
        for num, handler in handlers.items():
            try:
                key = Syscall(num)
            except ValueError:
                raise ValueError(f"no system call numbered {num}") from None
            self.handlers[key] = handler

    def dispatch(self, proc: Process, num: int) -> int:
        """Run the handler for num and return the value left for user code."""
        try:
            handler = self.handlers[Syscall(num)]
        except (ValueError, KeyError):
            log.warning("%d %s: unknown sys call %d", proc.pid, proc.name, num)
            return -1
        try:
            return handler(proc)
        except SyscallError:
            return -1