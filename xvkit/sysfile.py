"""File descriptor tables and argument checks for file-system system calls."""

from __future__ import annotations

from typing import Any

from xvkit.mmu import MAXARG, NOFILE
from xvkit.shell import O_CREATE, O_RDONLY, O_RDWR, O_WRONLY
from xvkit.syscall import ProcessMemory, SyscallError

_U32 = 0xFFFFFFFF

# Inode types as reported by fstat
T_DIR = 1
T_FILE = 2
T_DEV = 3

__all__ = [
    "FileDescriptorTable",
    "open_access",
    "fetch_exec_argv",
    "T_DIR",
    "T_FILE",
    "T_DEV",
    "O_RDONLY",
    "O_WRONLY",
    "O_RDWR",
    "O_CREATE",
]


class FileDescriptorTable:
    """A process's open files, indexed by descriptor number."""

    def __init__(self, size: int = NOFILE) -> None:
        if size <= 0:
            raise ValueError("descriptor table size must be positive")
        self._files: list[Any | None] = [None] * size

    def __len__(self) -> int:
        return len(self._files)

    def alloc(self, f: Any) -> int:
        """Place f in the lowest free slot and return its descriptor."""
        for fd, slot in enumerate(self._files):
            if slot is None:
                self._files[fd] = f
                return fd
        raise SyscallError("no free file descriptor")

    def get(self, fd: int) -> Any:
        """The open file behind fd."""
        if not 0 <= fd < len(self._files) or self._files[fd] is None:
            raise SyscallError(f"bad file descriptor {fd}")
        return self._files[fd]

    def close(self, fd: int) -> Any:
        """Free fd and return the file it referred to, for the caller to release."""
        f = self.get(fd)
        self._files[fd] = None
        return f

    def dup(self, fd: int) -> int:
        """A new descriptor referring to the same file as fd."""
        return self.alloc(self.get(fd))


def open_access(omode: int) -> tuple[bool, bool]:
    """Whether a file opened with omode is (readable, writable)."""
    readable = not omode & O_WRONLY
    writable = bool(omode & O_WRONLY or omode & O_RDWR)
    return readable, writable


def fetch_exec_argv(memory: ProcessMemory, uargv: int) -> list[bytes]:
    """The argument strings of a NULL-terminated pointer array at uargv."""
    argv: list[bytes] = []
    while True:
        if len(argv) >= MAXARG:
            raise SyscallError("too many exec arguments")
        uarg = memory.fetchint((uargv + 4 * len(argv)) & _U32) & _U32
        if uarg == 0:
            return argv
        argv.append(memory.fetchstr(uarg))