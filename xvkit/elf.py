"""Reading and writing 32-bit ELF file and program headers."""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass
from typing import ClassVar

ELF_MAGIC = 0x464C457F

ELF_PROG_LOAD = 1

ELF_PROG_FLAG_EXEC = 1
ELF_PROG_FLAG_WRITE = 2
ELF_PROG_FLAG_READ = 4


class ElfError(ValueError):
    """The data is not a well-formed ELF image."""


@dataclass(frozen=True)
class ElfHeader:
    """The ELF file header."""

    magic: int = ELF_MAGIC
    elf: bytes = bytes(12)
    type: int = 0
    machine: int = 0
    version: int = 0
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = 0
    phentsize: int = 0
    phnum: int = 0
    shentsize: int = 0
    shnum: int = 0
    shstrndx: int = 0

    FORMAT: ClassVar[struct.Struct] = struct.Struct("<I12sHHIIIIIHHHHHH")
    SIZE: ClassVar[int] = FORMAT.size

    def __post_init__(self) -> None:
        if len(self.elf) != 12:
            raise ValueError("elf identification must be 12 bytes")

    @classmethod
    def from_bytes(cls, data: bytes) -> "ElfHeader":
        """Parse a header, checking its length and magic number."""
        if len(data) < cls.SIZE:
            raise ElfError("truncated ELF header")
        header = cls(*cls.FORMAT.unpack_from(data, 0))
        if header.magic != ELF_MAGIC:
            raise ElfError("bad ELF magic")
        return header

    def to_bytes(self) -> bytes:
        return self.FORMAT.pack(*astuple(self))


@dataclass(frozen=True)
class ProgramHeader:
    """An ELF program segment header."""

    type: int = 0
    off: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    flags: int = 0
    align: int = 0

    FORMAT: ClassVar[struct.Struct] = struct.Struct("<8I")
    SIZE: ClassVar[int] = FORMAT.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "ProgramHeader":
        if len(data) < cls.SIZE:
            raise ElfError("truncated program header")
        return cls(*cls.FORMAT.unpack_from(data, 0))

    def to_bytes(self) -> bytes:
        return self.FORMAT.pack(*astuple(self))


def read_program_headers(data: bytes) -> list[ProgramHeader]:
    """Parse the file header and every program header of an ELF image."""
    header = ElfHeader.from_bytes(data)
    headers = []
    for index in range(header.phnum):
        start = header.phoff + index * ProgramHeader.SIZE
        headers.append(ProgramHeader.from_bytes(data[start:start + ProgramHeader.SIZE]))
    return headers