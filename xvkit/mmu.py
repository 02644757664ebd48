"""x86 paging and segmentation arithmetic, memory layout and kernel limits."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar

_U32 = 0xFFFFFFFF

# Eflags register
FL_IF = 0x00000200

# Control register flags
CR0_PE = 0x00000001
CR0_WP = 0x00010000
CR0_PG = 0x80000000
CR4_PSE = 0x00000010

# Segment selectors (indices into the GDT)
SEG_KCODE = 1
SEG_KDATA = 2
SEG_UCODE = 3
SEG_UDATA = 4
SEG_TSS = 5
NSEGS = 6

DPL_USER = 0x3

# Application segment type bits
STA_X = 0x8
STA_W = 0x2
STA_R = 0x2

# System segment type bits
STS_T32A = 0x9
STS_IG32 = 0xE
STS_TG32 = 0xF

# Page directory and page table constants
NPDENTRIES = 1024
NPTENTRIES = 1024
PGSIZE = 4096
PTXSHIFT = 12
PDXSHIFT = 22

# Page table / directory entry flags
PTE_P = 0x001
PTE_W = 0x002
PTE_U = 0x004
PTE_PS = 0x080

# Memory layout
EXTMEM = 0x100000
PHYSTOP = 0xE000000
DEVSPACE = 0xFE000000
KERNBASE = 0x80000000
KERNLINK = KERNBASE + EXTMEM

# Kernel limits
NPROC = 64
KSTACKSIZE = 4096
NCPU = 8
NOFILE = 16
NFILE = 100
NINODE = 50
NDEV = 10
ROOTDEV = 1
MAXARG = 32
MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3
NBUF = MAXOPBLOCKS * 3
FSSIZE = 1000


def pdx(va: int) -> int:
    """Page directory index of a virtual address."""
    return ((va & _U32) >> PDXSHIFT) & 0x3FF


def ptx(va: int) -> int:
    """Page table index of a virtual address."""
    return ((va & _U32) >> PTXSHIFT) & 0x3FF


def pgaddr(d: int, t: int, o: int) -> int:
    """Build a virtual address from directory index, table index and offset."""
    return ((d << PDXSHIFT) | (t << PTXSHIFT) | o) & _U32


def pgroundup(sz: int) -> int:
    """Round up to a page boundary (32-bit wrap-around like the hardware)."""
    return (sz + PGSIZE - 1) & ~(PGSIZE - 1) & _U32


def pgrounddown(a: int) -> int:
    """Round down to a page boundary."""
    return a & ~(PGSIZE - 1) & _U32


def pte_addr(pte: int) -> int:
    """Physical address held in a page table entry."""
    return pte & _U32 & ~0xFFF


def pte_flags(pte: int) -> int:
    """Flag bits of a page table entry."""
    return pte & 0xFFF


def v2p(a: int) -> int:
    """Kernel virtual address to physical address."""
    return (a - KERNBASE) & _U32


def p2v(a: int) -> int:
    """Physical address to kernel virtual address."""
    return (a + KERNBASE) & _U32


def seg_nullasm() -> bytes:
    """The null segment descriptor as laid out by the boot assembler."""
    return bytes(8)


def seg_asm(type: int, base: int, lim: int) -> bytes:
    """A flat 32-bit, 4K-granular segment descriptor as the boot code emits it."""
    base &= _U32
    lim &= _U32
    return struct.pack(
        "<HHBBBB",
        (lim >> 12) & 0xFFFF,
        base & 0xFFFF,
        (base >> 16) & 0xFF,
        0x90 | type,
        0xC0 | ((lim >> 28) & 0xF),
        (base >> 24) & 0xFF,
    )


def _check_widths(obj, layout) -> None:
    for name, width in layout:
        value = getattr(obj, name)
        if not 0 <= value < (1 << width):
            raise ValueError(f"{name}={value} does not fit in {width} bits")


def _pack(obj, layout) -> bytes:
    word = 0
    shift = 0
    for name, width in layout:
        word |= getattr(obj, name) << shift
        shift += width
    return word.to_bytes(8, "little")


def _unpack(data: bytes, layout) -> dict[str, int]:
    if len(data) != 8:
        raise ValueError(f"descriptor must be 8 bytes, got {len(data)}")
    word = int.from_bytes(data, "little")
    values = {}
    for name, width in layout:
        values[name] = word & ((1 << width) - 1)
        word >>= width
    return values


@dataclass(frozen=True)
class SegmentDescriptor:
    """An x86 GDT segment descriptor."""

    lim_15_0: int = 0
    base_15_0: int = 0
    base_23_16: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    lim_19_16: int = 0
    avl: int = 0
    rsv1: int = 0
    db: int = 0
    g: int = 0
    base_31_24: int = 0

    _LAYOUT: ClassVar[tuple[tuple[str, int], ...]] = (
        ("lim_15_0", 16),
        ("base_15_0", 16),
        ("base_23_16", 8),
        ("type", 4),
        ("s", 1),
        ("dpl", 2),
        ("p", 1),
        ("lim_19_16", 4),
        ("avl", 1),
        ("rsv1", 1),
        ("db", 1),
        ("g", 1),
        ("base_31_24", 8),
    )

    def __post_init__(self) -> None:
        _check_widths(self, self._LAYOUT)

    @classmethod
    def normal(cls, type: int, base: int, lim: int, dpl: int) -> "SegmentDescriptor":
        """A 32-bit segment whose limit is counted in 4K pages."""
        base &= _U32
        lim &= _U32
        return cls(
            lim_15_0=(lim >> 12) & 0xFFFF,
            base_15_0=base & 0xFFFF,
            base_23_16=(base >> 16) & 0xFF,
            type=type,
            s=1,
            dpl=dpl,
            p=1,
            lim_19_16=(lim >> 28) & 0xF,
            avl=0,
            rsv1=0,
            db=1,
            g=1,
            base_31_24=base >> 24,
        )

    @classmethod
    def seg16(cls, type: int, base: int, lim: int, dpl: int) -> "SegmentDescriptor":
        """A segment whose limit is counted in bytes."""
        base &= _U32
        lim &= _U32
        return cls(
            lim_15_0=lim & 0xFFFF,
            base_15_0=base & 0xFFFF,
            base_23_16=(base >> 16) & 0xFF,
            type=type,
            s=1,
            dpl=dpl,
            p=1,
            lim_19_16=(lim >> 16) & 0xF,
            avl=0,
            rsv1=0,
            db=1,
            g=0,
            base_31_24=base >> 24,
        )

    def encode(self) -> bytes:
        """The 8-byte in-memory form."""
        return _pack(self, self._LAYOUT)

    @classmethod
    def decode(cls, data: bytes) -> "SegmentDescriptor":
        """Parse the 8-byte in-memory form."""
        return cls(**_unpack(bytes(data), cls._LAYOUT))


@dataclass(frozen=True)
class GateDescriptor:
    """An x86 interrupt or trap gate descriptor."""

    off_15_0: int = 0
    cs: int = 0
    args: int = 0
    rsv1: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    off_31_16: int = 0

    _LAYOUT: ClassVar[tuple[tuple[str, int], ...]] = (
        ("off_15_0", 16),
        ("cs", 16),
        ("args", 5),
        ("rsv1", 3),
        ("type", 4),
        ("s", 1),
        ("dpl", 2),
        ("p", 1),
        ("off_31_16", 16),
    )

    def __post_init__(self) -> None:
        _check_widths(self, self._LAYOUT)

    @classmethod
    def make(cls, istrap: bool, sel: int, off: int, dpl: int) -> "GateDescriptor":
        """A present gate; trap gates leave interrupts enabled, interrupt gates clear them."""
        off &= _U32
        return cls(
            off_15_0=off & 0xFFFF,
            cs=sel,
            args=0,
            rsv1=0,
            type=STS_TG32 if istrap else STS_IG32,
            s=0,
            dpl=dpl,
            p=1,
            off_31_16=off >> 16,
        )

    def encode(self) -> bytes:
        """The 8-byte in-memory form."""
        return _pack(self, self._LAYOUT)

    @classmethod
    def decode(cls, data: bytes) -> "GateDescriptor":
        """Parse the 8-byte in-memory form."""
        return cls(**_unpack(bytes(data), cls._LAYOUT))