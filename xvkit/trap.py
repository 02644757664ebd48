"""Trap frames, the interrupt descriptor table, the tick clock and trap dispatch."""

from __future__ import annotations

import logging
import struct
import threading
from dataclasses import astuple, dataclass
from typing import Callable, ClassVar, Mapping, Sequence

from xvkit.locks import KernelPanic
from xvkit.mmu import DPL_USER, SEG_KCODE, GateDescriptor
from xvkit.syscall import Process

_U32 = 0xFFFFFFFF

# Processor-defined traps
T_DIVIDE = 0
T_DEBUG = 1
T_NMI = 2
T_BRKPT = 3
T_OFLOW = 4
T_BOUND = 5
T_ILLOP = 6
T_DEVICE = 7
T_DBLFLT = 8
T_TSS = 10
T_SEGNP = 11
T_STACK = 12
T_GPFLT = 13
T_PGFLT = 14
T_FPERR = 16
T_ALIGN = 17
T_MCHK = 18
T_SIMDERR = 19

T_SYSCALL = 64
T_DEFAULT = 500
T_IRQ0 = 32

IRQ_TIMER = 0
IRQ_KBD = 1
IRQ_COM1 = 4
IRQ_IDE = 14
IRQ_ERROR = 19
IRQ_SPURIOUS = 31

NIDT = 256

_log = logging.getLogger(__name__)


@dataclass
class TrapFrame:
    """Registers saved on the kernel stack when a trap is taken."""

    edi: int = 0
    esi: int = 0
    ebp: int = 0
    oesp: int = 0
    ebx: int = 0
    edx: int = 0
    ecx: int = 0
    eax: int = 0
    gs: int = 0
    padding1: int = 0
    fs: int = 0
    padding2: int = 0
    es: int = 0
    padding3: int = 0
    ds: int = 0
    padding4: int = 0
    trapno: int = 0
    err: int = 0
    eip: int = 0
    cs: int = 0
    padding5: int = 0
    eflags: int = 0
    esp: int = 0
    ss: int = 0
    padding6: int = 0

    FORMAT: ClassVar[struct.Struct] = struct.Struct("<8I8H3I2H2I2H")
    SIZE: ClassVar[int] = FORMAT.size

    def to_bytes(self) -> bytes:
        return self.FORMAT.pack(*astuple(self))

    @classmethod
    def from_bytes(cls, data: bytes) -> "TrapFrame":
        if len(data) < cls.SIZE:
            raise ValueError(f"trap frame needs {cls.SIZE} bytes, got {len(data)}")
        return cls(*cls.FORMAT.unpack_from(data, 0))


def build_idt(vectors: Sequence[int]) -> list[GateDescriptor]:
    """Interrupt gates for all 256 vectors; the system call vector is a user trap gate."""
    if len(vectors) != NIDT:
        raise ValueError(f"need {NIDT} vectors, got {len(vectors)}")
    idt = [GateDescriptor.make(False, SEG_KCODE << 3, vector, 0) for vector in vectors]
    idt[T_SYSCALL] = GateDescriptor.make(True, SEG_KCODE << 3, vectors[T_SYSCALL], DPL_USER)
    return idt


class TickClock:
    """Count of timer interrupts since start, with sleepers woken on each tick."""

    _POLL = 0.05

    def __init__(self) -> None:
        self._ticks = 0
        self._cond = threading.Condition()

    def tick(self) -> None:
        with self._cond:
            self._ticks += 1
            self._cond.notify_all()

    def uptime(self) -> int:
        with self._cond:
            return self._ticks

    def sleep(self, n: int, killed: Callable[[], bool]) -> bool:
        """Wait for n ticks; return False if killed() became true first."""
        with self._cond:
            start = self._ticks
            while self._ticks - start < n:
                if killed():
                    return False
                self._cond.wait(self._POLL)
            return True


class ProcessExit(Exception):
    """The current process must exit."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"process {pid} exits")
        self.pid = pid


class TrapHandler:
    """Dispatches traps to system calls, the clock and device interrupt handlers."""

    def __init__(
        self,
        clock: TickClock,
        syscall: Callable[[Process, int], int],
        devices: Mapping[int, Callable[[], None]] | None = None,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self.clock = clock
        self.syscall = syscall
        self.devices = dict(devices or {})
        self.log = log if log is not None else _log.warning
        self.eoi_count = 0

    def _eoi(self) -> None:
        self.eoi_count += 1

    def _device(self, irq: int) -> None:
        handler = self.devices.get(irq)
        if handler is not None:
            handler()

    def handle(self, tf: TrapFrame, proc: Process | None, cpuid: int) -> bool:
        """Handle one trap; return True if the process should now yield the CPU.

        Raises ProcessExit when the process must exit and KernelPanic on a kernel fault.
        """
        if tf.trapno == T_SYSCALL:
            if proc.killed:
                raise ProcessExit(proc.pid)
            num = tf.eax - (1 << 32) if tf.eax & 0x80000000 else tf.eax
            tf.eax = self.syscall(proc, num) & _U32
            if proc.killed:
                raise ProcessExit(proc.pid)
            return False

        irq = tf.trapno - T_IRQ0
        user_mode = (tf.cs & 3) == DPL_USER
        if irq == IRQ_TIMER:
            if cpuid == 0:
                self.clock.tick()
            self._eoi()
        elif irq in (IRQ_IDE, IRQ_KBD, IRQ_COM1):
            self._device(irq)
            self._eoi()
        elif irq == IRQ_IDE + 1:
            pass  # spurious secondary IDE interrupts
        elif irq in (7, IRQ_SPURIOUS):
            self.log(f"cpu{cpuid}: spurious interrupt at {tf.cs:x}:{tf.eip:x}")
            self._eoi()
        else:
            if proc is None or (tf.cs & 3) == 0:
                self.log(f"unexpected trap {tf.trapno} from cpu {cpuid} eip {tf.eip:x}")
                raise KernelPanic("trap")
            self.log(
                f"pid {proc.pid} {proc.name}: trap {tf.trapno} err {tf.err} "
                f"on cpu {cpuid} eip 0x{tf.eip:x}--kill proc"
            )
            proc.killed = True

        if proc is not None and proc.killed and user_mode:
            raise ProcessExit(proc.pid)
        return proc is not None and irq == IRQ_TIMER