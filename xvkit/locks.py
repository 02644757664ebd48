"""Spin locks with interrupt nesting per CPU, and sleeping locks."""

from __future__ import annotations

import threading
import traceback

_MAX_PCS = 10


class KernelPanic(RuntimeError):
    """An unrecoverable kernel invariant was violated."""


class Cpu:
    """A processor's interrupt state and cli nesting depth."""

    def __init__(self, ident: int) -> None:
        self.ident = ident
        self.ncli = 0
        self.intena = False
        self.interrupts_enabled = True

    def pushcli(self) -> None:
        """Disable interrupts; matched by popcli."""
        enabled = self.interrupts_enabled
        self.interrupts_enabled = False
        if self.ncli == 0:
            self.intena = enabled
        self.ncli += 1

    def popcli(self) -> None:
        """Undo one pushcli, re-enabling interrupts at the outermost level if they were on."""
        if self.interrupts_enabled:
            raise KernelPanic("popcli - interruptible")
        self.ncli -= 1
        if self.ncli < 0:
            raise KernelPanic("popcli")
        if self.ncli == 0 and self.intena:
            self.interrupts_enabled = True

    def __repr__(self) -> str:
        return f"Cpu({self.ident})"


def _caller_pcs() -> tuple[tuple[str, int], ...]:
    frames = traceback.extract_stack()[:-2][-_MAX_PCS:]
    return tuple((frame.filename, frame.lineno) for frame in reversed(frames))


class SpinLock:
    """A mutual exclusion lock held by one CPU with interrupts disabled."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.locked = False
        self.cpu: Cpu | None = None
        self.pcs: tuple[tuple[str, int], ...] = ()
        self._atomic = threading.Lock()

    def acquire(self, cpu: Cpu) -> None:
        cpu.pushcli()
        if self.holding(cpu):
            raise KernelPanic("acquire")
        self._atomic.acquire()
        self.locked = True
        self.cpu = cpu
        self.pcs = _caller_pcs()

    def release(self, cpu: Cpu) -> None:
        if not self.holding(cpu):
            raise KernelPanic("release")
        self.pcs = ()
        self.cpu = None
        self.locked = False
        self._atomic.release()
        cpu.popcli()

    def holding(self, cpu: Cpu) -> bool:
        """Whether this CPU holds the lock."""
        cpu.pushcli()
        try:
            return self.locked and self.cpu is cpu
        finally:
            cpu.popcli()


class SleepLock:
    """A long-term lock; waiters block instead of spinning."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.locked = False
        self.pid = 0
        self._cond = threading.Condition()

    def acquire(self, pid: int) -> None:
        with self._cond:
            while self.locked:
                self._cond.wait()
            self.locked = True
            self.pid = pid

    def release(self) -> None:
        with self._cond:
            self.locked = False
            self.pid = 0
            self._cond.notify_all()

    def holding(self, pid: int) -> bool:
        """Whether process pid holds the lock."""
        with self._cond:
            return self.locked and self.pid == pid