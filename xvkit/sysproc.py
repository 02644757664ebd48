"""Process-related system calls: pid, kill, sbrk, sleep and uptime."""

from __future__ import annotations

from typing import Callable

from xvkit.syscall import Process, SyscallError
from xvkit.trap import TickClock


def sys_getpid(proc: Process) -> int:
    """The calling process's id."""
    return proc.pid


def sys_kill(proc: Process, kill: Callable[[int], int]) -> int:
    """Kill the process named by the first argument; return what kill returns."""
    return kill(proc.memory.argint(0))


def sys_sbrk(proc: Process, growproc: Callable[[int], object]) -> int:
    """Grow or shrink the process by the first argument; return the old size.

    growproc raises MemoryError when the size cannot change.
    """
    n = proc.memory.argint(0)
    addr = proc.memory.sz
    try:
        growproc(n)
    except MemoryError as exc:
        raise SyscallError(f"cannot grow process {proc.pid} by {n}") from exc
    return addr


def sys_sleep(proc: Process, clock: TickClock) -> int:
    """Sleep for the number of ticks in the first argument.

    Raises SyscallError if the process is killed while it sleeps.
    """
    n = proc.memory.argint(0)
    if not clock.sleep(n, lambda: proc.killed):
        raise SyscallError(f"process {proc.pid} killed while sleeping")
    return 0


def sys_uptime(clock: TickClock) -> int:
    """Number of clock ticks since start."""
    return clock.uptime()