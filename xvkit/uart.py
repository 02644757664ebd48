"""Driver for an 8250-style serial port reached through I/O ports."""

from __future__ import annotations

import time
from typing import Callable, Protocol

COM1 = 0x3F8
IRQ_COM1 = 4

_LSR = COM1 + 5
_LSR_DATA_READY = 0x01
_LSR_TX_EMPTY = 0x20


class _Ports(Protocol):
    def inb(self, port: int) -> int: ...

    def outb(self, port: int, value: int) -> None: ...


class Uart:
    """The COM1 serial port; routing its interrupt (IRQ_COM1) is left to the caller."""

    BANNER = b"xvkit...\n"

    def __init__(self, ports: _Ports) -> None:
        self.ports = ports
        self.present = False

    def init(self) -> bool:
        """Program 9600 baud 8N1 with receive interrupts; return whether a port answered."""
        out = self.ports.outb
        out(COM1 + 2, 0)  # FIFO off
        out(COM1 + 3, 0x80)  # unlock divisor
        out(COM1 + 0, 115200 // 9600)
        out(COM1 + 1, 0)
        out(COM1 + 3, 0x03)  # lock divisor, 8 data bits
        out(COM1 + 4, 0)
        out(COM1 + 1, 0x01)  # receive interrupts
        if self.ports.inb(_LSR) == 0xFF:
            return False
        self.present = True
        self.ports.inb(COM1 + 2)
        self.ports.inb(COM1 + 0)
        for c in self.BANNER:
            self.putc(c)
        return True

    def putc(self, c: int | str) -> None:
        """Send one byte, waiting briefly for the transmitter."""
        if isinstance(c, str):
            c = ord(c)
        if not self.present:
            return
        for _ in range(128):
            if self.ports.inb(_LSR) & _LSR_TX_EMPTY:
                break
            time.sleep(10e-6)
        self.ports.outb(COM1, c & 0xFF)

    def getc(self) -> int | None:
        """The next received byte, or None if there is none."""
        if not self.present:
            return None
        if not self.ports.inb(_LSR) & _LSR_DATA_READY:
            return None
        return self.ports.inb(COM1)

    def intr(self, consume: Callable[[Callable[[], int | None]], None]) -> None:
        """Handle an interrupt by handing getc to the console's input routine."""
        consume(self.getc)