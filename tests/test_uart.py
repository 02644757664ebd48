from xvkit.uart import COM1, Uart


class FakePorts:
    def __init__(self, lsr=0x20, rx=()):
        self.writes = []
        self.lsr = lsr
        self.rx = list(rx)

    def inb(self, port):
        if port == COM1 + 5:
            if self.lsr == 0xFF:
                return 0xFF
            return self.lsr | (0x01 if self.rx else 0)
        if port == COM1:
            return self.rx.pop(0) if self.rx else 0
        return 0

    def outb(self, port, value):
        self.writes.append((port, value))


def _sent(ports):
    return bytes(v for p, v in ports.writes if p == COM1)


def test_absent_port():
    ports = FakePorts(lsr=0xFF)
    uart = Uart(ports)
    assert uart.init() is False
    assert uart.present is False
    count = len(ports.writes)
    uart.putc("x")
    assert len(ports.writes) == count
    assert uart.getc() is None


def test_init_programs_divisor_and_announces():
    ports = FakePorts()
    uart = Uart(ports)
    assert uart.init() is True
    assert uart.present is True
    unlock = ports.writes.index((COM1 + 3, 0x80))
    assert ports.writes[unlock + 1] == (COM1, 115200 // 9600)
    assert (COM1 + 1, 0x01) in ports.writes
    assert _sent(ports)[1:] == Uart.BANNER


def test_putc_sends_bytes():
    ports = FakePorts()
    uart = Uart(ports)
    uart.init()
    ports.writes.clear()
    uart.putc("h")
    uart.putc(ord("i"))
    assert _sent(ports) == b"hi"


def test_putc_gives_up_waiting():
    ports = FakePorts()
    uart = Uart(ports)
    uart.init()
    ports.lsr = 0
    ports.writes.clear()
    uart.putc("z")
    assert ports.writes == [(COM1, ord("z"))]


def test_getc_returns_received_bytes():
    ports = FakePorts(rx=b"ok")
    uart = Uart(ports)
    uart.present = True
    assert uart.getc() == ord("o")
    assert uart.getc() == ord("k")
    assert uart.getc() is None


def test_intr_hands_getc_to_consumer():
    ports = FakePorts(rx=b"ls\n")
    uart = Uart(ports)
    uart.present = True
    received = []
    uart.intr(lambda getc: received.extend(iter(getc, None)))
    assert bytes(received) == b"ls\n"