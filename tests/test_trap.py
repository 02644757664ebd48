import threading
import time

import pytest

from xvkit.locks import KernelPanic
from xvkit.mmu import DPL_USER, SEG_KCODE, SEG_UCODE, STS_IG32, STS_TG32
from xvkit.syscall import Dispatcher, Process, ProcessMemory, Syscall
from xvkit.trap import (
    IRQ_COM1,
    IRQ_IDE,
    IRQ_KBD,
    IRQ_SPURIOUS,
    IRQ_TIMER,
    T_IRQ0,
    T_PGFLT,
    T_SYSCALL,
    ProcessExit,
    TickClock,
    TrapFrame,
    TrapHandler,
    build_idt,
)

USER_CS = (SEG_UCODE << 3) | DPL_USER
KERNEL_CS = SEG_KCODE << 3


def make_proc():
    return Process(pid=3, name="init", memory=ProcessMemory(b"", 0))


def make_handler(syscall=lambda proc, num: 0, devices=None):
    messages = []
    handler = TrapHandler(TickClock(), syscall, devices, messages.append)
    return handler, messages


def test_trapframe_round_trip():
    tf = TrapFrame(eax=7, trapno=T_SYSCALL, cs=USER_CS, eip=0x1000, esp=0x2FF0, ss=0x23)
    data = tf.to_bytes()
    assert len(data) == TrapFrame.SIZE
    assert TrapFrame.from_bytes(data) == tf
    with pytest.raises(ValueError):
        TrapFrame.from_bytes(data[:-1])


def test_build_idt():
    vectors = [0x80100000 + 4 * i for i in range(256)]
    idt = build_idt(vectors)
    assert len(idt) == 256
    gate = idt[T_SYSCALL]
    assert gate.type == STS_TG32
    assert gate.dpl == DPL_USER
    for i in (0, T_PGFLT, T_IRQ0, 255):
        assert idt[i].type == STS_IG32
        assert idt[i].dpl == 0
        assert idt[i].cs == KERNEL_CS
        assert idt[i].off_15_0 | (idt[i].off_31_16 << 16) == vectors[i]
    with pytest.raises(ValueError):
        build_idt(vectors[:10])


def test_clock_ticks_and_sleep():
    clock = TickClock()
    clock.tick()
    clock.tick()
    assert clock.uptime() == 2
    assert clock.sleep(0, lambda: False) is True
    assert clock.sleep(5, lambda: True) is False


def test_clock_sleep_waits_for_ticks():
    clock = TickClock()

    def ticker():
        for _ in range(5):
            time.sleep(0.01)
            clock.tick()

    thread = threading.Thread(target=ticker)
    thread.start()
    assert clock.sleep(3, lambda: False) is True
    assert clock.uptime() >= 3
    thread.join()


def test_syscall_result_goes_to_eax():
    calls = []
    handler, _ = make_handler(lambda proc, num: calls.append(num) or 42)
    tf = TrapFrame(trapno=T_SYSCALL, eax=Syscall.GETPID, cs=USER_CS)
    assert handler.handle(tf, make_proc(), 0) is False
    assert tf.eax == 42
    assert calls == [Syscall.GETPID]


def test_syscall_through_dispatcher():
    dispatcher = Dispatcher({Syscall.GETPID: lambda p: p.pid})
    handler, _ = make_handler(dispatcher.dispatch)
    proc = make_proc()
    tf = TrapFrame(trapno=T_SYSCALL, eax=Syscall.GETPID, cs=USER_CS)
    handler.handle(tf, proc, 0)
    assert tf.eax == proc.pid
    tf = TrapFrame(trapno=T_SYSCALL, eax=99, cs=USER_CS)
    handler.handle(tf, proc, 0)
    assert tf.eax == 0xFFFFFFFF


def test_killed_process_exits_before_syscall():
    calls = []
    handler, _ = make_handler(lambda proc, num: calls.append(num) or 0)
    proc = make_proc()
    proc.killed = True
    with pytest.raises(ProcessExit) as info:
        handler.handle(TrapFrame(trapno=T_SYSCALL, cs=USER_CS), proc, 0)
    assert info.value.pid == proc.pid
    assert calls == []


def test_timer_ticks_only_on_cpu0():
    handler, _ = make_handler()
    tf = TrapFrame(trapno=T_IRQ0 + IRQ_TIMER, cs=USER_CS)
    assert handler.handle(tf, make_proc(), 0) is True
    assert handler.clock.uptime() == 1
    assert handler.handle(tf, None, 1) is False
    assert handler.clock.uptime() == 1
    assert handler.eoi_count == 2


def test_device_interrupts():
    seen = []
    devices = {irq: (lambda irq=irq: seen.append(irq)) for irq in (IRQ_KBD, IRQ_COM1, IRQ_IDE)}
    handler, _ = make_handler(devices=devices)
    for irq in (IRQ_KBD, IRQ_COM1, IRQ_IDE):
        assert handler.handle(TrapFrame(trapno=T_IRQ0 + irq), None, 0) is False
    handler.handle(TrapFrame(trapno=T_IRQ0 + IRQ_IDE + 1), None, 0)
    assert seen == [IRQ_KBD, IRQ_COM1, IRQ_IDE]
    assert handler.eoi_count == 3


def test_spurious_interrupt_is_logged():
    handler, messages = make_handler()
    handler.handle(TrapFrame(trapno=T_IRQ0 + IRQ_SPURIOUS, cs=KERNEL_CS), None, 1)
    assert len(messages) == 1
    assert "spurious" in messages[0]
    assert handler.eoi_count == 1


def test_kernel_fault_panics():
    handler, messages = make_handler()
    with pytest.raises(KernelPanic):
        handler.handle(TrapFrame(trapno=T_PGFLT, cs=KERNEL_CS), make_proc(), 0)
    with pytest.raises(KernelPanic):
        handler.handle(TrapFrame(trapno=T_PGFLT, cs=USER_CS), None, 0)
    assert len(messages) == 2


def test_user_fault_kills_process():
    handler, messages = make_handler()
    proc = make_proc()
    with pytest.raises(ProcessExit):
        handler.handle(TrapFrame(trapno=T_PGFLT, cs=USER_CS, err=6), proc, 0)
    assert proc.killed is True
    assert "kill proc" in messages[0]


def test_killed_process_exits_on_timer_in_user_mode():
    handler, _ = make_handler()
    proc = make_proc()
    proc.killed = True
    with pytest.raises(ProcessExit):
        handler.handle(TrapFrame(trapno=T_IRQ0 + IRQ_TIMER, cs=USER_CS), proc, 0)
    assert handler.handle(TrapFrame(trapno=T_IRQ0 + IRQ_TIMER, cs=KERNEL_CS), proc, 0) is True