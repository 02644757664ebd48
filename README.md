# xvkit

`xvkit` models the core pieces of a small Unix-like teaching kernel for
32-bit x86 in plain Python. Each piece works and can be tested on its own,
with no emulator and no dependencies beyond the standard library.

## What is inside

| Module | What it covers |
| --- | --- |
| `xvkit.mmu` | Paging arithmetic (`pdx`, `ptx`, `pgaddr`, `pgroundup`, `pgrounddown`, `pte_addr`, `pte_flags`), kernel address translation (`v2p`, `p2v`), the memory layout and kernel limits as constants, and 8-byte segment and gate descriptors (`SegmentDescriptor`, `GateDescriptor`, `seg_asm`, `seg_nullasm`) |
| `xvkit.elf` | Reading and writing 32-bit ELF file and program headers (`ElfHeader`, `ProgramHeader`, `read_program_headers`); `ElfError` on truncated data or a bad magic number |
| `xvkit.cstring` | NUL-terminated string and memory routines over bytes: `memset`, `memcmp`, `memmove`, `strlen`, `strcmp`, `strncmp`, `strncpy`, `safestrcpy`, `strchr`, `atoi`, `gets` |
| `xvkit.locks` | Per-CPU interrupt nesting (`Cpu.pushcli`, `Cpu.popcli`), `SpinLock` and `SleepLock`; `KernelPanic` on misuse such as acquiring a lock twice or releasing one not held |
| `xvkit.umalloc` | A first-fit, address-ordered free-list allocator (`Allocator`) that grows a simulated `Heap` with `sbrk`; `MemoryError` when the heap limit is reached |
| `xvkit.wc` | Line, word and byte counts (`Counts`, `count`, `wc`) and the `xvkit-wc` command |
| `xvkit.syscall` | System call numbers (`Syscall`), argument fetching from a process image (`ProcessMemory.fetchint`, `fetchstr`, `argint`, `argptr`, `argstr`), the calling `Process`, and a `Dispatcher` that returns -1 for unknown numbers or a `SyscallError` |
| `xvkit.shell` | The shell tokenizer (`gettoken`, `peek`) and recursive-descent parser (`parsecmd`) producing `ExecCmd`, `RedirCmd`, `PipeCmd`, `ListCmd` and `BackCmd` trees; `getcmd` prompts and reads one line; `ShellSyntaxError` on bad input |
| `xvkit.vm` | Two-level page tables kept inside a simulated `PhysicalMemory`: `walkpgdir`, `mappages`, `setupkvm`, `inituvm`, `allocuvm`, `deallocuvm`, `freevm`, `clearpteu`, `copyuvm`, `uva2ka`, `copyout` |
| `xvkit.uart` | A COM1 serial port driver (`Uart`) working through any object with `inb` and `outb` methods |
| `xvkit.trap` | Trap frames (`TrapFrame`), the interrupt descriptor table (`build_idt`), the tick clock (`TickClock`) and trap dispatch (`TrapHandler`, raising `ProcessExit` or `KernelPanic`) |
| `xvkit.sysproc` | Process system calls: `sys_getpid`, `sys_kill`, `sys_sbrk`, `sys_sleep`, `sys_uptime` |
| `xvkit.sysfile` | Per-process descriptor tables (`FileDescriptorTable`), open-mode decoding (`open_access`) and exec argument fetching (`fetch_exec_argv`) |
| `xvkit.stressfs` | A file stress run (`stress`) and the `xvkit-stressfs` command |

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Examples

Splitting a virtual address into its paging parts:

```python
from xvkit.mmu import pdx, ptx, pgroundup

va = 0x80101234
pdx(va)             # page directory index
ptx(va)             # page table index
pgroundup(0x1001)   # 0x2000
```

Parsing a shell command line:

```python
from xvkit.shell import parsecmd, ShellSyntaxError

tree = parsecmd("cat < in | wc > out; echo done &\n")

try:
    parsecmd("echo )")
except ShellSyntaxError as err:
    print(err)      # leftovers: )
```

Counting lines, words and bytes:

```python
from xvkit.wc import count

counts = count(b"hello world\nsecond line\n")
# Counts(lines=2, words=4, chars=24)
```

Allocating from the free list:

```python
from xvkit.umalloc import Heap, Allocator

alloc = Allocator(Heap(1 << 20))
addr = alloc.malloc(100)
alloc.free(addr)
alloc.free_blocks()   # [(header address, size in bytes), ...]
```

Building user page tables in simulated memory:

```python
from xvkit.mmu import PGSIZE, KERNLINK
from xvkit.vm import PhysicalMemory, setupkvm, allocuvm, copyout

mem = PhysicalMemory(0x200000, 0x400000)
pgdir = setupkvm(mem, KERNLINK + 0x100000)
allocuvm(mem, pgdir, 0, 2 * PGSIZE)
copyout(mem, pgdir, 0x10, b"hello")
```

## Commands

`xvkit-wc` prints the line, word and byte counts of each file named on the
command line, followed by its name, or of standard input when no file is
given. It stops with status 1 at a file it cannot open.

```
xvkit-wc README.md
```

`xvkit-stressfs` runs five workers at once; each writes twenty 512-byte
blocks to its own file `stressfs0` … `stressfs4` and reads them back. The
files go in the directory given as the first argument, or in the current
directory.

```
xvkit-stressfs /tmp
```

## What it does not do

- There is no file system: no inodes, directories, block cache or log.
  `xvkit.sysfile` keeps descriptor tables and checks arguments, but nothing
  opens, links or unlinks files.
- There are no processes or scheduler: no fork, exec, wait or exit.
  `TrapHandler.handle` reports that a process should yield or exit; acting
  on it is up to the caller.
- The shell only reads and parses command lines; it does not run them.
- There is no console, keyboard or disk driver; `Uart` talks to whatever
  port object it is given.