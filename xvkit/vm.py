"""Two-level x86 page tables kept in a simulated physical memory."""

from __future__ import annotations

from xvkit.locks import KernelPanic
from xvkit.mmu import (
    DEVSPACE,
    EXTMEM,
    KERNBASE,
    KERNLINK,
    NPDENTRIES,
    PDXSHIFT,
    PGSIZE,
    PHYSTOP,
    PTE_P,
    PTE_U,
    PTE_W,
    p2v,
    pdx,
    pgrounddown,
    pgroundup,
    pte_addr,
    pte_flags,
    ptx,
    v2p,
)

_U32 = 0xFFFFFFFF
_JUNK = 0x01


class PhysicalMemory:
    """A range of physical page frames with a free-page allocator."""

    def __init__(self, phys_start: int, phys_end: int) -> None:
        if phys_start <= 0 or phys_start % PGSIZE or phys_end % PGSIZE:
            raise ValueError("physical range must be positive and page aligned")
        if phys_end < phys_start:
            raise ValueError("physical range ends before it starts")
        self.phys_start = phys_start
        self.phys_end = phys_end
        self._ram = bytearray([_JUNK]) * (phys_end - phys_start)
        self._free = list(range(phys_end - PGSIZE, phys_start - 1, -PGSIZE))
        self._free_set = set(self._free)

    def kalloc(self) -> int:
        """Take one free page and return its physical address."""
        if not self._free:
            raise MemoryError("out of physical pages")
        pa = self._free.pop()
        self._free_set.discard(pa)
        return pa

    def kfree(self, pa: int) -> None:
        """Return a page to the free list, filling it with junk."""
        if (
            pa % PGSIZE
            or not self.phys_start <= pa < self.phys_end
            or pa in self._free_set
        ):
            raise KernelPanic("kfree")
        self.write(pa, bytes([_JUNK]) * PGSIZE)
        self._free.append(pa)
        self._free_set.add(pa)

    def _offset(self, pa: int, n: int) -> int:
        if n < 0 or pa < self.phys_start or pa + n > self.phys_end:
            raise ValueError(f"physical range {pa:#x}+{n} outside memory")
        return pa - self.phys_start

    def read(self, pa: int, n: int) -> bytes:
        start = self._offset(pa, n)
        return bytes(self._ram[start:start + n])

    def write(self, pa: int, data: bytes) -> None:
        start = self._offset(pa, len(data))
        self._ram[start:start + len(data)] = data

    def read_word(self, pa: int) -> int:
        return int.from_bytes(self.read(pa, 4), "little")

    def write_word(self, pa: int, value: int) -> None:
        self.write(pa, (value & _U32).to_bytes(4, "little"))

    def free_pages(self) -> int:
        """Number of pages on the free list."""
        return len(self._free)


def walkpgdir(mem: PhysicalMemory, pgdir: int, va: int, alloc: bool) -> int | None:
    """Physical address of the PTE for va, creating its page table if alloc is set."""
    pde = pgdir + 4 * pdx(va)
    entry = mem.read_word(pde)
    if entry & PTE_P:
        pgtab = pte_addr(entry)
    else:
        if not alloc:
            return None
        pgtab = mem.kalloc()
        mem.write(pgtab, bytes(PGSIZE))
        mem.write_word(pde, pgtab | PTE_P | PTE_W | PTE_U)
    return pgtab + 4 * ptx(va)


def mappages(mem: PhysicalMemory, pgdir: int, va: int, size: int, pa: int, perm: int) -> None:
    """Map the pages covering va..va+size to physical pages from pa."""
    if size <= 0:
        raise ValueError("mapping size must be positive")
    a = pgrounddown(va)
    last = pgrounddown(va + size - 1)
    while True:
        pte = walkpgdir(mem, pgdir, a, True)
        if mem.read_word(pte) & PTE_P:
            raise KernelPanic("remap")
        mem.write_word(pte, pa | perm | PTE_P)
        if a == last:
            break
        a = (a + PGSIZE) & _U32
        pa = (pa + PGSIZE) & _U32


def _kmap(data: int) -> tuple[tuple[int, int, int, int], ...]:
    return (
        (KERNBASE, 0, EXTMEM, PTE_W),
        (KERNLINK, v2p(KERNLINK), v2p(data), 0),
        (data, v2p(data), PHYSTOP, PTE_W),
        (DEVSPACE, DEVSPACE, 0, PTE_W),
    )


def setupkvm(mem: PhysicalMemory, data: int) -> int:
    """A new page directory holding the kernel mappings; data is where kernel data starts."""
    pgdir = mem.kalloc()
    mem.write(pgdir, bytes(PGSIZE))
    if p2v(PHYSTOP) > DEVSPACE:
        raise KernelPanic("PHYSTOP too high")
    try:
        for virt, phys_start, phys_end, perm in _kmap(data):
            mappages(mem, pgdir, virt, (phys_end - phys_start) & _U32, phys_start, perm)
    except MemoryError:
        freevm(mem, pgdir)
        raise
    return pgdir


def inituvm(mem: PhysicalMemory, pgdir: int, init: bytes) -> None:
    """Load init, smaller than a page, at user address 0."""
    if len(init) >= PGSIZE:
        raise KernelPanic("inituvm: more than a page")
    page = mem.kalloc()
    mem.write(page, bytes(PGSIZE))
    mappages(mem, pgdir, 0, PGSIZE, page, PTE_W | PTE_U)
    mem.write(page, bytes(init))


def allocuvm(mem: PhysicalMemory, pgdir: int, oldsz: int, newsz: int) -> int:
    """Grow user memory from oldsz to newsz with zeroed pages; return the new size."""
    if newsz >= KERNBASE:
        raise MemoryError("size reaches kernel space")
    if newsz < oldsz:
        return oldsz
    a = pgroundup(oldsz)
    while a < newsz:
        try:
            page = mem.kalloc()
        except MemoryError:
            deallocuvm(mem, pgdir, newsz, oldsz)
            raise MemoryError("allocuvm out of memory") from None
        mem.write(page, bytes(PGSIZE))
        try:
            mappages(mem, pgdir, a, PGSIZE, page, PTE_W | PTE_U)
        except MemoryError:
            deallocuvm(mem, pgdir, newsz, oldsz)
            mem.kfree(page)
            raise MemoryError("allocuvm out of memory (2)") from None
        a += PGSIZE
    return newsz


def deallocuvm(mem: PhysicalMemory, pgdir: int, oldsz: int, newsz: int) -> int:
    """Free user pages to shrink from oldsz to newsz; return the resulting size."""
    if newsz >= oldsz:
        return oldsz
    a = pgroundup(newsz)
    while a < oldsz:
        pte = walkpgdir(mem, pgdir, a, False)
        if pte is None:
            a = ((pdx(a) + 1) << PDXSHIFT) - PGSIZE
        else:
            entry = mem.read_word(pte)
            if entry & PTE_P:
                pa = pte_addr(entry)
                if pa == 0:
                    raise KernelPanic("kfree")
                mem.kfree(pa)
                mem.write_word(pte, 0)
        a += PGSIZE
    return newsz


def freevm(mem: PhysicalMemory, pgdir: int | None) -> None:
    """Free a page directory, its page tables and all user pages."""
    if pgdir is None:
        raise KernelPanic("freevm: no pgdir")
    deallocuvm(mem, pgdir, KERNBASE, 0)
    for i in range(NPDENTRIES):
        entry = mem.read_word(pgdir + 4 * i)
        if entry & PTE_P:
            mem.kfree(pte_addr(entry))
    mem.kfree(pgdir)


def clearpteu(mem: PhysicalMemory, pgdir: int, uva: int) -> None:
    """Make the page at uva inaccessible to user code."""
    pte = walkpgdir(mem, pgdir, uva, False)
    if pte is None:
        raise KernelPanic("clearpteu")
    mem.write_word(pte, mem.read_word(pte) & ~PTE_U)


def copyuvm(mem: PhysicalMemory, pgdir: int, sz: int, data: int) -> int:
    """A new page directory with a private copy of the first sz bytes of user memory."""
    d = setupkvm(mem, data)
    try:
        for i in range(0, sz, PGSIZE):
            pte = walkpgdir(mem, pgdir, i, False)
            if pte is None:
                raise KernelPanic("copyuvm: pte should exist")
            entry = mem.read_word(pte)
            if not entry & PTE_P:
                raise KernelPanic("copyuvm: page not present")
            pa = pte_addr(entry)
            page = mem.kalloc()
            mem.write(page, mem.read(pa, PGSIZE))
            try:
                mappages(mem, d, i, PGSIZE, page, pte_flags(entry))
            except MemoryError:
                mem.kfree(page)
                raise
    except MemoryError:
        freevm(mem, d)
        raise
    return d


def uva2ka(mem: PhysicalMemory, pgdir: int, uva: int) -> int | None:
    """Kernel address of the user page at uva, or None if it is not user-accessible."""
    pte = walkpgdir(mem, pgdir, uva, False)
    if pte is None:
        return None
    entry = mem.read_word(pte)
    if not entry & PTE_P or not entry & PTE_U:
        return None
    return p2v(pte_addr(entry))


def copyout(mem: PhysicalMemory, pgdir: int, va: int, data: bytes) -> None:
    """Copy data to user address va in pgdir."""
    view = memoryview(bytes(data))
    while view:
        va0 = pgrounddown(va)
        ka = uva2ka(mem, pgdir, va0)
        if ka is None:
            raise ValueError(f"user address {va:#x} is not mapped")
        n = min(PGSIZE - (va - va0), len(view))
        mem.write(v2p(ka) + (va - va0), view[:n].tobytes())
        view = view[n:]
        va = va0 + PGSIZE