"""A first-fit free-list allocator that grows a simulated heap with sbrk."""

from __future__ import annotations

HEADER_SIZE = 8
MIN_UNITS = 4096

_BASE = -1


class Heap:
    """A process data segment whose break moves with sbrk, up to a limit."""

    def __init__(self, limit: int) -> None:
        if limit < 0:
            raise ValueError("heap limit must not be negative")
        self.limit = limit
        self.start = 0
        self.brk = 0

    def sbrk(self, n: int) -> int:
        """Move the break by n bytes and return the old break."""
        new = self.brk + n
        if new < self.start or new > self.limit:
            raise MemoryError(f"cannot move break from {self.brk} by {n}")
        old = self.brk
        self.brk = new
        return old


class Allocator:
    """Memory allocator keeping an address-ordered circular free list."""

    def __init__(self, heap: Heap) -> None:
        self.heap = heap
        self._next: dict[int, int] = {}
        self._size: dict[int, int] = {}
        self._used: set[int] = set()
        self._freep: int | None = None

    def malloc(self, nbytes: int) -> int:
        """Allocate nbytes and return the address of the usable memory."""
        if nbytes < 0:
            raise ValueError("cannot allocate a negative size")
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        if self._freep is None:
            self._next[_BASE] = _BASE
            self._size[_BASE] = 0
            self._freep = _BASE
        prevp = self._freep
        p = self._next[prevp]
        while True:
            size = self._size[p]
            if size >= nunits:
                if size == nunits:
                    self._next[prevp] = self._next.pop(p)
                else:
                    self._size[p] = size - nunits
                    p += size - nunits
                    self._size[p] = nunits
                self._freep = prevp
                self._used.add(p)
                return (p + 1) * HEADER_SIZE
            if p == self._freep:
                grown = self._morecore(nunits)
                if grown is None:
                    raise MemoryError(f"cannot allocate {nbytes} bytes")
                p = grown
            prevp, p = p, self._next[p]

    def free(self, addr: int) -> None:
        """Return a block obtained from malloc to the free list."""
        bp = addr // HEADER_SIZE - 1
        if addr % HEADER_SIZE or bp not in self._used:
            raise ValueError(f"address {addr} was not allocated")
        self._used.discard(bp)
        self._insert(bp)

    def free_blocks(self) -> list[tuple[int, int]]:
        """Free blocks as (header address, size in bytes), in address order."""
        if self._freep is None:
            return []
        blocks = []
        p = self._next[_BASE]
        while p != _BASE:
            blocks.append((p * HEADER_SIZE, self._size[p] * HEADER_SIZE))
            p = self._next[p]
        return blocks

    def _insert(self, bp: int) -> None:
        nxt, size = self._next, self._size
        p = self._freep
        while not (p < bp < nxt[p]):
            if p >= nxt[p] and (bp > p or bp < nxt[p]):
                break
            p = nxt[p]
        q = nxt[p]
        if bp + size[bp] == q:
            size[bp] += size.pop(q)
            nxt[bp] = nxt.pop(q)
        else:
            nxt[bp] = q
        if p + size[p] == bp:
            size[p] += size.pop(bp)
            nxt[p] = nxt.pop(bp)
        else:
            nxt[p] = bp
        self._freep = p

    def _morecore(self, nunits: int) -> int | None:
        nunits = max(nunits, MIN_UNITS)
        try:
            misalign = self.heap.sbrk(0) % HEADER_SIZE
            if misalign:
                self.heap.sbrk(HEADER_SIZE - misalign)
            start = self.heap.sbrk(nunits * HEADER_SIZE)
        except MemoryError:
            return None
        hp = start // HEADER_SIZE
        self._size[hp] = nunits
        self._insert(hp)
        return self._freep