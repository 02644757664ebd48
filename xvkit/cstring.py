"""NUL-terminated string and raw memory helpers over bytes."""

from __future__ import annotations

from itertools import islice, takewhile
from typing import BinaryIO


def _cstr(s: bytes) -> bytes:
    data = bytes(s)
    end = data.find(0)
    return data if end < 0 else data[:end]


def _check_range(buf, offset: int, n: int) -> None:
    if n < 0 or offset < 0 or offset + n > len(buf):
        raise ValueError(f"range {offset}..{offset + n} outside buffer of {len(buf)} bytes")


def memset(buf: bytearray, c: int, n: int, offset: int = 0) -> bytearray:
    """Fill n bytes of buf from offset with the low byte of c."""
    _check_range(buf, offset, n)
    buf[offset:offset + n] = bytes([c & 0xFF]) * n
    return buf


def memcmp(a: bytes, b: bytes, n: int) -> int:
    """Difference of the first differing byte among the first n, or 0."""
    if n > len(a) or n > len(b):
        raise ValueError("n exceeds buffer length")
    for x, y in zip(a[:n], b[:n]):
        if x != y:
            return x - y
    return 0


def memmove(buf: bytearray, dst: int, src: int, n: int) -> bytearray:
    """Copy n bytes within buf from src to dst; overlapping ranges are safe."""
    _check_range(buf, dst, n)
    _check_range(buf, src, n)
    buf[dst:dst + n] = buf[src:src + n]
    return buf


def strlen(s: bytes) -> int:
    """Number of bytes before the first NUL (or the whole buffer)."""
    return len(_cstr(s))


def strcmp(p: bytes, q: bytes) -> int:
    """Compare two NUL-terminated strings as unsigned bytes."""
    for x, y in zip(_cstr(p) + b"\0", _cstr(q) + b"\0"):
        if x != y or x == 0:
            return x - y
    return 0


def strncmp(p: bytes, q: bytes, n: int) -> int:
    """Compare at most n bytes of two NUL-terminated strings."""
    for x, y in islice(zip(_cstr(p) + b"\0", _cstr(q) + b"\0"), max(n, 0)):
        if x != y or x == 0:
            return x - y
    return 0


def strncpy(t: bytes, n: int) -> bytes:
    """Contents of an n-byte buffer after strncpy: zero padded, possibly unterminated."""
    if n <= 0:
        return b""
    return _cstr(t)[:n].ljust(n, b"\0")


def safestrcpy(t: bytes, n: int) -> bytes:
    """The string as read back from an n-byte buffer that is always NUL-terminated."""
    if n <= 0:
        return b""
    return _cstr(t)[:n - 1]


def strchr(s: bytes, c: int | bytes) -> int | None:
    """Index of the first c before the terminating NUL, or None."""
    if isinstance(c, (bytes, bytearray)):
        if len(c) != 1:
            raise ValueError("strchr needs a single byte")
        c = c[0]
    index = _cstr(s).find(c)
    return None if index < 0 else index


def atoi(s: bytes | str) -> int:
    """Value of the leading decimal digits; 0 if there are none."""
    text = s.decode("latin-1") if isinstance(s, (bytes, bytearray)) else s
    digits = "".join(takewhile(lambda ch: "0" <= ch <= "9", text))
    return int(digits) if digits else 0


def gets(stream: BinaryIO, max: int) -> bytes:
    """Read one line (up to max-1 bytes) a byte at a time, keeping the newline."""
    line = bytearray()
    while len(line) + 1 < max:
        c = stream.read(1)
        if not c:
            break
        line += c
        if c in (b"\n", b"\r"):
            break
    return bytes(line)