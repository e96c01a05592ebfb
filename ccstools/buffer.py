"""Seekable little-endian cursor over an in-memory byte buffer."""

from __future__ import annotations

import os
import struct
from typing import Union

from .errors import TruncatedInput

LITTLE = "<"
BIG = ">"

_WIDTHS = {1: "B", 2: "H", 4: "I"}


class Cursor:
    def __init__(self, data: Union[bytes, bytearray, None] = None, endian: str = LITTLE):
        if endian not in (LITTLE, BIG):
            raise ValueError(f"endian must be '<' or '>', got {endian!r}")
        self._buf = bytearray(data or b"")
        self._pos = 0
        self.endian = endian

    @property
    def size(self) -> int:
        return len(self._buf)

    @property
    def offset(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._buf) - self._pos

    def _need(self, n: int) -> None:
        if n < 0 or self._pos + n > len(self._buf):
            raise TruncatedInput(
                f"read of {n} bytes at 0x{self._pos:X} exceeds buffer size 0x{len(self._buf):X}"
            )

    def read(self, n: int) -> bytes:
        self._need(n)
        out = bytes(self._buf[self._pos : self._pos + n])
        self._pos += n
        return out

    def read_uint(self, width: int) -> int:
        code = _WIDTHS.get(width)
        if code is None:
            raise ValueError(f"unsupported integer width: {width}")
        self._need(width)
        val = struct.unpack_from(self.endian + code, self._buf, self._pos)[0]
        self._pos += width
        return val

    def u8(self) -> int:
        return self.read_uint(1)

    def u16(self) -> int:
        return self.read_uint(2)

    def u32(self) -> int:
        return self.read_uint(4)

    def read_id(self) -> int:
        return renumber(self.read_uint(4))

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            target = offset
        elif whence == os.SEEK_CUR:
            target = self._pos + offset
        elif whence == os.SEEK_END:
            target = len(self._buf) + offset
        else:
            raise ValueError(f"invalid whence: {whence}")
        if target < 0 or target > len(self._buf):
            raise TruncatedInput(f"seek to 0x{target:X} outside buffer of size 0x{len(self._buf):X}")
        self._pos = target
        return target

    def reserved(self, n: int) -> None:
        """Skip `n` bytes whose meaning is unknown."""
        self.seek(n, os.SEEK_CUR)

    def write(self, data: Union[bytes, bytearray]) -> int:
        end = self._pos + len(data)
        if end > len(self._buf):
            self._buf.extend(b"\x00" * (end - len(self._buf)))
        self._buf[self._pos : end] = data
        self._pos = end
        return len(data)

    def getvalue(self) -> bytes:
        return bytes(self._buf)


def renumber(ident: int) -> int:
    # On-disk ids count from 1; zero is kept as-is.
    return ident - 1 if ident else ident
