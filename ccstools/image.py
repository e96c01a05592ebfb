"""Indexed image chunks.

Header layout after the two ids (all single bytes unless noted):

    reserved x5, format tag, reserved x2, width exponent, height exponent,
    reserved x10

followed by the index plane. Format 19 stores one palette index per byte,
format 20 packs two 4-bit indices per byte, low nibble first.
"""

from __future__ import annotations

import dataclasses
from typing import Tuple

from .buffer import Cursor
from .errors import MalformedChunk, UnsupportedFormat
from .palette import Palette

FMT_CI8 = 19
FMT_CI4 = 20
FORMAT_NAMES = {FMT_CI8: "ci8", FMT_CI4: "ci4"}

IMAGE_HEADER_SIZE = 28
MAX_EXPONENT = 31


@dataclasses.dataclass(frozen=True)
class IndexedImage:
    id: int
    palette_group_id: int
    fmt: int
    width: int
    height: int
    indices: bytes
    palettes: Tuple[Palette, ...] = ()

    @property
    def format_name(self) -> str:
        return FORMAT_NAMES.get(self.fmt, f"unknown({self.fmt})")


def dimension_from_exponent(exponent: int) -> int:
    if exponent < 0 or exponent > MAX_EXPONENT:
        raise MalformedChunk(f"dimension exponent {exponent} overflows a 32-bit size")
    return 1 << exponent


def plane_size(fmt: int, width: int, height: int) -> int:
    n = width * height
    if fmt == FMT_CI8:
        return n
    if fmt == FMT_CI4:
        return (n + 1) // 2
    raise UnsupportedFormat(f"unknown pixel format tag {fmt}")


def unpack_ci4(packed: bytes, count: int) -> bytes:
    out = bytearray()
    for byte in packed:
        lo = byte % 16
        hi = byte // 16
        if lo == 16 or hi == 16:
            raise MalformedChunk(f"impossible nibble pair ({lo}, {hi}) from byte 0x{byte:02X}")
        out.append(lo)
        out.append(hi)
    return bytes(out[:count])


def decode_image(cur: Cursor, size: int) -> IndexedImage:
    image_id = cur.read_id()
    group_id = cur.read_id()
    cur.reserved(5)
    fmt = cur.u8()
    cur.reserved(2)
    width = dimension_from_exponent(cur.u8())
    height = dimension_from_exponent(cur.u8())
    cur.reserved(10)

    need = plane_size(fmt, width, height)
    avail = size - IMAGE_HEADER_SIZE
    if need > avail:
        raise MalformedChunk(
            f"{width}x{height} {FORMAT_NAMES[fmt]} plane needs {need} bytes, chunk has {max(avail, 0)}"
        )

    raw = cur.read(need)
    if fmt == FMT_CI4:
        indices = unpack_ci4(raw, width * height)
    else:
        indices = raw
    return IndexedImage(
        id=image_id,
        palette_group_id=group_id,
        fmt=fmt,
        width=width,
        height=height,
        indices=indices,
    )
