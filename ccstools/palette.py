from __future__ import annotations

import dataclasses
from typing import Tuple

from .buffer import Cursor
from .errors import MalformedChunk

Color = Tuple[int, int, int, int]

PALETTE_HEADER_SIZE = 20


@dataclasses.dataclass(frozen=True)
class Palette:
    id: int
    colors: Tuple[Color, ...]

    @property
    def num_colors(self) -> int:
        return len(self.colors)


def rescale_alpha(a: int) -> int:
    # Two alpha conventions share the format: 0..128 is half-range, above that is full range.
    if a <= 128:
        return (a * 255) // 128
    return a


def color_count(size: int) -> int:
    if size < PALETTE_HEADER_SIZE:
        raise MalformedChunk(f"palette chunk of {size} bytes is smaller than its {PALETTE_HEADER_SIZE}-byte header")
    body = size - PALETTE_HEADER_SIZE
    if body % 4:
        raise MalformedChunk(f"palette body of {body} bytes is not a whole number of RGBA records")
    return body // 4


def decode_palette(cur: Cursor, size: int) -> Palette:
    count = color_count(size)
    pid = cur.read_id()
    cur.reserved(16)
    colors = []
    for _ in range(count):
        r, g, b, a = cur.read(4)
        colors.append((r, g, b, rescale_alpha(a)))
    return Palette(id=pid, colors=tuple(colors))
