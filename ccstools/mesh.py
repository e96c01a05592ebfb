"""Mesh chunks: quantized vertex positions, strip markers and UVs.

Positions and UVs are stored as (fraction, integer) byte pairs per axis.
The fraction byte is unsigned and the integer byte is signed, so
``(0x80, 0xFF)`` decodes to ``0.5 + -1 = -0.5``.

Each vertex also carries a strip marker. A nonzero marker opens a new
triangle strip and names its winding (1 or 2); zero markers extend it.
"""

from __future__ import annotations

import dataclasses
import struct
from typing import Iterable, List, Sequence, Tuple

from .buffer import Cursor
from .errors import MalformedChunk

MESH_SENTINEL = 0x80000000
MAX_VERTICES = 100000

Vec3 = Tuple[float, float, float]
Vec2 = Tuple[float, float]


@dataclasses.dataclass(frozen=True)
class Tri:
    i0: int
    i1: int
    i2: int


@dataclasses.dataclass(frozen=True)
class Mesh:
    id: int
    material_id: int
    aux_id: int
    index_count: int
    positions: Tuple[Vec3, ...]
    coords: Tuple[Vec2, ...]
    markers: bytes
    triangles: Tuple[Tri, ...]
    # Number of zero markers seen while decoding; not len(triangles).
    triangle_count: int

    @property
    def vertex_count(self) -> int:
        return len(self.positions)


def fixed_8_8(raw: bytes) -> Tuple[float, ...]:
    out: List[float] = []
    for off in range(0, len(raw), 2):
        frac, whole = struct.unpack_from("<Bb", raw, off)
        out.append(frac / 256.0 + float(whole))
    return tuple(out)


def strip_triangles(start: int, size: int, strip_type: int) -> List[Tri]:
    tris: List[Tri] = []
    for i in range(size - 2):
        a = start + i
        if strip_type == 1:
            if i % 2 == 1:
                tris.append(Tri(a + 1, a, a + 2))
            else:
                tris.append(Tri(a, a + 1, a + 2))
        elif strip_type == 2:
            if i % 2 == 1:
                tris.append(Tri(a, a + 1, a + 2))
            else:
                tris.append(Tri(a + 1, a, a + 2))
        else:
            raise MalformedChunk(f"strip at vertex {start} has unknown winding type {strip_type}")
    return tris


def resolve_strips(markers: Sequence[int]) -> List[Tri]:
    count = len(markers)
    tris: List[Tri] = []
    size = 0
    started = False
    i = 0
    while i < count:
        if started and markers[i] == 0:
            size += 1
        elif started:
            started = False
            start = i - size
            tris.extend(strip_triangles(start, size, markers[start]))
            size = 0

        if markers[i] != 0 and not started:
            # The opening pair is taken whole, whatever the second marker is.
            started = True
            size += 2
            i += 1

        if i == count - 1 and started:
            start = i - size + 1
            tris.extend(strip_triangles(start, size, markers[start]))
        i += 1
    return tris


def _read_vectors(cur: Cursor, count: int, width: int) -> Iterable[Tuple[float, ...]]:
    for _ in range(count):
        yield fixed_8_8(cur.read(width))


def decode_mesh(cur: Cursor) -> Mesh:
    mesh_id = cur.read_id()
    cur.reserved(12)
    index_count = cur.u32()
    if cur.u32() == MESH_SENTINEL:
        raise MalformedChunk("mesh header carries the 0x80000000 sentinel")
    cur.reserved(4)
    aux_id = cur.read_id()
    material_id = cur.read_id()

    num_verts = cur.u32()
    if num_verts == 0 or num_verts > MAX_VERTICES:
        raise MalformedChunk(f"implausible vertex count {num_verts}")

    positions = tuple(_read_vectors(cur, num_verts, 6))
    cur.reserved((num_verts * 6) % 4)

    markers = bytearray()
    zeros = 0
    for _ in range(num_verts):
        cur.reserved(3)
        m = cur.u8()
        markers.append(m)
        if m == 0:
            zeros += 1

    cur.reserved(num_verts * 4)
    coords = tuple(_read_vectors(cur, num_verts, 4))

    tris = resolve_strips(markers)
    return Mesh(
        id=mesh_id,
        material_id=material_id,
        aux_id=aux_id,
        index_count=index_count,
        positions=positions,  # type: ignore[arg-type]
        coords=coords,  # type: ignore[arg-type]
        markers=bytes(markers),
        triangles=tuple(tris),
        triangle_count=zeros,
    )
