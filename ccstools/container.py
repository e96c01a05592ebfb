"""CCS container: header, name tables and the tagged chunk stream.

    magic u32 (0xCCCC0001)
    name[4], reserved[47]
    file-name count u32, object-name count u32   (1-based on disk)
    reserved[32], file names   (32-byte slots)
    reserved[32], object names (32-byte slots)
    reserved[8]
    { tag u32, length u32 (in 4-byte words), body } ...  terminator tag

Chunk length framing is authoritative: after every chunk the cursor is
moved to the end of the declared body whatever the decoder consumed.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from typing import Dict, Iterator, List, Optional, Tuple, cast

from .buffer import Cursor
from .errors import CCSError, InvalidHeader, MalformedChunk, TruncatedInput
from .image import IndexedImage, decode_image
from .mesh import Mesh, decode_mesh
from .palette import Palette, decode_palette

log = logging.getLogger(__name__)

MAGIC = 0xCCCC0001

TAG_OBJECT = 0xCCCC0100
TAG_MATERIAL = 0xCCCC0200
TAG_IMAGE = 0xCCCC0300
TAG_PALETTE = 0xCCCC0400
TAG_ANIMATION = 0xCCCC0700
TAG_MESH = 0xCCCC0800
TAG_CMP = 0xCCCC0900
TAG_OBJECT_0A = 0xCCCC0A00
TAG_OBJECT_20 = 0xCCCC2000
TAG_BIN = 0xCCCC2400

TAG_END = 0x00000000
TAG_SECTION_END = 0xCCCC0005
TAG_SECTION_END_1B = 0xCCCC1B00
TERMINATORS = (TAG_END, TAG_SECTION_END, TAG_SECTION_END_1B)

CHUNK_KINDS = {
    TAG_OBJECT: "object",
    TAG_MATERIAL: "material",
    TAG_IMAGE: "image",
    TAG_PALETTE: "palette",
    TAG_ANIMATION: "animation",
    TAG_MESH: "mesh",
    TAG_CMP: "cmp",
    TAG_OBJECT_0A: "object",
    TAG_OBJECT_20: "object",
    TAG_BIN: "bin",
}

NAME_SLOT = 32
MAX_NAMES = 10000

SCAN_TERMINATOR = "terminator"
SCAN_TRUNCATED = "truncated"
SCAN_ABORTED = "aborted"


@dataclasses.dataclass(frozen=True)
class Chunk:
    tag: int
    offset: int
    size: int

    @property
    def kind(self) -> str:
        return CHUNK_KINDS.get(self.tag, "unknown")

    @property
    def end(self) -> int:
        return self.offset + self.size


@dataclasses.dataclass(frozen=True)
class ChunkFailure:
    tag: int
    offset: int
    kind: str
    message: str


@dataclasses.dataclass(frozen=True)
class Container:
    name: str
    file_names: Tuple[str, ...]
    object_names: Tuple[str, ...]
    images: Tuple[IndexedImage, ...] = ()
    meshes: Tuple[Mesh, ...] = ()
    failures: Tuple[ChunkFailure, ...] = ()
    scan_end: str = SCAN_TERMINATOR
    end_tag: Optional[int] = None

    @property
    def complete(self) -> bool:
        return self.scan_end == SCAN_TERMINATOR

    def object_name(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.object_names):
            return self.object_names[index]
        return None

    def texture_id(self, mesh: Mesh) -> Optional[int]:
        # The mesh's image follows its material in the object table.
        for ident in (mesh.material_id + 1, mesh.material_id):
            if self.object_name(ident):
                return ident
        return None

    def texture_name(self, mesh: Mesh) -> Optional[str]:
        ident = self.texture_id(mesh)
        return None if ident is None else self.object_name(ident)

    def unresolved(self) -> List[Tuple[str, int, int]]:
        out: List[Tuple[str, int, int]] = []
        for i, img in enumerate(self.images):
            if self.object_name(img.id) is None:
                out.append(("image", i, img.id))
        for i, mesh in enumerate(self.meshes):
            if self.object_name(mesh.id) is None:
                out.append(("mesh", i, mesh.id))
            if self.object_name(mesh.material_id) is None:
                out.append(("material", i, mesh.material_id))
        return out


def decode_header(cur: Cursor) -> None:
    try:
        magic = cur.u32()
    except TruncatedInput as e:
        raise InvalidHeader(f"input of {cur.size} bytes is too short for a header") from e
    if magic != MAGIC:
        raise InvalidHeader(f"bad magic 0x{magic:08X}, expected 0x{MAGIC:08X}")


def _name_count(raw: int) -> int:
    count = raw - 1 if raw else 0
    if count > MAX_NAMES:
        raise MalformedChunk(f"name table claims {count} entries (limit {MAX_NAMES})")
    return count


def read_name(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("ascii", errors="replace")


def read_name_table(cur: Cursor, count: int) -> Tuple[str, ...]:
    cur.reserved(32)
    return tuple(read_name(cur.read(NAME_SLOT)) for _ in range(count))


def read_name_tables(cur: Cursor) -> Tuple[str, Tuple[str, ...], Tuple[str, ...]]:
    name = read_name(cur.read(4))
    cur.reserved(23)
    cur.reserved(24)
    num_files = _name_count(cur.u32())
    num_objects = _name_count(cur.u32())
    files = read_name_table(cur, num_files)
    objects = read_name_table(cur, num_objects)
    cur.reserved(8)
    return name, files, objects


def iter_chunks(cur: Cursor, end: Optional[Dict[str, object]] = None) -> Iterator[Chunk]:
    """Yield chunk frames and move past each body once the caller resumes.

    If `end` is given it receives ``reason`` and ``tag`` describing why
    the stream stopped.
    """
    state = end if end is not None else {}
    state["reason"] = SCAN_TRUNCATED
    state["tag"] = None
    while True:
        try:
            tag = cur.u32()
            if tag in TERMINATORS:
                state["reason"] = SCAN_TERMINATOR
                state["tag"] = tag
                return
            words = cur.u32()
        except TruncatedInput:
            log.warning("chunk stream ends at 0x%X without a terminator", cur.offset)
            return
        size = words * 4
        if size > cur.remaining:
            log.warning(
                "chunk 0x%08X at 0x%X declares %d bytes, only %d remain",
                tag,
                cur.offset,
                size,
                cur.remaining,
            )
            return
        chunk = Chunk(tag=tag, offset=cur.offset, size=size)
        yield chunk
        cur.seek(chunk.end, os.SEEK_SET)


def _fail(chunk: Chunk, err: CCSError) -> ChunkFailure:
    log.warning("%s chunk at 0x%X: %s: %s", chunk.kind, chunk.offset, err.kind, err)
    return ChunkFailure(tag=chunk.tag, offset=chunk.offset, kind=err.kind, message=str(err))


def load_container(cur: Cursor) -> Container:
    cur.seek(0)
    decode_header(cur)
    name, files, objects = read_name_tables(cur)

    images: List[IndexedImage] = []
    meshes: List[Mesh] = []
    failures: List[ChunkFailure] = []
    group: List[Palette] = []
    end: Dict[str, object] = {}
    aborted = False

    for chunk in iter_chunks(cur, end):
        log.debug("chunk %s 0x%08X at 0x%X (%d bytes)", chunk.kind, chunk.tag, chunk.offset, chunk.size)
        if chunk.tag == TAG_MESH:
            try:
                meshes.append(decode_mesh(cur))
            except CCSError as e:
                failures.append(_fail(chunk, e))
        elif chunk.tag == TAG_PALETTE:
            try:
                group = group + [decode_palette(cur, chunk.size)]
            except CCSError as e:
                failures.append(_fail(chunk, e))
                aborted = True
                break
        elif chunk.tag == TAG_IMAGE:
            group = _close_palette_group(cur, chunk, group, images, failures)

    return Container(
        name=name,
        file_names=files,
        object_names=objects,
        images=tuple(images),
        meshes=tuple(meshes),
        failures=tuple(failures),
        scan_end=SCAN_ABORTED if aborted else str(end.get("reason", SCAN_TRUNCATED)),
        end_tag=cast(Optional[int], end.get("tag")),
    )


def _close_palette_group(
    cur: Cursor,
    chunk: Chunk,
    group: List[Palette],
    images: List[IndexedImage],
    failures: List[ChunkFailure],
) -> List[Palette]:
    try:
        image = decode_image(cur, chunk.size)
    except CCSError as e:
        failures.append(_fail(chunk, e))
    else:
        images.append(dataclasses.replace(image, palettes=tuple(group)))
    return []
