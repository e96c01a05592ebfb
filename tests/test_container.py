import struct

import pytest

from ccstools.buffer import Cursor
from ccstools.container import (
    MAGIC,
    SCAN_ABORTED,
    SCAN_TERMINATOR,
    SCAN_TRUNCATED,
    TAG_ANIMATION,
    TAG_BIN,
    TAG_END,
    TAG_IMAGE,
    TAG_MESH,
    TAG_PALETTE,
    TAG_SECTION_END,
    TAG_SECTION_END_1B,
    decode_header,
    iter_chunks,
    load_container,
    read_name_tables,
)
from ccstools.errors import InvalidHeader, MalformedChunk, TruncatedInput
from ccstools.mesh import Tri
from ccstools.raster import composite

from ccsbuild import (
    GRAYS,
    chunk,
    header,
    image_body,
    minimal_container,
    palette_body,
    simple_mesh,
    u32,
    with_mesh,
)


def test_header_accepts_only_magic():
    decode_header(Cursor(u32(MAGIC)))
    for bad in (0, 0xCCCC0000, 0xCCCC0002, 0x0100CCCC, 0xFFFFFFFF, MAGIC ^ 0x80000000):
        with pytest.raises(InvalidHeader):
            decode_header(Cursor(u32(bad)))


def test_short_input_is_an_invalid_header():
    for data in (b"", b"\x01", b"\x01\x00\xCC"):
        with pytest.raises(InvalidHeader):
            decode_header(Cursor(data))


def test_header_big_endian_magic_rejected():
    with pytest.raises(InvalidHeader):
        decode_header(Cursor(struct.pack(">I", MAGIC)))


def test_load_rejects_bad_magic():
    data = bytearray(minimal_container())
    data[0] ^= 0xFF
    with pytest.raises(InvalidHeader):
        load_container(Cursor(bytes(data)))


def test_name_tables():
    cur = Cursor(header(b"ABCD", files=["a.bmp", "b.bmp"], objects=["OBJ_X", "MAT_Y", "TEX_Z"]))
    decode_header(cur)
    name, files, objects = read_name_tables(cur)
    assert name == "ABCD"
    assert files == ("a.bmp", "b.bmp")
    assert objects == ("OBJ_X", "MAT_Y", "TEX_Z")
    assert cur.remaining == 0


def test_name_slot_without_terminator():
    data = bytearray(header(objects=["x"]))
    slot = len(data) - 8 - 32
    data[slot : slot + 32] = b"N" * 32
    cur = Cursor(bytes(data))
    decode_header(cur)
    _name, _files, objects = read_name_tables(cur)
    assert objects == ("N" * 32,)


def test_name_table_cap():
    data = bytearray(header())
    data[59:63] = u32(10002)
    with pytest.raises(MalformedChunk):
        load_container(Cursor(bytes(data)))


def test_truncated_name_table_is_terminal():
    data = header(objects=["a", "b", "c"])
    with pytest.raises(TruncatedInput):
        load_container(Cursor(data[:-40]))


def test_end_to_end_minimal_container():
    data = load_container(Cursor(minimal_container()))
    assert data.complete
    assert data.end_tag == TAG_SECTION_END
    assert data.meshes == ()
    assert len(data.images) == 1
    img = data.images[0]
    assert (img.width, img.height) == (2, 2)
    assert len(img.palettes) == 1
    assert img.palettes[0].num_colors == 4
    assert img.palettes[0].id == 1

    raster = composite(img)
    rows = raster.to_array()
    colors = img.palettes[0].colors
    assert rows[0].tolist() == [list(colors[2]), list(colors[3])]
    assert rows[1].tolist() == [list(colors[0]), list(colors[1])]


def test_palette_group_resets_after_each_image():
    data = (
        header()
        + chunk(TAG_PALETTE, palette_body(1, GRAYS))
        + chunk(TAG_PALETTE, palette_body(2, GRAYS[:2]))
        + chunk(TAG_IMAGE, image_body(1, 1, 19, 1, 1, bytes(4)))
        + chunk(TAG_IMAGE, image_body(2, 1, 19, 0, 0, bytes(4)))
        + chunk(TAG_PALETTE, palette_body(3, GRAYS[:3]))
        + chunk(TAG_IMAGE, image_body(3, 1, 20, 1, 1, bytes(4)))
        + u32(TAG_END)
    )
    c = load_container(Cursor(data))
    assert [len(i.palettes) for i in c.images] == [2, 0, 1]
    assert [p.num_colors for p in c.images[0].palettes] == [4, 2]
    assert c.images[2].palettes[0].num_colors == 3
    assert c.scan_end == SCAN_TERMINATOR
    assert c.end_tag == TAG_END


def test_unhandled_tags_are_skipped():
    data = (
        header()
        + chunk(TAG_BIN, b"hello world!")
        + chunk(TAG_ANIMATION, bytes(40))
        + chunk(0x12345678, bytes(8))
        + chunk(TAG_PALETTE, palette_body(1, GRAYS))
        + chunk(TAG_IMAGE, image_body(1, 1, 19, 1, 1, bytes(4)))
        + u32(TAG_SECTION_END_1B)
    )
    c = load_container(Cursor(data))
    assert len(c.images) == 1
    assert c.failures == ()
    assert c.end_tag == TAG_SECTION_END_1B


def test_short_mesh_chunk_reseeks_to_declared_end():
    mesh = simple_mesh(1, 1, [1, 0, 0])
    data = (
        header()
        + chunk(TAG_MESH, mesh[:24])
        + chunk(TAG_PALETTE, palette_body(1, GRAYS))
        + chunk(TAG_IMAGE, image_body(1, 1, 19, 1, 1, bytes([3, 2, 1, 0])))
        + u32(TAG_SECTION_END)
    )
    c = load_container(Cursor(data))
    assert c.meshes == ()
    assert [f.kind for f in c.failures] == ["MalformedChunk"]
    assert len(c.images) == 1
    assert c.images[0].indices == bytes([3, 2, 1, 0])
    assert c.scan_end == SCAN_TERMINATOR
    assert c.end_tag == TAG_SECTION_END


def test_frame_skips_to_declared_end():
    data = header() + chunk(TAG_MESH, simple_mesh(1, 1, [1, 0, 0]), words=6) + u32(TAG_SECTION_END)
    cur = Cursor(data)
    decode_header(cur)
    read_name_tables(cur)
    end = {}
    frames = [(f.kind, f.size) for f in iter_chunks(cur, end)]
    assert frames == [("mesh", 24)]
    # The next tag is read 24 bytes into the mesh body, where the reserved zeros sit.
    assert end == {"reason": SCAN_TERMINATOR, "tag": TAG_END}


def test_mesh_failure_is_isolated():
    data = (
        header()
        + chunk(TAG_MESH, simple_mesh(1, 1, [5, 0, 0]))
        + chunk(TAG_MESH, simple_mesh(2, 2, [1, 0, 0, 0]))
        + u32(TAG_SECTION_END)
    )
    c = load_container(Cursor(data))
    assert len(c.meshes) == 1
    assert c.meshes[0].id == 1
    assert c.meshes[0].triangles == (Tri(0, 1, 2), Tri(2, 1, 3))
    assert len(c.failures) == 1
    assert c.failures[0].tag == TAG_MESH
    assert c.complete


def test_unsupported_image_is_isolated_and_drops_its_palettes():
    data = (
        header()
        + chunk(TAG_PALETTE, palette_body(1, GRAYS))
        + chunk(TAG_IMAGE, image_body(1, 1, 7, 1, 1, bytes(4)))
        + chunk(TAG_IMAGE, image_body(2, 1, 19, 1, 1, bytes(4)))
        + u32(TAG_SECTION_END)
    )
    c = load_container(Cursor(data))
    assert len(c.images) == 1
    assert c.images[0].id == 1
    assert c.images[0].palettes == ()
    assert [f.kind for f in c.failures] == ["UnsupportedFormat"]
    assert c.complete


def test_palette_failure_aborts_but_keeps_partial_results():
    data = (
        header()
        + chunk(TAG_PALETTE, palette_body(1, GRAYS))
        + chunk(TAG_IMAGE, image_body(1, 1, 19, 1, 1, bytes(4)))
        + chunk(TAG_MESH, simple_mesh(1, 1, [1, 0, 0]))
        + chunk(TAG_PALETTE, bytes(8))
        + chunk(TAG_IMAGE, image_body(2, 1, 19, 1, 1, bytes(4)))
        + u32(TAG_SECTION_END)
    )
    c = load_container(Cursor(data))
    assert c.scan_end == SCAN_ABORTED
    assert not c.complete
    assert len(c.images) == 1
    assert len(c.meshes) == 1
    assert c.failures[-1].tag == TAG_PALETTE


def test_oversized_chunk_length_stops_scan():
    data = (
        header()
        + chunk(TAG_PALETTE, palette_body(1, GRAYS))
        + chunk(TAG_IMAGE, image_body(1, 1, 19, 1, 1, bytes(4)))
        + u32(TAG_MESH)
        + u32(0x1000)
        + bytes(16)
    )
    c = load_container(Cursor(data))
    assert c.scan_end == SCAN_TRUNCATED
    assert len(c.images) == 1
    assert c.end_tag is None


def test_missing_terminator():
    data = header() + chunk(TAG_PALETTE, palette_body(1, GRAYS)) + b"\x00\x04"
    c = load_container(Cursor(data))
    assert c.scan_end == SCAN_TRUNCATED
    assert c.images == ()


def test_name_resolution():
    c = load_container(Cursor(with_mesh(["tex", "body", "mat", "skin"])))
    img = c.images[0]
    mesh = c.meshes[0]
    assert c.object_name(img.id) == "tex"
    assert c.object_name(mesh.id) == "body"
    assert c.object_name(mesh.material_id) == "mat"
    assert c.texture_name(mesh) == "skin"
    assert c.unresolved() == []


def test_texture_id_falls_back_to_material():
    c = load_container(Cursor(with_mesh(["tex", "body", "mat"])))
    mesh = c.meshes[0]
    assert c.texture_id(mesh) == 2
    assert c.texture_name(mesh) == "mat"


def test_unresolved_ids_are_reported():
    c = load_container(Cursor(with_mesh(["tex"])))
    assert c.object_name(c.meshes[0].id) is None
    assert c.object_name(-1) is None
    assert ("mesh", 0, 1) in c.unresolved()
    assert ("material", 0, 2) in c.unresolved()
    assert c.texture_name(c.meshes[0]) is None
