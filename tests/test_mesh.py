import pytest

from ccstools.buffer import Cursor
from ccstools.errors import MalformedChunk, TruncatedInput
from ccstools.mesh import MESH_SENTINEL, Tri, decode_mesh, fixed_8_8, resolve_strips, strip_triangles

from ccsbuild import fixed, mesh_body, simple_mesh


def test_fixed_point_fraction_unsigned_integer_signed():
    assert fixed_8_8(bytes([0x80, 0x01])) == (1.5,)
    assert fixed_8_8(bytes([0x80, 0xFF])) == (-0.5,)
    assert fixed_8_8(bytes([0xFF, 0x7F])) == (127 + 255 / 256.0,)
    assert fixed_8_8(bytes([0x00, 0x80, 0x40, 0x00])) == (-128.0, 0.25)


def test_single_type1_strip():
    assert resolve_strips([1, 0, 0]) == [Tri(0, 1, 2)]


def test_type2_strip_alternates_winding():
    tris = resolve_strips([2, 0, 0, 0])
    assert tris == [Tri(1, 0, 2), Tri(1, 2, 3)]
    assert all(0 <= v <= 3 for t in tris for v in (t.i0, t.i1, t.i2))


def test_type1_strip_alternates_winding():
    assert resolve_strips([1, 0, 0, 0, 0]) == [Tri(0, 1, 2), Tri(2, 1, 3), Tri(2, 3, 4)]


def test_invalid_strip_type():
    with pytest.raises(MalformedChunk):
        resolve_strips([5, 0, 0, 3, 0])


def test_two_runs():
    tris = resolve_strips([1, 0, 0, 2, 0, 0, 0])
    assert tris == [Tri(0, 1, 2), Tri(4, 3, 5), Tri(4, 5, 6)]


def test_second_vertex_marker_is_ignored():
    # The opening pair is consumed whole even when its second marker is nonzero.
    assert resolve_strips([1, 2, 0]) == [Tri(0, 1, 2)]


def test_short_runs_emit_nothing():
    assert resolve_strips([]) == []
    assert resolve_strips([0, 0, 0]) == []
    assert resolve_strips([1, 0, 0, 1]) == [Tri(0, 1, 2)]
    assert resolve_strips([1, 0, 0, 7, 0]) == [Tri(0, 1, 2)]


def test_strip_triangles_rejects_unknown_type_only_when_emitting():
    assert strip_triangles(0, 2, 9) == []
    with pytest.raises(MalformedChunk):
        strip_triangles(0, 3, 0)


def test_decode_mesh():
    positions = [
        fixed([(0x80, 1), (0, 0), (0, -2)]),
        fixed([(0, 0), (0x80, 0xFF - 256), (0, 3)]),
        fixed([(0x40, 0), (0, 1), (0, 0)]),
    ]
    uvs = [fixed([(0, 0), (0, 1)]), fixed([(0x80, 0), (0, 0)]), fixed([(0, 1), (0x80, -1)])]
    body = mesh_body(5, 3, positions, [1, 0, 0], uvs, index_count=9, aux=4)
    cur = Cursor(body)
    mesh = decode_mesh(cur)
    assert cur.offset == len(body)
    assert mesh.id == 4
    assert mesh.material_id == 2
    assert mesh.aux_id == 3
    assert mesh.index_count == 9
    assert mesh.positions == ((1.5, 0.0, -2.0), (0.0, -0.5, 3.0), (0.25, 1.0, 0.0))
    assert mesh.coords == ((0.0, 1.0), (0.5, 0.0), (1.0, -0.5))
    assert mesh.markers == bytes([1, 0, 0])
    assert mesh.triangles == (Tri(0, 1, 2),)
    assert mesh.triangle_count == 2
    assert len(mesh.positions) == len(mesh.coords) == len(mesh.markers) == mesh.vertex_count


def test_decode_mesh_padding_for_even_vertex_count():
    body = simple_mesh(1, 1, [2, 0, 0, 0])
    cur = Cursor(body)
    mesh = decode_mesh(cur)
    assert cur.offset == len(body)
    assert mesh.triangles == (Tri(1, 0, 2), Tri(1, 2, 3))
    assert mesh.coords[0] == (0.25, 1.0)


def test_sentinel_aborts_mesh():
    body = mesh_body(1, 1, [b"\x00" * 6] * 3, [1, 0, 0], [b"\x00" * 4] * 3, sentinel=MESH_SENTINEL)
    with pytest.raises(MalformedChunk):
        decode_mesh(Cursor(body))


def test_vertex_count_limits():
    with pytest.raises(MalformedChunk):
        decode_mesh(Cursor(mesh_body(1, 1, [], [], [])))
    with pytest.raises(MalformedChunk):
        decode_mesh(Cursor(mesh_body(1, 1, [], [], [], vertex_count=100001)))


def test_truncated_vertex_data():
    body = simple_mesh(1, 1, [1, 0, 0])
    with pytest.raises(TruncatedInput):
        decode_mesh(Cursor(body[:-3]))
