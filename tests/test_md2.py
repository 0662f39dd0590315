import struct

import numpy as np
import pytest

from volscene.materials import MaterialAttr
from volscene.md2 import MD2_MAGIC, MD2Error, MD2Header, load_md2, parse_header
from volscene.mesh import AnimationId, MeshAttr, PolyState, ShadeMode, VertexAttr

TRIANGLE = [(0, 0, 0, 0), (10, 0, 0, 0), (0, 10, 0, 0)]


def build_md2(frames, polys, tex_coords, skins=(), skin_size=(64, 32), magic=b"IDP2", version=8):
    num_vtx = len(frames[0][2]) if frames else 0
    frame_size = 40 + 4 * num_vtx
    off_skins = 68
    off_tc = off_skins + 64 * len(skins)
    off_poly = off_tc + 4 * len(tex_coords)
    off_frames = off_poly + 12 * len(polys)
    off_end = off_frames + frame_size * len(frames)

    body = b"".join(struct.pack("<64s", s.encode()) for s in skins)
    body += b"".join(struct.pack("<2h", u, v) for u, v in tex_coords)
    body += b"".join(struct.pack("<6H", *p) for p in polys)
    for scale, trans, verts in frames:
        body += struct.pack("<6f16s", *scale, *trans, b"frame")
        body += b"".join(struct.pack("<4B", *v) for v in verts)

    header = struct.pack(
        "<4s16i", magic, version, skin_size[0], skin_size[1], frame_size, len(skins),
        num_vtx, len(tex_coords), len(polys), 0, len(frames),
        off_skins, off_tc, off_poly, off_frames, off_end, off_end,
    )
    return header + body


def simple_model(**kwargs):
    frame = ((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), TRIANGLE)
    frame2 = ((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), [(0, 0, 0, 0), (20, 0, 0, 0), (0, 20, 0, 0)])
    return build_md2(
        [frame, frame2],
        [(0, 1, 2, 0, 1, 2)],
        [(0, 0), (32, 16), (64, 32)],
        skins=("models/hero/skin.pcx",),
        **kwargs,
    )


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "tris.md2"
    path.write_bytes(simple_model())
    return path


def test_header_with_packed_magic_is_accepted():
    header = parse_header(simple_model(magic=struct.pack("<i", MD2_MAGIC)))
    assert header.num_vtx == 3
    assert header.num_frames == 2


def test_parse_header_reads_counts():
    header = parse_header(simple_model())
    assert isinstance(header, MD2Header)
    assert header.version == 8
    assert header.num_vtx == 3
    assert header.num_frames == 2
    assert header.num_poly == 1
    assert header.num_texture_coords == 3
    assert header.frame_size == 40 + 4 * 3


def test_parse_header_rejects_bad_magic():
    with pytest.raises(MD2Error):
        parse_header(simple_model(magic=b"IDPX"))


def test_parse_header_rejects_bad_version():
    with pytest.raises(MD2Error):
        parse_header(simple_model(version=7))


def test_parse_header_rejects_short_data():
    with pytest.raises(MD2Error):
        parse_header(b"IDP2")


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_md2(tmp_path / "absent.md2")


def test_truncated_frames_raise(tmp_path):
    path = tmp_path / "cut.md2"
    path.write_bytes(simple_model()[:-8])
    with pytest.raises(MD2Error):
        load_md2(path)


def test_load_sets_dimensions_and_attrs(model_file):
    mesh = load_md2(model_file)
    assert mesh.num_vtx == 3
    assert mesh.num_frames == 2
    assert mesh.total_num_vtx == 6
    assert mesh.attr == MeshAttr.CAN_BE_CULLED | MeshAttr.CAST_SHADOW | MeshAttr.MULTI_FRAME


def test_axes_are_remapped(model_file):
    mesh = load_md2(model_file)
    # MD2 vertex (10, 0, 0) lands on the Z axis
    np.testing.assert_allclose(mesh.local_vertices[1].position, [0.0, 0.0, 10.0, 1.0])
    np.testing.assert_allclose(mesh.local_vertices[2].position, [10.0, 0.0, 0.0, 1.0])


def test_input_scale_multiplies_frame_scale(tmp_path):
    path = tmp_path / "s.md2"
    frame = ((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), [(1, 2, 3, 0)])
    path.write_bytes(build_md2([frame], [], [], skins=("a.pcx",)))
    mesh = load_md2(path, scale=(2.0, 3.0, 4.0))
    np.testing.assert_allclose(mesh.local_vertices[0].position, [2 * 3, 3 * 4, 1 * 2, 1.0])


def test_polygon_winding_is_swapped(model_file):
    mesh = load_md2(model_file)
    poly = mesh.polys[0]
    assert poly.vtx_indices == [0, 2, 1]
    assert poly.texture_coords_indices == [0, 2, 1]
    assert poly.state == PolyState.ACTIVE


def test_texture_coords_normalised_by_skin_size(model_file):
    mesh = load_md2(model_file)
    np.testing.assert_allclose(mesh.texture_coords, [[0.0, 0.0], [0.5, 0.5], [1.0, 1.0]])


def test_vertices_marked_with_texture_coords(model_file):
    mesh = load_md2(model_file)
    for local, trans in zip(mesh.local_vertices[:3], mesh.trans_vertices):
        assert local.attr & VertexAttr.HAS_TEXTURE_COORDS
        assert trans.attr == local.attr


def test_skin_from_file_resolved_next_to_model(model_file):
    mesh = load_md2(model_file)
    path, correction = mesh.polys[0].material.texture
    assert path == str(model_file.parent) + "/skin.pcx" or path.endswith("skin.pcx")
    assert path.startswith(str(model_file.parent))
    assert correction == (1.0, 1.0, 1.0)


def test_explicit_skin_and_shade_mode(model_file):
    mesh = load_md2(model_file, skin_path="other.pcx", shade_mode=ShadeMode.FLAT,
                    color_correction=(1.5, 2.0, 1.5))
    material = mesh.polys[0].material
    assert material.texture == ("other.pcx", (1.5, 2.0, 1.5))
    assert material.attr == MaterialAttr.SHADE_MODE_FLAT | MaterialAttr.SHADE_MODE_TEXTURE


def test_vertex_normals_are_unit_length(model_file):
    mesh = load_md2(model_file)
    for vertex in mesh.local_vertices:
        assert vertex.attr & VertexAttr.HAS_NORMAL
        assert np.linalg.norm(vertex.normal[:3]) == pytest.approx(1.0)


def test_radius_per_frame(model_file):
    mesh = load_md2(model_file)
    assert mesh.max_radius_list == [pytest.approx(10.0), pytest.approx(20.0)]
    assert mesh.average_radius_list[1] == pytest.approx(2 * mesh.average_radius_list[0])


def test_position_and_animation(model_file):
    mesh = load_md2(model_file, position=(100.0, 0.0, -5.0))
    mesh.play_animation(AnimationId.STANDING_IDLE, loop=True)
    assert mesh.current_frame == 0.0
    mesh.update_animation_and_transform(0.0)
    np.testing.assert_allclose(mesh.trans_vertices[1].position, [100.0, 0.0, 5.0, 1.0])


def test_bad_vertex_index_raises(tmp_path):
    path = tmp_path / "bad.md2"
    frame = ((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), TRIANGLE)
    path.write_bytes(build_md2([frame], [(0, 1, 9, 0, 0, 0)], [(0, 0)], skins=("a.pcx",)))
    with pytest.raises(MD2Error):
        load_md2(path)