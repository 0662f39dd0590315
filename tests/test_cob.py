import numpy as np
import pytest

from volscene.cob import COBError, COBFlags, load_cob
from volscene.materials import MaterialAttr
from volscene.mesh import MeshAttr, PolyState, ShadeMode, VertexAttr

SAMPLE = """Caligari V00.01ALH
PolH V0.08 Id 1 Parent 0 Size 00001
Name cube
center 0 0 0
x axis 1 0 0
y axis 0 1 0
z axis 0 0 1
Transform
1 0 0 0
0 1 0 0
0 0 1 0
0 0 0 1

World Vertices 4
0 0 0
1 0 0
0 1 0
0 0 1
Texture Vertices 3
0.0 0.0
1.0 0.0
0.25 0.75
Faces 2
Face verts 3 flags 0 mat 0
<0,0> <1,1> <2,2>
Face verts 3 flags 0 mat 1
<0,1> <2,2> <3,0>
Mat1 V0.06 Id 1 Parent 0 Size 00001
mat# 0
shader: phong facet: auto32
rgb 1.0,0.5,0.0
alpha 1 ka 0.1 ks 0.1 exp 0 ior 1
Shader class: color
Shader name: "plain color" (plain)
Number of parameters: 1
colour: color (255, 128, 0)
Shader class: transparency
Shader name: "none" (none)
Number of parameters: 0
Shader class: reflectance
Shader name: "plastic" (plastic)
Number of parameters: 2
ambient factor: float 0.1
diffuse factor: float 0.9
Mat1 V0.06 Id 2 Parent 0 Size 00001
mat# 1
rgb 0.2,0.4,0.6
alpha 1 ka 0.5 ks 0.1 exp 0.5
Shader class: color
Shader name: "texture map" (texture map)
Number of parameters: 1
file name: string "C:\\textures\\brick.bmp"
Shader class: transparency
Shader name: "filter" (filter)
Number of parameters: 1
colour: color (10, 200, 30)
Shader class: reflectance
Shader name: "matte" (matte)
Number of parameters: 2
ambient factor: float 0.1
diffuse factor: float 0.5
END V1.00 Id 0 Parent 0 Size 0
"""


def write(tmp_path, text=SAMPLE):
    path = tmp_path / "model.cob"
    path.write_text(text, encoding="latin-1")
    return path


def test_name_and_counts(tmp_path):
    mesh = load_cob(write(tmp_path), flags=COBFlags.NONE)
    assert mesh.name == "cube"
    assert mesh.num_vtx == 4
    assert mesh.num_poly == 2
    assert len(mesh.polys) == 2
    assert mesh.num_texture_coords == 3
    assert mesh.texture_coords.shape == (3, 2)


def test_mesh_attributes_and_position(tmp_path):
    mesh = load_cob(write(tmp_path), position=(5.0, 6.0, 7.0), flags=COBFlags.NONE)
    assert mesh.attr & MeshAttr.CAN_BE_CULLED
    assert mesh.attr & MeshAttr.CAST_SHADOW
    assert np.allclose(mesh.position, [5.0, 6.0, 7.0, 1.0])


def test_face_indices_are_reversed(tmp_path):
    mesh = load_cob(write(tmp_path), flags=COBFlags.NONE)
    assert mesh.polys[0].vtx_indices == [2, 1, 0]
    assert mesh.polys[0].texture_coords_indices == [2, 1, 0]
    assert mesh.polys[1].vtx_indices == [3, 2, 0]
    assert mesh.polys[1].texture_coords_indices == [0, 2, 1]
    assert all(poly.state == PolyState.ACTIVE for poly in mesh.polys)


def test_vertices_without_flags_keep_file_positions(tmp_path):
    mesh = load_cob(write(tmp_path), flags=COBFlags.NONE)
    positions = [v.position[:3].tolist() for v in mesh.local_vertices]
    assert positions == [[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]]
    assert all(v.position[3] == 1.0 for v in mesh.local_vertices)


def test_swap_yz_is_default(tmp_path):
    mesh = load_cob(write(tmp_path))
    assert np.allclose(mesh.local_vertices[2].position[:3], [0.0, 0.0, -1.0])
    assert np.allclose(mesh.local_vertices[3].position[:3], [0.0, 1.0, 0.0])


def test_scale_applies_per_axis(tmp_path):
    mesh = load_cob(write(tmp_path), scale=(2.0, 3.0, 4.0), flags=COBFlags.NONE)
    assert np.allclose(mesh.local_vertices[1].position[:3], [2.0, 0.0, 0.0])
    assert np.allclose(mesh.local_vertices[2].position[:3], [0.0, 3.0, 0.0])
    assert np.allclose(mesh.local_vertices[3].position[:3], [0.0, 0.0, 4.0])


def test_center_translates_vertices(tmp_path):
    text = SAMPLE.replace("center 0 0 0", "center 1 2 3")
    mesh = load_cob(write(tmp_path, text), flags=COBFlags.NONE)
    assert np.allclose(mesh.local_vertices[0].position[:3], [-1.0, -2.0, -3.0])


def test_radius_of_unit_vertices(tmp_path):
    mesh = load_cob(write(tmp_path), flags=COBFlags.NONE)
    assert mesh.max_radius() == pytest.approx(1.0)
    assert mesh.average_radius() < mesh.max_radius()


def test_plain_material(tmp_path):
    mesh = load_cob(write(tmp_path), flags=COBFlags.NONE)
    material = mesh.polys[0].material
    assert material.attr & MaterialAttr.SHADE_MODE_GOURAUD
    assert not material.attr & MaterialAttr.SHADE_MODE_TEXTURE
    assert not material.attr & MaterialAttr.TRANSPARENT
    assert material.color.a == 255
    assert material.color.r == 255
    assert material.color.b == 0
    assert material.k_ambient == pytest.approx(0.1)
    assert material.k_diffuse == pytest.approx(0.9)
    assert material.texture is None


def test_reflective_colors_follow_factors(tmp_path):
    mesh = load_cob(write(tmp_path), flags=COBFlags.NONE)
    material = mesh.polys[0].material
    assert material.r_ambient.r <= material.r_diffuse.r <= material.color.r
    assert material.r_ambient.b == 0


def test_textured_transparent_material(tmp_path):
    mesh = load_cob(write(tmp_path), flags=COBFlags.NONE)
    material = mesh.polys[1].material
    assert material.attr & MaterialAttr.SHADE_MODE_TEXTURE
    assert material.attr & MaterialAttr.SHADE_MODE_FLAT
    assert material.attr & MaterialAttr.TRANSPARENT
    assert material.color.a == 200
    assert material.k_ambient == pytest.approx(0.5)
    assert material.k_diffuse == pytest.approx(0.5)
    assert material.power == pytest.approx(0.5)
    assert material.texture == (str(tmp_path / "brick.bmp"), (1.0, 1.0, 1.0))


def test_override_shade_mode(tmp_path):
    mesh = load_cob(
        write(tmp_path),
        flags=COBFlags.OVERRIDE_SHADE_MODE,
        override_shade_mode=ShadeMode.EMISSIVE,
    )
    assert len(mesh.polys) == 2
    plain = mesh.polys[0].material
    textured = mesh.polys[1].material
    assert plain.attr & MaterialAttr.SHADE_MODE_EMISSIVE
    assert not plain.attr & MaterialAttr.SHADE_MODE_GOURAUD
    assert not plain.attr & MaterialAttr.SHADE_MODE_FLAT
    assert textured.attr & MaterialAttr.SHADE_MODE_EMISSIVE
    assert not textured.attr & MaterialAttr.SHADE_MODE_FLAT
    assert not textured.attr & MaterialAttr.SHADE_MODE_GOURAUD
    assert textured.attr & MaterialAttr.SHADE_MODE_TEXTURE


def test_texture_vertex_attributes(tmp_path):
    mesh = load_cob(write(tmp_path), flags=COBFlags.NONE)
    flagged = [bool(v.attr & VertexAttr.HAS_TEXTURE_COORDS) for v in mesh.local_vertices]
    assert flagged == [True, False, True, True]
    for local, trans in zip(mesh.local_vertices, mesh.trans_vertices):
        assert local.attr == trans.attr


def test_vertex_normals_only_for_gouraud_faces(tmp_path):
    mesh = load_cob(write(tmp_path), flags=COBFlags.NONE)
    with_normal = [bool(v.attr & VertexAttr.HAS_NORMAL) for v in mesh.local_vertices]
    assert with_normal == [True, True, True, False]
    assert np.linalg.norm(mesh.local_vertices[1].normal[:3]) == pytest.approx(1.0)


def test_texture_coordinate_flags(tmp_path):
    path = write(tmp_path)
    plain = load_cob(path, flags=COBFlags.NONE).texture_coords
    inverted_u = load_cob(path, flags=COBFlags.INVERT_U).texture_coords
    inverted_v = load_cob(path, flags=COBFlags.INVERT_V).texture_coords
    swapped = load_cob(path, flags=COBFlags.SWAP_UV).texture_coords
    assert np.allclose(plain[2], [0.25, 0.75])
    assert np.allclose(inverted_u[:, 0], 1.0 - plain[:, 0])
    assert np.allclose(inverted_u[:, 1], plain[:, 1])
    assert np.allclose(inverted_v[:, 1], 1.0 - plain[:, 1])
    assert np.allclose(swapped, plain[:, ::-1])


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_cob(tmp_path / "absent.cob")


def test_truncated_file(tmp_path):
    text = SAMPLE.split("Faces")[0]
    with pytest.raises(COBError):
        load_cob(write(tmp_path, text))


def test_material_index_out_of_range(tmp_path):
    text = SAMPLE.replace("flags 0 mat 1", "flags 0 mat 300")
    with pytest.raises(COBError):
        load_cob(write(tmp_path, text))


def test_undefined_material(tmp_path):
    text = SAMPLE.replace("flags 0 mat 1", "flags 0 mat 5")
    with pytest.raises(COBError):
        load_cob(write(tmp_path, text))


def test_face_with_unknown_vertex(tmp_path):
    text = SAMPLE.replace("<0,0> <1,1> <2,2>", "<0,0> <1,1> <9,2>")
    with pytest.raises(COBError):
        load_cob(write(tmp_path, text))