"""Loading of MD2 animated models into meshes."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from volscene.materials import Material, MaterialAttr
from volscene.mesh import (
    Mesh,
    MeshAttr,
    PolyState,
    ShadeMode,
    VertexAttr,
    texture_path_from_model_directory,
)

MD2_MAGIC = int.from_bytes(b"IDP2", "little")
MD2_VERSION = 8
SKIN_PATH_SIZE = 64

_HEADER = struct.Struct("<17i")
_FRAME_PREFIX = struct.Struct("<6f16s")
_POLY_SIZE = 12

PathLike = Union[str, "os.PathLike[str]"]


class MD2Error(ValueError):
    """Raised when data is not a well-formed MD2 model."""


@dataclass(frozen=True)
class MD2Header:
    """The fixed-size header at the start of an MD2 file."""

    magic: int
    version: int
    skin_width: int
    skin_height: int
    frame_size: int
    num_skins: int
    num_vtx: int
    num_texture_coords: int
    num_poly: int
    num_opengl_cmds: int
    num_frames: int
    offset_skins: int
    offset_texture_coords: int
    offset_poly: int
    offset_frames: int
    offset_opengl_cmds: int
    offset_end: int


def parse_header(data: bytes) -> MD2Header:
    """Read and check the header; raise MD2Error on a bad magic number or version."""
    if len(data) < _HEADER.size:
        raise MD2Error(f"data of {len(data)} bytes is too short for an MD2 header")
    header = MD2Header(*_HEADER.unpack_from(data))
    if header.magic != MD2_MAGIC or header.version != MD2_VERSION:
        raise MD2Error(
            f"magic number or version in header is not correct, "
            f"magic: {header.magic}, version: {header.version}"
        )
    return header


def _check_range(data: bytes, offset: int, size: int, what: str) -> None:
    if offset < 0 or size < 0 or offset + size > len(data):
        raise MD2Error(f"{what} lies outside the file")


def _point(values: Sequence[float]) -> np.ndarray:
    items = [float(v) for v in values]
    if len(items) not in (3, 4):
        raise ValueError("a position needs 3 or 4 components")
    return np.array(items[:3] + [1.0])


def _skin_path(data: bytes, header: MD2Header, skin_index: int, model_path: str) -> str:
    if header.num_skins > 0:
        skin_index %= header.num_skins
    offset = header.offset_skins + skin_index * SKIN_PATH_SIZE
    _check_range(data, offset, SKIN_PATH_SIZE, "skin path")
    raw = bytes(data[offset:offset + SKIN_PATH_SIZE]).split(b"\0", 1)[0].decode("latin-1")
    return texture_path_from_model_directory(raw, model_path)[: SKIN_PATH_SIZE - 1]


def load_md2(
    path: PathLike,
    skin_path: Optional[str] = None,
    skin_index: int = 0,
    position: Sequence[float] = (0.0, 0.0, 0.0),
    scale: Sequence[float] = (1.0, 1.0, 1.0),
    shade_mode: ShadeMode = ShadeMode.GOURAUD,
    color_correction: Sequence[float] = (1.0, 1.0, 1.0),
) -> Mesh:
    """Load an MD2 model into a multi-frame mesh.

    The material's texture is recorded as ``(skin path, colour correction)``;
    without ``skin_path`` the skin named in the file is looked up next to the model.
    """
    model_path = os.fspath(path)
    with open(model_path, "rb") as file:
        data = file.read()

    header = parse_header(data)
    counts = (header.num_vtx, header.num_poly, header.num_texture_coords, header.num_skins)
    if any(count < 0 for count in counts) or header.num_frames < 1:
        raise MD2Error("header holds invalid element counts")
    if header.num_texture_coords > 0 and (header.skin_width <= 0 or header.skin_height <= 0):
        raise MD2Error("header holds an invalid skin size")

    in_scale = [float(v) for v in scale]
    mesh = Mesh()
    mesh.attr = MeshAttr.CAN_BE_CULLED | MeshAttr.CAST_SHADOW | MeshAttr.MULTI_FRAME
    mesh.position = _point(position)
    mesh.allocate(header.num_vtx, header.num_poly, header.num_frames, header.num_texture_coords)

    # Texture coordinates
    tc_size = 4 * header.num_texture_coords
    _check_range(data, header.offset_texture_coords, tc_size, "texture coordinates")
    if header.num_texture_coords:
        raw_coords = np.frombuffer(
            data, dtype="<i2", count=2 * header.num_texture_coords, offset=header.offset_texture_coords
        ).reshape(header.num_texture_coords, 2)
        mesh.texture_coords = raw_coords.astype(float) / np.array(
            [float(header.skin_width), float(header.skin_height)]
        )

    # Frames: MD2 Y becomes X, MD2 Z becomes Y and MD2 X becomes Z
    n = header.num_vtx
    for frame in range(header.num_frames):
        base = header.offset_frames + frame * header.frame_size
        _check_range(data, base, _FRAME_PREFIX.size + 4 * n, f"frame {frame}")
        sx, sy, sz, tx, ty, tz, _name = _FRAME_PREFIX.unpack_from(data, base)
        if n == 0:
            continue
        points = np.frombuffer(data, dtype=np.uint8, count=4 * n, offset=base + _FRAME_PREFIX.size)
        points = points.reshape(n, 4).astype(float)
        xs = points[:, 1] * (sy * in_scale[1]) + ty
        ys = points[:, 2] * (sz * in_scale[2]) + tz
        zs = points[:, 0] * (sx * in_scale[0]) + tx
        for i, vertex in enumerate(mesh.local_vertices[frame * n:(frame + 1) * n]):
            vertex.position = np.array([xs[i], ys[i], zs[i], 1.0])

    # Material
    material = Material()
    material.attr = MaterialAttr(int(shade_mode)) | MaterialAttr.SHADE_MODE_TEXTURE
    skin = skin_path if skin_path is not None else _skin_path(data, header, skin_index, model_path)
    material.texture = (skin, tuple(float(c) for c in color_correction))

    # Polygons: MD2 winds counter-clockwise, so (0, 2, 1) becomes (0, 1, 2)
    _check_range(data, header.offset_poly, _POLY_SIZE * header.num_poly, "polygons")
    if header.num_poly:
        raw_polys = np.frombuffer(
            data, dtype="<u2", count=6 * header.num_poly, offset=header.offset_poly
        ).reshape(header.num_poly, 6)
        for poly, indices in zip(mesh.polys, raw_polys.tolist()):
            vtx = [indices[0], indices[2], indices[1]]
            if any(index >= n for index in vtx):
                raise MD2Error("polygon refers to a vertex that does not exist")
            poly.vtx_indices = vtx
            poly.texture_coords_indices = [indices[3], indices[5], indices[4]]
            for index in vtx:
                local = mesh.local_vertices[index]
                local.attr |= VertexAttr.HAS_TEXTURE_COORDS
                mesh.trans_vertices[index].attr = local.attr
            poly.state = PolyState.ACTIVE
            poly.material = material

    mesh.compute_radius()
    mesh.compute_polygon_normals_length()
    mesh.compute_vertex_normals()
    return mesh