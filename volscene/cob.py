"""Loading of COB (Caligari trueSpace text) object files into meshes."""

from __future__ import annotations

import os
import re
from dataclasses import replace
from enum import IntFlag
from typing import Iterable, Iterator, Optional, Sequence, Union

import numpy as np

from volscene.materials import Color, Material, MaterialAttr
from volscene.mesh import (
    MAX_MATERIALS_PER_MODEL,
    Mesh,
    MeshAttr,
    Poly,
    PolyState,
    ShadeMode,
    VertexAttr,
    texture_path_from_model_directory,
)

PathLike = Union[str, "os.PathLike[str]"]

_FLOAT = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_INT = re.compile(r"[-+]?\d+")
_SHADER_NAME = re.compile(r'Shader name: "([a-z ]{1,63})')
_TEXTURE_FILE = re.compile(r'file name: string "([0-9a-zA-Z\\/:. ]{1,255})')
_TEXTURE_PATH_SIZE = 256
_NAME_SIZE = 64

_REFLECTANCE_SHADERS = {
    "constant": MaterialAttr.SHADE_MODE_EMISSIVE,
    "matte": MaterialAttr.SHADE_MODE_FLAT,
    # Phong is not supported, Gouraud stands in for it
    "plastic": MaterialAttr.SHADE_MODE_GOURAUD,
    "phong": MaterialAttr.SHADE_MODE_GOURAUD,
}

_SHADE_MODE_BITS = (
    MaterialAttr.SHADE_MODE_EMISSIVE | MaterialAttr.SHADE_MODE_FLAT | MaterialAttr.SHADE_MODE_GOURAUD
)


class COBFlags(IntFlag):
    """Options applied while loading a COB object."""

    NONE = 0
    SWAP_YZ = 1 << 1
    SWAP_UV = 1 << 2
    INVERT_U = 1 << 3
    INVERT_V = 1 << 4
    OVERRIDE_SHADE_MODE = 1 << 5
    DEFAULT = SWAP_YZ


class COBError(ValueError):
    """Raised when a file is not a well-formed COB object."""


class _LineReader:
    """Yields the non-blank lines of a file with surrounding whitespace removed."""

    def __init__(self, lines: Iterable[str]) -> None:
        self._lines: Iterator[str] = iter(lines)

    def next_line(self, what: str = "a line") -> str:
        for raw in self._lines:
            line = raw.strip()
            if line:
                return line
        raise COBError(f"unexpected end of file while looking for {what}")

    def find(self, pattern: str) -> str:
        """Skip ahead to the next line that starts with ``pattern``."""
        while True:
            line = self.next_line(repr(pattern))
            if line.startswith(pattern):
                return line


def _floats(line: str, prefix: str, count: int) -> list[float]:
    values = _FLOAT.findall(line[len(prefix):])
    if len(values) < count:
        raise COBError(f"expected {count} numbers in line {line!r}")
    return [float(v) for v in values[:count]]


def _ints(line: str, prefix: str, count: int) -> list[int]:
    values = _INT.findall(line[len(prefix):])
    if len(values) < count:
        raise COBError(f"expected {count} integers in line {line!r}")
    return [int(v) for v in values[:count]]


def _shader_name(line: str) -> str:
    match = _SHADER_NAME.match(line)
    return match.group(1) if match else ""


def _point(values: Sequence[float]) -> np.ndarray:
    items = [float(v) for v in values]
    if len(items) == 3:
        items.append(1.0)
    if len(items) != 4:
        raise ValueError("a position needs 3 or 4 components")
    return np.array(items)


def _read_material(reader: _LineReader, model_path: str) -> Material:
    material = Material()

    reader.find("mat#")
    r, g, b = _floats(reader.find("rgb"), "rgb", 3)
    try:
        material.color = Color.argb(255, int(r * 255.0 + 0.5), int(g * 255.0 + 0.5), int(b * 255.0 + 0.5))
    except ValueError as error:
        raise COBError(f"material colour out of range: {error}") from error

    _alpha, k_ambient, _k_specular, power = _floats(reader.find("alpha"), "alpha", 4)
    material.k_ambient = k_ambient
    material.power = power

    reader.find("Shader class: color")
    if _shader_name(reader.next_line("colour shader name")) == "texture map":
        match = _TEXTURE_FILE.match(reader.find("file name:"))
        raw = match.group(1) if match else ""
        texture_path = texture_path_from_model_directory(raw, model_path)[: _TEXTURE_PATH_SIZE - 1]
        material.texture = (texture_path, (1.0, 1.0, 1.0))
        material.attr |= MaterialAttr.SHADE_MODE_TEXTURE

    reader.find("Shader class: transparency")
    if _shader_name(reader.find("Shader name")) == "filter":
        alpha = max(_ints(reader.find("colour: color"), "colour: color", 3))
        try:
            material.color = replace(material.color, a=alpha)
        except ValueError as error:
            raise COBError(f"transparency out of range: {error}") from error
        material.attr |= MaterialAttr.TRANSPARENT

    reader.find("Shader class: reflectance")
    name = _shader_name(reader.next_line("reflectance shader name"))
    material.attr |= _REFLECTANCE_SHADERS.get(name, MaterialAttr.SHADE_MODE_EMISSIVE)

    (num_params,) = _ints(reader.find("Number of parameters:"), "Number of parameters:", 1)
    for _ in range(num_params):
        line = reader.next_line("shader parameter")
        if line.startswith("diffuse"):
            prefix = "diffuse factor: float"
            if line.startswith(prefix):
                values = _FLOAT.findall(line[len(prefix):])
                if values:
                    material.k_diffuse = float(values[0])
            break

    material.compute_reflective_colors()
    return material


def load_cob(
    path: PathLike,
    position: Sequence[float] = (0.0, 0.0, 0.0),
    scale: Sequence[float] = (1.0, 1.0, 1.0),
    flags: COBFlags = COBFlags.DEFAULT,
    override_shade_mode: ShadeMode = ShadeMode.GOURAUD,
) -> Mesh:
    """Load a COB object into a single-frame mesh.

    Textured materials record their texture as ``(path, colour correction)``,
    the path being looked up next to the model file.
    ``override_shade_mode`` applies only with ``COBFlags.OVERRIDE_SHADE_MODE``.
    """
    model_path = os.fspath(path)
    flags = COBFlags(flags)
    scale_xyz = np.array([float(v) for v in scale][:3])
    if scale_xyz.size != 3:
        raise ValueError("scale needs at least 3 components")

    with open(model_path, encoding="latin-1") as file:
        reader = _LineReader(file.read().splitlines())

    mesh = Mesh()
    mesh.position = _point(position)
    mesh.attr |= MeshAttr.CAN_BE_CULLED | MeshAttr.CAST_SHADOW

    name_parts = reader.find("Name")[len("Name"):].split()
    mesh.name = name_parts[0][: _NAME_SIZE - 1] if name_parts else ""

    # Local transform: centre translation and axis columns
    mat_local = np.identity(4)
    mat_local[3, :3] = [-v for v in _floats(reader.find("center"), "center", 3)]
    for column, axis in enumerate(("x axis", "y axis", "z axis")):
        mat_local[:3, column] = _floats(reader.find(axis), axis, 3)

    # World transform: the first three columns of the rows that follow
    mat_world = np.identity(4)
    reader.find("Transform")
    for column in range(3):
        mat_world[:3, column] = _floats(reader.next_line("transform row"), "", 3)

    transform = mat_local @ mat_world

    (num_vertices,) = _ints(reader.find("World Vertices"), "World Vertices", 1)
    if num_vertices < 0:
        raise COBError("negative vertex count")
    mesh.allocate(num_vertices, num_vertices * 3, mesh.num_frames)

    for vertex in mesh.local_vertices[:num_vertices]:
        x, y, z = _floats(reader.next_line("vertex"), "", 3)
        point = np.array([x, y, z, 1.0]) @ transform
        if flags & COBFlags.SWAP_YZ:
            point[1], point[2] = point[2], -point[1]
        point[:3] *= scale_xyz
        vertex.position = point

    (num_coords,) = _ints(reader.find("Texture Vertices"), "Texture Vertices", 1)
    if num_coords < 0:
        raise COBError("negative texture coordinate count")
    coords = np.array(
        [_floats(reader.next_line("texture coordinate"), "", 2) for _ in range(num_coords)], dtype=float
    ).reshape(num_coords, 2)

    (num_faces,) = _ints(reader.find("Faces"), "Faces", 1)
    if num_faces < 0:
        raise COBError("negative face count")
    mesh.polys = [Poly() for _ in range(num_faces)]
    mesh.num_poly = num_faces

    material_indices: list[int] = []
    for poly in mesh.polys:
        _verts, _flags, material_index = _ints(reader.next_line("face"), "Face verts", 3)
        if not 0 <= material_index < MAX_MATERIALS_PER_MODEL:
            raise COBError(f"material index {material_index} out of range")
        material_indices.append(material_index)

        indices = _ints(reader.next_line("face indices"), "", 6)
        poly.vtx_indices = [indices[4], indices[2], indices[0]]
        poly.texture_coords_indices = [indices[5], indices[3], indices[1]]
        if any(not 0 <= index < num_vertices for index in poly.vtx_indices):
            raise COBError("face refers to a vertex that does not exist")
        poly.state = PolyState.ACTIVE

    materials: list[Optional[Material]] = [None] * MAX_MATERIALS_PER_MODEL
    for slot in range(len(set(material_indices))):
        materials[slot] = _read_material(reader, model_path)

    override = MaterialAttr(int(override_shade_mode))
    for poly, material_index in zip(mesh.polys, material_indices):
        material = materials[material_index]
        if material is None:
            raise COBError(f"face uses material {material_index}, which the file does not define")

        if flags & COBFlags.OVERRIDE_SHADE_MODE:
            material.attr = (material.attr & ~_SHADE_MODE_BITS) | override

        if material.attr & MaterialAttr.SHADE_MODE_TEXTURE:
            for index in poly.vtx_indices:
                local = mesh.local_vertices[index]
                local.attr |= VertexAttr.HAS_TEXTURE_COORDS
                mesh.trans_vertices[index].attr = local.attr

        poly.material = material

    if flags & COBFlags.INVERT_U:
        coords[:, 0] = 1.0 - coords[:, 0]
    if flags & COBFlags.INVERT_V:
        coords[:, 1] = 1.0 - coords[:, 1]
    if flags & COBFlags.SWAP_UV:
        coords = coords[:, ::-1].copy()
    mesh.num_texture_coords = num_coords
    mesh.texture_coords = coords

    mesh.compute_radius()
    mesh.compute_polygon_normals_length()
    mesh.compute_vertex_normals()
    return mesh