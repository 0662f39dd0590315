"""Terrain meshes generated from height maps."""

from __future__ import annotations

import os
from typing import Union

import numpy as np
from PIL import Image

from volscene.materials import Material, MaterialAttr
from volscene.mesh import Mesh, MeshAttr, PolyState, ShadeMode, VertexAttr

PathLike = Union[str, "os.PathLike[str]"]


def generate_terrain_from_heights(
    heights,
    texture: str,
    size: float = 15000.0,
    height: float = 1000.0,
    shade_mode: ShadeMode = ShadeMode.GOURAUD,
) -> Mesh:
    """Build a terrain mesh from a 2-D array of 0..255 height samples.

    The map's width sets the grid; the mesh is centred on the origin in X and Z
    and spans ``size`` across and ``height`` from sample 0 to sample 255.
    """
    samples = np.asarray(heights, dtype=float)
    if samples.ndim != 2:
        raise ValueError("height map must be two-dimensional")
    row_size = samples.shape[1]
    if row_size < 1 or samples.shape[0] < row_size:
        raise ValueError("height map must be at least as tall as it is wide and not empty")

    mesh = Mesh()
    mesh.attr = MeshAttr.TERRAIN_MESH

    material = Material()
    material.texture = (texture, (1.0, 1.0, 1.0))
    material.attr |= MaterialAttr.TERRAIN | MaterialAttr(int(shade_mode)) | MaterialAttr.SHADE_MODE_TEXTURE

    per_row = row_size + 1
    mesh.allocate(per_row * per_row, row_size * row_size * 2, 1)

    map_step = row_size / per_row
    units_per_height = height / 255.0
    tile_size = size / row_size

    for y in range(per_row):
        y_map = int(0.5 + y * map_step)
        for x in range(per_row):
            x_map = int(0.5 + x * map_step)
            index = y * per_row + x
            mesh.local_vertices[index].position = np.array(
                [x * tile_size, samples[y_map, x_map] * units_per_height, y * tile_size, 1.0]
            )
            # V is inverted because the map starts from the bottom
            mesh.texture_coords[index] = (x / per_row, 1.0 - y / per_row)

    for y in range(row_size):
        for x in range(row_size):
            first = mesh.polys[(y * 2) * row_size + x * 2]
            second = mesh.polys[(y * 2) * row_size + x * 2 + 1]
            top = y * per_row + x
            bottom = (y + 1) * per_row + x
            for poly, indices in ((first, [top, bottom, bottom + 1]), (second, [top, bottom + 1, top + 1])):
                poly.state |= PolyState.ACTIVE
                poly.material = material
                poly.vtx_indices = list(indices)
                poly.texture_coords_indices = list(indices)

    for local, trans in zip(mesh.local_vertices, mesh.trans_vertices):
        local.attr |= VertexAttr.HAS_TEXTURE_COORDS
        trans.attr = local.attr

    mesh.compute_radius()
    mesh.compute_polygon_normals_length()
    mesh.compute_vertex_normals()

    mesh.position = np.array([-size / 2.0, -height / 2.0, -size / 2.0, 1.0])
    return mesh


def generate_terrain(
    height_map: PathLike,
    texture: str,
    size: float = 15000.0,
    height: float = 1000.0,
    shade_mode: ShadeMode = ShadeMode.GOURAUD,
) -> Mesh:
    """Build a terrain mesh from the red channel of a height map image file."""
    with Image.open(os.fspath(height_map)) as image:
        red = np.asarray(image.convert("RGB"))[:, :, 0]
    return generate_terrain_from_heights(red, texture, size, height, shade_mode)