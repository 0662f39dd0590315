"""Triangle meshes with per-frame vertex data and MD2-style animation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Optional

import numpy as np

from volscene.camera import Camera
from volscene.materials import Color, Material, MaterialAttr


def _bit(n: int) -> int:
    return 1 << n


class MeshState(IntFlag):
    NONE = 0
    ACTIVE = _bit(1)
    VISIBLE = _bit(2)
    CULLED = _bit(3)
    ANIMATION_PLAYED = _bit(4)


class MeshAttr(IntFlag):
    NONE = 0
    MULTI_FRAME = _bit(1)
    CAN_BE_CULLED = _bit(2)
    CAST_SHADOW = _bit(3)
    TERRAIN_MESH = _bit(4)
    LOOP_ANIMATION = _bit(5)


class CullType(IntFlag):
    X = _bit(1)
    Y = _bit(2)
    Z = _bit(3)
    XYZ = X | Y | Z


class ShadeMode(IntEnum):
    EMISSIVE = int(MaterialAttr.SHADE_MODE_EMISSIVE)
    FLAT = int(MaterialAttr.SHADE_MODE_FLAT)
    GOURAUD = int(MaterialAttr.SHADE_MODE_GOURAUD)


class AnimationId(IntEnum):
    STANDING_IDLE = 0
    RUN = 1
    ATTACK = 2
    PAIN1 = 3
    PAIN2 = 4
    PAIN3 = 5
    JUMP = 6
    FLIP = 7
    SALUTE = 8
    TAUNT = 9
    WAVE = 10
    POINT = 11
    CROUCH_STAND = 12
    CROUCH_WALK = 13
    CROUCH_ATTACK = 14
    CROUCH_PAIN = 15
    CROUCH_DEATH = 16
    DEATH_BACK = 17
    DEATH_FORWARD = 18
    DEATH_SLOW = 19


class InterpMode(IntEnum):
    DEFAULT = 0  # taken from the animation table
    LINEAR = 1  # smooth, but looping MD2 animations may jerk at the seam
    FIXED = 2  # stepped, suits looping MD2 animations


class TransformType(IntEnum):
    LOCAL_ONLY = 0
    TRANS_ONLY = 1
    LOCAL_TO_TRANS = 2


class VertexAttr(IntFlag):
    NONE = 0
    HAS_NORMAL = _bit(1)
    HAS_TEXTURE_COORDS = _bit(2)


class PolyState(IntFlag):
    NONE = 0
    ACTIVE = _bit(1)
    CLIPPED = _bit(2)
    BACKFACE = _bit(3)
    LIT = _bit(4)


def _point() -> np.ndarray:
    return np.array([0.0, 0.0, 0.0, 1.0])


@dataclass
class Vertex:
    """A vertex: homogeneous position, normal and attribute bits."""

    position: np.ndarray = field(default_factory=_point)
    normal: np.ndarray = field(default_factory=lambda: np.zeros(4))
    attr: VertexAttr = VertexAttr.NONE

    def copy(self) -> Vertex:
        return Vertex(self.position.copy(), self.normal.copy(), self.attr)


@dataclass
class Poly:
    """A triangle indexing into its mesh's vertex and texture coordinate lists."""

    state: PolyState = PolyState.NONE
    material: Optional[Material] = None
    vtx_indices: list[int] = field(default_factory=lambda: [0, 0, 0])
    texture_coords_indices: list[int] = field(default_factory=lambda: [0, 0, 0])
    lit_color: list[Color] = field(default_factory=lambda: [Color(0, 0, 0, 0)] * 3)
    normal_length: float = 0.0


@dataclass(frozen=True)
class Animation:
    frame_start: int
    frame_end: int
    interp_rate: float
    interp_once_in_seconds: float
    interp_mode: InterpMode = InterpMode.LINEAR


ANIMATIONS: tuple[Animation, ...] = (
    Animation(0, 39, 0.5, 0.05, InterpMode.FIXED),  # STANDING_IDLE
    Animation(40, 45, 0.5, 0.05, InterpMode.FIXED),  # RUN
    Animation(46, 53, 0.5, 0.05),  # ATTACK
    Animation(54, 57, 0.5, 0.05),  # PAIN1
    Animation(58, 61, 0.5, 0.05),  # PAIN2
    Animation(62, 65, 0.5, 0.05),  # PAIN3
    Animation(66, 71, 0.5, 0.05),  # JUMP
    Animation(72, 83, 0.5, 0.05),  # FLIP
    Animation(84, 94, 0.5, 0.05),  # SALUTE
    Animation(95, 111, 0.5, 0.05),  # TAUNT
    Animation(112, 122, 0.5, 0.05),  # WAVE
    Animation(123, 134, 0.5, 0.05),  # POINT
    Animation(135, 153, 0.5, 0.05),  # CROUCH_STAND
    Animation(154, 159, 0.5, 0.05, InterpMode.FIXED),  # CROUCH_WALK
    Animation(160, 168, 0.5, 0.05),  # CROUCH_ATTACK
    Animation(169, 172, 0.5, 0.05),  # CROUCH_PAIN
    Animation(173, 177, 0.25, 0.025),  # CROUCH_DEATH
    Animation(178, 183, 0.25, 0.025),  # DEATH_BACK
    Animation(184, 189, 0.25, 0.025),  # DEATH_FORWARD
    Animation(190, 197, 0.25, 0.025),  # DEATH_SLOW
)

MAX_MATERIALS_PER_MODEL = 256


def texture_path_from_model_directory(texture_path: str, model_path: str) -> str:
    """Join the model's directory with the file name part of a texture path."""

    def _after_last_slash(path: str) -> int:
        return max(path.rfind("/"), path.rfind("\\")) + 1

    return model_path[: _after_last_slash(model_path)] + texture_path[_after_last_slash(texture_path):]


def rotation_matrix(x: float, y: float, z: float) -> np.ndarray:
    """Row-vector rotation matrix applying X, then Y, then Z (degrees)."""
    sx, cx = math.sin(math.radians(x)), math.cos(math.radians(x))
    sy, cy = math.sin(math.radians(y)), math.cos(math.radians(y))
    sz, cz = math.sin(math.radians(z)), math.cos(math.radians(z))

    rot_x = np.array([
        [1.0, 0.0, 0.0, 0.0],
        [0.0, cx, sx, 0.0],
        [0.0, -sx, cx, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])
    rot_y = np.array([
        [cy, 0.0, -sy, 0.0],
        [0.0, 1.0, 0.0, 0.0],
        [sy, 0.0, cy, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])
    rot_z = np.array([
        [cz, sz, 0.0, 0.0],
        [-sz, cz, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])
    return rot_x @ rot_y @ rot_z


def _normalize_xyz(vector: np.ndarray) -> None:
    length = float(np.linalg.norm(vector[:3]))
    if length > 0.0:
        vector[:3] /= length


@dataclass
class Mesh:
    """A mesh whose local vertices hold ``num_frames`` consecutive frames."""

    name: str = ""
    state: MeshState = MeshState.ACTIVE | MeshState.VISIBLE | MeshState.ANIMATION_PLAYED
    attr: MeshAttr = MeshAttr.NONE
    position: np.ndarray = field(default_factory=_point)
    rotation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    num_frames: int = 1
    current_frame: float = 0.0
    current_animation_id: AnimationId = AnimationId.STANDING_IDLE
    animation_interp_mode: InterpMode = InterpMode.DEFAULT
    animation_time_accum: float = 0.0
    num_vtx: int = 0
    total_num_vtx: int = 0
    local_vertices: list[Vertex] = field(default_factory=list)
    trans_vertices: list[Vertex] = field(default_factory=list)
    num_poly: int = 0
    polys: list[Poly] = field(default_factory=list)
    average_radius_list: list[float] = field(default_factory=list)
    max_radius_list: list[float] = field(default_factory=list)
    num_texture_coords: int = 0
    texture_coords: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))

    def allocate(
        self,
        num_vtx: int,
        num_poly: int,
        num_frames: int,
        num_texture_coords: Optional[int] = None,
    ) -> None:
        """Create zeroed vertices, polygons, radius lists and texture coordinates.

        Without ``num_texture_coords`` room is made for three per polygon.
        """
        if num_vtx < 0 or num_poly < 0 or num_frames < 1:
            raise ValueError("invalid mesh dimensions")
        self.local_vertices = [Vertex() for _ in range(num_vtx * num_frames)]
        self.trans_vertices = [Vertex() for _ in range(num_vtx)]
        self.polys = [Poly() for _ in range(num_poly)]
        self.num_texture_coords = num_poly * 3 if num_texture_coords is None else num_texture_coords
        self.texture_coords = np.zeros((self.num_texture_coords, 2))
        self.average_radius_list = [0.0] * num_frames
        self.max_radius_list = [0.0] * num_frames

        self.num_vtx = num_vtx
        self.total_num_vtx = num_vtx * num_frames
        self.num_poly = num_poly
        self.num_frames = num_frames

    def destroy(self) -> None:
        """Drop all geometry."""
        self.local_vertices = []
        self.trans_vertices = []
        self.polys = []
        self.texture_coords = np.zeros((0, 2))
        self.average_radius_list = []
        self.max_radius_list = []
        self.num_vtx = self.total_num_vtx = self.num_poly = self.num_texture_coords = 0

    def reset_render_state(self) -> None:
        """Clear per-frame culling, clipping and lighting state."""
        self.state &= ~MeshState.CULLED
        for poly in self.polys:
            if not poly.state & PolyState.ACTIVE:
                continue
            poly.state &= ~(PolyState.CLIPPED | PolyState.BACKFACE | PolyState.LIT)
            if poly.material is not None:
                poly.lit_color = [poly.material.color] * 3

    def _frame(self, frame: int) -> list[Vertex]:
        start = frame * self.num_vtx
        return self.local_vertices[start:start + self.num_vtx]

    def compute_radius(self) -> None:
        """Compute average and maximum vertex distance per frame."""
        for frame in range(self.num_frames):
            distances = [float(np.linalg.norm(v.position[:3])) for v in self._frame(frame)]
            self.average_radius_list[frame] = sum(distances) / len(distances) if distances else 0.0
            self.max_radius_list[frame] = max(distances, default=0.0)

    def compute_polygon_normals_length(self) -> None:
        for poly in self.polys:
            v0, v1, v2 = (self.local_vertices[i].position[:3] for i in poly.vtx_indices)
            poly.normal_length = float(np.linalg.norm(np.cross(v1 - v0, v2 - v0)))

    def compute_vertex_normals(self) -> None:
        """Average face normals onto the vertices of Gouraud-shaded polygons."""
        touches = [0] * self.num_vtx
        for poly in self.polys:
            if poly.material is None or not poly.material.attr & MaterialAttr.SHADE_MODE_GOURAUD:
                continue
            for index in poly.vtx_indices:
                touches[index] += 1
            for frame in range(self.num_frames):
                base = frame * self.num_vtx
                v0, v1, v2 = (self.local_vertices[base + i] for i in poly.vtx_indices)
                normal = np.cross(v1.position[:3] - v0.position[:3], v2.position[:3] - v0.position[:3])
                for vertex in (v0, v1, v2):
                    vertex.normal[:3] += normal

        for frame in range(self.num_frames):
            for vertex, count in zip(self._frame(frame), touches):
                if count > 0:
                    vertex.normal /= count
                    _normalize_xyz(vertex.normal)
                    vertex.attr |= VertexAttr.HAS_NORMAL

    def _world_matrices(self) -> tuple[np.ndarray, np.ndarray]:
        mat_normal = rotation_matrix(*self.rotation)
        mat_position = mat_normal.copy()
        mat_position[3] = self.position
        return mat_normal, mat_position

    def transform_model_to_world(self, transform_type: TransformType = TransformType.LOCAL_TO_TRANS) -> None:
        """Rotate and translate into world space (LOCAL_TO_TRANS or TRANS_ONLY)."""
        mat_normal, mat_position = self._world_matrices()
        for i in range(self.num_vtx):
            local = self.local_vertices[i]
            if transform_type == TransformType.LOCAL_TO_TRANS:
                trans = local.copy()
                trans.position = local.position @ mat_position
                self.trans_vertices[i] = trans
            else:
                trans = self.trans_vertices[i]
                trans.position = trans.position @ mat_position
            trans.normal = local.normal @ mat_normal

    def transform(self, matrix: np.ndarray, transform_type: TransformType) -> None:
        """Apply a matrix to positions, and to normals where vertices have them."""
        for i in range(self.num_vtx):
            if transform_type == TransformType.LOCAL_ONLY:
                source = target = self.local_vertices[i]
            elif transform_type == TransformType.TRANS_ONLY:
                source = target = self.trans_vertices[i]
            else:
                source, target = self.local_vertices[i], self.trans_vertices[i]
            has_normal = bool(source.attr & VertexAttr.HAS_NORMAL)
            target.position = source.position @ matrix
            if has_normal:
                target.normal = source.normal @ matrix

    def cull(self, camera: Camera, cull_type: CullType = CullType.XYZ) -> bool:
        """Test the bounding sphere against the view frustum; mark and report culling."""
        if not self.attr & MeshAttr.CAN_BE_CULLED:
            return False

        sphere = self.position @ camera.mat_camera
        radius = self.max_radius()

        culled = False
        if cull_type & CullType.X:
            z_test = (0.5 * camera.viewplane_size[0]) * (sphere[2] / camera.view_dist)
            culled = sphere[0] - radius > z_test or sphere[0] + radius < -z_test
        if not culled and cull_type & CullType.Y:
            z_test = (0.5 * camera.viewplane_size[1]) * (sphere[2] / camera.view_dist)
            culled = sphere[1] - radius > z_test or sphere[1] + radius < -z_test
        if not culled and cull_type & CullType.Z:
            culled = sphere[2] - radius > camera.z_far_clip or sphere[2] + radius < camera.z_near_clip

        if culled:
            self.state |= MeshState.CULLED
        return bool(culled)

    def play_animation(
        self,
        animation_id: AnimationId,
        loop: bool = False,
        interp_mode: InterpMode = InterpMode.DEFAULT,
    ) -> None:
        """Start an animation; does nothing for single-frame meshes."""
        if not self.attr & MeshAttr.MULTI_FRAME:
            return

        animation_id = AnimationId(animation_id)
        self.current_animation_id = animation_id
        if interp_mode == InterpMode.DEFAULT and not loop:
            self.animation_interp_mode = InterpMode.LINEAR
        else:
            self.animation_interp_mode = InterpMode(interp_mode)
        self.animation_time_accum = 0.0

        self.state &= ~MeshState.ANIMATION_PLAYED
        if loop:
            self.attr |= MeshAttr.LOOP_ANIMATION
        else:
            self.attr &= ~MeshAttr.LOOP_ANIMATION

        self.current_frame = float(ANIMATIONS[animation_id].frame_start)

    def update_animation_and_transform(self, delta_time: float) -> None:
        """Interpolate the current frames into world space, then advance the animation.

        ``delta_time`` is in milliseconds.
        """
        mat_normal, mat_position = self._world_matrices()
        n = self.num_vtx

        frame1 = int(self.current_frame)
        if frame1 < self.num_frames:
            frame2 = frame1 + 1
        else:
            frame1 = self.num_frames - 1
            frame2 = frame1

        if frame2 < self.num_frames:
            t = self.current_frame - math.floor(self.current_frame)
            for i in range(n):
                first = self.local_vertices[frame1 * n + i]
                second = self.local_vertices[frame2 * n + i]
                vertex = first.copy()
                vertex.position = ((1.0 - t) * first.position + t * second.position) @ mat_position
                vertex.normal = first.normal @ mat_normal
                self.trans_vertices[i] = vertex
        else:
            for i in range(n):
                local = self.local_vertices[frame1 * n + i]
                vertex = local.copy()
                vertex.position = local.position @ mat_position
                vertex.normal = local.normal @ mat_normal
                self.trans_vertices[i] = vertex

        if self.state & MeshState.ANIMATION_PLAYED:
            return

        animation = ANIMATIONS[self.current_animation_id]
        mode = self.animation_interp_mode
        if mode == InterpMode.DEFAULT:
            mode = animation.interp_mode

        if mode == InterpMode.LINEAR:
            self.current_frame += ((delta_time / 1000.0) / animation.interp_once_in_seconds) * animation.interp_rate
            if self.current_frame >= animation.frame_end:
                if self.attr & MeshAttr.LOOP_ANIMATION:
                    self.current_frame = animation.frame_start + animation.interp_rate * (
                        math.floor(self.current_frame) / animation.interp_once_in_seconds
                    )
                    if self.current_frame > animation.frame_end:
                        self.current_frame = float(animation.frame_start)
                else:
                    self.current_frame = float(animation.frame_end)
                    self.state |= MeshState.ANIMATION_PLAYED
        else:
            self.animation_time_accum += delta_time / 1000.0
            steps = int(self.animation_time_accum / animation.interp_once_in_seconds)
            self.animation_time_accum -= steps * animation.interp_once_in_seconds

            self.current_frame += steps * animation.interp_rate
            if self.current_frame >= animation.frame_end:
                if self.attr & MeshAttr.LOOP_ANIMATION:
                    self.current_frame = animation.frame_start + animation.interp_rate * (
                        self.animation_time_accum / animation.interp_once_in_seconds
                    )
                    self.animation_time_accum = 0.0
                    if self.current_frame > animation.frame_end:
                        self.current_frame = float(animation.frame_start)
                else:
                    self.current_frame = float(animation.frame_end)
                    self.state |= MeshState.ANIMATION_PLAYED

    def average_radius(self) -> float:
        return self.average_radius_list[int(self.current_frame)]

    def max_radius(self) -> float:
        return self.max_radius_list[int(self.current_frame)]