"""Perspective camera with Euler and UVN view matrices."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Optional, Sequence

import numpy as np


class CameraAttr(IntFlag):
    EULER = 1 << 1
    UVN = 1 << 2


class RotateSeq(Enum):
    YXZ = 0
    ZXY = 1


class UVNMode(Enum):
    SIMPLE = 0
    SPHERICAL = 1


@dataclass
class Plane:
    """A plane given by a point on it and its unit normal."""

    point: np.ndarray
    normal: np.ndarray


def _vec4(values: Optional[Sequence[float]], w: float = 1.0) -> np.ndarray:
    result = np.array([0.0, 0.0, 0.0, w], dtype=float)
    if values is not None:
        items = list(values)
        if len(items) not in (3, 4):
            raise ValueError("a vector needs 3 or 4 components")
        result[: len(items)] = items
    return result


def _unit3(x: float, y: float, z: float) -> np.ndarray:
    vector = np.array([x, y, z], dtype=float)
    return vector / np.linalg.norm(vector)


def _normalize_xyz(vector: np.ndarray) -> np.ndarray:
    result = vector.copy()
    length = float(np.linalg.norm(result[:3]))
    if length > 0.0:
        result[:3] /= length
    return result


def _sin(degrees: float) -> float:
    return math.sin(math.radians(degrees))


def _cos(degrees: float) -> float:
    return math.cos(math.radians(degrees))


class Camera:
    """A camera; matrices use the row-vector convention (``v @ M``)."""

    def __init__(
        self,
        attr: CameraAttr = CameraAttr.EULER,
        position: Sequence[float] = (0.0, 1000.0, 1500.0),
        direction: Sequence[float] = (0.0, 0.0, 0.0),
        target: Optional[Sequence[float]] = None,
        fov: float = 80.0,
        z_near_clip: float = 100.0,
        z_far_clip: float = 1000000.0,
        screen_width: int = 800,
        screen_height: int = 600,
    ) -> None:
        if screen_width <= 0 or screen_height <= 0:
            raise ValueError("screen size must be positive")

        self.attr = CameraAttr(attr)
        self.position = _vec4(position)
        self.direction = _vec4(direction)

        self.u = np.array([1.0, 0.0, 0.0, 1.0])
        self.v = np.array([0.0, 1.0, 0.0, 1.0])
        self.n = np.array([0.0, 0.0, 1.0, 1.0])
        self.target = _vec4(target)

        self.screen_width = screen_width
        self.screen_height = screen_height

        self.fov = float(fov)
        self.aspect_ratio = screen_width / screen_height
        self.z_near_clip = float(z_near_clip)
        self.z_far_clip = float(z_far_clip)

        self.viewplane_size = np.array([2.0, 2.0 / self.aspect_ratio])
        self.view_dist = (self.viewplane_size[0] * 0.5) / math.tan(math.radians(self.fov * 0.5))

        self.mat_camera = np.identity(4)
        self.mat_camera_rotation_only = np.identity(4)
        self.mat_perspective = np.identity(4)
        self.mat_screen = np.identity(4)

        origin = np.zeros(3)
        if self.fov == 90.0:
            normals = (
                _unit3(-1.0, 0.0, -1.0),
                _unit3(1.0, 0.0, -1.0),
                _unit3(0.0, 1.0, -1.0),
                _unit3(0.0, -1.0, -1.0),
            )
        else:
            half = -self.viewplane_size[0] * 0.5
            d = self.view_dist
            normals = (
                _unit3(-d, 0.0, half),
                _unit3(d, 0.0, half),
                _unit3(0.0, d, half),
                _unit3(0.0, -d, half),
            )
        self.left_clip_plane, self.right_clip_plane, self.top_clip_plane, self.bottom_clip_plane = (
            Plane(origin.copy(), normal) for normal in normals
        )

    def _inverse_translation(self) -> np.ndarray:
        matrix = np.identity(4)
        matrix[3, :3] = -self.position[:3]
        return matrix

    def build_world_to_camera(self) -> None:
        """Build the world-to-camera matrix and its rotation-only copy."""
        if self.attr & CameraAttr.EULER:
            self.build_euler(RotateSeq.YXZ)
        else:
            self.build_uvn(UVNMode.SPHERICAL)
        self.mat_camera_rotation_only = self.mat_camera.copy()
        self.mat_camera_rotation_only[3, :3] = 0.0

    def build_euler(self, seq: RotateSeq = RotateSeq.YXZ) -> None:
        """Build the camera matrix from Euler angles in degrees."""
        sin_a, cos_a = -_sin(self.direction[0]), _cos(self.direction[0])
        inv_x = np.array([
            [1.0, 0.0, 0.0, 0.0],
            [0.0, cos_a, sin_a, 0.0],
            [0.0, -sin_a, cos_a, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ])

        sin_a, cos_a = -_sin(self.direction[1]), _cos(self.direction[1])
        inv_y = np.array([
            [cos_a, 0.0, -sin_a, 0.0],
            [0.0, 1.0, 0.0, 0.0],
            [sin_a, 0.0, cos_a, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ])

        sin_a, cos_a = -_sin(self.direction[2]), _cos(self.direction[2])
        inv_z = np.array([
            [cos_a, sin_a, 0.0, 0.0],
            [-sin_a, cos_a, 0.0, 0.0],
            [0.0, 0.0, 1.0, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ])

        if seq is RotateSeq.YXZ:
            rotation = inv_y @ inv_x @ inv_z
        else:
            rotation = inv_z @ inv_x @ inv_y

        self.mat_camera = self._inverse_translation() @ rotation

    def build_uvn(self, mode: UVNMode = UVNMode.SIMPLE) -> None:
        """Build the camera matrix from the UVN basis looking at the target."""
        if mode is UVNMode.SPHERICAL:
            sin_phi = _sin(self.direction[0])
            self.target[0] = -1.0 * sin_phi * _sin(self.direction[0])
            self.target[1] = 1.0 * _cos(self.direction[1])
            self.target[2] = 1.0 * sin_phi * _cos(self.direction[2])

        n = np.append(self.target[:3] - self.position[:3], 1.0)
        v = np.array([0.0, 1.0, 0.0, 1.0])
        u = np.append(np.cross(v[:3], n[:3]), 1.0)
        v = np.append(np.cross(n[:3], u[:3]), 1.0)

        self.u = _normalize_xyz(u)
        self.v = _normalize_xyz(v)
        self.n = _normalize_xyz(n)

        uvn = np.identity(4)
        uvn[:3, 0] = self.u[:3]
        uvn[:3, 1] = self.v[:3]
        uvn[:3, 2] = self.n[:3]

        self.mat_camera = self._inverse_translation() @ uvn

    def build_camera_to_perspective(self) -> None:
        self.mat_perspective = np.diag([self.view_dist, self.view_dist * self.aspect_ratio, 1.0, 1.0])

    def _screen_alpha_beta(self) -> tuple[float, float]:
        return self.screen_width * 0.5 - 0.5, self.screen_height * 0.5 - 0.5

    def build_homogeneous_perspective_to_screen(self) -> None:
        """Screen matrix for coordinates still to be divided by w."""
        alpha, beta = self._screen_alpha_beta()
        self.mat_screen = np.array([
            [alpha, 0.0, 0.0, 0.0],
            [0.0, -beta, 0.0, 0.0],
            [alpha, beta, 1.0, 1.0],
            [0.0, 0.0, 0.0, 0.0],
        ])

    def build_non_homogeneous_perspective_to_screen(self) -> None:
        """Screen matrix for coordinates already divided by w."""
        alpha, beta = self._screen_alpha_beta()
        self.mat_screen = np.array([
            [alpha, 0.0, 0.0, 0.0],
            [0.0, -beta, 0.0, 0.0],
            [alpha, beta, 1.0, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ])

    def update(self, delta_time: float) -> None:
        """Wrap the direction angles into [0, 360)."""
        for i in range(3):
            angle = math.fmod(self.direction[i], 360.0)
            if angle < 0.0:
                angle += 360.0
            self.direction[i] = angle