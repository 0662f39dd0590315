"""Scene light sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np

from volscene.materials import Color


class LightType(IntEnum):
    AMBIENT = 0
    INFINITE = 1
    POINT = 2
    SIMPLE_SPOTLIGHT = 3
    COMPLEX_SPOTLIGHT = 4


def _vec4(x: float = 0.0, y: float = 0.0, z: float = 0.0, w: float = 1.0) -> np.ndarray:
    return np.array([x, y, z, w], dtype=float)


def _normalized(vector: np.ndarray) -> np.ndarray:
    result = vector.copy()
    length = float(np.linalg.norm(result[:3]))
    if length > 0.0:
        result[:3] /= length
    return result


@dataclass
class Light:
    """A light; which fields matter depends on its type."""

    light_type: LightType
    active: bool = True
    color: Color = field(default_factory=lambda: Color(0, 0, 0, 0))
    position: np.ndarray = field(default_factory=_vec4)
    trans_position: np.ndarray = field(default_factory=_vec4)
    direction: np.ndarray = field(default_factory=_vec4)
    trans_direction: np.ndarray = field(default_factory=_vec4)
    k_const: float = 0.0
    k_linear: float = 0.0
    k_quad: float = 0.0
    falloff_power: float = 0.0


def make_light(light_type: LightType) -> Light:
    """Create an active light with the defaults for its type."""
    light_type = LightType(light_type)
    light = Light(light_type=light_type)

    if light_type is LightType.AMBIENT:
        light.color = Color.xrgb(0x33, 0x22, 0x11)
    elif light_type is LightType.INFINITE:
        light.color = Color.xrgb(0x99, 0x66, 0x22)
        light.position = _vec4(7500.0, 7500.0, 7500.0)
        light.direction = _normalized(_vec4(-1.0, -1.0, 0.0))
    elif light_type is LightType.POINT:
        light.color = Color.xrgb(0xBB, 0x00, 0x10)
        light.position = _vec4()
        light.k_const, light.k_linear, light.k_quad = 0.0, 1.0, 0.0
    elif light_type is LightType.SIMPLE_SPOTLIGHT:
        light.color = Color.xrgb(0x10, 0x00, 0xBB)
        light.position = _vec4()
        light.direction = _vec4(0.0, -1.0, 0.0)
        light.k_const, light.k_linear, light.k_quad = 0.0, 0.0001, 0.0
    else:
        light.color = Color.xrgb(0xAA, 0x10, 0xBB)
        light.position = _vec4()
        light.direction = _vec4(0.0, -1.0, 0.0)
        light.k_const, light.k_linear, light.k_quad = 0.0, 0.0001, 0.0
        light.falloff_power = 1.0

    return light