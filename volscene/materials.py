"""Colours and surface materials."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntFlag
from typing import Any


def _bit(n: int) -> int:
    return 1 << n


@dataclass(frozen=True)
class Color:
    """An 8-bit-per-channel ARGB colour."""

    a: int = 255
    r: int = 0
    g: int = 0
    b: int = 0

    def __post_init__(self) -> None:
        for name in ("a", "r", "g", "b"):
            value = getattr(self, name)
            if not 0 <= value <= 255:
                raise ValueError(f"colour component {name}={value} outside 0..255")

    @classmethod
    def xrgb(cls, r: int, g: int, b: int) -> Color:
        """Build an opaque colour from red, green and blue."""
        return cls(255, r, g, b)

    @classmethod
    def argb(cls, a: int, r: int, g: int, b: int) -> Color:
        """Build a colour from alpha, red, green and blue."""
        return cls(a, r, g, b)

    @classmethod
    def from_packed(cls, value: int) -> Color:
        """Build a colour from a packed 32-bit ARGB integer."""
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError(f"packed colour {value:#x} is not a 32-bit value")
        return cls((value >> 24) & 0xFF, (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)

    @property
    def packed(self) -> int:
        """The colour as a 32-bit ARGB integer."""
        return (self.a << 24) | (self.r << 16) | (self.g << 8) | self.b

    @property
    def rgb(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


WHITE = Color(255, 255, 255, 255)


class MaterialAttr(IntFlag):
    """Material attribute bits."""

    NONE = 0
    TWO_SIDED = _bit(1)
    TRANSPARENT = _bit(2)
    TERRAIN = _bit(3)
    SHADE_MODE_EMISSIVE = _bit(4)
    SHADE_MODE_FLAT = _bit(5)
    SHADE_MODE_GOURAUD = _bit(6)
    SHADE_MODE_TEXTURE = _bit(7)


def _scale_component(factor: float, component: int) -> int:
    value = int(factor * component + 0.5)
    return max(0, min(255, value))


@dataclass
class Material:
    """Surface description shared by polygons."""

    attr: MaterialAttr = MaterialAttr.NONE
    color: Color = WHITE
    k_ambient: float = 1.0
    k_diffuse: float = 1.0
    power: float = 1.0
    r_ambient: Color = WHITE
    r_diffuse: Color = WHITE
    texture: Any = field(default=None)

    def compute_reflective_colors(self) -> None:
        """Precompute ambient and diffuse reflectivities from the base colour."""
        self.r_ambient = replace(
            self.r_ambient,
            r=_scale_component(self.k_ambient, self.color.r),
            g=_scale_component(self.k_ambient, self.color.g),
            b=_scale_component(self.k_ambient, self.color.b),
        )
        self.r_diffuse = replace(
            self.r_diffuse,
            r=_scale_component(self.k_diffuse, self.color.r),
            g=_scale_component(self.k_diffuse, self.color.g),
            b=_scale_component(self.k_diffuse, self.color.b),
        )

    def destroy(self) -> None:
        """Release the material's texture."""
        self.texture = None