"""Small 3D vector and matrix helpers used by the scene graph."""

from __future__ import annotations

import math
from dataclasses import dataclass

PI = 3.14159265359

Matrix = tuple[
    tuple[float, float, float, float],
    tuple[float, float, float, float],
    tuple[float, float, float, float],
    tuple[float, float, float, float],
]

_IDENTITY: Matrix = (
    (1.0, 0.0, 0.0, 0.0),
    (0.0, 1.0, 0.0, 0.0),
    (0.0, 0.0, 1.0, 0.0),
    (0.0, 0.0, 0.0, 1.0),
)


def deg2rad(x: float) -> float:
    """Convert degrees to radians."""
    return x * PI / 180.0


@dataclass(frozen=True)
class Vec3:
    """An immutable three-component vector."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: Vec3) -> Vec3:
        if not isinstance(other, Vec3):
            return NotImplemented
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vec3) -> Vec3:
        if not isinstance(other, Vec3):
            return NotImplemented
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def scale(self, s: float) -> Vec3:
        """Return the vector multiplied by a scalar."""
        return Vec3(self.x * s, self.y * s, self.z * s)

    def dot(self, other: Vec3) -> float:
        """Return the dot product."""
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vec3) -> Vec3:
        """Return the cross product."""
        return Vec3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def length(self) -> float:
        """Return the Euclidean length."""
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def normalized(self) -> Vec3:
        """Return a unit vector in the same direction; a zero vector is returned as is."""
        length = self.length()
        if length > 0:
            return self.scale(1.0 / length)
        return self


@dataclass(frozen=True)
class Vec4:
    """An immutable four-component colour or vector."""

    r: float = 0.0
    g: float = 0.0
    b: float = 0.0
    a: float = 0.0


@dataclass(frozen=True)
class Mat4:
    """An immutable 4x4 matrix stored row by row; translation lives in row 3."""

    m: Matrix = _IDENTITY

    def _with(self, updates: dict[tuple[int, int], float]) -> Mat4:
        rows = tuple(
            tuple(updates.get((i, j), value) for j, value in enumerate(row))
            for i, row in enumerate(self.m)
        )
        return Mat4(rows)  # type: ignore[arg-type]

    def translate(self, v: Vec3) -> Mat4:
        """Return the matrix with ``v`` added to its translation row."""
        row = self.m[3]
        return self._with({(3, 0): row[0] + v.x, (3, 1): row[1] + v.y, (3, 2): row[2] + v.z})

    def scale(self, v: Vec3) -> Mat4:
        """Return the matrix with its diagonal scaled by ``v``."""
        m = self.m
        return self._with({(0, 0): m[0][0] * v.x, (1, 1): m[1][1] * v.y, (2, 2): m[2][2] * v.z})


def identity() -> Mat4:
    """Return the 4x4 identity matrix."""
    return Mat4(_IDENTITY)