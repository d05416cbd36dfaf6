"""Small vector and 4x4 matrix helpers on plain tuples."""

from __future__ import annotations

import math

from aecmesh.config import EPSILON

Vec2 = tuple[float, float]
Vec3 = tuple[float, float, float]
# Row-major 4x4 affine transform
Matrix = tuple[tuple[float, float, float, float], ...]

X_AXIS: Vec3 = (1.0, 0.0, 0.0)
Y_AXIS: Vec3 = (0.0, 1.0, 0.0)
Z_AXIS: Vec3 = (0.0, 0.0, 1.0)


def add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def scale(a: Vec3, s: float) -> Vec3:
    return (a[0] * s, a[1] * s, a[2] * s)


def dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def length(a: Vec3) -> float:
    return math.sqrt(dot(a, a))


def normalize(a: Vec3) -> Vec3 | None:
    """Unit vector along *a*, or None for a (near) zero vector."""
    n = length(a)
    if n < EPSILON:
        return None
    return (a[0] / n, a[1] / n, a[2] / n)


def perpendicular(a: Vec3) -> Vec3:
    """Some unit vector perpendicular to unit vector *a*."""
    helper = X_AXIS if abs(a[0]) < 0.9 else Y_AXIS
    return normalize(cross(a, helper)) or Z_AXIS


def rotate_about_axis(v: Vec3, axis: Vec3, angle: float) -> Vec3:
    """Rodrigues rotation of *v* around unit *axis* through the origin."""
    c = math.cos(angle)
    s = math.sin(angle)
    k_cross_v = cross(axis, v)
    k_dot_v = dot(axis, v)
    return (
        v[0] * c + k_cross_v[0] * s + axis[0] * k_dot_v * (1 - c),
        v[1] * c + k_cross_v[1] * s + axis[1] * k_dot_v * (1 - c),
        v[2] * c + k_cross_v[2] * s + axis[2] * k_dot_v * (1 - c),
    )


# ---------------------------------------------------------------------------
# Matrices
# ---------------------------------------------------------------------------

def identity() -> Matrix:
    return (
        (1.0, 0.0, 0.0, 0.0),
        (0.0, 1.0, 0.0, 0.0),
        (0.0, 0.0, 1.0, 0.0),
        (0.0, 0.0, 0.0, 1.0),
    )


def translation(offset: Vec3) -> Matrix:
    return (
        (1.0, 0.0, 0.0, offset[0]),
        (0.0, 1.0, 0.0, offset[1]),
        (0.0, 0.0, 1.0, offset[2]),
        (0.0, 0.0, 0.0, 1.0),
    )


def uniform_scale(factor: float) -> Matrix:
    return (
        (factor, 0.0, 0.0, 0.0),
        (0.0, factor, 0.0, 0.0),
        (0.0, 0.0, factor, 0.0),
        (0.0, 0.0, 0.0, 1.0),
    )


def from_axes(origin: Vec3, x: Vec3, y: Vec3, z: Vec3) -> Matrix:
    """Matrix whose columns are the given axes and origin."""
    return (
        (x[0], y[0], z[0], origin[0]),
        (x[1], y[1], z[1], origin[1]),
        (x[2], y[2], z[2], origin[2]),
        (0.0, 0.0, 0.0, 1.0),
    )


def placement(origin: Vec3, axis: Vec3 | None = None, ref_direction: Vec3 | None = None) -> Matrix:
    """Right-handed frame from a location, a Z axis and an approximate X axis.

    The X axis is made orthogonal to Z; a missing or parallel reference
    direction falls back to a perpendicular of Z.
    """
    z = normalize(axis) if axis is not None else None
    z = z or Z_AXIS
    x = None
    if ref_direction is not None:
        x = normalize(sub(ref_direction, scale(z, dot(ref_direction, z))))
    if x is None:
        x = normalize(sub(X_AXIS, scale(z, dot(X_AXIS, z)))) or perpendicular(z)
    y = cross(z, x)
    return from_axes(origin, x, y, z)


def multiply(a: Matrix, b: Matrix) -> Matrix:
    return tuple(
        tuple(sum(a[r][k] * b[k][c] for k in range(4)) for c in range(4))
        for r in range(4)
    )


def transform_point(m: Matrix, p: Vec3) -> Vec3:
    return (
        m[0][0] * p[0] + m[0][1] * p[1] + m[0][2] * p[2] + m[0][3],
        m[1][0] * p[0] + m[1][1] * p[1] + m[1][2] * p[2] + m[1][3],
        m[2][0] * p[0] + m[2][1] * p[1] + m[2][2] * p[2] + m[2][3],
    )


def transform_direction(m: Matrix, d: Vec3) -> Vec3:
    return (
        m[0][0] * d[0] + m[0][1] * d[1] + m[0][2] * d[2],
        m[1][0] * d[0] + m[1][1] * d[1] + m[1][2] * d[2],
        m[2][0] * d[0] + m[2][1] * d[1] + m[2][2] * d[2],
    )


def determinant3(m: Matrix) -> float:
    """Determinant of the upper-left 3x3 block."""
    return (
        m[0][0] * (m[1][1] * m[2][2] - m[1][2] * m[2][1])
        - m[0][1] * (m[1][0] * m[2][2] - m[1][2] * m[2][0])
        + m[0][2] * (m[1][0] * m[2][1] - m[1][1] * m[2][0])
    )


def normal_matrix(m: Matrix) -> Matrix:
    """Inverse transpose of the 3x3 block, for transforming normals."""
    det = determinant3(m)
    if abs(det) < EPSILON:
        return m
    inv = 1.0 / det
    a = m
    c00 = (a[1][1] * a[2][2] - a[1][2] * a[2][1]) * inv
    c01 = -(a[1][0] * a[2][2] - a[1][2] * a[2][0]) * inv
    c02 = (a[1][0] * a[2][1] - a[1][1] * a[2][0]) * inv
    c10 = -(a[0][1] * a[2][2] - a[0][2] * a[2][1]) * inv
    c11 = (a[0][0] * a[2][2] - a[0][2] * a[2][0]) * inv
    c12 = -(a[0][0] * a[2][1] - a[0][1] * a[2][0]) * inv
    c20 = (a[0][1] * a[1][2] - a[0][2] * a[1][1]) * inv
    c21 = -(a[0][0] * a[1][2] - a[0][2] * a[1][0]) * inv
    c22 = (a[0][0] * a[1][1] - a[0][1] * a[1][0]) * inv
    # The cofactor matrix divided by det is the inverse transpose
    return (
        (c00, c01, c02, 0.0),
        (c10, c11, c12, 0.0),
        (c20, c21, c22, 0.0),
        (0.0, 0.0, 0.0, 1.0),
    )
