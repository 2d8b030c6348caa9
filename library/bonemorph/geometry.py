"""
Small geometry helpers shared by the morphometry commands.
"""

import math
import numpy as np
from typing import Iterable, Sequence, Tuple


def distance_3d(p: Sequence[float], q: Sequence[float] = (0.0, 0.0, 0.0)) -> float:
    """
    Euclidean distance between two 3D points.

    Args:
        p: (x, y, z) of the first point
        q: (x, y, z) of the second point, the origin by default

    Returns:
        Distance between p and q
    """
    dx = p[0] - q[0]
    dy = p[1] - q[1]
    dz = p[2] - q[2]
    return math.sqrt(dx * dx + dy * dy + dz * dz)


def joined_vector_angle(a: Sequence[float],
                        b: Sequence[float],
                        apex: Sequence[float]) -> float:
    """
    Angle at apex between the vectors apex->a and apex->b.

    Args:
        a: End point of the first vector
        b: End point of the second vector
        apex: Common start point of both vectors

    Returns:
        Angle in radians in [0, pi], nan if either vector has zero length
    """
    u = np.asarray(a, dtype=float) - np.asarray(apex, dtype=float)
    v = np.asarray(b, dtype=float) - np.asarray(apex, dtype=float)
    norms = np.linalg.norm(u) * np.linalg.norm(v)
    if norms == 0:
        return float('nan')
    cosine = np.clip(np.dot(u, v) / norms, -1.0, 1.0)
    return float(np.arccos(cosine))


def centroid(points: Iterable[Sequence[float]]) -> Tuple[float, float, float]:
    """Coordinate-wise mean of a non-empty set of 3D points."""
    coords = np.asarray(list(points), dtype=float)
    if coords.size == 0:
        raise ValueError("Cannot compute the centroid of an empty point set")
    x, y, z = coords.mean(axis=0)
    return float(x), float(y), float(z)


def is_voxel_26_connected(p: Sequence[int], q: Sequence[int]) -> bool:
    """True if the voxels differ by at most one in each of x, y and z."""
    return abs(p[0] - q[0]) <= 1 and abs(p[1] - q[1]) <= 1 and abs(p[2] - q[2]) <= 1


def clamp(value: int, minimum: int, maximum: int) -> int:
    return max(minimum, min(value, maximum))
