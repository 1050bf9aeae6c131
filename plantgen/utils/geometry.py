"""
Canonical geometry utilities for plant mesh synthesis.

This module provides the single source of truth for the vector, rotation
and intersection math shared by the cross-section builder, the branch
collar synthesizer and the leaf attacher.

Rotations are `scipy.spatial.transform.Rotation` objects throughout.
Composition follows scipy's convention: `a * b` applies `b` first.
"""

import numpy as np
from typing import Optional, Tuple, TYPE_CHECKING
from scipy.spatial.transform import Rotation

if TYPE_CHECKING:
    import trimesh

EPSILON = 1e-10

UP = np.array([0.0, 1.0, 0.0])


def normalize(v: np.ndarray, fallback: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Return v scaled to unit length.

    Zero-length input returns `fallback` (or a zero vector) instead of NaN.
    """
    v = np.asarray(v, dtype=float)
    norm = np.linalg.norm(v)
    if norm < EPSILON:
        if fallback is None:
            return np.zeros_like(v)
        return np.asarray(fallback, dtype=float)
    return v / norm


def any_perpendicular(v: np.ndarray) -> np.ndarray:
    """Return a unit vector perpendicular to v."""
    v = normalize(v, UP)
    if abs(v[0]) < 0.9:
        return normalize(np.cross(v, np.array([1.0, 0.0, 0.0])))
    return normalize(np.cross(v, np.array([0.0, 0.0, 1.0])))


def project_onto_plane(v: np.ndarray, normal: np.ndarray) -> np.ndarray:
    """Project v onto the plane through the origin with the given unit normal."""
    return v - np.dot(v, normal) * normal


def rotate_into_vec(a: np.ndarray, b: np.ndarray) -> Rotation:
    """
    Shortest-arc rotation carrying direction a onto direction b.

    Parameters
    ----------
    a, b : np.ndarray
        Directions (need not be normalized)

    Returns
    -------
    Rotation
        Identity when a and b coincide, a half turn about an axis
        perpendicular to a when they are opposite.
    """
    a = normalize(a)
    b = normalize(b)
    if not a.any() or not b.any():
        return Rotation.identity()

    axis = np.cross(a, b)
    axis_norm = np.linalg.norm(axis)
    cos_angle = np.clip(np.dot(a, b), -1.0, 1.0)

    if axis_norm < EPSILON:
        if cos_angle > 0:
            return Rotation.identity()
        return Rotation.from_rotvec(np.pi * any_perpendicular(a))

    angle = np.arctan2(axis_norm, cos_angle)
    return Rotation.from_rotvec(axis / axis_norm * angle)


def quaternion_to_rotation(quaternion) -> Rotation:
    """Build a Rotation from an (x, y, z, w) quaternion, identity when degenerate."""
    q = np.asarray(quaternion, dtype=float)
    if q.shape != (4,) or np.linalg.norm(q) < EPSILON:
        return Rotation.identity()
    return Rotation.from_quat(q)


def triangle_mesh(triangles: np.ndarray) -> Optional["trimesh.Trimesh"]:
    """
    Unprocessed trimesh over a triangle soup of shape (N, 3, 3).

    Returns None for an empty soup. Face k of the result is triangle k of
    the input.
    """
    import trimesh

    triangles = np.asarray(triangles, dtype=float).reshape(-1, 3, 3)
    if len(triangles) == 0:
        return None
    return trimesh.Trimesh(
        vertices=triangles.reshape(-1, 3),
        faces=np.arange(3 * len(triangles)).reshape(-1, 3),
        process=False,
    )


def intersect_ray_mesh(
    origin: np.ndarray,
    direction: np.ndarray,
    mesh: Optional["trimesh.Trimesh"],
    epsilon: float = 1e-6,
) -> Tuple[Optional[float], Optional[int]]:
    """
    Nearest forward intersection of a ray with a mesh.

    Parameters
    ----------
    origin : np.ndarray
        Ray origin (shape (3,))
    direction : np.ndarray
        Unit ray direction (shape (3,))
    mesh : trimesh.Trimesh or None
        Surface to cast against; None never hits
    epsilon : float
        Hits closer than this along the ray are ignored

    Returns
    -------
    t : float or None
        Distance along the ray to the nearest hit
    face : int or None
        Index of the hit face
    """
    if mesh is None or len(mesh.faces) == 0:
        return None, None

    locations, _, faces = mesh.ray.intersects_location(
        ray_origins=np.asarray(origin, dtype=float).reshape(1, 3),
        ray_directions=np.asarray(direction, dtype=float).reshape(1, 3),
    )
    if len(locations) == 0:
        return None, None

    t = (np.asarray(locations) - origin) @ direction
    forward = t > epsilon
    if not forward.any():
        return None, None

    candidates = np.where(forward, t, np.inf)
    index = int(np.argmin(candidates))
    return float(candidates[index]), int(faces[index])


__all__ = [
    "EPSILON",
    "UP",
    "normalize",
    "any_perpendicular",
    "project_onto_plane",
    "rotate_into_vec",
    "quaternion_to_rotation",
    "triangle_mesh",
    "intersect_ray_mesh",
]
