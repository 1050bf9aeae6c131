"""Shared math utilities."""

from .geometry import (
    normalize,
    any_perpendicular,
    project_onto_plane,
    rotate_into_vec,
    quaternion_to_rotation,
    triangle_mesh,
    intersect_ray_mesh,
)

__all__ = [
    "normalize",
    "any_perpendicular",
    "project_onto_plane",
    "rotate_into_vec",
    "quaternion_to_rotation",
    "triangle_mesh",
    "intersect_ray_mesh",
]
