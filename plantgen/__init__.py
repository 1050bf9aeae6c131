"""
Plantgen - procedural plant mesh synthesis.

Turns a stem hierarchy (centerline paths with radii, joints and leaves) into
renderable vertex/index buffers, partitioned by material and skinned for
joint-driven animation.

Main Entry Points:
    - synthesize_plant_mesh(): One synthesis pass, returns (PlantMesh, OperationReport)
    - to_trimesh(): Merged buffers as a trimesh.Trimesh
    - export_mesh(): Write a synthesized mesh (and its report) to disk

Example:
    >>> from plantgen import Plant, Path, synthesize_plant_mesh
    >>> plant = Plant()
    >>> root = plant.create_root()
    >>> plant.set_path(root, Path.from_points([[0, 0, 0], [0, 1, 0], [0, 2, 0]]))
    >>> plant_mesh, report = synthesize_plant_mesh(plant)
    >>> plant_mesh.triangle_count
    32
"""

from .api import synthesize_plant_mesh, to_trimesh, export_mesh
from .ops import PlantMesh
from .core import (
    IDGenerator,
    Path,
    Spline,
    Joint,
    Leaf,
    Stem,
    Geometry,
    Material,
    Plant,
)

__all__ = [
    # High-level API
    "synthesize_plant_mesh",
    "to_trimesh",
    "export_mesh",
    # Engine
    "PlantMesh",
    # Core types
    "IDGenerator",
    "Path",
    "Spline",
    "Joint",
    "Leaf",
    "Stem",
    "Geometry",
    "Material",
    "Plant",
]
