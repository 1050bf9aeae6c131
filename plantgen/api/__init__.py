"""High-level API for plant mesh synthesis and export."""

from ..ops.mesh.synthesis import synthesize_plant_mesh
from .export import to_trimesh, export_mesh, write_json

__all__ = [
    "synthesize_plant_mesh",
    "to_trimesh",
    "export_mesh",
    "write_json",
]
