"""Operations on plants."""

from .mesh import PlantMesh, synthesize_plant_mesh

__all__ = [
    "PlantMesh",
    "synthesize_plant_mesh",
]
