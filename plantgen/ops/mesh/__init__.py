"""
Mesh-level operations for plants.

This module provides the plant mesh synthesis engine and its building
blocks: cross-section rings, skinning weights, branch collars, leaf
attachment and material-partitioned buffers.
"""

from .buffers import (
    VERTEX_DTYPE,
    INDEX_DTYPE,
    GrowableArray,
    Segment,
    MeshBuffers,
)
from .cross_section import CrossSection
from .skinning import JointWeights, ring_weights, weights_at
from .collar import connect_collar
from .leaves import attach_leaf, default_orientation
from .synthesis import (
    PlantMesh,
    synthesize_plant_mesh,
)

__all__ = [
    "VERTEX_DTYPE",
    "INDEX_DTYPE",
    "GrowableArray",
    "Segment",
    "MeshBuffers",
    "CrossSection",
    "JointWeights",
    "ring_weights",
    "weights_at",
    "connect_collar",
    "attach_leaf",
    "default_orientation",
    "PlantMesh",
    "synthesize_plant_mesh",
]
