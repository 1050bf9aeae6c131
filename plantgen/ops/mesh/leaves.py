"""
Leaf attachment.

Leaves are template meshes in leaf-local space (blade along +Z, facing +Y).
They are placed at a distance along their stem's path, turned so that the
blade runs across the stem and faces away from the ground, then rotated by
the leaf's own quaternion and scaled.
"""

from typing import Tuple
import numpy as np
from scipy.spatial.transform import Rotation

from ...core.geometry import Geometry
from ...core.stem import Leaf, Stem
from ...utils.geometry import UP, normalize, quaternion_to_rotation, rotate_into_vec
from .buffers import MeshBuffers, Segment, VERTEX_DTYPE
from .skinning import JointWeights, weights_at

FORWARD = np.array([0.0, 0.0, 1.0])
DOWN = np.array([0.0, -1.0, 0.0])


def default_orientation(direction: np.ndarray) -> Rotation:
    """
    Rotation laying a leaf template across a stem with the given direction.

    The blade (+Z) is turned to the horizontal perpendicular of the stem,
    then the face (+Y) is tilted about the blade to the component of world
    up that is perpendicular to the stem.
    """
    direction = normalize(direction, UP)
    blade = normalize(np.cross(direction, UP), np.array([1.0, 0.0, 0.0]))
    turn = rotate_into_vec(FORWARD, blade)

    face = normalize(np.cross(np.cross(DOWN, direction), direction), UP)
    tilt = rotate_into_vec(UP, face)
    return tilt * turn


def leaf_rotation(direction: np.ndarray, leaf: Leaf) -> Rotation:
    return default_orientation(direction) * quaternion_to_rotation(leaf.rotation)


def leaf_attachment(stem: Stem, position: float) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    World location, path direction and clamped distance for a leaf position.

    Positions that are negative or at or beyond the path length snap to the
    final sample and the final direction.
    """
    path = stem.path
    length = path.get_length()
    if 0.0 <= position < length:
        location = stem.location + path.get_intermediate(position)
        return location, path.get_intermediate_direction(position), float(position)

    location = stem.location + path.get(path.size - 1)
    return location, path.get_direction(path.size - 1), length


def leaf_vertices(geometry: Geometry, weights: JointWeights) -> np.ndarray:
    vertices = np.zeros(geometry.vertex_count, dtype=VERTEX_DTYPE)
    vertices["position"] = geometry.positions
    vertices["normal"] = geometry.normals
    vertices["uv"] = geometry.uvs
    vertices["joints"] = weights.joints
    vertices["weights"] = weights.weights
    return vertices


def attach_leaf(
    buffers: MeshBuffers,
    mesh: int,
    stem: Stem,
    leaf_index: int,
    geometry: Geometry,
    inherited_joint: int = 0,
) -> Segment:
    """
    Append one leaf of `stem` to buffer `mesh` and record its segment.

    Parameters
    ----------
    buffers : MeshBuffers
        Target buffers
    mesh : int
        Buffer selected for the leaf's material
    stem : Stem
        Stem carrying the leaf
    leaf_index : int
        Index into `stem.leaves`
    geometry : Geometry
        Template mesh for the leaf
    inherited_joint : int
        Joint bound to the stem when it has no joints of its own

    Returns
    -------
    Segment
        The recorded leaf segment
    """
    leaf = stem.leaves[leaf_index]
    location, direction, distance = leaf_attachment(stem, leaf.position)
    weights = weights_at(stem, distance, inherited_joint)
    placed = geometry.transform(leaf_rotation(direction, leaf), leaf.scale, location)

    vertex_start = buffers.vertices[mesh].extend(leaf_vertices(placed, weights))
    index_start = buffers.index_size(mesh)
    buffers.add_triangles(mesh, placed.indices.astype(np.int64) + vertex_start)

    segment = Segment(
        vertex_start=vertex_start,
        vertex_count=placed.vertex_count,
        index_start=index_start,
        index_count=len(placed.indices),
        stem=stem.handle,
        leaf_index=leaf_index,
        mesh=mesh,
    )
    buffers.record_leaf(segment)
    return segment


__all__ = [
    "default_orientation",
    "leaf_rotation",
    "leaf_attachment",
    "leaf_vertices",
    "attach_leaf",
]
