"""
Branch collars.

Where a child stem leaves its parent, the first rings of the child are
replaced by a swollen transition surface that sits on the parent's surface:

1. the child's first ring (ring A) is scaled away from the child axis,
2. each scaled point is pulled onto the parent surface by casting a ray from
   the matching point of the first ring after the collar (ring B),
3. a cubic spline through the projected points and ring B fills a block of
   collar rings reserved between ring A and ring B.

The collar block is reserved before ring B is appended, so ring i of the
collar always starts at `collar_start + i * (divisions + 1)`.
"""

from typing import Optional, Tuple, TYPE_CHECKING
import logging
import numpy as np

from ...core.path import Spline
from ...core.plant import Plant
from ...core.stem import Stem
from ...utils.geometry import any_perpendicular, intersect_ray_mesh, normalize, triangle_mesh
from .buffers import MeshBuffers, Segment
from .cross_section import get_aspect, triangle_ring

if TYPE_CHECKING:
    import trimesh

logger = logging.getLogger(__name__)


def has_collar(stem: Stem, parent: Optional[Stem]) -> bool:
    """A collar needs a parent, swelling of at least 1 on both axes and a sample for ring B."""
    if parent is None:
        return False
    if stem.swelling[0] < 1.0 or stem.swelling[1] < 1.0:
        return False
    if stem.collar_divisions < 1 or stem.section_divisions < 1:
        return False
    return stem.path.size > stem.path.get_divisions() + 1


def collar_size(stem: Stem) -> int:
    """Number of vertices reserved for the collar rings."""
    return (stem.section_divisions + 1) * stem.collar_divisions


def collar_scale(child: Stem, parent: Stem) -> np.ndarray:
    """
    Anisotropic scale applied to ring A around the child location.

    The basis has its y axis along the parent direction, its x axis in the
    plane of both directions and z perpendicular to both; y is scaled by
    swelling[1] and z by swelling[0].
    """
    y_axis = normalize(parent.path.get_intermediate_direction(child.distance))
    x_axis = child.path.get_direction(0)
    x_axis = normalize(np.cross(np.cross(y_axis, x_axis), y_axis))
    if not x_axis.any():
        x_axis = any_perpendicular(y_axis)
    z_axis = normalize(np.cross(y_axis, x_axis))

    axes = np.column_stack([x_axis, y_axis, z_axis])
    scale = np.diag([1.0, child.swelling[1], child.swelling[0]])
    return axes @ scale @ axes.T


def parent_triangles(buffers: MeshBuffers, segment: Segment) -> np.ndarray:
    """Corner positions of every triangle in a segment, shape (N, 3, 3)."""
    count = segment.index_count - segment.index_count % 3
    if count <= 0:
        return np.zeros((0, 3, 3))
    indices = buffers.indices[segment.mesh][segment.index_start:segment.index_start + count]
    positions = buffers.vertices[segment.mesh].data["position"]
    return positions[indices.astype(np.int64)].astype(float).reshape(-1, 3, 3)


def parent_surface(buffers: MeshBuffers, segment: Segment) -> Optional["trimesh.Trimesh"]:
    """Parent segment as a trimesh for ray casting; None when it has no triangles."""
    return triangle_mesh(parent_triangles(buffers, segment))


def move_to_surface(
    target: np.ndarray,
    origin: np.ndarray,
    surface: Optional["trimesh.Trimesh"],
    epsilon: float = 1e-6,
) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Cast a ray from `origin` through `target` and return the nearest surface hit.

    Returns
    -------
    (position, normal) or None
        Hit point on the ray and the unit normal of the hit triangle, or None
        when the ray misses the surface or there is no surface.
    """
    direction = target - origin
    length = np.linalg.norm(direction)
    if length < epsilon:
        return None
    direction = direction / length

    t, face = intersect_ray_mesh(origin, direction, surface, epsilon)
    if t is None:
        return None

    normal = normalize(surface.face_normals[face])
    return origin + t * direction, normal


def connect_collar(
    buffers: MeshBuffers,
    plant: Plant,
    child: Stem,
    parent: Stem,
    mesh: int,
    ring_start: int,
    collar_start: int,
    parent_segment: Segment,
    rollback: Tuple[int, int],
    epsilon: float = 1e-6,
) -> int:
    """
    Fill the reserved collar block and stitch it between ring A and ring B.

    Parameters
    ----------
    buffers : MeshBuffers
        Buffers holding ring A, the reserved block and ring B
    plant : Plant
        Plant providing radii and material ratios
    child, parent : Stem
        The stem being attached and its parent
    mesh : int
        Buffer of the child stem
    ring_start : int
        First vertex of ring A
    collar_start : int
        First vertex of the reserved block; ring B follows the block
    parent_segment : Segment
        Parent surface the collar is projected onto
    rollback : (int, int)
        Vertex and index sizes of the child buffer before the attempt
    epsilon : float
        Ray intersection tolerance

    Returns
    -------
    int
        Number of path samples consumed by the collar, or 0 if the collar
        could not be placed (the buffer is then truncated to `rollback`).
    """
    divisions = child.section_divisions
    collar_divisions = child.collar_divisions
    ring_size = divisions + 1
    ring_b = collar_start + collar_size(child)
    scale = collar_scale(child, parent)
    location = np.asarray(child.location, dtype=float)
    surface = parent_surface(buffers, parent_segment)

    spline = child.path.get_spline()
    handle = None
    if spline.get_degree() == 3:
        controls = spline.get_controls()
        handle = controls[3] - controls[2]

    vertices = buffers.vertices[mesh].data
    ts = np.arange(1, collar_divisions + 1) / (collar_divisions + 1)
    steps = np.arange(collar_divisions)

    for i in range(ring_size):
        index = ring_start + i
        origin = vertices["position"][ring_b + i].astype(float)
        initial = vertices["position"][index].astype(float)
        scaled = scale @ (initial - location) + location

        scaled_hit = move_to_surface(scaled, origin, surface, epsilon)
        surface_hit = move_to_surface(initial, origin, surface, epsilon) if scaled_hit else None
        if scaled_hit is None or surface_hit is None:
            buffers.truncate(mesh, *rollback)
            logger.debug(
                f"Collar of stem {child.handle} missed the surface of stem {parent.handle}; "
                f"attaching without collar"
            )
            return 0

        vertices["position"][index] = scaled_hit[0]
        vertices["normal"][index] = scaled_hit[1]

        third = origin - handle if handle is not None else origin
        curve = Spline.cubic(scaled_hit[0], surface_hit[0], third, origin)
        offsets = collar_start + i + ring_size * steps
        vertices["position"][offsets] = curve.get_points(0, ts)
        vertices["joints"][offsets] = vertices["joints"][index]
        vertices["weights"][offsets] = vertices["weights"][index]

    first = ring_start
    second = ring_start + ring_size
    for _ in range(collar_divisions + 1):
        buffers.add_triangles(mesh, triangle_ring(first, second, divisions))
        first = second
        second += ring_size

    set_collar_normals(vertices, ring_start, ring_b, divisions, collar_divisions)
    set_collar_uvs(vertices, plant, child, ring_b, divisions, collar_divisions)
    return child.path.get_divisions() + 2


def set_collar_normals(
    vertices: np.ndarray,
    ring_start: int,
    ring_b: int,
    divisions: int,
    collar_divisions: int,
) -> None:
    """Blend collar normals from ring A's normals to ring B's."""
    ring_size = divisions + 1
    first = vertices["normal"][ring_start:ring_start + ring_size].astype(float)
    last = vertices["normal"][ring_b:ring_b + ring_size].astype(float)

    for j in range(1, collar_divisions + 1):
        t = j / collar_divisions
        normals = (1.0 - t) * first + t * last
        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        normals = np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)
        offset = ring_start + j * ring_size
        vertices["normal"][offset:offset + ring_size] = normals


def set_collar_uvs(
    vertices: np.ndarray,
    plant: Plant,
    stem: Stem,
    ring_b: int,
    divisions: int,
    collar_divisions: int,
) -> None:
    """
    Texture coordinates of the collar, walked backwards from ring B.

    Ring B's v is already correct; each earlier ring subtracts the length of
    the spline step scaled like `texture_length`.
    """
    ring_size = divisions + 1
    radius = plant.radius_at(stem, 1)
    factor = get_aspect(plant, stem) / (radius * 2.0 * np.pi) if radius > 0 else 0.0

    u = vertices["uv"][ring_b:ring_b + ring_size, 0].copy()
    v = vertices["uv"][ring_b:ring_b + ring_size, 1].astype(float)
    index = ring_b
    for _ in range(collar_divisions + 1):
        p1 = vertices["position"][index:index + ring_size].astype(float)
        index -= ring_size
        p2 = vertices["position"][index:index + ring_size].astype(float)
        v = v - np.linalg.norm(p2 - p1, axis=1) * factor
        vertices["uv"][index:index + ring_size, 0] = u
        vertices["uv"][index:index + ring_size, 1] = v


__all__ = [
    "has_collar",
    "collar_size",
    "collar_scale",
    "parent_triangles",
    "parent_surface",
    "move_to_surface",
    "connect_collar",
    "set_collar_normals",
    "set_collar_uvs",
]
