"""
Cross-section rings.

A stem is extruded by placing one ring of vertices at every path sample and
stitching consecutive rings with triangles. Ring orientation is carried from
sample to sample by the smallest rotation between consecutive tangents, so
long curved stems do not twist.
"""

from typing import Optional, Sequence, Tuple
import logging
import numpy as np
from scipy.spatial.transform import Rotation

from ...core.plant import Plant
from ...core.stem import OUTER, Stem
from ...utils.geometry import UP, normalize, project_onto_plane, rotate_into_vec
from .buffers import VERTEX_DTYPE
from .skinning import JointWeights

logger = logging.getLogger(__name__)

SIDEWAYS = np.array([1.0, 0.0, 0.0])


class CrossSection:
    """
    Unit-radius ring template in the XZ plane, oriented along +Y.

    The ring has `resolution + 1` points: the seam point is repeated so the
    last point can carry u = 1. Point 0 lies on +X.
    """

    def __init__(self, resolution: int = 0):
        self.positions = np.zeros((0, 3))
        self.normals = np.zeros((0, 3))
        self.u = np.zeros(0)
        self._resolution = 0
        if resolution > 0:
            self.generate(resolution)

    def get_resolution(self) -> int:
        return self._resolution

    def generate(self, resolution: int) -> None:
        """Regenerate the template as a circle with `resolution` divisions."""
        resolution = max(int(resolution), 0)
        if resolution == 0:
            self.positions = np.zeros((0, 3))
            self.normals = np.zeros((0, 3))
            self.u = np.zeros(0)
            self._resolution = 0
            return

        steps = np.arange(resolution + 1)
        angles = 2.0 * np.pi * steps / resolution
        self.positions = np.column_stack([np.cos(angles), np.zeros_like(angles), np.sin(angles)])
        self.positions[-1] = self.positions[0]
        self.normals = self.positions.copy()
        self.u = steps / resolution
        self._resolution = resolution
        logger.debug(f"Generated cross section with {resolution} divisions")

    @classmethod
    def from_profile(cls, profile: Sequence[Sequence[float]]) -> "CrossSection":
        """
        Template from a closed 2D profile given as (x, z) points.

        Normals point away from the neighbours' chord; u follows the
        cumulative perimeter.
        """
        points = np.asarray(profile, dtype=float).reshape(-1, 2)
        section = cls()
        if len(points) < 3:
            return section

        closed = np.vstack([points, points[:1]])
        positions = np.column_stack([closed[:, 0], np.zeros(len(closed)), closed[:, 1]])

        prev_points = np.roll(points, 1, axis=0)
        next_points = np.roll(points, -1, axis=0)
        chord = next_points - prev_points
        normals = np.column_stack([chord[:, 1], np.zeros(len(points)), -chord[:, 0]])
        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        normals = np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)
        normals = np.vstack([normals, normals[:1]])

        edges = np.linalg.norm(np.diff(closed, axis=0), axis=1)
        perimeter = np.concatenate([[0.0], np.cumsum(edges)])
        u = perimeter / perimeter[-1] if perimeter[-1] > 0 else perimeter

        section.positions = positions
        section.normals = normals
        section.u = u
        section._resolution = len(points)
        return section


def initial_rotation(stem: Stem, parent: Optional[Stem]) -> Tuple[Rotation, np.ndarray]:
    """
    Reference rotation and direction for the first ring of a stem.

    For a child stem the ring is turned about its own axis so that the
    template's sideways axis points along the parent direction projected onto
    the ring plane: point 0 is the topmost point relative to the parent.
    """
    if parent is None:
        return Rotation.identity(), UP.copy()

    parent_direction = parent.path.get_intermediate_direction(stem.distance)
    stem_direction = stem.path.get_direction(0)
    rotation = rotate_into_vec(UP, stem_direction)

    sideways = normalize(rotation.apply(SIDEWAYS))
    up = normalize(project_onto_plane(parent_direction, stem_direction))
    if up.any():
        # signed angle about the stem axis
        angle = np.arctan2(np.dot(np.cross(sideways, up), stem_direction), np.dot(sideways, up))
        rotation = Rotation.from_rotvec(stem_direction * angle) * rotation
    return rotation, stem_direction


def rotate_section(
    prev_rotation: Rotation,
    prev_direction: np.ndarray,
    direction: np.ndarray,
) -> Rotation:
    """Rotation of the next ring, relative to the previous one."""
    return rotate_into_vec(prev_direction, direction) * prev_rotation


def get_aspect(plant: Plant, stem: Stem) -> float:
    return plant.material_ratio(stem.get_material(OUTER))


def texture_length(plant: Plant, stem: Stem, section: int) -> float:
    """
    Texture v advance between ring `section - 1` and ring `section`.

    Scaled by the material aspect ratio over the circumference so the texture
    keeps its proportions whatever the sample spacing.
    """
    if section <= 0:
        return 0.0
    length = stem.path.get_segment_length(section)
    radius = plant.radius_at(stem, section - 1)
    if radius <= 0:
        return 0.0
    return (length * get_aspect(plant, stem)) / (radius * 2.0 * np.pi)


def build_ring(
    section: CrossSection,
    rotation: Rotation,
    radius: float,
    location: np.ndarray,
    v: float,
    weights: JointWeights,
) -> np.ndarray:
    """One ring of vertices, ready to be appended to a buffer."""
    count = len(section.positions)
    ring = np.zeros(count, dtype=VERTEX_DTYPE)
    if count == 0:
        return ring

    ring["position"] = rotation.apply(section.positions * radius) + location
    normals = rotation.apply(section.normals)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    ring["normal"] = np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)
    ring["uv"][:, 0] = section.u
    ring["uv"][:, 1] = v
    ring["joints"] = weights.joints
    ring["weights"] = weights.weights
    return ring


def triangle_ring(prev_index: int, index: int, divisions: int) -> np.ndarray:
    """
    Triangles joining the ring starting at `prev_index` to the ring at `index`.

    Both rings have `divisions + 1` vertices; the result has `2 * divisions`
    triangles, as an (N, 3) array.
    """
    if divisions <= 0:
        return np.zeros((0, 3), dtype=np.int64)
    steps = np.arange(divisions)
    current = index + steps
    previous = prev_index + steps
    first = np.column_stack([current, current + 1, previous])
    second = np.column_stack([previous, current + 1, previous + 1])
    return np.stack([first, second], axis=1).reshape(-1, 3)


def cap_triangle_count(divisions: int) -> int:
    if divisions < 3:
        return 0
    return divisions - 2


def cap_triangles(start: int, divisions: int) -> np.ndarray:
    """
    Triangulation of a ring of `divisions` points starting at `start`.

    Pairs of triangles zig-zag across the ring from both ends; odd rings get
    one closing triangle.
    """
    if divisions < 3:
        return np.zeros((0, 3), dtype=np.int64)

    triangles = []
    half = divisions // 2 - 1
    for i in range(half):
        triangles.append((start + i, start + divisions - i - 1, start + i + 1))
        triangles.append((start + i + 1, start + divisions - i - 1, start + divisions - i - 2))
    if divisions % 2 == 1:
        last = start + max(half, 0)
        triangles.append((last, last + 2, last + 1))
    return np.array(triangles, dtype=np.int64).reshape(-1, 3)


__all__ = [
    "CrossSection",
    "initial_rotation",
    "rotate_section",
    "get_aspect",
    "texture_length",
    "build_ring",
    "triangle_ring",
    "cap_triangle_count",
    "cap_triangles",
]
