"""
Template geometry for leaves.

A Geometry is a small indexed triangle mesh in leaf-local space: the leaf
blade extends along +Z from the attachment point and faces +Y.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence
import numpy as np
from scipy.spatial.transform import Rotation


@dataclass
class Geometry:
    """
    Indexed triangle mesh used as a leaf template.

    Attributes
    ----------
    positions : np.ndarray
        (N, 3) vertex positions
    normals : np.ndarray
        (N, 3) unit vertex normals
    uvs : np.ndarray
        (N, 2) texture coordinates
    indices : np.ndarray
        (M,) triangle list indices into the vertex arrays
    id : int
        Leaf-mesh id in the plant table (0 for built-in templates)
    """

    positions: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    normals: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    uvs: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint32))
    id: int = 0
    name: str = ""

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=float).reshape(-1, 3)
        self.normals = np.asarray(self.normals, dtype=float).reshape(-1, 3)
        self.uvs = np.asarray(self.uvs, dtype=float).reshape(-1, 2)
        self.indices = np.asarray(self.indices, dtype=np.uint32).reshape(-1)
        n = len(self.positions)
        if len(self.normals) != n or len(self.uvs) != n:
            raise ValueError("positions, normals and uvs must have the same length")
        if len(self.indices) % 3 != 0:
            raise ValueError("indices must describe whole triangles")
        if len(self.indices) and int(self.indices.max()) >= n:
            raise ValueError("index out of range of the vertex arrays")

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @classmethod
    def plane(cls, width: float = 1.0, length: float = 1.0) -> "Geometry":
        """Single quad: two triangles, facing +Y, running from z=0 to z=length."""
        half = 0.5 * width
        positions = [
            [-half, 0.0, 0.0],
            [-half, 0.0, length],
            [half, 0.0, length],
            [half, 0.0, 0.0],
        ]
        normals = [[0.0, 1.0, 0.0]] * 4
        uvs = [[0.0, 0.0], [0.0, 1.0], [1.0, 1.0], [1.0, 0.0]]
        indices = [0, 1, 2, 2, 3, 0]
        return cls(positions, normals, uvs, indices, name="plane")

    @classmethod
    def perpendicular_planes(cls, width: float = 1.0, length: float = 1.0) -> "Geometry":
        """Two crossed quads sharing the Z axis (one facing +Y, one facing +X)."""
        first = cls.plane(width, length)
        turn = Rotation.from_rotvec([0.0, 0.0, np.pi / 2.0])
        second = first.transform(turn)
        return cls.concatenate([first, second], name="perpendicular_planes")

    @classmethod
    def concatenate(cls, parts: Sequence["Geometry"], name: str = "") -> "Geometry":
        positions, normals, uvs, indices = [], [], [], []
        offset = 0
        for part in parts:
            positions.append(part.positions)
            normals.append(part.normals)
            uvs.append(part.uvs)
            indices.append(part.indices.astype(np.int64) + offset)
            offset += part.vertex_count
        if not parts:
            return cls(name=name)
        return cls(
            np.vstack(positions),
            np.vstack(normals),
            np.vstack(uvs),
            np.concatenate(indices),
            name=name,
        )

    def transform(
        self,
        rotation: Optional[Rotation] = None,
        scale: Sequence[float] = (1.0, 1.0, 1.0),
        translation: Sequence[float] = (0.0, 0.0, 0.0),
    ) -> "Geometry":
        """
        Scale, then rotate, then translate; returns a new Geometry.

        Normals are transformed by the inverse-transpose of the scale so that
        non-uniform scaling keeps them perpendicular to the surface.
        """
        scale = np.asarray(scale, dtype=float)
        positions = self.positions * scale
        with np.errstate(divide="ignore", invalid="ignore"):
            normals = np.where(scale != 0.0, self.normals / scale, 0.0)

        if rotation is not None and len(positions):
            positions = rotation.apply(positions)
            normals = rotation.apply(normals)

        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        normals = np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)

        return Geometry(
            positions + np.asarray(translation, dtype=float),
            normals,
            self.uvs.copy(),
            self.indices.copy(),
            id=self.id,
            name=self.name,
        )


__all__ = ["Geometry"]
