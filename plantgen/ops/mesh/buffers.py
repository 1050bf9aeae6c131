"""
Material-partitioned vertex and index buffers.

Geometry is routed into one buffer per material so that everything sharing a
material ends up contiguous and can be drawn with a single call. After the
tree walk, `MeshBuffers.finalize` rewrites indices and segment offsets so the
buffers can be concatenated into one global vertex/index pair.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Tuple
import logging
import numpy as np

logger = logging.getLogger(__name__)


VERTEX_DTYPE = np.dtype([
    ("position", np.float32, (3,)),
    ("normal", np.float32, (3,)),
    ("uv", np.float32, (2,)),
    ("joints", np.uint32, (2,)),
    ("weights", np.float32, (2,)),
])

INDEX_DTYPE = np.dtype(np.uint32)

DEFAULT_BUFFER = 0


class GrowableArray:
    """
    Append-only numpy array with amortized growth.

    `reserve` extends the array by a zero-filled block in a single step; the
    returned offset is stable, so later writes can address the block by index
    while other data is appended behind it.
    """

    def __init__(self, dtype, capacity: int = 64):
        self._data = np.zeros(max(capacity, 1), dtype=dtype)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    @property
    def dtype(self):
        return self._data.dtype

    @property
    def data(self) -> np.ndarray:
        """View of the filled part of the array."""
        return self._data[:self._size]

    def _ensure_capacity(self, required: int) -> None:
        if required <= len(self._data):
            return
        capacity = len(self._data)
        while capacity < required:
            capacity *= 2
        grown = np.zeros(capacity, dtype=self._data.dtype)
        grown[:self._size] = self._data[:self._size]
        self._data = grown

    def extend(self, values: np.ndarray) -> int:
        """Append values and return the offset of the first one."""
        values = np.asarray(values, dtype=self._data.dtype).reshape(-1)
        start = self._size
        self._ensure_capacity(start + len(values))
        self._data[start:start + len(values)] = values
        self._size += len(values)
        return start

    def reserve(self, count: int) -> int:
        """Append `count` zeroed entries and return the offset of the first one."""
        start = self._size
        self._ensure_capacity(start + count)
        self._data[start:start + count] = np.zeros(count, dtype=self._data.dtype)
        self._size += count
        return start

    def truncate(self, size: int) -> None:
        """Drop everything at and after `size`."""
        if size < self._size:
            self._size = max(size, 0)

    def clear(self) -> None:
        self._size = 0

    def __getitem__(self, key):
        return self.data[key]

    def __setitem__(self, key, value):
        self.data[key] = value


@dataclass
class Segment:
    """
    Contiguous vertex/index range of one stem or leaf inside a buffer.

    `leaf_index` is None for stem segments. A zeroed Segment (the result of a
    failed lookup) has `is_empty` set.
    """

    vertex_start: int = 0
    vertex_count: int = 0
    index_start: int = 0
    index_count: int = 0
    stem: Optional[int] = None
    leaf_index: Optional[int] = None
    mesh: int = DEFAULT_BUFFER

    @property
    def is_empty(self) -> bool:
        return self.vertex_count == 0 and self.index_count == 0

    @property
    def vertex_end(self) -> int:
        return self.vertex_start + self.vertex_count

    @property
    def index_end(self) -> int:
        return self.index_start + self.index_count

    def to_dict(self) -> dict:
        return asdict(self)


LeafKey = Tuple[int, int]


class MeshBuffers:
    """
    Buffer partitioner.

    Buffer 0 always exists and holds geometry without a material. Other
    buffers are created lazily, in order of first use, one per material id.
    """

    def __init__(self):
        self.vertices: List[GrowableArray] = []
        self.indices: List[GrowableArray] = []
        self.stem_segments: List[Dict[int, Segment]] = []
        self.leaf_segments: List[Dict[LeafKey, Segment]] = []
        self.material_ids: List[int] = []
        self._buffer_of: Dict[int, int] = {}
        self._finalized = False
        self.reset()

    def reset(self) -> None:
        self.vertices.clear()
        self.indices.clear()
        self.stem_segments.clear()
        self.leaf_segments.clear()
        self.material_ids.clear()
        self._buffer_of.clear()
        self._finalized = False
        self._new_buffer(0)

    def _new_buffer(self, material_id: int) -> int:
        mesh = len(self.vertices)
        self.vertices.append(GrowableArray(VERTEX_DTYPE))
        self.indices.append(GrowableArray(INDEX_DTYPE))
        self.stem_segments.append({})
        self.leaf_segments.append({})
        self.material_ids.append(material_id)
        self._buffer_of[material_id] = mesh
        return mesh

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def mesh_count(self) -> int:
        return len(self.vertices)

    def select_buffer(self, material_id: Optional[int]) -> int:
        """Buffer index for a material, creating the buffer on first use."""
        if not material_id:
            return DEFAULT_BUFFER
        mesh = self._buffer_of.get(material_id)
        if mesh is None:
            mesh = self._new_buffer(material_id)
            logger.debug(f"Created buffer {mesh} for material {material_id}")
        return mesh

    def get_material_id(self, mesh: int) -> int:
        return self.material_ids[mesh]

    def vertex_size(self, mesh: int) -> int:
        return len(self.vertices[mesh])

    def index_size(self, mesh: int) -> int:
        return len(self.indices[mesh])

    def add_triangle(self, mesh: int, a: int, b: int, c: int) -> None:
        self.indices[mesh].extend(np.array([a, b, c], dtype=INDEX_DTYPE))

    def add_triangles(self, mesh: int, triangles: np.ndarray) -> None:
        self.indices[mesh].extend(np.asarray(triangles, dtype=np.int64).reshape(-1))

    def truncate(self, mesh: int, vertex_size: int, index_size: int) -> None:
        """Roll a buffer back to an earlier length."""
        self.vertices[mesh].truncate(vertex_size)
        self.indices[mesh].truncate(index_size)

    def record_stem(self, segment: Segment) -> None:
        self.stem_segments[segment.mesh][segment.stem] = segment

    def record_leaf(self, segment: Segment) -> None:
        self.leaf_segments[segment.mesh][(segment.stem, segment.leaf_index)] = segment

    def find_stem(self, stem: int) -> Segment:
        """Segment of a stem, or an empty Segment when the stem has none."""
        for segments in self.stem_segments:
            segment = segments.get(stem)
            if segment is not None:
                return segment
        return Segment()

    def find_leaf(self, stem: int, leaf_index: int) -> Segment:
        """Segment of a leaf, or an empty Segment when the leaf has none."""
        key = (stem, leaf_index)
        for segments in self.leaf_segments:
            segment = segments.get(key)
            if segment is not None:
                return segment
        return Segment()

    def finalize(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Offset every buffer after the first into the merged index space.

        Indices and segment starts of buffer k are shifted by the vertex and
        index totals of buffers 0..k-1. Runs once per pass.

        Returns
        -------
        vertices : np.ndarray
            Concatenated vertices (VERTEX_DTYPE)
        indices : np.ndarray
            Concatenated uint32 indices into `vertices`
        """
        if self._finalized:
            raise RuntimeError("Buffers have already been finalized for this pass")

        vertex_offset = self.vertex_size(0)
        index_offset = self.index_size(0)
        for mesh in range(1, self.mesh_count):
            self.indices[mesh].data[:] += np.uint32(vertex_offset)
            for segment in self.stem_segments[mesh].values():
                segment.vertex_start += vertex_offset
                segment.index_start += index_offset
            for segment in self.leaf_segments[mesh].values():
                segment.vertex_start += vertex_offset
                segment.index_start += index_offset
            vertex_offset += self.vertex_size(mesh)
            index_offset += self.index_size(mesh)

        self._finalized = True
        return self.merged_vertices(), self.merged_indices()

    def merged_vertices(self) -> np.ndarray:
        return np.concatenate([buffer.data for buffer in self.vertices])

    def merged_indices(self) -> np.ndarray:
        return np.concatenate([buffer.data for buffer in self.indices]).astype(INDEX_DTYPE)


__all__ = [
    "VERTEX_DTYPE",
    "INDEX_DTYPE",
    "DEFAULT_BUFFER",
    "GrowableArray",
    "Segment",
    "MeshBuffers",
]
