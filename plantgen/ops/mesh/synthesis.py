"""
Plant mesh synthesis.

`PlantMesh` walks a plant's stem tree depth first and extrudes every stem
into material-partitioned buffers: rings along the path, a branch collar
where a child meets its parent, an optional end cap, then the stem's
leaves. After the walk the buffers are finalized into one merged
vertex/index pair.

The plant is only read. A PlantMesh owns its buffers, so concurrent
previews need one instance each.
"""

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple
import logging
import numpy as np
from scipy.spatial.transform import Rotation

from plant_policies import MeshSynthesisPolicy, OperationReport

from ...core.geometry import Geometry
from ...core.plant import Plant
from ...core.stem import INNER, OUTER, Stem
from ...utils.geometry import EPSILON
from .buffers import INDEX_DTYPE, VERTEX_DTYPE, MeshBuffers, Segment
from .collar import collar_size, connect_collar, has_collar
from .cross_section import (
    CrossSection,
    build_ring,
    cap_triangles,
    initial_rotation,
    rotate_section,
    texture_length,
    triangle_ring,
)
from .leaves import attach_leaf
from .skinning import initial_joint_id, ring_weights

logger = logging.getLogger(__name__)

DEFAULT_LEAVES = ("plane", "perpendicular_planes")

METRIC_KEYS = (
    "stems_meshed",
    "stems_skipped",
    "collars_fused",
    "collar_failures",
    "leaves_attached",
    "missing_materials",
    "missing_leaf_meshes",
)


@dataclass
class RingState:
    """Orientation and texture state carried from ring to ring along one stem."""

    rotation: Rotation
    direction: np.ndarray
    tex_offset: float = 0.0
    prev_index: int = 0


class PlantMesh:
    """
    Mesh synthesis engine for one plant.

    Parameters
    ----------
    plant : Plant
        Plant to mesh; not modified
    policy : MeshSynthesisPolicy, optional
        Global gates and tolerances (defaults to MeshSynthesisPolicy())
    """

    def __init__(self, plant: Plant, policy: Optional[MeshSynthesisPolicy] = None):
        self.plant = plant
        self.policy = policy or MeshSynthesisPolicy()
        self.buffers = MeshBuffers()
        self.metrics: Dict[str, int] = {}
        self._sections: Dict[int, CrossSection] = {}
        self._default_leaf: Optional[Geometry] = None
        self._vertices = np.zeros(0, dtype=VERTEX_DTYPE)
        self._indices = np.zeros(0, dtype=INDEX_DTYPE)
        self._reset_metrics()

    def _reset_metrics(self) -> None:
        self.metrics = {key: 0 for key in METRIC_KEYS}

    def set_cross_section(self, section: CrossSection) -> None:
        """Use a custom profile for every stem whose division count matches its resolution."""
        self._sections[section.get_resolution()] = section

    def get_cross_section(self, divisions: int) -> CrossSection:
        """Template for a division count, kept across passes."""
        section = self._sections.get(divisions)
        if section is None:
            section = CrossSection(divisions)
            self._sections[divisions] = section
        return section

    def default_leaf(self) -> Geometry:
        if self._default_leaf is None or self._default_leaf.name != self.policy.default_leaf:
            if self.policy.default_leaf == "perpendicular_planes":
                self._default_leaf = Geometry.perpendicular_planes()
            else:
                self._default_leaf = Geometry.plane()
        return self._default_leaf

    # -- pass -----------------------------------------------------------------

    def generate(self) -> "PlantMesh":
        """
        Run one synthesis pass, replacing the output of any previous pass.

        Returns
        -------
        PlantMesh
            self, for chaining

        Raises
        ------
        ValueError
            If a stem has a non-finite location and the policy disables
            skipping
        """
        self.buffers.reset()
        self._reset_metrics()

        root = self.plant.get_root()
        stack: List[Tuple[Stem, Optional[Stem], int]] = []
        if root is not None and self._is_drawable(root):
            stack.append((root, None, 0))

        while stack:
            stem, parent, inherited = stack.pop()
            joint_id = self._add_stem(stem, parent, inherited)
            children = [child for child in self.plant.children(stem) if self._is_drawable(child)]
            for child in reversed(children):
                stack.append((child, stem, joint_id))

        self._vertices, self._indices = self.buffers.finalize()
        return self

    def _is_drawable(self, stem: Stem) -> bool:
        if stem.has_valid_location():
            return True
        if not self.policy.skip_invalid_locations:
            raise ValueError(f"Stem {stem.handle} has a non-finite location")
        skipped = self._subtree_size(stem)
        self.metrics["stems_skipped"] += skipped
        logger.debug(f"Skipping stem {stem.handle} and {skipped - 1} descendant(s): invalid location")
        return False

    def _subtree_size(self, stem: Stem) -> int:
        count = 0
        pending = [stem]
        while pending:
            current = pending.pop()
            count += 1
            pending.extend(self.plant.children(current))
        return count

    def _resolve_material(self, material_id: int) -> int:
        if not material_id or self.plant.has_material(material_id):
            return material_id
        self.metrics["missing_materials"] += 1
        logger.warning(f"Unknown material {material_id}; using the default buffer")
        return 0

    def _add_stem(self, stem: Stem, parent: Optional[Stem], inherited: int) -> int:
        buffers = self.buffers
        mesh = buffers.select_buffer(self._resolve_material(stem.get_material(OUTER)))
        vertex_start = buffers.vertex_size(mesh)
        index_start = buffers.index_size(mesh)
        joint_id = initial_joint_id(stem, parent, inherited)

        self._add_sections(stem, parent, mesh, joint_id)
        buffers.record_stem(Segment(
            vertex_start=vertex_start,
            vertex_count=buffers.vertex_size(mesh) - vertex_start,
            index_start=index_start,
            index_count=buffers.index_size(mesh) - index_start,
            stem=stem.handle,
            mesh=mesh,
        ))
        self.metrics["stems_meshed"] += 1

        for leaf_index in range(len(stem.leaves)):
            self._add_leaf(stem, leaf_index, joint_id)
        return joint_id

    # -- rings ----------------------------------------------------------------

    def _add_sections(self, stem: Stem, parent: Optional[Stem], mesh: int, joint_id: int) -> None:
        path = stem.path
        divisions = stem.section_divisions
        section = self.get_cross_section(divisions)
        rotation, direction = initial_rotation(stem, parent)
        state = RingState(rotation, direction, 0.0, self.buffers.vertex_size(mesh))

        start = self._create_branch_collar(stem, parent, mesh, section, state, joint_id)
        if 0 < start < path.size:
            self.buffers.add_triangles(
                mesh, triangle_ring(state.prev_index, self.buffers.vertex_size(mesh), divisions)
            )

        for sample in range(start, path.size):
            self._add_ring(stem, mesh, section, state, sample, joint_id)
            if sample + 1 < path.size:
                self.buffers.add_triangles(
                    mesh, triangle_ring(state.prev_index, self.buffers.vertex_size(mesh), divisions)
                )

        if stem.min_radius > 0 and self.policy.cap_stems and path.size > 0:
            self._cap_stem(stem, mesh, state.prev_index)

    def _add_ring(
        self,
        stem: Stem,
        mesh: int,
        section: CrossSection,
        state: RingState,
        sample: int,
        joint_id: int,
    ) -> None:
        path = stem.path
        direction = path.get_average_direction(sample)
        state.rotation = rotate_section(state.rotation, state.direction, direction)
        state.direction = direction
        state.prev_index = self.buffers.vertex_size(mesh)

        v = texture_length(self.plant, stem, sample) + state.tex_offset
        state.tex_offset = v
        ring = build_ring(
            section,
            state.rotation,
            self.plant.radius_at(stem, sample),
            stem.location + path.get(sample),
            v,
            ring_weights(stem, sample, joint_id),
        )
        self.buffers.vertices[mesh].extend(ring)

    def _cap_stem(self, stem: Stem, mesh: int, ring_start: int) -> None:
        """Close the stem end with the last ring, in the inner material's buffer."""
        divisions = stem.section_divisions
        if divisions < 1:
            return
        cap_mesh = self.buffers.select_buffer(self._resolve_material(stem.get_material(INNER)))
        cap = self.buffers.vertices[mesh].data[ring_start:ring_start + divisions + 1].copy()

        angles = 2.0 * np.pi * np.arange(len(cap)) / divisions
        cap["uv"] = np.column_stack([np.cos(angles) * 0.5 + 0.5, np.sin(angles) * 0.5 + 0.5])
        cap["normal"] = stem.path.get_direction(stem.path.size - 1)

        start = self.buffers.vertices[cap_mesh].extend(cap)
        self.buffers.add_triangles(cap_mesh, cap_triangles(start, divisions))

    # -- collar -----------------------------------------------------------------

    def _create_branch_collar(
        self,
        stem: Stem,
        parent: Optional[Stem],
        mesh: int,
        section: CrossSection,
        state: RingState,
        joint_id: int,
    ) -> int:
        """
        Emit ring A, the reserved collar block and ring B, then fuse the collar.

        Returns the first sample still to be emitted as a plain ring: 0 when
        no collar was attempted or the attempt was rolled back.
        """
        if not self.policy.enable_collars or not has_collar(stem, parent):
            return 0

        buffers = self.buffers
        parent_segment = buffers.find_stem(parent.handle)
        rollback = (buffers.vertex_size(mesh), buffers.index_size(mesh))
        snapshot = replace(state)

        ring_start = rollback[0]
        self._add_ring(stem, mesh, section, state, 0, joint_id)
        collar_start = buffers.vertices[mesh].reserve(collar_size(stem))
        state.tex_offset = 0.0
        self._add_ring(stem, mesh, section, state, stem.path.get_divisions() + 1, joint_id)

        marker = connect_collar(
            buffers,
            self.plant,
            stem,
            parent,
            mesh,
            ring_start,
            collar_start,
            parent_segment,
            rollback,
            epsilon=max(self.policy.intersection_epsilon, EPSILON),
        )
        if marker == 0:
            state.rotation = snapshot.rotation
            state.direction = snapshot.direction
            state.tex_offset = snapshot.tex_offset
            state.prev_index = snapshot.prev_index
            self.metrics["collar_failures"] += 1
        else:
            self.metrics["collars_fused"] += 1
        return marker

    # -- leaves -----------------------------------------------------------------

    def _add_leaf(self, stem: Stem, leaf_index: int, joint_id: int) -> None:
        leaf = stem.leaves[leaf_index]
        mesh = self.buffers.select_buffer(self._resolve_material(leaf.material))
        geometry = self.plant.leaf_mesh(leaf.mesh)
        if geometry is None:
            if leaf.mesh:
                self.metrics["missing_leaf_meshes"] += 1
                logger.warning(f"Unknown leaf mesh {leaf.mesh}; using the default {self.policy.default_leaf}")
            geometry = self.default_leaf()
        attach_leaf(self.buffers, mesh, stem, leaf_index, geometry, joint_id)
        self.metrics["leaves_attached"] += 1

    # -- output -----------------------------------------------------------------

    @property
    def mesh_count(self) -> int:
        return self.buffers.mesh_count

    @property
    def vertex_count(self) -> int:
        return len(self._vertices)

    @property
    def index_count(self) -> int:
        return len(self._indices)

    @property
    def triangle_count(self) -> int:
        return len(self._indices) // 3

    def get_vertices(self, mesh: Optional[int] = None) -> np.ndarray:
        """Merged vertices, or the vertices of one material buffer."""
        if mesh is None:
            return self._vertices
        return self.buffers.vertices[mesh].data

    def get_indices(self, mesh: Optional[int] = None) -> np.ndarray:
        """
        Merged indices, or the indices of one material buffer.

        After a pass, every buffer's indices address the merged vertex array.
        """
        if mesh is None:
            return self._indices
        return self.buffers.indices[mesh].data

    def get_triangles(self) -> np.ndarray:
        return self._indices.reshape(-1, 3)

    def get_material_id(self, mesh: int) -> int:
        return self.buffers.get_material_id(mesh)

    def get_stem_segments(self, mesh: int) -> Dict[int, Segment]:
        return self.buffers.stem_segments[mesh]

    def get_leaf_segments(self, mesh: int) -> Dict[Tuple[int, int], Segment]:
        return self.buffers.leaf_segments[mesh]

    def get_leaf_count(self, mesh: int) -> int:
        return len(self.buffers.leaf_segments[mesh])

    def find_stem_segment(self, stem: int) -> Segment:
        return self.buffers.find_stem(stem)

    def find_leaf_segment(self, stem: int, leaf_index: int) -> Segment:
        return self.buffers.find_leaf(stem, leaf_index)

    def summary(self) -> Dict[str, int]:
        summary = dict(self.metrics)
        summary.update({
            "mesh_count": self.mesh_count,
            "vertex_count": self.vertex_count,
            "index_count": self.index_count,
            "triangle_count": self.triangle_count,
        })
        return summary


def _effective_policy(policy: MeshSynthesisPolicy, report: OperationReport) -> MeshSynthesisPolicy:
    effective = MeshSynthesisPolicy.from_dict(policy.to_dict())
    if effective.default_leaf not in DEFAULT_LEAVES:
        report.add_warning(f"Unknown default_leaf '{effective.default_leaf}', using 'plane'")
        effective.default_leaf = "plane"
    if not effective.intersection_epsilon or effective.intersection_epsilon < EPSILON:
        report.add_warning(
            f"intersection_epsilon {effective.intersection_epsilon} raised to {EPSILON}"
        )
        effective.intersection_epsilon = EPSILON
    return effective


def synthesize_plant_mesh(
    plant: Plant,
    policy: Optional[MeshSynthesisPolicy] = None,
) -> Tuple[PlantMesh, OperationReport]:
    """
    Synthesize the mesh of a plant.

    Parameters
    ----------
    plant : Plant
        Plant to mesh
    policy : MeshSynthesisPolicy, optional
        Policy controlling synthesis options

    Returns
    -------
    plant_mesh : PlantMesh
        Engine holding the merged and per-material buffers
    report : OperationReport
        Report with synthesis statistics
    """
    if policy is None:
        policy = MeshSynthesisPolicy()

    report = OperationReport(
        operation="synthesize_plant_mesh",
        requested_policy=policy.to_dict(),
    )
    effective_policy = _effective_policy(policy, report)
    report.effective_policy = effective_policy.to_dict()
    plant_mesh = PlantMesh(plant, effective_policy)

    try:
        plant_mesh.generate()
    except ValueError as e:
        logger.error(f"Plant mesh synthesis failed: {e}")
        report.add_error(str(e))

    metrics = plant_mesh.summary()
    if metrics["collar_failures"]:
        report.add_warning(
            f"{metrics['collar_failures']} branch collar(s) missed the parent surface "
            f"and were attached with a plain seam"
        )
    if metrics["missing_materials"]:
        report.add_warning(f"{metrics['missing_materials']} reference(s) to unknown materials")
    if metrics["missing_leaf_meshes"]:
        report.add_warning(f"{metrics['missing_leaf_meshes']} reference(s) to unknown leaf meshes")

    logger.info(
        f"Synthesized plant mesh: {metrics['stems_meshed']} stems, "
        f"{metrics['leaves_attached']} leaves, {metrics['mesh_count']} buffers, "
        f"{metrics['vertex_count']} vertices, {metrics['triangle_count']} triangles"
    )

    report.metadata = metrics
    report.metrics = dict(metrics)
    return plant_mesh, report


__all__ = [
    "PlantMesh",
    "RingState",
    "synthesize_plant_mesh",
]
