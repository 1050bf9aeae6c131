"""
Unit tests for branch-collar synthesis.

The parent used here is a vertical stem of radius 1 (octagonal rings); the
child leaves it horizontally along +X from the middle of the parent.
"""

import pytest
import numpy as np
from plantgen.core import Path, Plant, Stem
from plantgen.core.path import Spline
from plantgen.ops.mesh.buffers import MeshBuffers, Segment, VERTEX_DTYPE
from plantgen.ops.mesh.collar import (
    collar_scale,
    collar_size,
    connect_collar,
    has_collar,
    move_to_surface,
    parent_surface,
)
from plantgen.ops.mesh.synthesis import PlantMesh
from plantgen.utils.geometry import triangle_mesh
from plant_policies import MeshSynthesisPolicy


def make_plant(parent_samples=5, child_radius=0.3):
    plant = Plant()
    root = plant.create_root()
    points = [[0.0, float(y), 0.0] for y in range(parent_samples)]
    plant.set_path(root, Path.from_points(points))
    child = plant.add_stem(root)
    plant.set_path(
        child,
        Path.from_points([[0, 0, 0], [1.5, 0, 0], [3, 0, 0]], radii=[child_radius] * 3),
    )
    plant.set_distance(child, min(2.0, root.path.get_length()))
    return plant, root, child


class TestCollarConditions:
    """Tests for when a collar is attempted."""

    def test_requires_parent(self):
        """Root stems never get a collar."""
        plant, root, child = make_plant()

        assert not has_collar(root, None)
        assert has_collar(child, root)

    def test_requires_swelling_of_at_least_one(self):
        """Swelling below 1 on either axis disables the collar."""
        plant, root, child = make_plant()
        child.swelling = (0.5, 1.5)

        assert not has_collar(child, root)

    def test_requires_sample_after_collar(self):
        """The path must reach past the collar region."""
        plant, root, child = make_plant()
        plant.set_path(child, Path.from_points([[0, 0, 0]]))

        assert not has_collar(child, root)

    def test_collar_size(self):
        """The reserved block holds collar_divisions rings."""
        stem = Stem(handle=0, section_divisions=8, collar_divisions=3)

        assert collar_size(stem) == 27


class TestCollarScale:
    """Tests for the anisotropic swelling matrix."""

    def test_axes(self):
        """The parent axis takes swelling[1], the side axis swelling[0]."""
        plant, root, child = make_plant()
        child.swelling = (1.2, 2.0)
        scale = collar_scale(child, root)

        np.testing.assert_allclose(scale @ [1, 0, 0], [1, 0, 0], atol=1e-12)
        np.testing.assert_allclose(scale @ [0, 1, 0], [0, 2.0, 0], atol=1e-12)
        np.testing.assert_allclose(scale @ [0, 0, 1], [0, 0, 1.2], atol=1e-12)


class TestMoveToSurface:
    """Tests for ray projection onto triangles."""

    def test_hit_returns_point_and_normal(self):
        """The target is pulled onto the triangle along the ray."""
        triangles = np.array([[[0, 0, 0], [0, 2, 0], [0, 0, 2]]], dtype=float)
        hit = move_to_surface(np.array([-1.0, 0.5, 0.5]), np.array([1.0, 0.5, 0.5]), triangle_mesh(triangles))

        assert hit is not None
        np.testing.assert_allclose(hit[0], [0.0, 0.5, 0.5], atol=1e-9)
        np.testing.assert_allclose(np.abs(hit[1]), [1, 0, 0], atol=1e-9)

    def test_miss(self):
        """Rays that miss every triangle return None."""
        triangles = np.array([[[0, 0, 0], [0, 2, 0], [0, 0, 2]]], dtype=float)
        surface = triangle_mesh(triangles)

        assert move_to_surface(np.array([-1.0, 5.0, 5.0]), np.array([1.0, 5.0, 5.0]), surface) is None
        assert move_to_surface(np.zeros(3), np.zeros(3), surface) is None
        assert move_to_surface(np.array([-1.0, 0.5, 0.5]), np.array([1.0, 0.5, 0.5]), None) is None

    def test_empty_segment_has_no_surface(self):
        """A segment without triangles cannot be hit."""
        assert parent_surface(MeshBuffers(), Segment()) is None


class TestCollarRollback:
    """A collar that misses the parent surface leaves no trace."""

    def test_connect_collar_restores_buffer_length(self):
        """Failure truncates back to the pre-attempt length and returns 0."""
        plant, root, child = make_plant()
        buffers = MeshBuffers()
        buffers.vertices[0].extend(np.zeros(5, dtype=VERTEX_DTYPE))
        buffers.add_triangle(0, 0, 1, 2)
        before = (buffers.vertex_size(0), buffers.index_size(0))

        ring_start = buffers.vertices[0].extend(np.zeros(9, dtype=VERTEX_DTYPE))
        collar_start = buffers.vertices[0].reserve(collar_size(child))
        ring_b = np.zeros(9, dtype=VERTEX_DTYPE)
        ring_b["position"][:, 0] = 1.5
        buffers.vertices[0].extend(ring_b)

        marker = connect_collar(
            buffers, plant, child, root, 0, ring_start, collar_start, Segment(), before
        )

        assert marker == 0
        assert (buffers.vertex_size(0), buffers.index_size(0)) == before

    def test_degenerate_parent_falls_back_to_plain_seam(self):
        """A parent without triangles forces the collar to roll back."""
        plant, root, child = make_plant(parent_samples=1)
        engine = PlantMesh(plant).generate()

        segment = engine.find_stem_segment(child.handle)
        assert engine.metrics["collar_failures"] == 1
        assert engine.metrics["collars_fused"] == 0
        assert segment.vertex_count == 27
        assert segment.index_count == 32 * 3
        assert engine.vertex_count == 9 + 27
        assert segment.vertex_start == 9


class TestCollarFusion:
    """A child crossing the parent surface is fused with a collar."""

    @pytest.fixture
    def fused(self):
        plant, root, child = make_plant()
        return PlantMesh(plant).generate(), child

    def test_collar_is_built(self, fused):
        """Ring A, two collar rings, ring B and the last ring are emitted."""
        engine, child = fused
        segment = engine.find_stem_segment(child.handle)

        assert engine.metrics["collars_fused"] == 1
        assert engine.metrics["collar_failures"] == 0
        assert segment.vertex_count == 9 * 5
        # three collar bands plus the band from ring B to the last ring
        assert segment.index_count == 4 * 16 * 3

    def test_base_ring_lies_on_parent_surface(self, fused):
        """Projected ring A points sit on the octagonal parent surface."""
        engine, child = fused
        segment = engine.find_stem_segment(child.handle)
        ring = engine.get_vertices()[segment.vertex_start:segment.vertex_start + 9]["position"]
        radial = np.linalg.norm(ring[:, [0, 2]], axis=1)

        assert np.all(radial >= np.cos(np.pi / 8) - 1e-4)
        assert np.all(radial <= 1.0 + 1e-4)

    def test_collar_normals_and_weights(self, fused):
        """Collar vertices keep unit normals and normalized weights."""
        engine, child = fused
        segment = engine.find_stem_segment(child.handle)
        vertices = engine.get_vertices()[segment.vertex_start:segment.vertex_end]

        np.testing.assert_allclose(np.linalg.norm(vertices["normal"], axis=1), 1.0, atol=1e-5)
        np.testing.assert_allclose(vertices["weights"].sum(axis=1), 1.0, atol=1e-6)

    def test_collar_uvs_increase_toward_ring_b(self, fused):
        """v grows monotonically from ring A to ring B along every seam line."""
        engine, child = fused
        segment = engine.find_stem_segment(child.handle)
        vertices = engine.get_vertices()[segment.vertex_start:segment.vertex_end]
        v = vertices["uv"][:, 1].reshape(5, 9)

        assert np.all(np.diff(v[:4], axis=0) >= -1e-6)

    def test_collars_can_be_disabled(self):
        """With collars disabled the child is a plain tube."""
        plant, root, child = make_plant()
        engine = PlantMesh(plant, MeshSynthesisPolicy(enable_collars=False)).generate()

        assert engine.find_stem_segment(child.handle).vertex_count == 27
        assert engine.metrics["collars_fused"] == 0
        assert engine.metrics["collar_failures"] == 0


class TestCubicCollar:
    """Collar curves on a cubic child path keep the path's end tangent at ring B."""

    CONTROLS = [[0.5 * k, 0.0, 0.0] for k in range(7)]

    @pytest.fixture
    def fused(self):
        plant = Plant()
        root = plant.create_root()
        plant.set_path(root, Path.from_points([[0.0, float(y), 0.0] for y in range(5)]))
        child = plant.add_stem(root)
        plant.set_path(
            child,
            Path(Spline(self.CONTROLS, degree=3), divisions=2, radii=[0.3] * 7),
        )
        plant.set_distance(child, 2.0)
        return PlantMesh(plant).generate(), child

    def inner_controls(self, engine, child):
        """Recover the two inner Bezier controls of every seam line from the collar rings."""
        segment = engine.find_stem_segment(child.handle)
        positions = engine.get_vertices()["position"].astype(float)
        rings = [
            positions[segment.vertex_start + 9 * k:segment.vertex_start + 9 * (k + 1)]
            for k in range(4)
        ]
        ring_a, first, second, ring_b = rings

        # Bernstein weights of the inner controls at t = 1/3 and t = 2/3
        basis = np.array([[4.0, 2.0], [2.0, 4.0]]) / 9.0
        rhs = np.stack([
            first - (8.0 * ring_a + ring_b) / 27.0,
            second - (ring_a + 8.0 * ring_b) / 27.0,
        ])
        solved = np.linalg.solve(basis, rhs.reshape(2, -1)).reshape(2, 9, 3)
        return solved[0], solved[1], ring_b

    def test_collar_is_fused(self, fused):
        """The cubic child gets a collar with finite, normalized vertices."""
        engine, child = fused
        segment = engine.find_stem_segment(child.handle)
        vertices = engine.get_vertices()[segment.vertex_start:segment.vertex_end]

        assert engine.metrics["collars_fused"] == 1
        assert np.all(np.isfinite(vertices["position"]))
        np.testing.assert_allclose(vertices["weights"].sum(axis=1), 1.0, atol=1e-6)

    def test_third_control_follows_path_handle(self, fused):
        """The curve reaches ring B along the handle of the child's first segment."""
        engine, child = fused
        surface_hit, third, ring_b = self.inner_controls(engine, child)
        controls = np.asarray(self.CONTROLS)
        handle = controls[3] - controls[2]

        np.testing.assert_allclose(third, ring_b - handle, atol=1e-4)
        assert np.all(np.linalg.norm(third - ring_b, axis=1) > 0.4)

    def test_second_control_lies_on_parent(self, fused):
        """The second control is the projection of ring A onto the parent."""
        engine, child = fused
        surface_hit, _, _ = self.inner_controls(engine, child)
        radial = np.linalg.norm(surface_hit[:, [0, 2]], axis=1)

        assert np.all(radial >= np.cos(np.pi / 8) - 1e-3)
        assert np.all(radial <= 1.0 + 1e-3)
