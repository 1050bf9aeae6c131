"""
Unit tests for skinning weight assignment.

The stem used here runs along +Y with samples at y = 0..8 and joints at
samples 0 (id 10) and 4 (id 11).
"""

import pytest
import numpy as np
from plantgen.core import Joint, Path, Stem
from plantgen.ops.mesh.skinning import (
    JointWeights,
    find_joint_at_sample,
    initial_joint_id,
    ring_weights,
    weights_at,
)


@pytest.fixture
def stem():
    stem = Stem(handle=0, path=Path.from_points([[0.0, float(y), 0.0] for y in range(9)]))
    stem.set_joints([Joint(10, 0), Joint(11, 4)])
    return stem


class TestJointLookup:
    """Tests for joint region lookup."""

    @pytest.mark.parametrize("sample,expected", [(0, 10), (3, 10), (4, 11), (8, 11)])
    def test_region_of_sample(self, stem, sample, expected):
        """A sample belongs to the last joint starting at or before it."""
        assert find_joint_at_sample(stem, sample)[1].id == expected

    def test_samples_before_first_joint(self):
        """Samples before the first joint belong to the first joint."""
        stem = Stem(handle=0, path=Path.from_points([[0.0, float(y), 0.0] for y in range(5)]))
        stem.set_joints([Joint(7, 2)])

        assert find_joint_at_sample(stem, 0) == (0, stem.joints[0])


class TestRingWeights:
    """Tests for per-ring weights."""

    def test_pinned_ends(self, stem):
        """The first and last rings are bound to a single joint."""
        assert ring_weights(stem, 0) == JointWeights.single(10)
        assert ring_weights(stem, 8) == JointWeights.single(11)

    def test_first_half_of_first_region_is_single(self, stem):
        """Before the midpoint of the first region nothing blends."""
        assert ring_weights(stem, 1) == JointWeights.single(10)

    def test_blend_toward_next_joint(self, stem):
        """Past the midpoint the ring blends toward the next joint."""
        weights = ring_weights(stem, 3)

        assert weights.joints == (10, 11)
        assert weights.weights == pytest.approx((0.75, 0.25))

    def test_even_split_at_joint(self, stem):
        """The ring at a joint sample is split 50/50 with the previous joint."""
        weights = ring_weights(stem, 4)

        assert weights.joints == (11, 10)
        assert weights.weights == pytest.approx((0.5, 0.5))

    def test_blend_back_toward_previous_joint(self, stem):
        """Just past a joint the ring still leans on the previous joint."""
        weights = ring_weights(stem, 5)

        assert weights.joints == (11, 10)
        assert weights.weights == pytest.approx((0.75, 0.25))

    def test_second_half_of_last_region_is_single(self, stem):
        """After the midpoint of the last region nothing blends."""
        assert ring_weights(stem, 7) == JointWeights.single(11)

    def test_normalization(self, stem):
        """Weights sum to one, stay in [0, 1] and name two joints only when blending."""
        for sample in range(stem.path.size):
            weights = ring_weights(stem, sample)
            a, b = weights.weights

            assert a + b == pytest.approx(1.0)
            assert 0.0 <= a <= 1.0 and 0.0 <= b <= 1.0
            if b != 0.0:
                assert weights.joints[0] != weights.joints[1]

    def test_stem_without_joints_uses_inherited(self):
        """Jointless stems bind everything to the inherited joint."""
        stem = Stem(handle=0, path=Path.from_points([[0, 0, 0], [0, 1, 0], [0, 2, 0]]))

        for sample in range(3):
            assert ring_weights(stem, sample, inherited_id=5) == JointWeights.single(5)


class TestInheritedJoint:
    """Tests for the joint bound to a jointless child."""

    def test_child_takes_parent_joint_at_attachment(self, stem):
        """A jointless child binds to the parent joint covering its attachment."""
        child = Stem(handle=1, distance=5.0)

        assert initial_joint_id(child, stem, inherited_id=0) == 11
        child.distance = 1.0
        assert initial_joint_id(child, stem, inherited_id=0) == 10

    def test_child_with_joints_uses_its_first(self, stem):
        """A child with joints starts on its own first joint."""
        child = Stem(handle=1)
        child.set_joints([Joint(20, 0)])

        assert initial_joint_id(child, stem, inherited_id=0) == 20

    def test_jointless_ancestry_passes_through(self):
        """Without joints anywhere the inherited id is kept."""
        parent = Stem(handle=0)
        child = Stem(handle=1)

        assert initial_joint_id(child, parent, inherited_id=3) == 3
        assert initial_joint_id(child, None, inherited_id=0) == 0


class TestWeightsAt:
    """Tests for weights at arbitrary distances (leaves)."""

    def test_matches_ring_at_samples(self, stem):
        """At a sample distance, leaf weights equal the ring's blend."""
        assert weights_at(stem, 3.0) == ring_weights(stem, 3)
        assert weights_at(stem, 5.0) == ring_weights(stem, 5)

    def test_between_samples(self, stem):
        """Weights vary linearly between samples."""
        weights = weights_at(stem, 2.5)

        assert weights.joints == (10, 11)
        assert weights.weights == pytest.approx((0.875, 0.125))
        assert sum(weights.weights) == pytest.approx(1.0)
