"""
Skinning weight assignment.

Every vertex carries two joint indices and two weights that sum to 1. A stem
with joints splits its path into regions, one per joint, starting at the
joint's path sample. Around each joint boundary the influence is blended:

- at the joint sample itself the ring is split 50/50 with the previous joint,
- the weight of the current joint rises linearly to 1 at the middle of its
  region,
- past the middle it blends toward the next joint, reaching 50/50 at the
  next joint sample.

The first and last rings of a stem are always bound to a single joint, and
so is everything before the first joint and after the middle of the last
region.

Stems without joints are bound entirely to one inherited joint.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from ...core.stem import Joint, Stem
from ...utils.geometry import EPSILON


@dataclass(frozen=True)
class JointWeights:
    """Joint indices and blend weights of a vertex."""

    joints: Tuple[int, int]
    weights: Tuple[float, float]

    @classmethod
    def single(cls, joint_id: int) -> "JointWeights":
        return cls((joint_id, joint_id), (1.0, 0.0))

    @classmethod
    def blend(cls, joint_a: int, joint_b: int, weight_a: float) -> "JointWeights":
        return cls((joint_a, joint_b), (weight_a, 1.0 - weight_a))


def find_joint_at_sample(stem: Stem, sample: int) -> Tuple[int, Joint]:
    """
    Joint whose region contains a path sample.

    Scans the joints in path order for the first one starting after
    `sample` and steps back one. Samples before the first joint belong to
    the first joint.
    """
    joints = stem.joints
    for index, joint in enumerate(joints):
        if joint.path_index > sample:
            if index == 0:
                return 0, joint
            return index - 1, joints[index - 1]
    return len(joints) - 1, joints[-1]


def find_joint(stem: Stem, position: float) -> Tuple[int, Joint]:
    """Joint whose region contains a distance along the stem path."""
    return find_joint_at_sample(stem, stem.path.get_index(position))


def initial_joint_id(stem: Stem, parent: Optional[Stem], inherited_id: int) -> int:
    """
    Joint bound to a stem's first ring.

    A stem without joints whose parent has joints is bound to the parent
    joint at the attachment point; otherwise it keeps the joint inherited
    from its ancestors.
    """
    if stem.joints:
        return stem.joints[0].id
    if parent is not None and parent.joints:
        return find_joint(parent, stem.distance)[1].id
    return inherited_id


def joint_weights(stem: Stem, joint_offset: float, joint_index: int) -> JointWeights:
    """
    Weights for a point `joint_offset` along the path past joint `joint_index`.

    Parameters
    ----------
    stem : Stem
        Stem with at least one joint
    joint_offset : float
        Arc length from the joint's path sample to the point
    joint_index : int
        Index into `stem.joints`
    """
    joints = stem.joints
    path = stem.path
    joint = joints[joint_index]
    last_joint = joint_index + 1 >= len(joints)

    if last_joint:
        distance = path.get_distance_between(joint.path_index, path.size - 1)
    else:
        distance = path.get_distance_between(joint.path_index, joints[joint_index + 1].path_index)

    if distance <= EPSILON:
        return JointWeights.single(joint.id)

    ratio = min(max(joint_offset / distance, 0.0), 1.0)
    first = ratio < 0.5 and joint_index == 0
    last = ratio > 0.5 and last_joint

    if ratio == 0.5 or first or last:
        return JointWeights.single(joint.id)
    if ratio > 0.5:
        return JointWeights.blend(joint.id, joints[joint_index + 1].id, 1.5 - ratio)
    return JointWeights.blend(joint.id, joints[joint_index - 1].id, 0.5 + ratio)


def ring_weights(stem: Stem, sample: int, inherited_id: int = 0) -> JointWeights:
    """Weights of the ring generated at a path sample."""
    if not stem.joints:
        return JointWeights.single(inherited_id)

    joint_index, joint = find_joint_at_sample(stem, sample)
    if joint_index == 0 and sample <= joint.path_index:
        return JointWeights.single(joint.id)
    if sample == 0 or sample == stem.path.size - 1:
        return JointWeights.single(joint.id)
    if sample == joint.path_index:
        return JointWeights.blend(joint.id, stem.joints[joint_index - 1].id, 0.5)

    offset = stem.path.get_distance_between(joint.path_index, sample)
    return joint_weights(stem, offset, joint_index)


def weights_at(stem: Stem, position: float, inherited_id: int = 0) -> JointWeights:
    """
    Weights for a point at a distance along the stem path (used for leaves).

    Resolves the joint region exactly as a ring at that point would.
    """
    if not stem.joints:
        return JointWeights.single(inherited_id)

    joint_index, joint = find_joint(stem, position)
    offset = position - stem.path.get_distance(joint.path_index)
    return joint_weights(stem, offset, joint_index)


__all__ = [
    "JointWeights",
    "find_joint",
    "find_joint_at_sample",
    "initial_joint_id",
    "joint_weights",
    "ring_weights",
    "weights_at",
]
