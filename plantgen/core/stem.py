"""
Stem hierarchy data structures.

Stems live in an arena and refer to each other by integer handles rather than
object references. Released slots go on a free list and are reused, so a
handle stays valid for as long as its stem exists.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple
import numpy as np

from .path import Path


OUTER = "outer"
INNER = "inner"


@dataclass(frozen=True)
class Joint:
    """Deformation joint starting at a path sample."""

    id: int
    path_index: int

    def to_dict(self) -> dict:
        return {"id": self.id, "path_index": self.path_index}

    @classmethod
    def from_dict(cls, d: dict) -> "Joint":
        return cls(id=d["id"], path_index=d["path_index"])


@dataclass
class Leaf:
    """
    Leaf attached to a stem.

    `position` is a distance along the stem path; a negative value places the
    leaf at the tip. `rotation` is an (x, y, z, w) quaternion applied on top
    of the default orientation derived from the stem direction.
    """

    id: int
    position: float = -1.0
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    rotation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    material: int = 0
    mesh: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "scale": list(self.scale),
            "rotation": list(self.rotation),
            "material": self.material,
            "mesh": self.mesh,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Leaf":
        return cls(
            id=d["id"],
            position=d.get("position", -1.0),
            scale=tuple(d.get("scale", (1.0, 1.0, 1.0))),
            rotation=tuple(d.get("rotation", (0.0, 0.0, 0.0, 1.0))),
            material=d.get("material", 0),
            mesh=d.get("mesh", 0),
        )


@dataclass
class Stem:
    """
    One stem of the plant.

    Tree links (`parent`, `child`, `next_sibling`, `prev_sibling`) are arena
    handles. `child` is the most recently inserted child; siblings are walked
    through `next_sibling`.
    """

    handle: int
    parent: Optional[int] = None
    child: Optional[int] = None
    next_sibling: Optional[int] = None
    prev_sibling: Optional[int] = None
    depth: int = 0

    path: Path = field(default_factory=Path)
    joints: List[Joint] = field(default_factory=list)
    leaves: List[Leaf] = field(default_factory=list)
    materials: Dict[str, int] = field(default_factory=lambda: {OUTER: 0, INNER: 0})
    section_divisions: int = 8
    collar_divisions: int = 2
    swelling: Tuple[float, float] = (1.5, 1.5)
    distance: float = 0.0
    location: np.ndarray = field(default_factory=lambda: np.zeros(3))
    min_radius: float = 0.0
    dichotomous: bool = False

    def get_material(self, kind: str = OUTER) -> int:
        return self.materials.get(kind, 0)

    def set_material(self, kind: str, material_id: int) -> None:
        self.materials[kind] = material_id

    def has_joints(self) -> bool:
        return len(self.joints) > 0

    def set_joints(self, joints: List[Joint]) -> None:
        self.joints = sorted(joints, key=lambda joint: joint.path_index)

    def add_joint(self, joint: Joint) -> None:
        self.set_joints(self.joints + [joint])

    def get_leaf(self, index: int) -> Leaf:
        return self.leaves[index]

    def has_valid_location(self) -> bool:
        return bool(np.all(np.isfinite(self.location)))

    def reset(self) -> None:
        """Clear everything except the handle, for slot reuse."""
        handle = self.handle
        self.__init__(handle=handle)


class StemArena:
    """
    Slot allocator for stems.

    Examples
    --------
    >>> arena = StemArena()
    >>> a = arena.allocate()
    >>> arena.release(a)
    >>> arena.allocate() == a
    True
    """

    def __init__(self):
        self._slots: List[Stem] = []
        self._live: List[bool] = []
        self._free: List[int] = []

    def allocate(self) -> int:
        if self._free:
            handle = self._free.pop()
            self._slots[handle].reset()
            self._live[handle] = True
            return handle
        handle = len(self._slots)
        self._slots.append(Stem(handle=handle))
        self._live.append(True)
        return handle

    def release(self, handle: int) -> None:
        if not self.contains(handle):
            return
        self._live[handle] = False
        self._free.append(handle)

    def contains(self, handle: Optional[int]) -> bool:
        return handle is not None and 0 <= handle < len(self._slots) and self._live[handle]

    def get(self, handle: int) -> Stem:
        if not self.contains(handle):
            raise KeyError(f"No stem with handle {handle}")
        return self._slots[handle]

    def children(self, handle: int) -> Iterator[Stem]:
        """Iterate over the direct children of a stem."""
        child = self._slots[handle].child
        while child is not None:
            stem = self._slots[child]
            yield stem
            child = stem.next_sibling

    def __len__(self) -> int:
        return sum(self._live)

    def __iter__(self) -> Iterator[Stem]:
        for stem, live in zip(self._slots, self._live):
            if live:
                yield stem


__all__ = ["OUTER", "INNER", "Joint", "Leaf", "Stem", "StemArena"]
