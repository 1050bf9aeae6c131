"""
Plant: the stem tree plus plant-level material and leaf-mesh tables.

The mesh engine treats a Plant as read-only for the duration of a synthesis
pass. The mutation helpers here exist for the growth and editing code
upstream (and for building fixtures in tests).
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional
import logging
import numpy as np

from .geometry import Geometry
from .ids import IDGenerator
from .path import Path
from .stem import INNER, OUTER, Leaf, Stem, StemArena

logger = logging.getLogger(__name__)


@dataclass
class Material:
    """Surface material; `ratio` is the texture aspect ratio used for uv tiling."""

    id: int
    name: str = ""
    ratio: float = 1.0

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "ratio": self.ratio}

    @classmethod
    def from_dict(cls, d: dict) -> "Material":
        return cls(id=d["id"], name=d.get("name", ""), ratio=d.get("ratio", 1.0))


class Plant:
    """
    Stem tree with material and leaf-mesh tables.

    Parameters
    ----------
    id_gen : IDGenerator, optional
        Id allocator for leaves, materials and leaf meshes. Passing one in
        lets callers build several plants with reproducible ids.
    """

    def __init__(self, id_gen: Optional[IDGenerator] = None):
        self.id_gen = id_gen or IDGenerator()
        self.stems = StemArena()
        self.root: Optional[int] = None
        self.materials: Dict[int, Material] = {}
        self.leaf_meshes: Dict[int, Geometry] = {}

    # -- tree -------------------------------------------------------------

    def get_root(self) -> Optional[Stem]:
        if self.root is None:
            return None
        return self.stems.get(self.root)

    def get_stem(self, handle: int) -> Stem:
        return self.stems.get(handle)

    def get_parent(self, stem: Stem) -> Optional[Stem]:
        if stem.parent is None:
            return None
        return self.stems.get(stem.parent)

    def children(self, stem: Stem) -> Iterator[Stem]:
        return self.stems.children(stem.handle)

    def create_root(self) -> Stem:
        """Replace the whole tree with a fresh root stem."""
        if self.root is not None:
            self._release_subtree(self.root)
        self.root = self.stems.allocate()
        return self.stems.get(self.root)

    def add_stem(self, parent: Optional[Stem] = None) -> Stem:
        """Add a child stem to `parent` (or create the root when parent is None)."""
        if parent is None:
            return self.create_root()
        handle = self.stems.allocate()
        stem = self.stems.get(handle)
        stem.depth = parent.depth + 1
        self._link(stem, parent)
        self._update_location(stem)
        return stem

    def add_dichotomous_stems(self, parent: Stem) -> List[Stem]:
        """Add the two stems of a dichotomous split at the end of parent's path."""
        pair = []
        for _ in range(2):
            stem = self.add_stem(parent)
            stem.dichotomous = True
            self.set_distance(stem, parent.path.get_length())
            pair.append(stem)
        return pair

    def delete_stem(self, stem: Stem) -> None:
        """Unlink a stem and release it together with its descendants."""
        self._unlink(stem)
        self._release_subtree(stem.handle)

    def set_path(self, stem: Stem, path: Path) -> None:
        stem.path = path
        self._update_descendants(stem)

    def set_distance(self, stem: Stem, distance: float) -> None:
        """Move a stem along its parent's path and update its subtree locations."""
        stem.distance = float(distance)
        self._update_location(stem)

    def set_location(self, stem: Stem, location) -> None:
        stem.location = np.asarray(location, dtype=float)
        self._update_descendants(stem)

    def _link(self, stem: Stem, parent: Stem) -> None:
        first_child = parent.child
        parent.child = stem.handle
        stem.parent = parent.handle
        if first_child is not None:
            self.stems.get(first_child).prev_sibling = stem.handle
        stem.next_sibling = first_child
        stem.prev_sibling = None

    def _unlink(self, stem: Stem) -> None:
        if stem.handle == self.root:
            self.root = None
        if stem.prev_sibling is not None:
            self.stems.get(stem.prev_sibling).next_sibling = stem.next_sibling
        if stem.next_sibling is not None:
            self.stems.get(stem.next_sibling).prev_sibling = stem.prev_sibling
        if stem.parent is not None:
            parent = self.stems.get(stem.parent)
            if parent.child == stem.handle:
                parent.child = stem.next_sibling
        stem.parent = stem.next_sibling = stem.prev_sibling = None

    def _release_subtree(self, handle: int) -> None:
        for child in list(self.stems.children(handle)):
            self._release_subtree(child.handle)
        self.stems.release(handle)

    def _update_location(self, stem: Stem) -> None:
        parent = self.get_parent(stem)
        if parent is not None:
            if parent.path.size == 0:
                stem.location = np.full(3, np.nan)
            else:
                stem.location = parent.location + parent.path.get_intermediate(stem.distance)
        self._update_descendants(stem)

    def _update_descendants(self, stem: Stem) -> None:
        for child in list(self.children(stem)):
            if child.dichotomous:
                child.distance = stem.path.get_length()
            self._update_location(child)

    # -- materials ----------------------------------------------------------

    def add_material(self, name: str = "", ratio: float = 1.0) -> Material:
        material = Material(id=self.id_gen.next_id("material"), name=name, ratio=ratio)
        self.materials[material.id] = material
        return material

    def remove_material(self, material_id: int) -> None:
        """Drop a material and point every stem that used it at the default."""
        for stem in self.stems:
            for kind in (OUTER, INNER):
                if stem.get_material(kind) == material_id:
                    stem.set_material(kind, 0)
        if self.materials.pop(material_id, None) is None:
            logger.debug(f"Material {material_id} was not registered")

    def has_material(self, material_id: Optional[int]) -> bool:
        return material_id is not None and material_id in self.materials

    def get_material(self, material_id: int) -> Optional[Material]:
        return self.materials.get(material_id)

    def material_ratio(self, material_id: int) -> float:
        material = self.materials.get(material_id) if material_id else None
        if material is None:
            return 1.0
        return material.ratio

    # -- leaves ---------------------------------------------------------------

    def create_leaf(self, **kwargs) -> Leaf:
        return Leaf(id=self.id_gen.next_id("leaf"), **kwargs)

    def add_leaf_mesh(self, geometry: Geometry) -> Geometry:
        if not geometry.id:
            geometry.id = self.id_gen.next_id("leaf_mesh")
        else:
            self.id_gen.reserve("leaf_mesh", geometry.id)
        self.leaf_meshes[geometry.id] = geometry
        return geometry

    def remove_leaf_mesh(self, mesh_id: int) -> None:
        self.leaf_meshes.pop(mesh_id, None)

    def leaf_mesh(self, mesh_id: int) -> Optional[Geometry]:
        """Template geometry for a leaf mesh id; None for 0 or unknown ids."""
        if not mesh_id:
            return None
        return self.leaf_meshes.get(mesh_id)

    # -- radius -------------------------------------------------------------

    def radius_at(self, stem: Stem, sample: int) -> float:
        """Radius of `stem` at a path sample, never below the stem's min_radius."""
        return max(stem.path.get_radius(sample), stem.min_radius)


__all__ = ["Material", "Plant"]
