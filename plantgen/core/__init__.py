"""Core data structures for plants: paths, stems, leaves and materials."""

from .ids import IDGenerator
from .path import Path, Spline, tapered_radii
from .stem import OUTER, INNER, Joint, Leaf, Stem, StemArena
from .geometry import Geometry
from .plant import Material, Plant

__all__ = [
    "IDGenerator",
    "Path",
    "Spline",
    "tapered_radii",
    "OUTER",
    "INNER",
    "Joint",
    "Leaf",
    "Stem",
    "StemArena",
    "Geometry",
    "Material",
    "Plant",
]
