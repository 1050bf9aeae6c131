"""
Mesh policies for plant synthesis and export.

All policies are JSON-serializable and support the "requested vs effective"
pattern: the synthesis entry point records both in its OperationReport.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Literal
from .base import alias_fields, coerce_float


# Field aliases for backward compatibility
MESH_SYNTHESIS_ALIASES = {
    "collars": "enable_collars",
    "cap_ends": "cap_stems",
    "leaf_template": "default_leaf",
}


@dataclass
class MeshSynthesisPolicy:
    """
    Policy for plant mesh synthesis.

    Per-stem geometry (section divisions, collar divisions, swelling, minimum
    radius) lives on the stems themselves; this policy holds the global gates
    and tolerances of one synthesis pass.

    JSON Schema:
    {
        "enable_collars": bool,
        "cap_stems": bool,
        "default_leaf": "plane" | "perpendicular_planes",
        "intersection_epsilon": float,
        "skip_invalid_locations": bool
    }
    """
    enable_collars: bool = True
    cap_stems: bool = True
    default_leaf: Literal["plane", "perpendicular_planes"] = "plane"
    intersection_epsilon: float = 1e-6
    skip_invalid_locations: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "MeshSynthesisPolicy":
        d = alias_fields(d, MESH_SYNTHESIS_ALIASES)
        if "intersection_epsilon" in d:
            d["intersection_epsilon"] = coerce_float(d["intersection_epsilon"], 1e-6)
        return MeshSynthesisPolicy(**{k: v for k, v in d.items() if k in MeshSynthesisPolicy.__dataclass_fields__})


@dataclass
class ExportPolicy:
    """
    Policy for writing a synthesized plant mesh to disk.

    JSON Schema:
    {
        "file_type": "glb" | "obj" | "ply" | "stl",
        "include_normals": bool,
        "include_uv": bool,
        "save_report": bool
    }
    """
    file_type: Literal["glb", "obj", "ply", "stl"] = "glb"
    include_normals: bool = True
    include_uv: bool = True
    save_report: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ExportPolicy":
        return ExportPolicy(**{k: v for k, v in d.items() if k in ExportPolicy.__dataclass_fields__})


__all__ = [
    "MeshSynthesisPolicy",
    "ExportPolicy",
    "MESH_SYNTHESIS_ALIASES",
]
