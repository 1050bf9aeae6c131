"""
Export utilities for synthesized plant meshes.

This module converts the merged buffers of a PlantMesh into a trimesh
object and writes meshes and reports to disk.
"""

from typing import Optional, Dict, Any, Union, TYPE_CHECKING
from pathlib import Path
import json
import logging
import numpy as np

from plant_policies import ExportPolicy, OperationReport

if TYPE_CHECKING:
    import trimesh
    from ..ops.mesh.synthesis import PlantMesh

logger = logging.getLogger(__name__)

SUPPORTED_FILE_TYPES = ("glb", "obj", "ply", "stl")


def to_trimesh(
    plant_mesh: "PlantMesh",
    include_normals: bool = True,
    include_uv: bool = True,
) -> "trimesh.Trimesh":
    """
    Build a trimesh.Trimesh from the merged buffers of a plant mesh.

    Vertices are not merged or reordered, so face indices match
    `plant_mesh.get_indices()`.

    Parameters
    ----------
    plant_mesh : PlantMesh
        Engine after `generate()`
    include_normals : bool
        Attach the synthesized vertex normals
    include_uv : bool
        Attach texture coordinates as TextureVisuals

    Returns
    -------
    trimesh.Trimesh
        The merged mesh
    """
    import trimesh

    vertices = plant_mesh.get_vertices()
    faces = plant_mesh.get_triangles().astype(np.int64)
    kwargs: Dict[str, Any] = {}

    if include_normals and len(vertices):
        kwargs["vertex_normals"] = vertices["normal"].astype(float)
    if include_uv and len(vertices):
        kwargs["visual"] = trimesh.visual.TextureVisuals(uv=vertices["uv"].astype(float))

    return trimesh.Trimesh(
        vertices=vertices["position"].astype(float),
        faces=faces,
        process=False,
        **kwargs,
    )


def write_json(data: Union[Dict[str, Any], OperationReport], path: Union[str, Path]) -> Path:
    """
    Write JSON data to file.

    Parameters
    ----------
    data : dict or OperationReport
        Data to write (converted to dict if OperationReport)
    path : str or Path
        Output file

    Returns
    -------
    Path
        Path to the saved file
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if hasattr(data, 'to_dict'):
        data = data.to_dict()

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2, default=str)

    logger.info(f"Saved JSON to {output_path}")
    return output_path


def export_mesh(
    plant_mesh: "PlantMesh",
    path: Union[str, Path],
    policy: Optional[ExportPolicy] = None,
) -> OperationReport:
    """
    Write a synthesized plant mesh to disk.

    The file type comes from the path suffix when it names a supported
    format, otherwise from the policy (and the suffix is added). With
    `save_report` set, the report is written next to the mesh as
    `<name>.report.json`.

    Parameters
    ----------
    plant_mesh : PlantMesh
        Engine after `generate()`
    path : str or Path
        Output file
    policy : ExportPolicy, optional
        Policy controlling format and attributes

    Returns
    -------
    OperationReport
        Report with the output path and mesh statistics
    """
    if policy is None:
        policy = ExportPolicy()

    report = OperationReport(operation="export_mesh", requested_policy=policy.to_dict())
    output_path = Path(path)
    suffix = output_path.suffix.lower().lstrip(".")
    file_type = policy.file_type if policy.file_type in SUPPORTED_FILE_TYPES else "glb"
    if file_type != policy.file_type:
        report.add_warning(f"Unsupported file_type '{policy.file_type}', using '{file_type}'")

    if suffix in SUPPORTED_FILE_TYPES:
        if suffix != file_type:
            report.add_warning(f"Path suffix '.{suffix}' overrides file_type '{file_type}'")
        file_type = suffix
    else:
        output_path = output_path.with_name(output_path.name + f".{file_type}")

    effective_policy = ExportPolicy(
        file_type=file_type,
        include_normals=policy.include_normals,
        include_uv=policy.include_uv and file_type in ("glb", "obj", "ply"),
        save_report=policy.save_report,
    )

    mesh = to_trimesh(
        plant_mesh,
        include_normals=effective_policy.include_normals,
        include_uv=effective_policy.include_uv,
    )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    mesh.export(str(output_path), file_type=file_type)
    logger.info(f"Saved mesh to {output_path}")

    report.effective_policy = effective_policy.to_dict()
    report.metadata = {
        "path": str(output_path),
        "file_type": file_type,
        "vertex_count": len(mesh.vertices),
        "face_count": len(mesh.faces),
        "mesh_count": plant_mesh.mesh_count,
    }
    report.metrics = dict(report.metadata)

    if effective_policy.save_report:
        report_path = output_path.with_name(output_path.stem + ".report.json")
        report.metadata["report_path"] = str(report_path)
        report.metrics = report.metadata
        write_json(report, report_path)

    return report


__all__ = [
    "to_trimesh",
    "write_json",
    "export_mesh",
    "SUPPORTED_FILE_TYPES",
]
