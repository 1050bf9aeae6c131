"""
Test that public API functions return OperationReport with requested/effective policy.

This module validates the contract that all public API functions return
OperationReport objects containing both the requested and effective policies.
"""

import json
import pytest


def make_plant():
    from plantgen import Path, Plant

    plant = Plant()
    root = plant.create_root()
    plant.set_path(root, Path.from_points([[0, 0, 0], [0, 1, 0], [0, 2, 0]]))
    return plant


class TestSynthesizePlantMeshReturnsOperationReport:
    """Test synthesize_plant_mesh returns OperationReport."""

    def test_returns_operation_report(self):
        """Test synthesize_plant_mesh returns OperationReport."""
        from plantgen import synthesize_plant_mesh
        from plant_policies import MeshSynthesisPolicy, OperationReport

        plant_mesh, report = synthesize_plant_mesh(make_plant(), MeshSynthesisPolicy())

        assert isinstance(report, OperationReport)
        assert report.operation == "synthesize_plant_mesh"
        assert isinstance(report.requested_policy, dict)
        assert isinstance(report.effective_policy, dict)

    def test_default_policy_is_recorded(self):
        """Test a missing policy is reported as the default."""
        from plantgen import synthesize_plant_mesh
        from plant_policies import MeshSynthesisPolicy

        _, report = synthesize_plant_mesh(make_plant())

        assert report.requested_policy == MeshSynthesisPolicy().to_dict()

    def test_report_is_json_serializable(self):
        """Test synthesize_plant_mesh report is JSON-serializable."""
        from plantgen import synthesize_plant_mesh

        _, report = synthesize_plant_mesh(make_plant())

        json_str = json.dumps(report.to_dict())
        assert isinstance(json_str, str)

    def test_policy_adjustments_are_warnings(self):
        """Test a raised epsilon is warned about and the metrics still land on the report."""
        from plantgen import synthesize_plant_mesh
        from plant_policies import MeshSynthesisPolicy

        plant_mesh, report = synthesize_plant_mesh(
            make_plant(), MeshSynthesisPolicy(intersection_epsilon=0.0)
        )

        assert report.success
        assert any("intersection_epsilon" in w for w in report.warnings)
        assert report.effective_policy["intersection_epsilon"] > 0.0
        assert report.metrics["vertex_count"] == plant_mesh.vertex_count == 27
        assert report.metadata == report.metrics


class TestExportMeshReturnsOperationReport:
    """Test export_mesh returns OperationReport."""

    def test_returns_operation_report(self, tmp_path):
        """Test export_mesh returns OperationReport."""
        from plantgen import synthesize_plant_mesh, export_mesh
        from plant_policies import ExportPolicy, OperationReport

        plant_mesh, _ = synthesize_plant_mesh(make_plant())
        report = export_mesh(plant_mesh, tmp_path / "plant.ply", ExportPolicy(save_report=False))

        assert isinstance(report, OperationReport)
        assert report.operation == "export_mesh"
        assert report.requested_policy["file_type"] == "glb"
        assert report.effective_policy["file_type"] == "ply"
        assert report.warnings

    def test_saved_report_matches(self, tmp_path):
        """Test the report written to disk is the returned report."""
        from plantgen import synthesize_plant_mesh, export_mesh
        from plant_policies import ExportPolicy

        plant_mesh, _ = synthesize_plant_mesh(make_plant())
        report = export_mesh(plant_mesh, tmp_path / "plant.stl", ExportPolicy(file_type="stl"))

        with open(report.metadata["report_path"]) as f:
            saved = json.load(f)
        assert saved["operation"] == "export_mesh"
        assert saved["metrics"]["face_count"] == 32
