"""
Test policy serialization and the OperationReport contract.

Policies must round-trip through JSON, accept their legacy field names and
ignore unknown keys.
"""

import json
import pytest
from dataclasses import fields

from plant_policies import (
    ExportPolicy,
    MeshSynthesisPolicy,
    OperationReport,
    alias_fields,
    coerce_float,
)


ALL_POLICY_CLASSES = [MeshSynthesisPolicy, ExportPolicy]


class TestPolicySerialization:
    """Policies round-trip through dicts and JSON."""

    @pytest.mark.parametrize("policy_class", ALL_POLICY_CLASSES)
    def test_default_round_trip(self, policy_class):
        """Default policies survive to_dict -> json -> from_dict."""
        policy = policy_class()
        restored = policy_class.from_dict(json.loads(json.dumps(policy.to_dict())))

        assert restored == policy

    @pytest.mark.parametrize("policy_class", ALL_POLICY_CLASSES)
    def test_unknown_keys_ignored(self, policy_class):
        """Keys that are not fields are dropped."""
        policy = policy_class.from_dict({"not_a_field": 1})

        assert policy == policy_class()

    @pytest.mark.parametrize("policy_class", ALL_POLICY_CLASSES)
    def test_to_dict_has_every_field(self, policy_class):
        """to_dict exposes exactly the dataclass fields."""
        d = policy_class().to_dict()

        assert set(d) == {f.name for f in fields(policy_class)}

    def test_custom_values(self):
        """Non-default values are preserved."""
        policy = MeshSynthesisPolicy(
            enable_collars=False,
            cap_stems=False,
            default_leaf="perpendicular_planes",
            intersection_epsilon=1e-4,
            skip_invalid_locations=False,
        )

        assert MeshSynthesisPolicy.from_dict(policy.to_dict()) == policy


class TestPolicyAliases:
    """Legacy field names map to canonical ones."""

    def test_mesh_synthesis_aliases(self):
        """collars, cap_ends and leaf_template are accepted."""
        policy = MeshSynthesisPolicy.from_dict({
            "collars": False,
            "cap_ends": False,
            "leaf_template": "perpendicular_planes",
        })

        assert policy.enable_collars is False
        assert policy.cap_stems is False
        assert policy.default_leaf == "perpendicular_planes"

    def test_canonical_name_wins(self):
        """When both names are given the canonical one is kept."""
        policy = MeshSynthesisPolicy.from_dict({"collars": False, "enable_collars": True})

        assert policy.enable_collars is True

    def test_alias_fields_does_not_mutate_input(self):
        """alias_fields works on a copy."""
        d = {"old": 1}
        result = alias_fields(d, {"old": "new"})

        assert result == {"new": 1}
        assert d == {"old": 1}


class TestHelpers:
    """Tests for the small validation helpers."""

    def test_coerce_float(self):
        assert coerce_float("2.5") == 2.5
        assert coerce_float(None, 1.0) == 1.0
        assert coerce_float("nope", 3.0) == 3.0

    def test_epsilon_from_strings(self):
        """intersection_epsilon is parsed from strings; bad values use the default."""
        assert MeshSynthesisPolicy.from_dict({"intersection_epsilon": "1e-4"}).intersection_epsilon == 1e-4
        assert MeshSynthesisPolicy.from_dict({"intersection_epsilon": "tiny"}).intersection_epsilon == 1e-6
        assert MeshSynthesisPolicy.from_dict({"intersection_epsilon": None}).intersection_epsilon == 1e-6


class TestOperationReport:
    """Tests for the report structure."""

    def test_metrics_and_metadata_sync(self):
        """Either of metrics or metadata fills the other."""
        report = OperationReport(operation="x", metrics={"a": 1})
        assert report.metadata == {"a": 1}

        report = OperationReport(operation="x", metadata={"b": 2})
        assert report.metrics == {"b": 2}

        report = OperationReport(operation="x", metadata={"a": 1}, metrics={"a": 3, "c": 4})
        assert report.metrics == report.metadata == {"a": 3, "c": 4}

    def test_add_error_marks_failure(self):
        """Errors flip success; warnings do not."""
        report = OperationReport(operation="x")
        report.add_warning("careful")
        assert report.success is True

        report.add_error("broken")
        assert report.success is False
        assert report.errors == ["broken"]
        assert report.warnings == ["careful"]

    def test_to_json(self):
        """Reports serialize to JSON with both policy dicts."""
        report = OperationReport(
            operation="synthesize_plant_mesh",
            requested_policy=MeshSynthesisPolicy().to_dict(),
            effective_policy=MeshSynthesisPolicy().to_dict(),
            metrics={"vertex_count": 0},
        )
        d = json.loads(report.to_json())

        assert d["operation"] == "synthesize_plant_mesh"
        assert d["requested_policy"]["enable_collars"] is True
        assert d["metrics"] == {"vertex_count": 0}
