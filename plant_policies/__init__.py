"""
Plant Policies - Centralized policy definitions for plant mesh synthesis.

This package provides the policy dataclasses used by the plantgen library.
All policies are JSON-serializable and support the "requested vs effective"
pattern for tracking runtime adjustments.

Usage:
    from plant_policies import MeshSynthesisPolicy, OperationReport
    from plant_policies.mesh import ExportPolicy
"""

from .base import (
    OperationReport,
    coerce_float,
    alias_fields,
)

from .mesh import (
    MeshSynthesisPolicy,
    ExportPolicy,
)

__all__ = [
    # Base
    "OperationReport",
    "coerce_float",
    "alias_fields",
    # Mesh
    "MeshSynthesisPolicy",
    "ExportPolicy",
]
