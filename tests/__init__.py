"""
Tests for Plantgen

This package contains validation tests for:
- Core plant data structures (paths, stem arena, plant tree)
- Mesh synthesis building blocks (buffers, skinning, cross sections,
  branch collars, leaves)
- End-to-end synthesis and export
- Policies and the OperationReport contract
"""
