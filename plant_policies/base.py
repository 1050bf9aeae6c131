"""
Base utilities for plant mesh policies.

This module provides the dict helpers used by policy `from_dict` methods and
the OperationReport dataclass returned by every public synthesis and export
call.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List
import json


def coerce_float(value: Any, default: float = 0.0) -> float:
    """Parse a float from JSON-ish input (numbers or numeric strings); None or garbage gives `default`."""
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def alias_fields(d: Dict[str, Any], aliases: Dict[str, str]) -> Dict[str, Any]:
    """
    Rename legacy keys of a policy dict.

    `aliases` maps old key -> current key. A legacy key is only renamed when
    the current key is absent, and the input dict is left untouched.
    """
    result = d.copy()
    for legacy_name, canonical_name in aliases.items():
        if legacy_name in result and canonical_name not in result:
            result[canonical_name] = result.pop(legacy_name)
    return result

@dataclass
class OperationReport:
    """
    Standard report structure for synthesis and export operations.

    Every operation returns a report with requested vs effective policy,
    warnings, and operation-specific metrics (vertex counts, collar
    fusions, skipped stems and so on).

    `metadata` and `metrics` are kept in sync; `metrics` is preferred.
    """
    operation: str = "unknown"
    success: bool = True
    requested_policy: Dict[str, Any] = field(default_factory=dict)
    effective_policy: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    metrics: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.metrics and not self.metadata:
            self.metadata = dict(self.metrics)
        elif self.metadata and not self.metrics:
            self.metrics = dict(self.metadata)
        elif self.metrics and self.metadata:
            merged = dict(self.metadata)
            merged.update(self.metrics)
            self.metadata = merged
            self.metrics = merged

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        if "metrics" not in d:
            d["metrics"] = d.get("metadata", {})
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        """Record an error; the report is then unsuccessful."""
        self.errors.append(message)
        self.success = False


__all__ = [
    "OperationReport",
    "coerce_float",
    "alias_fields",
]
