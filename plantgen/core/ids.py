"""
Explicit id allocation for plant entities.

Leaves, materials and leaf meshes draw their ids from an IDGenerator owned
by the plant, so two plants built side by side never share counters.
"""

from typing import Dict


class IDGenerator:
    """
    Monotonic per-kind id counters.

    Ids start at 1; 0 is reserved for "default" (default material, default
    leaf mesh).
    """

    def __init__(self, start: int = 1):
        self._start = start
        self._counters: Dict[str, int] = {}

    def next_id(self, kind: str = "default") -> int:
        value = self._counters.get(kind, self._start)
        self._counters[kind] = value + 1
        return value

    def peek(self, kind: str = "default") -> int:
        """Return the id the next call for `kind` will hand out."""
        return self._counters.get(kind, self._start)

    def reserve(self, kind: str, value: int) -> None:
        """Make sure ids for `kind` are never reissued at or below value."""
        if value >= self.peek(kind):
            self._counters[kind] = value + 1

    def reset(self) -> None:
        self._counters.clear()


__all__ = ["IDGenerator"]
