"""
Stem centerline paths.

A Path is a spline sampled at discrete points, each carrying a radius. The
mesh engine only ever reads paths; the growth code upstream builds them.

Samples are expressed relative to the owning stem's location.
"""

from typing import List, Optional, Sequence
import numpy as np
from scipy.interpolate import BPoly

from ..utils.geometry import EPSILON, UP, normalize


class Spline:
    """
    Linear or cubic Bezier spline.

    Degree 1 splines are polylines through their controls. Degree 3 splines
    are piecewise cubic Bezier curves with `3n + 1` controls: every segment
    shares its end point with the next one.
    """

    def __init__(self, controls: Optional[Sequence[Sequence[float]]] = None, degree: int = 1):
        if degree not in (1, 3):
            raise ValueError(f"Unsupported spline degree: {degree}")
        controls = np.asarray(controls if controls is not None else [], dtype=float).reshape(-1, 3)
        if len(controls) > 1 and (len(controls) - 1) % degree != 0:
            raise ValueError(
                f"A degree {degree} spline needs {degree}n+1 controls, got {len(controls)}"
            )
        self._degree = degree
        self._controls = controls
        self._poly = self._build_poly()

    def _build_poly(self) -> Optional[BPoly]:
        n = self.segment_count
        if n == 0:
            return None
        d = self._degree
        coefficients = np.stack(
            [self._controls[k: k + d * n: d] for k in range(d + 1)]
        )
        return BPoly(coefficients, np.arange(n + 1, dtype=float))

    @property
    def segment_count(self) -> int:
        if len(self._controls) < 2:
            return 0
        return (len(self._controls) - 1) // self._degree

    def get_degree(self) -> int:
        return self._degree

    def get_controls(self) -> np.ndarray:
        return self._controls.copy()

    def get_point(self, segment: int, t: float) -> np.ndarray:
        """Evaluate segment `segment` at local parameter t in [0, 1]."""
        if self._poly is None:
            if len(self._controls) == 0:
                return np.zeros(3)
            return self._controls[0].copy()
        segment = int(np.clip(segment, 0, self.segment_count - 1))
        return np.asarray(self._poly(segment + float(np.clip(t, 0.0, 1.0))), dtype=float)

    def get_points(self, segment: int, ts: Sequence[float]) -> np.ndarray:
        """Vectorized get_point over several parameters of one segment."""
        return np.array([self.get_point(segment, t) for t in ts]).reshape(-1, 3)

    @classmethod
    def cubic(cls, p0, p1, p2, p3) -> "Spline":
        """Single cubic Bezier segment."""
        return cls([p0, p1, p2, p3], degree=3)


class Path:
    """
    Sampled stem centerline with a per-sample radius.

    Parameters
    ----------
    spline : Spline
        Centerline spline, relative to the stem location
    divisions : int
        Extra samples inserted inside every spline segment
    radii : sequence of float, optional
        Radius at each sample (default 1.0 everywhere)
    """

    def __init__(
        self,
        spline: Optional[Spline] = None,
        divisions: int = 0,
        radii: Optional[Sequence[float]] = None,
    ):
        self._spline = spline if spline is not None else Spline()
        self._divisions = max(int(divisions), 0)
        self._points = self._sample()

        if radii is None:
            self._radii = np.ones(len(self._points))
        else:
            self._radii = np.asarray(radii, dtype=float).reshape(-1)
            if len(self._radii) != len(self._points):
                raise ValueError(
                    f"Expected {len(self._points)} radii, got {len(self._radii)}"
                )

        if len(self._points) > 1:
            lengths = np.linalg.norm(np.diff(self._points, axis=0), axis=1)
            self._cumulative = np.concatenate([[0.0], np.cumsum(lengths)])
        else:
            self._cumulative = np.zeros(len(self._points))

    @classmethod
    def from_points(
        cls,
        points: Sequence[Sequence[float]],
        radii: Optional[Sequence[float]] = None,
    ) -> "Path":
        """Linear path through explicit sample points."""
        return cls(Spline(points, degree=1), divisions=0, radii=radii)

    def _sample(self) -> np.ndarray:
        spline = self._spline
        n = spline.segment_count
        if n == 0:
            return spline.get_controls()

        ts = np.arange(self._divisions + 1) / (self._divisions + 1)
        points = [spline.get_points(segment, ts) for segment in range(n)]
        points.append(spline.get_point(n - 1, 1.0).reshape(1, 3))
        return np.vstack(points)

    @property
    def size(self) -> int:
        return len(self._points)

    @property
    def points(self) -> np.ndarray:
        return self._points.copy()

    @property
    def radii(self) -> np.ndarray:
        return self._radii.copy()

    def get_spline(self) -> Spline:
        return self._spline

    def get_divisions(self) -> int:
        return self._divisions

    def get(self, index: int) -> np.ndarray:
        if self.size == 0:
            return np.zeros(3)
        return self._points[int(np.clip(index, 0, self.size - 1))].copy()

    def get_radius(self, index: int) -> float:
        if self.size == 0:
            return 0.0
        return float(self._radii[int(np.clip(index, 0, self.size - 1))])

    def get_direction(self, index: int) -> np.ndarray:
        """Direction of the segment leaving `index` (entering it for the last sample)."""
        if self.size < 2:
            return UP.copy()
        index = int(np.clip(index, 0, self.size - 1))
        if index < self.size - 1:
            d = self._points[index + 1] - self._points[index]
        else:
            d = self._points[index] - self._points[index - 1]
        return normalize(d, UP)

    def get_average_direction(self, index: int) -> np.ndarray:
        """Mean of the directions entering and leaving `index`."""
        if self.size < 2:
            return UP.copy()
        index = int(np.clip(index, 0, self.size - 1))
        if index == 0 or index == self.size - 1:
            return self.get_direction(index)
        before = normalize(self._points[index] - self._points[index - 1])
        after = normalize(self._points[index + 1] - self._points[index])
        return normalize(before + after, self.get_direction(index))

    def get_segment_length(self, index: int) -> float:
        """Length of the segment ending at `index`."""
        if index <= 0 or index >= self.size:
            return 0.0
        return float(self._cumulative[index] - self._cumulative[index - 1])

    def get_length(self) -> float:
        if self.size == 0:
            return 0.0
        return float(self._cumulative[-1])

    def get_distance(self, index: int) -> float:
        """Arc length from the first sample to `index`."""
        if self.size == 0:
            return 0.0
        return float(self._cumulative[int(np.clip(index, 0, self.size - 1))])

    def get_distance_between(self, start: int, end: int) -> float:
        return self.get_distance(end) - self.get_distance(start)

    def get_index(self, distance: float) -> int:
        """Index of the last sample at or before `distance` along the path."""
        if self.size == 0:
            return 0
        index = int(np.searchsorted(self._cumulative, distance, side="right")) - 1
        return int(np.clip(index, 0, self.size - 1))

    def get_intermediate(self, distance: float) -> np.ndarray:
        """Point at arc length `distance`, clamped to the path extent."""
        if self.size < 2:
            return self.get(0)
        distance = float(np.clip(distance, 0.0, self.get_length()))
        index = self.get_index(distance)
        if index >= self.size - 1:
            return self._points[-1].copy()
        span = self._cumulative[index + 1] - self._cumulative[index]
        t = (distance - self._cumulative[index]) / span if span > EPSILON else 0.0
        return self._points[index] + t * (self._points[index + 1] - self._points[index])

    def get_intermediate_direction(self, distance: float) -> np.ndarray:
        """Direction of the segment containing arc length `distance`."""
        if self.size < 2:
            return UP.copy()
        index = min(self.get_index(distance), self.size - 2)
        return self.get_direction(index)

    def to_dict(self) -> dict:
        return {
            "controls": self._spline.get_controls().tolist(),
            "degree": self._spline.get_degree(),
            "divisions": self._divisions,
            "radii": self._radii.tolist(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Path":
        spline = Spline(d.get("controls", []), degree=d.get("degree", 1))
        return cls(spline, divisions=d.get("divisions", 0), radii=d.get("radii"))


def tapered_radii(size: int, start_radius: float, end_radius: float) -> List[float]:
    """Linear taper from start_radius to end_radius over `size` samples."""
    if size <= 0:
        return []
    if size == 1:
        return [float(start_radius)]
    t = np.arange(size) / (size - 1)
    return list(start_radius + t * (end_radius - start_radius))


__all__ = ["Spline", "Path", "tapered_radii"]
