"""Axis-aligned bounding boxes and homogeneous transform helpers.

An empty box holds the sentinel ``min = +inf``, ``max = -inf`` on every
axis. Expanding by a point or a valid box is monotonic; expanding by an
invalid box leaves the box untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

import numpy as np

from render_engine.intersection import ray_aabb_slab

if TYPE_CHECKING:
    from render_engine.ray import Ray


def xform_point(xform: np.ndarray, point: np.ndarray) -> np.ndarray:
    """Apply a 4x4 transform to a point (w = 1) and divide by w."""
    h = xform @ np.append(np.asarray(point, dtype=np.float64), 1.0)
    return h[:3] / h[3]


def xform_vector(xform: np.ndarray, vector: np.ndarray) -> np.ndarray:
    """Apply the linear part of a 4x4 transform to a direction (w = 0)."""
    return xform[:3, :3] @ np.asarray(vector, dtype=np.float64)


class AABB:
    """Axis-aligned bounding box.

    Parameters
    ----------
    bmin, bmax : array-like, optional
        Box corners. When either is omitted the box starts empty.
    """

    __slots__ = ("min", "max")

    def __init__(self, bmin: Iterable[float] | None = None, bmax: Iterable[float] | None = None):
        if bmin is None or bmax is None:
            self.min = np.full(3, np.inf, dtype=np.float64)
            self.max = np.full(3, -np.inf, dtype=np.float64)
        else:
            self.min = np.array(bmin, dtype=np.float64).reshape(3)
            self.max = np.array(bmax, dtype=np.float64).reshape(3)

    @classmethod
    def from_points(cls, points: np.ndarray) -> AABB:
        """Smallest box enclosing an (N, 3) array of points."""
        box = cls()
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(pts):
            box.min = pts.min(axis=0)
            box.max = pts.max(axis=0)
        return box

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def reset(self) -> None:
        self.min.fill(np.inf)
        self.max.fill(-np.inf)

    def is_valid(self) -> bool:
        """True unless some axis still holds the empty sentinel."""
        return bool(np.all(self.min != np.inf) and np.all(self.max != -np.inf))

    def copy(self) -> AABB:
        return AABB(self.min.copy(), self.max.copy()) if self.is_valid() else AABB()

    def center(self) -> np.ndarray:
        return 0.5 * (self.min + self.max)

    def extent(self) -> np.ndarray:
        return self.max - self.min

    def allclose(self, other: AABB, atol: float = 1e-12) -> bool:
        """Compare two boxes; two empty boxes compare equal."""
        if not self.is_valid() or not other.is_valid():
            return self.is_valid() == other.is_valid()
        return bool(
            np.allclose(self.min, other.min, atol=atol)
            and np.allclose(self.max, other.max, atol=atol)
        )

    # ------------------------------------------------------------------
    # Set operations
    # ------------------------------------------------------------------

    def expand_by(self, other: AABB | Iterable[float]) -> AABB:
        """Grow the box to contain a point or another box.

        Returns ``self`` so calls can be chained.
        """
        if isinstance(other, AABB):
            if not other.is_valid():
                return self
            np.minimum(self.min, other.min, out=self.min)
            np.maximum(self.max, other.max, out=self.max)
            return self

        point = np.asarray(other, dtype=np.float64).reshape(3)
        np.minimum(self.min, point, out=self.min)
        np.maximum(self.max, point, out=self.max)
        return self

    def intersect_with(self, other: AABB) -> AABB:
        """Overlap of two boxes; empty when either is empty or they are disjoint."""
        if not self.is_valid() or not other.is_valid():
            return AABB()
        if np.any(self.max < other.min) or np.any(self.min > other.max):
            return AABB()
        return AABB(np.maximum(self.min, other.min), np.minimum(self.max, other.max))

    def is_point_inside(self, point: Iterable[float]) -> bool:
        """Inclusive containment test."""
        if not self.is_valid():
            return False
        p = np.asarray(point, dtype=np.float64)
        return bool(np.all(p >= self.min) and np.all(p <= self.max))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def hit(self, ray: Ray, t_min: float, t_max: float) -> bool:
        """Slab test of ``ray`` against the box over ``[t_min, t_max]``."""
        if not self.is_valid():
            return False
        return ray_aabb_slab(
            ray.origin, ray.direction, self.min, self.max, float(t_min), float(t_max)
        )

    def transformed(self, xform: np.ndarray) -> AABB:
        """Box enclosing the eight corners of this box under ``xform``."""
        out = AABB()
        if not self.is_valid():
            return out
        xform = np.asarray(xform, dtype=np.float64)
        for i in range(8):
            corner = np.where(
                [(i >> axis) & 1 for axis in range(3)], self.max, self.min
            )
            out.expand_by(xform_point(xform, corner))
        return out

    def __repr__(self) -> str:
        if not self.is_valid():
            return "AABB(<empty>)"
        return f"AABB(min={self.min.tolist()}, max={self.max.tolist()})"
