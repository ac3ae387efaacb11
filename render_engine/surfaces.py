"""Surface hierarchy: spheres, triangles, surface lists and mesh-face proxies.

Every surface answers the same two queries:

- ``hit(ray, t_min, t_max, hit_record) -> bool`` writes the closest
  intersection inside ``[t_min, t_max]`` into ``hit_record`` and leaves
  the record untouched on a miss.
- ``get_bounding_box(force_recompute=False) -> AABB`` returns a copy of
  the cached box, recomputing it when geometry changed since the last
  query.

Composite surfaces hold handles into a :class:`~render_engine.arena.SceneArena`.
The BVH node and triangle mesh variants live in ``bvh.py`` and ``mesh.py``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Iterable

import numpy as np

from render_engine.aabb import AABB
from render_engine.constants import K_2PI, K_EPSILON, K_PI
from render_engine.intersection import ray_sphere, ray_triangle
from render_engine.ray import FaceGeoUV, HitRecord, Ray

if TYPE_CHECKING:
    from render_engine.arena import SceneArena
    from render_engine.materials import Material

logger = logging.getLogger(__name__)


# ===================================================================
# BASE
# ===================================================================


class Surface(ABC):
    """Base capability set shared by all surface kinds.

    Attributes
    ----------
    name : str
        Diagnostic name.
    node_id : int
        Arena handle, -1 until registered.
    material : Material or None
        Shading model; surfaces without one render black.
    bound_dirty : bool
        True when the cached bounding box is stale.
    """

    def __init__(self, name: str = ""):
        self.name = name or type(self).__name__
        self.node_id: int = -1
        self.material: Material | None = None
        self.bound_dirty: bool = True
        self._bbox = AABB()

    @abstractmethod
    def hit(self, ray: Ray, t_min: float, t_max: float, hit_record: HitRecord) -> bool:
        ...

    @abstractmethod
    def _compute_bounding_box(self, force_recompute: bool) -> AABB:
        ...

    def bounds(self, force_recompute: bool = False) -> AABB:
        """Cached bounding box (shared, do not mutate)."""
        if force_recompute or self.bound_dirty:
            self._bbox = self._compute_bounding_box(force_recompute)
            self.bound_dirty = False
        return self._bbox

    def get_bounding_box(self, force_recompute: bool = False) -> AABB:
        return self.bounds(force_recompute).copy()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, id={self.node_id})"


# ===================================================================
# SPHERE
# ===================================================================


def sphere_uv(local_point: np.ndarray) -> np.ndarray:
    """Spherical (phi / 2pi, theta / pi) coordinates of a center-relative point."""
    x, y, z = local_point
    phi = np.arctan2(y, x)
    if phi < 0.0:
        phi += K_2PI
    r = np.sqrt(x * x + y * y + z * z)
    theta = np.arccos(np.clip(z / r, -1.0, 1.0)) if r > 0.0 else 0.0
    return np.array([phi / K_2PI, theta / K_PI], dtype=np.float64)


class Sphere(Surface):
    """Sphere given by center and radius."""

    def __init__(self, center: Iterable[float] = (0.0, 0.0, 0.0), radius: float = 1.0, name: str = ""):
        super().__init__(name)
        self._center = np.array(center, dtype=np.float64).reshape(3)
        self._radius = float(radius)

    @property
    def center(self) -> np.ndarray:
        return self._center.copy()

    @center.setter
    def center(self, value: Iterable[float]) -> None:
        self._center = np.array(value, dtype=np.float64).reshape(3)
        self.bound_dirty = True

    @property
    def radius(self) -> float:
        return self._radius

    @radius.setter
    def radius(self, value: float) -> None:
        self._radius = float(value)
        self.bound_dirty = True

    def hit(self, ray: Ray, t_min: float, t_max: float, hit_record: HitRecord) -> bool:
        found, t = ray_sphere(
            ray.origin, ray.direction, self._center, self._radius, float(t_min), float(t_max)
        )
        if not found:
            return False

        point = ray.at(t)
        local = point - self._center
        norm = np.linalg.norm(local)
        outward = local / norm if norm > 0.0 else local

        hit_record.t = t
        hit_record.point = point
        hit_record.set_normal(ray, outward)
        hit_record.surface = self
        hit_record.face_geouv = FaceGeoUV(face_id=-1, global_uv=sphere_uv(local))
        return True

    def _compute_bounding_box(self, force_recompute: bool) -> AABB:
        r = abs(self._radius)
        return AABB(self._center - r, self._center + r)


# ===================================================================
# TRIANGLE
# ===================================================================


class Triangle(Surface):
    """Single triangle with a precomputed geometric normal."""

    def __init__(self, points: Any = None, name: str = ""):
        super().__init__(name)
        self._points = np.zeros((3, 3), dtype=np.float64)
        self._normal = np.zeros(3, dtype=np.float64)
        if points is not None:
            self.points = points

    @property
    def points(self) -> np.ndarray:
        return self._points.copy()

    @points.setter
    def points(self, value: Any) -> None:
        pts = np.array(value, dtype=np.float64)
        if pts.size != 9:
            raise ValueError(f"Triangle needs exactly 3 points of dimension 3, got shape {pts.shape}")
        self._points = pts.reshape(3, 3)
        self._normal = _unit_normal(self._points[0], self._points[1], self._points[2])
        self.bound_dirty = True

    @property
    def normal(self) -> np.ndarray:
        return self._normal.copy()

    def hit(self, ray: Ray, t_min: float, t_max: float, hit_record: HitRecord) -> bool:
        p0, p1, p2 = self._points
        found, t, beta, gamma = ray_triangle(
            ray.origin, ray.direction, p0, p1, p2, float(t_min), float(t_max), K_EPSILON
        )
        if not found:
            return False

        hit_record.t = t
        hit_record.point = ray.at(t)
        hit_record.set_normal(ray, self._normal)
        hit_record.surface = self
        hit_record.face_geouv = FaceGeoUV(face_id=-1, uv=np.array([beta, gamma]))
        return True

    def _compute_bounding_box(self, force_recompute: bool) -> AABB:
        return AABB.from_points(self._points)


def _unit_normal(p0: np.ndarray, p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
    n = np.cross(p1 - p0, p2 - p0)
    norm = np.linalg.norm(n)
    if norm < K_EPSILON:
        logger.debug("Degenerate triangle, normal set to zero.")
        return np.zeros(3, dtype=np.float64)
    return n / norm


# ===================================================================
# SURFACE LIST
# ===================================================================


class SurfaceList(Surface):
    """Unordered collection scanned linearly.

    ``t_max`` shrinks after every child hit, so the record ends up holding
    the nearest intersection.
    """

    def __init__(self, arena: SceneArena, handles: Iterable[int] | None = None, name: str = ""):
        super().__init__(name)
        self.arena = arena
        self.handles: list[int] = list(handles) if handles is not None else []

    def add(self, handle: int) -> None:
        self.handles.append(handle)
        self.bound_dirty = True

    def __len__(self) -> int:
        return len(self.handles)

    def hit(self, ray: Ray, t_min: float, t_max: float, hit_record: HitRecord) -> bool:
        temp = HitRecord()
        hit_anything = False
        closest = t_max
        for handle in self.handles:
            if self.arena[handle].hit(ray, t_min, closest, temp):
                hit_anything = True
                closest = temp.t
        if hit_anything:
            hit_record.copy_from(temp)
        return hit_anything

    def _compute_bounding_box(self, force_recompute: bool) -> AABB:
        box = AABB()
        for handle in self.handles:
            box.expand_by(self.arena[handle].bounds(force_recompute))
        return box


# ===================================================================
# MESH FACE PROXY
# ===================================================================


class MeshFace(Surface):
    """BVH leaf standing in for one face of a :class:`~render_engine.mesh.TriMesh`.

    The proxy owns no geometry; the hit is delegated back to the mesh and
    the resulting record names the mesh as its surface.
    """

    def __init__(self, arena: SceneArena, mesh_handle: int, face_index: int, name: str = ""):
        super().__init__(name or f"MeshFace[{face_index}]")
        self.arena = arena
        self.mesh_handle = mesh_handle
        self.face_index = face_index

    def hit(self, ray: Ray, t_min: float, t_max: float, hit_record: HitRecord) -> bool:
        if not self.bounds().hit(ray, t_min, t_max):
            return False
        return self.arena[self.mesh_handle].ray_face_hit(
            self.face_index, ray, t_min, t_max, hit_record
        )

    def _compute_bounding_box(self, force_recompute: bool) -> AABB:
        mesh = self.arena[self.mesh_handle]
        return AABB.from_points(mesh.face_vertices(self.face_index))
