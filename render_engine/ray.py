"""Rays, hit records and per-hit surface parameterization."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from render_engine.surfaces import Surface


def _vec(values: Any, size: int = 3) -> np.ndarray:
    return np.array(values, dtype=np.float64).reshape(size)


class Ray:
    """Parametric ray ``origin + t * direction``.

    The direction is not required to be unit length; every consumer that
    needs a unit vector normalizes locally.
    """

    __slots__ = ("origin", "direction")

    def __init__(self, origin: Any, direction: Any):
        self.origin = _vec(origin)
        self.direction = _vec(direction)

    def at(self, t: float) -> np.ndarray:
        return self.origin + t * self.direction

    def unit_direction(self) -> np.ndarray:
        norm = np.linalg.norm(self.direction)
        if norm == 0.0:
            return self.direction.copy()
        return self.direction / norm

    @staticmethod
    def reflect(ray: Ray, point: np.ndarray, normal: np.ndarray) -> Ray:
        """Mirror ``ray`` about ``normal`` at ``point``: d - 2 (n · d) n."""
        d = ray.direction
        return Ray(point, d - 2.0 * np.dot(normal, d) * normal)

    @staticmethod
    def refract(ray: Ray, point: np.ndarray, normal: np.ndarray, ior_ratio: float) -> Ray:
        """Snell refraction of ``ray`` at ``point``.

        Parameters
        ----------
        ray : Ray
            Incoming ray.
        point : np.ndarray
            Origin of the refracted ray.
        normal : np.ndarray
            Unit normal on the incident side.
        ior_ratio : float
            ``ior_in / ior_out``.

        Returns
        -------
        Ray
            Refracted ray. Callers check for total internal reflection
            before asking for a refraction.
        """
        v = ray.unit_direction()
        cos_theta = min(float(np.dot(-v, normal)), 1.0)
        r_perp = ior_ratio * (v + cos_theta * normal)
        r_par = -np.sqrt(abs(1.0 - float(np.dot(r_perp, r_perp)))) * normal
        return Ray(point, r_perp + r_par)

    def __repr__(self) -> str:
        return f"Ray(origin={self.origin.tolist()}, direction={self.direction.tolist()})"


@dataclass
class FaceGeoUV:
    """Face-local and surface-global texture coordinates of a hit.

    Attributes
    ----------
    face_id : int
        Mesh face index, -1 for non-mesh surfaces.
    uv : np.ndarray
        Barycentric (beta, gamma) on a triangle, (-1, -1) otherwise.
    global_uv : np.ndarray
        Surface parameterization used for texture lookup, (-1, -1) when
        the surface has none.
    """

    face_id: int = -1
    uv: np.ndarray = field(default_factory=lambda: np.array([-1.0, -1.0]))
    global_uv: np.ndarray = field(default_factory=lambda: np.array([-1.0, -1.0]))


class HitRecord:
    """Closest intersection found so far along a ray.

    The stored normal always faces against the incoming ray;
    ``front_face`` records whether the geometric normal already did.
    """

    __slots__ = ("t", "point", "normal", "front_face", "surface", "face_geouv")

    def __init__(self):
        self.t: float = np.inf
        self.point = np.zeros(3, dtype=np.float64)
        self.normal = np.zeros(3, dtype=np.float64)
        self.front_face: bool = True
        self.surface: Surface | None = None
        self.face_geouv = FaceGeoUV()

    def set_normal(self, ray: Ray, outward_normal: np.ndarray) -> None:
        self.front_face = bool(np.dot(ray.direction, outward_normal) < 0.0)
        self.normal = outward_normal if self.front_face else -outward_normal

    def copy_from(self, other: HitRecord) -> None:
        self.t = other.t
        self.point = other.point
        self.normal = other.normal
        self.front_face = other.front_face
        self.surface = other.surface
        self.face_geouv = other.face_geouv

    @property
    def material(self):
        return None if self.surface is None else self.surface.material

    def __repr__(self) -> str:
        name = None if self.surface is None else self.surface.name
        return f"HitRecord(t={self.t:.6g}, surface={name!r}, front_face={self.front_face})"
