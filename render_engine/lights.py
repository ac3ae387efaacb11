"""Light sources: ambient, point, and square area lights with soft shadows.

Every light answers ``illuminate(hit_record, view_vec, scene, ...)`` with
the RGB radiance it reflects toward the viewer from one shading point.
Only Phong materials respond to lights; anything else receives black.

Shadow rays run from the hit point toward the light sample with the
unnormalized direction ``light - hit``, so an occluder counts only when
it lies strictly between the two (``t`` in ``[epsilon, 1]``).
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import numpy as np

from render_engine.constants import K_EPSILON, K_EPSILON2
from render_engine.materials import PhongMaterial
from render_engine.ray import HitRecord, Ray
from render_engine.texture import as_rgb

if TYPE_CHECKING:
    from render_engine.surfaces import Surface

logger = logging.getLogger(__name__)

_BLACK = np.zeros(3, dtype=np.float64)


def _phong_material(hit_record: HitRecord) -> PhongMaterial | None:
    material = hit_record.material
    return material if isinstance(material, PhongMaterial) else None


def _occluded(scene: Surface, origin: np.ndarray, target: np.ndarray, epsilon: float) -> bool:
    shadow_ray = Ray(origin, target - origin)
    return scene.hit(shadow_ray, epsilon, 1.0, HitRecord())


class Light(ABC):
    """Base light."""

    def __init__(self, name: str = ""):
        self.name = name or type(self).__name__

    @abstractmethod
    def illuminate(
        self,
        hit_record: HitRecord,
        view_vec: np.ndarray,
        scene: Surface,
        rng: np.random.Generator | None = None,
        epsilon: float = K_EPSILON,
        epsilon2: float = K_EPSILON2,
    ) -> np.ndarray:
        """Radiance reflected toward ``view_vec`` at ``hit_record``.

        Parameters
        ----------
        hit_record : HitRecord
            Shading point.
        view_vec : np.ndarray
            Unit vector from the hit point toward the viewer.
        scene : Surface
            Scene root used for shadow queries.
        rng : np.random.Generator, optional
            Source of jitter for sampled lights.
        epsilon : float
            Start of the shadow-ray interval.
        epsilon2 : float
            Floor for squared light distances.

        Returns
        -------
        np.ndarray
            RGB radiance. Shape: (3,).
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class AmbientLight(Light):
    """Constant ambient term ``ambient * material.ambient``."""

    def __init__(self, ambient: Any = (0.0, 0.0, 0.0), name: str = ""):
        super().__init__(name)
        self.ambient = as_rgb(ambient)

    def illuminate(self, hit_record, view_vec, scene, rng=None, epsilon=K_EPSILON, epsilon2=K_EPSILON2):
        material = _phong_material(hit_record)
        if material is None:
            return _BLACK.copy()
        return self.ambient * material.ambient


class PointLight(Light):
    """Isotropic point light with inverse-square falloff and hard shadows."""

    def __init__(self, position: Any = (0.0, 0.0, 0.0), intensity: Any = (1.0, 1.0, 1.0), name: str = ""):
        super().__init__(name)
        self.position = np.array(position, dtype=np.float64).reshape(3)
        self.intensity = as_rgb(intensity)

    def illuminate(self, hit_record, view_vec, scene, rng=None, epsilon=K_EPSILON, epsilon2=K_EPSILON2):
        hit_point = hit_record.point
        if _occluded(scene, hit_point, self.position, epsilon):
            return _BLACK.copy()

        material = _phong_material(hit_record)
        if material is None:
            return _BLACK.copy()

        light_vec = self.position - hit_point
        distance2 = float(np.dot(light_vec, light_vec))
        if distance2 > 0.0:
            light_vec = light_vec / math.sqrt(distance2)

        n_dot_l = max(0.0, float(np.dot(hit_record.normal, light_vec)))
        irradiance = self.intensity * n_dot_l / max(epsilon2, distance2)
        return irradiance * material.evaluate(hit_record, light_vec, view_vec)


class AreaLight(Light):
    """Square emitter sampled on a jittered ``s x s`` grid.

    The square is centered at ``center``, spanned by ``u`` and
    ``v = u × direction`` with edge length ``length``, and emits along
    ``direction``. With ``samples`` requested, ``s = floor(sqrt(samples))``
    strata are traced and the accumulated irradiance is divided by
    ``samples``.

    Parameters
    ----------
    center : array-like
        Center of the square.
    direction : array-like
        Emission direction (normalized internally).
    u : array-like
        First edge direction (normalized internally).
    rgb : array-like
        Emitted radiance.
    length : float
        Edge length.
    samples : int
        Requested shadow samples.
    """

    def __init__(
        self,
        center: Any = (0.0, 0.0, 0.0),
        direction: Any = (0.0, -1.0, 0.0),
        u: Any = (1.0, 0.0, 0.0),
        rgb: Any = (1.0, 1.0, 1.0),
        length: float = 1.0,
        samples: int = 1,
        name: str = "",
    ):
        super().__init__(name)
        self.center = np.array(center, dtype=np.float64).reshape(3)
        self.direction = _unit(direction, "direction")
        self.u = _unit(u, "u")
        self.v = np.cross(self.u, self.direction)
        if np.linalg.norm(self.v) < K_EPSILON:
            raise ValueError("Area light u vector must not be parallel to its direction")
        self.rgb = as_rgb(rgb)
        self.length = float(length)
        self.samples = 1
        self.strat_samples = 1
        self.strata_origins = np.empty((0, 3), dtype=np.float64)
        self.set_samples(samples)

    def set_samples(self, samples: int) -> None:
        """Set the requested sample count and rebuild the stratum grid."""
        if samples < 1:
            raise ValueError(f"Area light needs at least one sample, got {samples}")
        self.samples = int(samples)
        self.strat_samples = max(1, math.isqrt(self.samples))
        if self.strat_samples ** 2 != self.samples:
            logger.debug(
                "AreaLight '%s': %d samples requested, tracing %d strata",
                self.name, self.samples, self.strat_samples ** 2,
            )

        s = self.strat_samples
        upper_left = self.center - 0.5 * self.length * self.u - 0.5 * self.length * self.v
        cell = self.length / s
        ii, jj = np.meshgrid(np.arange(s), np.arange(s), indexing="ij")
        self.strata_origins = (
            upper_left
            + (jj.reshape(-1, 1) * cell) * self.u
            + (ii.reshape(-1, 1) * cell) * self.v
        )

    def illuminate(self, hit_record, view_vec, scene, rng=None, epsilon=K_EPSILON, epsilon2=K_EPSILON2):
        material = _phong_material(hit_record)
        if material is None:
            return _BLACK.copy()
        if rng is None:
            rng = np.random.default_rng()

        hit_point = hit_record.point
        normal = hit_record.normal
        cell = self.length / self.strat_samples
        jitter = rng.random((len(self.strata_origins), 2))

        total = np.zeros(3, dtype=np.float64)
        for origin, (r, q) in zip(self.strata_origins, jitter):
            sample = origin + (cell * r) * self.u + (cell * q) * self.v
            if _occluded(scene, hit_point, sample, epsilon):
                continue

            light_vec = sample - hit_point
            distance2 = float(np.dot(light_vec, light_vec))
            if distance2 > 0.0:
                light_vec = light_vec / math.sqrt(distance2)

            emitted = self.rgb * max(0.0, -float(np.dot(light_vec, self.direction)))
            n_dot_l = max(0.0, float(np.dot(normal, light_vec)))
            irradiance = emitted * n_dot_l / max(epsilon2, distance2) * self.length ** 2
            total += irradiance * material.evaluate(hit_record, light_vec, view_vec)

        return total / self.samples


def _unit(value: Any, label: str) -> np.ndarray:
    vec = np.array(value, dtype=np.float64).reshape(3)
    norm = np.linalg.norm(vec)
    if norm == 0.0:
        raise ValueError(f"Area light {label} vector must be non-zero")
    return vec / norm
