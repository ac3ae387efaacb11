"""Surface materials: Blinn-Phong for opaque surfaces, Schlick dielectric for glass.

The renderer dispatches on the closed material set with ``isinstance``
(dielectric first, then Phong), so materials only expose the quantities
each branch needs.

References
----------
- Blinn, J. F. (1977). "Models of light reflection for computer
  synthesized pictures." SIGGRAPH '77, pp. 192-198.
- Schlick, C. (1994). "An Inexpensive BRDF Model for Physically-based
  Rendering." Computer Graphics Forum, 13(3), 233-246.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from render_engine.ray import HitRecord, Ray
from render_engine.texture import SolidTexture, Texture, as_rgb, as_texture

# Shading of back faces on opaque surfaces, flags inverted geometry.
BACK_FACE_COLOR = np.array([1.0, 1.0, 0.0], dtype=np.float64)


class Material:
    """Base material carrying a name and a diffuse texture slot."""

    def __init__(self, diffuse: Texture | Any = (0.0, 0.0, 0.0), name: str = ""):
        self.name = name or type(self).__name__
        self.diffuse: Texture = as_texture(diffuse)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class PhongMaterial(Material):
    """Blinn-Phong material with ambient, specular and mirror terms.

    Parameters
    ----------
    diffuse : Texture or array-like
        Diffuse reflectance, a texture or a constant RGB color.
    specular : array-like
        Specular reflectance (RGB).
    shininess : float
        Blinn-Phong exponent.
    mirror : array-like
        Ideal mirror reflectance (RGB); zero disables reflection rays.
    ambient : array-like
        Ambient reflectance (RGB).
    """

    def __init__(
        self,
        diffuse: Texture | Any = (0.0, 0.0, 0.0),
        specular: Any = (0.0, 0.0, 0.0),
        shininess: float = 1.0,
        mirror: Any = (0.0, 0.0, 0.0),
        ambient: Any = (0.0, 0.0, 0.0),
        name: str = "",
    ):
        super().__init__(diffuse, name)
        self.specular = as_rgb(specular)
        self.shininess = float(shininess)
        self.mirror = as_rgb(mirror)
        self.ambient = as_rgb(ambient)

    def has_mirror(self) -> bool:
        return bool(np.any(self.mirror != 0.0))

    def evaluate(self, hit_record: HitRecord, light_vec: np.ndarray, view_vec: np.ndarray) -> np.ndarray:
        """Reflected fraction toward ``view_vec`` of light arriving along ``light_vec``.

        Parameters
        ----------
        hit_record : HitRecord
            Shading point.
        light_vec : np.ndarray
            Unit vector from the hit point toward the light.
        view_vec : np.ndarray
            Unit vector from the hit point toward the viewer.

        Returns
        -------
        np.ndarray
            ``specular * max(0, n · h)^shininess + diffuse``. Back faces
            return the flat back-face color with no highlight.
        """
        if not hit_record.front_face:
            return BACK_FACE_COLOR.copy()

        half = view_vec + light_vec
        norm = np.linalg.norm(half)
        if norm > 0.0:
            half = half / norm
        n_dot_h = max(0.0, float(np.dot(half, hit_record.normal)))
        spec = self.specular * n_dot_h ** self.shininess

        diffuse = self.diffuse.value(hit_record.face_geouv.global_uv, hit_record.point)
        return spec + diffuse


@dataclass
class ScatterResult:
    """Outcome of a dielectric interaction.

    Attributes
    ----------
    attenuation : np.ndarray
        Color applied to both secondary rays.
    reflect_ray : Ray
        Mirror ray, always present.
    refract_ray : Ray or None
        Transmitted ray, None under total internal reflection.
    reflectance : float
        Fresnel weight of the reflected ray in [0, 1] (1 under TIR).
    """

    attenuation: np.ndarray
    reflect_ray: Ray
    refract_ray: Ray | None
    reflectance: float


def schlick_reflectance(cos_theta: float, ior_in: float, ior_out: float) -> float:
    """Schlick's approximation of the Fresnel reflectance.

    ``R0 = ((n1 - n2) / (n1 + n2))²`` and
    ``R = R0 + (1 - R0)(1 - cos_theta)^5``.
    """
    r0 = ((ior_in - ior_out) / (ior_in + ior_out)) ** 2
    c = min(max(float(cos_theta), 0.0), 1.0)
    return r0 + (1.0 - r0) * (1.0 - c) ** 5


class PhongDielectric(PhongMaterial):
    """Transparent dielectric with Schlick-weighted reflection and refraction.

    The attenuation color is stored in the diffuse slot.

    Parameters
    ----------
    ior : float
        Index of refraction of the material (outside medium is 1.0).
    attenuation : array-like
        Color multiplied onto reflected and refracted radiance.
    """

    def __init__(self, ior: float = 1.5, attenuation: Any = (1.0, 1.0, 1.0), name: str = ""):
        super().__init__(diffuse=SolidTexture(attenuation), name=name)
        if ior <= 0:
            raise ValueError(f"Index of refraction must be positive, got {ior}")
        self.ior = float(ior)

    @property
    def attenuation(self) -> np.ndarray:
        return self.diffuse.value(np.array([-1.0, -1.0]))

    def scatter(self, hit_record: HitRecord, ray_in: Ray) -> ScatterResult:
        """Split ``ray_in`` at the hit into reflected and refracted rays."""
        view = -ray_in.unit_direction()
        cos_theta = min(float(np.dot(view, hit_record.normal)), 1.0)
        sin_theta = np.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))

        ior_in, ior_out = 1.0, self.ior
        if not hit_record.front_face:
            ior_in, ior_out = ior_out, ior_in
        ratio = ior_in / ior_out

        reflect_ray = Ray.reflect(ray_in, hit_record.point, hit_record.normal)

        if ratio * sin_theta > 1.0:
            return ScatterResult(self.attenuation, reflect_ray, None, 1.0)

        refract_ray = Ray.refract(ray_in, hit_record.point, hit_record.normal, ratio)
        reflectance = schlick_reflectance(cos_theta, ior_in, ior_out)
        return ScatterResult(self.attenuation, reflect_ray, refract_ray, reflectance)
