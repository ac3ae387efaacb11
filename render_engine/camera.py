"""Pinhole look-at camera.

The viewport is placed one unit in front of the eye. ``get_ray(s, t)``
maps normalized viewport coordinates (``s`` right, ``t`` up, both in
[0, 1]) to a primary ray from the eye.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import numpy as np

from render_engine.aabb import xform_point, xform_vector
from render_engine.ray import Ray

logger = logging.getLogger(__name__)


class Camera:
    """Look-at camera with vertical field of view and aspect ratio.

    Parameters
    ----------
    eye, target, up : array-like
        Camera position, look-at point and approximate up vector.
    fovy : float
        Vertical field of view [deg].
    aspect : float
        Viewport width / height.
    """

    def __init__(
        self,
        eye: Any = (0.0, 0.0, 0.0),
        target: Any = (0.0, 0.0, -1.0),
        up: Any = (0.0, 1.0, 0.0),
        fovy: float = 60.0,
        aspect: float = 1.77778,
        name: str = "Camera",
    ):
        self.name = name
        self.fovy = float(fovy)
        self.aspect = float(aspect)
        self.camera_xform = np.eye(4, dtype=np.float64)
        self.look_at(eye, target, up, update_viewport=True)

    def look_at(self, eye: Any, target: Any, up: Any, update_viewport: bool = True) -> None:
        self.eye = np.array(eye, dtype=np.float64).reshape(3)
        self.target = np.array(target, dtype=np.float64).reshape(3)
        self.up = np.array(up, dtype=np.float64).reshape(3)
        if update_viewport:
            self.update_viewport()

    def set_fovy(self, fovy: float, update_viewport: bool = True) -> None:
        self.fovy = float(fovy)
        if update_viewport:
            self.update_viewport()

    def set_aspect(self, aspect: float, update_viewport: bool = True) -> None:
        self.aspect = float(aspect)
        if update_viewport:
            self.update_viewport()

    def update_viewport(self) -> None:
        """Recompute the camera frame and the viewport corner / spans.

        Raises
        ------
        ValueError
            If the field of view or aspect ratio is out of range, or the
            view direction is parallel to the up vector.
        """
        if not 0.0 < self.fovy < 180.0:
            raise ValueError(f"Vertical field of view must be in (0, 180) degrees, got {self.fovy}")
        if self.aspect <= 0.0:
            raise ValueError(f"Aspect ratio must be positive, got {self.aspect}")

        height = 2.0 * math.tan(math.radians(self.fovy) / 2.0)
        width = self.aspect * height

        w = self.eye - self.target
        w_norm = np.linalg.norm(w)
        if w_norm == 0.0:
            raise ValueError("Camera eye and target coincide")
        w = w / w_norm
        u = np.cross(self.up, w)
        u_norm = np.linalg.norm(u)
        if u_norm == 0.0:
            raise ValueError("Camera up vector is parallel to the view direction")
        u = u / u_norm
        v = np.cross(w, u)

        self.camera_xform = np.eye(4, dtype=np.float64)
        self.camera_xform[:3, 0] = u
        self.camera_xform[:3, 1] = v
        self.camera_xform[:3, 2] = w
        self.camera_xform[:3, 3] = self.eye

        # Viewport sits on the camera-space plane z = -1.
        self.horizontal = xform_vector(self.camera_xform, (width, 0.0, 0.0))
        self.vertical = xform_vector(self.camera_xform, (0.0, height, 0.0))
        self.lower_left = xform_point(self.camera_xform, (-0.5 * width, -0.5 * height, -1.0))

        logger.debug(
            "Camera viewport: fovy=%.3f deg, aspect=%.5f, %.4f x %.4f",
            self.fovy, self.aspect, width, height,
        )

    def get_ray(self, s: float, t: float) -> Ray:
        return Ray(self.eye, self.lower_left + s * self.horizontal + t * self.vertical - self.eye)

    def __repr__(self) -> str:
        return (
            f"Camera(eye={self.eye.tolist()}, target={self.target.tolist()}, "
            f"fovy={self.fovy:.3f}, aspect={self.aspect:.5f})"
        )
