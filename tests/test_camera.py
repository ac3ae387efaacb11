"""Tests for the pinhole look-at camera."""

from __future__ import annotations

import numpy as np
import pytest

from render_engine.camera import Camera


class TestCamera:

    def test_center_ray_points_at_target(self) -> None:
        camera = Camera((1.0, 2.0, 3.0), (4.0, 2.0, -1.0), (0.0, 1.0, 0.0), fovy=40.0, aspect=1.5)
        expected = np.array([3.0, 0.0, -4.0]) / 5.0
        np.testing.assert_allclose(camera.get_ray(0.5, 0.5).unit_direction(), expected, atol=1e-12)

    def test_viewport_corners_match_fov(self) -> None:
        camera = Camera(fovy=90.0, aspect=2.0)
        np.testing.assert_allclose(camera.get_ray(0.0, 0.0).direction, [-2.0, -1.0, -1.0])
        np.testing.assert_allclose(camera.get_ray(1.0, 1.0).direction, [2.0, 1.0, -1.0])

    def test_rays_start_at_eye(self) -> None:
        camera = Camera((0.0, 5.0, 0.0), (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        np.testing.assert_array_equal(camera.get_ray(0.3, 0.7).origin, [0.0, 5.0, 0.0])

    def test_camera_xform_is_orthonormal_frame(self) -> None:
        camera = Camera((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), (0.0, 1.0, 0.0))
        rot = camera.camera_xform[:3, :3]
        np.testing.assert_allclose(rot.T @ rot, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(camera.camera_xform[:3, 3], [1.0, 1.0, 1.0])

    def test_setters_refresh_viewport(self) -> None:
        camera = Camera(fovy=90.0, aspect=1.0)
        camera.set_aspect(2.0)
        camera.set_fovy(60.0)
        height = 2.0 * np.tan(np.radians(30.0))
        np.testing.assert_allclose(np.linalg.norm(camera.vertical), height)
        np.testing.assert_allclose(np.linalg.norm(camera.horizontal), 2.0 * height)

    @pytest.mark.parametrize("fovy", [0.0, 180.0, -10.0])
    def test_invalid_fov(self, fovy: float) -> None:
        with pytest.raises(ValueError, match="field of view"):
            Camera(fovy=fovy)

    def test_invalid_aspect(self) -> None:
        with pytest.raises(ValueError, match="Aspect"):
            Camera(aspect=0.0)

    def test_eye_equals_target(self) -> None:
        with pytest.raises(ValueError, match="coincide"):
            Camera((1.0, 1.0, 1.0), (1.0, 1.0, 1.0))

    def test_up_parallel_to_view(self) -> None:
        with pytest.raises(ValueError, match="parallel"):
            Camera((0.0, 0.0, 0.0), (0.0, 3.0, 0.0), (0.0, 1.0, 0.0))

    def test_viewport_follows_camera_frame(self) -> None:
        camera = Camera((2.0, 0.0, 0.0), (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), fovy=90.0, aspect=1.0)
        xform = camera.camera_xform
        np.testing.assert_allclose(camera.horizontal, 2.0 * xform[:3, 0], atol=1e-12)
        np.testing.assert_allclose(camera.vertical, 2.0 * xform[:3, 1], atol=1e-12)
        np.testing.assert_allclose(camera.lower_left, [1.0, -1.0, -1.0], atol=1e-12)
