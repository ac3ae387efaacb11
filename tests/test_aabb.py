"""Tests for axis-aligned bounding boxes and the slab test."""

from __future__ import annotations

import numpy as np
import pytest

from render_engine.aabb import AABB, xform_point, xform_vector
from render_engine.ray import Ray


# ===================================================================
# FIXTURES
# ===================================================================


@pytest.fixture
def unit_box() -> AABB:
    return AABB((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))


# ===================================================================
# STATE & SET OPERATIONS
# ===================================================================


class TestAABBState:
    """Empty sentinel, expansion and intersection."""

    def test_default_box_is_invalid(self) -> None:
        box = AABB()
        assert not box.is_valid()
        assert np.all(box.min == np.inf)
        assert np.all(box.max == -np.inf)

    def test_reset_returns_to_empty(self, unit_box: AABB) -> None:
        unit_box.reset()
        assert not unit_box.is_valid()

    def test_expand_by_point(self) -> None:
        box = AABB()
        box.expand_by((1.0, -2.0, 3.0))
        assert box.is_valid()
        np.testing.assert_array_equal(box.min, [1.0, -2.0, 3.0])
        np.testing.assert_array_equal(box.max, [1.0, -2.0, 3.0])

    def test_expand_by_box_contains_both(self, unit_box: AABB) -> None:
        other = AABB((-1.0, 0.5, 2.0), (0.5, 3.0, 4.0))
        merged = unit_box.copy().expand_by(other)
        for corner in (unit_box.min, unit_box.max, other.min, other.max):
            assert merged.is_point_inside(corner), f"{corner} should lie inside {merged}"
        np.testing.assert_array_equal(merged.min, [-1.0, 0.0, 0.0])
        np.testing.assert_array_equal(merged.max, [1.0, 3.0, 4.0])

    def test_expand_by_invalid_box_is_noop(self, unit_box: AABB) -> None:
        before = unit_box.copy()
        unit_box.expand_by(AABB())
        assert unit_box.allclose(before)

    def test_intersect_overlapping(self, unit_box: AABB) -> None:
        other = AABB((0.5, 0.5, 0.5), (2.0, 2.0, 2.0))
        overlap = unit_box.intersect_with(other)
        assert overlap.is_valid()
        np.testing.assert_array_equal(overlap.min, [0.5, 0.5, 0.5])
        np.testing.assert_array_equal(overlap.max, [1.0, 1.0, 1.0])

    @pytest.mark.parametrize("axis", [0, 1, 2])
    def test_intersect_disjoint_on_one_axis_is_invalid(self, unit_box: AABB, axis: int) -> None:
        lo = np.zeros(3)
        hi = np.ones(3)
        lo[axis], hi[axis] = 2.0, 3.0
        assert not unit_box.intersect_with(AABB(lo, hi)).is_valid()

    def test_intersect_with_invalid_is_invalid(self, unit_box: AABB) -> None:
        assert not unit_box.intersect_with(AABB()).is_valid()
        assert not AABB().intersect_with(unit_box).is_valid()

    def test_touching_boxes_intersect(self, unit_box: AABB) -> None:
        other = AABB((1.0, 0.0, 0.0), (2.0, 1.0, 1.0))
        assert unit_box.intersect_with(other).is_valid()

    def test_point_inside_is_inclusive(self, unit_box: AABB) -> None:
        assert unit_box.is_point_inside((1.0, 1.0, 1.0))
        assert unit_box.is_point_inside((0.5, 0.0, 0.2))
        assert not unit_box.is_point_inside((1.0 + 1e-9, 0.5, 0.5))


# ===================================================================
# SLAB TEST
# ===================================================================


class TestAABBHit:
    """Ray-box overlap via the slab method."""

    def test_ray_through_center_hits(self, unit_box: AABB) -> None:
        ray = Ray((-1.0, 0.5, 0.5), (1.0, 0.0, 0.0))
        assert unit_box.hit(ray, 0.0, np.inf)

    def test_ray_missing_box(self, unit_box: AABB) -> None:
        ray = Ray((-1.0, 2.0, 0.5), (1.0, 0.0, 0.0))
        assert not unit_box.hit(ray, 0.0, np.inf)

    def test_box_behind_ray(self, unit_box: AABB) -> None:
        ray = Ray((3.0, 0.5, 0.5), (1.0, 0.0, 0.0))
        assert not unit_box.hit(ray, 0.0, np.inf)

    def test_interval_too_short(self, unit_box: AABB) -> None:
        ray = Ray((-1.0, 0.5, 0.5), (1.0, 0.0, 0.0))
        assert not unit_box.hit(ray, 0.0, 0.5), "box starts at t=1"
        assert unit_box.hit(ray, 0.0, 1.5)

    def test_invalid_box_never_hits(self) -> None:
        ray = Ray((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        assert not AABB().hit(ray, -np.inf, np.inf)

    def test_axis_parallel_ray_inside_slab(self, unit_box: AABB) -> None:
        ray = Ray((0.5, 0.5, -5.0), (0.0, 0.0, 1.0))
        assert unit_box.hit(ray, 0.0, np.inf)

    def test_axis_parallel_ray_outside_slab(self, unit_box: AABB) -> None:
        ray = Ray((1.5, 0.5, -5.0), (0.0, 0.0, 1.0))
        assert not unit_box.hit(ray, 0.0, np.inf)

    @pytest.mark.parametrize("origin", [(1.0, 0.5, -1.0), (0.0, 0.5, -1.0), (0.5, 1.0, -1.0)])
    def test_ray_in_face_plane_hits(self, unit_box: AABB, origin) -> None:
        """Bounds are inclusive for rays running along a face."""
        assert unit_box.hit(Ray(origin, (0.0, 0.0, 1.0)), 0.0, np.inf)
        assert unit_box.hit(Ray(origin, (0.0, 0.0, -1.0)), -np.inf, 0.0)

    def test_reversed_direction_same_outcome(self, unit_box: AABB) -> None:
        """Flipping the direction and mirroring the interval keeps the answer."""
        gen = np.random.default_rng(7)
        for _ in range(200):
            origin = gen.uniform(-3.0, 4.0, 3)
            direction = gen.normal(size=3)
            t_min, t_max = sorted(gen.uniform(-10.0, 10.0, 2))
            forward = unit_box.hit(Ray(origin, direction), t_min, t_max)
            backward = unit_box.hit(Ray(origin, -direction), -t_max, -t_min)
            assert forward == backward, f"origin={origin}, direction={direction}"


# ===================================================================
# TRANSFORM
# ===================================================================


class TestAABBTransform:

    def test_translation(self, unit_box: AABB) -> None:
        xform = np.eye(4)
        xform[:3, 3] = [1.0, 2.0, 3.0]
        moved = unit_box.transformed(xform)
        np.testing.assert_allclose(moved.min, [1.0, 2.0, 3.0])
        np.testing.assert_allclose(moved.max, [2.0, 3.0, 4.0])

    def test_rotation_rebounds_corners(self, unit_box: AABB) -> None:
        c, s = np.cos(np.pi / 4), np.sin(np.pi / 4)
        xform = np.eye(4)
        xform[:2, :2] = [[c, -s], [s, c]]
        rotated = unit_box.transformed(xform)
        np.testing.assert_allclose(rotated.min[:2], [-s, 0.0], atol=1e-12)
        np.testing.assert_allclose(rotated.max[:2], [c, c + s], atol=1e-12)

    def test_invalid_box_stays_invalid(self) -> None:
        assert not AABB().transformed(np.eye(4)).is_valid()

    def test_xform_point_divides_by_w(self) -> None:
        xform = np.diag([1.0, 1.0, 1.0, 2.0])
        np.testing.assert_allclose(xform_point(xform, [2.0, 4.0, 6.0]), [1.0, 2.0, 3.0])

    def test_xform_vector_ignores_translation(self) -> None:
        xform = np.eye(4)
        xform[:3, :3] = [[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]]
        xform[:3, 3] = [5.0, 6.0, 7.0]
        np.testing.assert_allclose(xform_vector(xform, [1.0, 2.0, 3.0]), [-2.0, 1.0, 3.0])
