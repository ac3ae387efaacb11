"""Numba-compiled geometric intersection kernels.

All kernels operate on float64 arrays of shape (3,) and are compiled with
``@njit(cache=True, fastmath=False)``. They never raise: degenerate input
(zero-length direction, parallel rays) is reported as a miss.

``fastmath=False`` keeps IEEE ordering so the epsilon comparisons at
triangle edges and slab boundaries behave identically on every platform.

References
----------
- Möller, T. & Trumbore, B. (1997). "Fast, Minimum Storage Ray-Triangle
  Intersection." J. Graphics Tools, 2(1), 21-28.
- Williams, A. et al. (2005). "An Efficient and Robust Ray-Box
  Intersection Algorithm." J. Graphics Tools, 10(1), 49-54.
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit


# ===================================================================
# RAY-AABB INTERSECTION (slab method)
# ===================================================================


@njit(cache=True, fastmath=False)
def ray_aabb_slab(
    ray_origin: np.ndarray,
    ray_dir: np.ndarray,
    bbox_min: np.ndarray,
    bbox_max: np.ndarray,
    t_min: float,
    t_max: float,
) -> bool:
    """Test if a ray overlaps an axis-aligned box within ``[t_min, t_max]``.

    Parameters
    ----------
    ray_origin : np.ndarray
        Ray origin [x, y, z]. Shape: (3,).
    ray_dir : np.ndarray
        Ray direction. Shape: (3,). Need not be normalized.
    bbox_min, bbox_max : np.ndarray
        Box corners. Shape: (3,) each.
    t_min, t_max : float
        Parametric interval to clip against.

    Returns
    -------
    bool
        False as soon as the clipped interval becomes empty.
    """
    for axis in range(3):
        if ray_dir[axis] == 0.0:
            # A ray in a face plane gives 0 * inf = NaN, which never tightens the interval.
            inv_d = math.copysign(np.inf, ray_dir[axis])
        else:
            inv_d = 1.0 / ray_dir[axis]

        t0 = (bbox_min[axis] - ray_origin[axis]) * inv_d
        t1 = (bbox_max[axis] - ray_origin[axis]) * inv_d
        if inv_d < 0.0:
            t0, t1 = t1, t0

        if t0 > t_min:
            t_min = t0
        if t1 < t_max:
            t_max = t1

        if t_max < t_min:
            return False

    return True


# ===================================================================
# RAY-SPHERE INTERSECTION
# ===================================================================


@njit(cache=True, fastmath=False)
def ray_sphere(
    ray_origin: np.ndarray,
    ray_dir: np.ndarray,
    center: np.ndarray,
    radius: float,
    t_min: float,
    t_max: float,
) -> tuple[bool, float]:
    """Solve |o + t d - c|² = r² for the nearest root inside ``[t_min, t_max]``.

    The smaller root is taken unless it lies before ``t_min``, in which
    case the larger root is tried (ray starting inside the sphere).

    Returns
    -------
    (bool, float)
        Hit flag and parametric distance (``-1.0`` on a miss).
    """
    p0_x = ray_origin[0] - center[0]
    p0_y = ray_origin[1] - center[1]
    p0_z = ray_origin[2] - center[2]

    a = ray_dir[0] * ray_dir[0] + ray_dir[1] * ray_dir[1] + ray_dir[2] * ray_dir[2]
    if a == 0.0:
        return False, -1.0
    b = 2.0 * (p0_x * ray_dir[0] + p0_y * ray_dir[1] + p0_z * ray_dir[2])
    c = p0_x * p0_x + p0_y * p0_y + p0_z * p0_z - radius * radius

    disc = b * b - 4.0 * a * c
    if disc < 0.0:
        return False, -1.0

    s = np.sqrt(disc)
    t = (-b - s) / (2.0 * a)
    if t < t_min:
        t = (-b + s) / (2.0 * a)
    if t < t_min or t > t_max:
        return False, -1.0

    return True, t


# ===================================================================
# MÖLLER-TRUMBORE RAY-TRIANGLE INTERSECTION
# ===================================================================


@njit(cache=True, fastmath=False)
def ray_triangle(
    ray_origin: np.ndarray,
    ray_dir: np.ndarray,
    v0: np.ndarray,
    v1: np.ndarray,
    v2: np.ndarray,
    t_min: float,
    t_max: float,
    epsilon: float,
) -> tuple[bool, float, float, float]:
    """Möller-Trumbore ray-triangle intersection.

    Parameters
    ----------
    ray_origin : np.ndarray
        Ray origin. Shape: (3,).
    ray_dir : np.ndarray
        Ray direction. Shape: (3,). Need not be normalized.
    v0, v1, v2 : np.ndarray
        Triangle vertex positions. Shape: (3,) each.
    t_min, t_max : float
        Accepted parametric interval.
    epsilon : float
        Determinant threshold below which the ray counts as parallel.

    Returns
    -------
    (bool, float, float, float)
        Hit flag, parametric distance ``t`` and the barycentric
        coordinates ``(beta, gamma)`` of ``v1`` and ``v2``. The point is
        ``(1 - beta - gamma) * v0 + beta * v1 + gamma * v2``.
    """
    e1_x = v1[0] - v0[0]
    e1_y = v1[1] - v0[1]
    e1_z = v1[2] - v0[2]

    e2_x = v2[0] - v0[0]
    e2_y = v2[1] - v0[1]
    e2_z = v2[2] - v0[2]

    # P = ray_dir × e2
    p_x = ray_dir[1] * e2_z - ray_dir[2] * e2_y
    p_y = ray_dir[2] * e2_x - ray_dir[0] * e2_z
    p_z = ray_dir[0] * e2_y - ray_dir[1] * e2_x

    det = e1_x * p_x + e1_y * p_y + e1_z * p_z
    if det > -epsilon and det < epsilon:
        return False, -1.0, 0.0, 0.0

    inv_det = 1.0 / det

    t_x = ray_origin[0] - v0[0]
    t_y = ray_origin[1] - v0[1]
    t_z = ray_origin[2] - v0[2]

    beta = (t_x * p_x + t_y * p_y + t_z * p_z) * inv_det
    if beta < 0.0 or beta > 1.0:
        return False, -1.0, 0.0, 0.0

    # Q = T × e1
    q_x = t_y * e1_z - t_z * e1_y
    q_y = t_z * e1_x - t_x * e1_z
    q_z = t_x * e1_y - t_y * e1_x

    gamma = (ray_dir[0] * q_x + ray_dir[1] * q_y + ray_dir[2] * q_z) * inv_det
    if gamma < 0.0 or beta + gamma > 1.0:
        return False, -1.0, 0.0, 0.0

    t_dist = (e2_x * q_x + e2_y * q_y + e2_z * q_z) * inv_det
    if t_dist < t_min or t_dist > t_max:
        return False, -1.0, 0.0, 0.0

    return True, t_dist, beta, gamma
