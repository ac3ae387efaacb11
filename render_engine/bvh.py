"""Median-split bounding volume hierarchy over arena surfaces.

Construction
------------
The caller's flat list of surface handles is partitioned in place:

- 1 surface  → node with a single (left) leaf.
- 2 surfaces → node with both as leaves.
- N ≥ 3      → sort the sub-range by bounding-box midpoint along the
  current axis (descending), split at the middle index and recurse on
  each half with the next axis (x → y → z → x ...).

Every internal node's box is the union of its children's boxes.

Traversal
---------
A node first rejects the ray with its own box. The left child is queried
over ``[t_min, t_max]``; the right child is then queried over
``[t_min, t_left]`` when the left child hit, so the record always ends
with the nearest intersection below the node.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import numpy as np

from render_engine.aabb import AABB
from render_engine.ray import HitRecord, Ray
from render_engine.surfaces import Surface

if TYPE_CHECKING:
    from render_engine.arena import SceneArena

logger = logging.getLogger(__name__)


class BVHNode(Surface):
    """Binary BVH node holding child handles.

    Parameters
    ----------
    arena : SceneArena
        Arena owning the children.
    left : int
        Handle of the left child (always set).
    right : int or None
        Handle of the right child, None for a single-leaf node.
    """

    def __init__(self, arena: SceneArena, left: int, right: int | None = None, name: str = ""):
        super().__init__(name)
        self.arena = arena
        self.left = left
        self.right = right

    def hit(self, ray: Ray, t_min: float, t_max: float, hit_record: HitRecord) -> bool:
        if not self.bounds().hit(ray, t_min, t_max):
            return False

        hit_left = self.arena[self.left].hit(ray, t_min, t_max, hit_record)
        if self.right is None:
            return hit_left

        closest = hit_record.t if hit_left else t_max
        hit_right = self.arena[self.right].hit(ray, t_min, closest, hit_record)
        return hit_left or hit_right

    def _compute_bounding_box(self, force_recompute: bool) -> AABB:
        box = self.arena[self.left].bounds(force_recompute).copy()
        if self.right is not None:
            box.expand_by(self.arena[self.right].bounds(force_recompute))
        return box


def bbox_combine(box_a: AABB, box_b: AABB) -> AABB:
    """Component-wise union of two boxes (empty boxes are ignored)."""
    return box_a.copy().expand_by(box_b)


def build_bvh(arena: SceneArena, handles: list[int], name: str = "") -> int:
    """Build a median-split BVH over ``handles`` and return the root handle.

    Parameters
    ----------
    arena : SceneArena
        Arena owning the surfaces; new nodes are added to it.
    handles : list[int]
        Surface handles. Reordered in place during construction.
    name : str
        Name given to the root node.

    Returns
    -------
    int
        Handle of the root :class:`BVHNode`.

    Raises
    ------
    ValueError
        If ``handles`` is empty.
    """
    if len(handles) == 0:
        raise ValueError("Cannot build a BVH over zero surfaces")

    t_start = time.perf_counter()
    logger.info("Building BVH '%s' for %d surfaces ...", name or "bvh", len(handles))

    # Snapshot every leaf box once; sorting keys read from this table.
    midpoints = {h: arena[h].bounds(force_recompute=True).center() for h in handles}

    n_before = len(arena)
    root = _build(arena, handles, midpoints, 0, len(handles), 0)
    arena[root].name = name or arena[root].name
    arena[root].get_bounding_box()

    logger.info(
        "BVH built: %d nodes, root box %s (%.3f s)",
        len(arena) - n_before, arena[root].bounds(), time.perf_counter() - t_start,
    )
    return root


def _build(
    arena: SceneArena,
    handles: list[int],
    midpoints: dict[int, np.ndarray],
    start: int,
    end: int,
    axis: int,
) -> int:
    """Recursively build the subtree over ``handles[start:end]``."""
    count = end - start

    if count == 1:
        node = BVHNode(arena, handles[start])
        node_handle = arena.add(node)
        _set_bounds(node, arena[handles[start]].bounds().copy())
        return node_handle

    if count == 2:
        node = BVHNode(arena, handles[start], handles[start + 1])
        node_handle = arena.add(node)
        _set_bounds(
            node, bbox_combine(arena[handles[start]].bounds(), arena[handles[start + 1]].bounds())
        )
        return node_handle

    handles[start:end] = sorted(
        handles[start:end], key=lambda h: midpoints[h][axis], reverse=True
    )
    mid = start + count // 2
    next_axis = (axis + 1) % 3

    left = _build(arena, handles, midpoints, start, mid, next_axis)
    right = _build(arena, handles, midpoints, mid, end, next_axis)

    node = BVHNode(arena, left, right)
    node_handle = arena.add(node)
    _set_bounds(node, bbox_combine(arena[left].bounds(), arena[right].bounds()))
    return node_handle


def _set_bounds(node: BVHNode, box: AABB) -> None:
    node._bbox = box
    node.bound_dirty = False
