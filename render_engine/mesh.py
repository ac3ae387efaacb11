"""Indexed triangle mesh with per-vertex normals and optional texture coordinates.

Converts raw vertex / face arrays into a renderable surface:
- Face normals from the vertex winding.
- Vertex normals as the normalized sum of adjacent face normals.
- Optional per-vertex (u, v) texture coordinates.
- An internal BVH over per-face proxies living in the scene arena.

Hits are shaded with the interpolated vertex normal so that faceted
meshes look smooth.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from render_engine.aabb import AABB
from render_engine.bvh import build_bvh
from render_engine.constants import K_EPSILON
from render_engine.intersection import ray_triangle
from render_engine.ray import FaceGeoUV, HitRecord, Ray
from render_engine.surfaces import MeshFace, Surface

if TYPE_CHECKING:
    from render_engine.arena import SceneArena

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Normal computation
# ---------------------------------------------------------------------------


def compute_face_normals(vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Unit face normals ``(p1 - p0) × (p2 - p0)``.

    Parameters
    ----------
    vertices : np.ndarray
        Vertex positions. Shape: (V, 3).
    faces : np.ndarray
        Vertex indices per face. Shape: (F, 3).

    Returns
    -------
    np.ndarray
        Unit normals. Shape: (F, 3). Degenerate faces get a zero normal.
    """
    v0 = vertices[faces[:, 0]]
    v1 = vertices[faces[:, 1]]
    v2 = vertices[faces[:, 2]]

    cross = np.cross(v1 - v0, v2 - v0)
    norms = np.linalg.norm(cross, axis=1)

    degenerate = norms < K_EPSILON
    if np.any(degenerate):
        logger.warning("Mesh has %d degenerate faces (zero area).", int(degenerate.sum()))

    safe_norms = np.where(degenerate, 1.0, norms)
    normals = cross / safe_norms[:, np.newaxis]
    normals[degenerate] = 0.0
    return normals


def compute_vertex_normals(
    vertices: np.ndarray, faces: np.ndarray, face_normals: np.ndarray
) -> np.ndarray:
    """Normalized sum of the normals of the faces around each vertex."""
    accum = np.zeros_like(vertices, dtype=np.float64)
    for corner in range(3):
        np.add.at(accum, faces[:, corner], face_normals)

    norms = np.linalg.norm(accum, axis=1)
    safe_norms = np.where(norms < K_EPSILON, 1.0, norms)
    return accum / safe_norms[:, np.newaxis]


# ---------------------------------------------------------------------------
# Mesh surface
# ---------------------------------------------------------------------------


class TriMesh(Surface):
    """Triangle mesh surface.

    Parameters
    ----------
    vertices : array-like
        Vertex positions. Shape: (V, 3).
    faces : array-like
        Triangle vertex indices (0-based). Shape: (F, 3).
    vertex_normals : array-like, optional
        Per-vertex normals. Computed from the faces when omitted.
    texcoords : array-like, optional
        Per-vertex (u, v). Shape: (V, 2).
    name : str
        Diagnostic name.

    Raises
    ------
    ValueError
        If array shapes disagree or a face references a missing vertex.
    """

    def __init__(
        self,
        vertices: Any,
        faces: Any,
        vertex_normals: Any = None,
        texcoords: Any = None,
        name: str = "",
    ):
        super().__init__(name)
        self.vertices = np.ascontiguousarray(vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.ascontiguousarray(faces, dtype=np.int64).reshape(-1, 3)

        n_verts = len(self.vertices)
        if len(self.faces) and (self.faces.min() < 0 or self.faces.max() >= n_verts):
            raise ValueError(
                f"Face indices out of range for {n_verts} vertices in mesh '{self.name}'"
            )

        self.face_normals = compute_face_normals(self.vertices, self.faces)
        if vertex_normals is None:
            self.vertex_normals = compute_vertex_normals(
                self.vertices, self.faces, self.face_normals
            )
        else:
            self.vertex_normals = np.ascontiguousarray(vertex_normals, dtype=np.float64).reshape(-1, 3)
            if len(self.vertex_normals) != n_verts:
                raise ValueError(
                    f"Expected {n_verts} vertex normals, got {len(self.vertex_normals)}"
                )

        self.texcoords: np.ndarray | None = None
        if texcoords is not None:
            self.texcoords = np.ascontiguousarray(texcoords, dtype=np.float64).reshape(-1, 2)
            if len(self.texcoords) != n_verts:
                raise ValueError(
                    f"Expected {n_verts} texture coordinates, got {len(self.texcoords)}"
                )

        self.arena: SceneArena | None = None
        self.bvh_root: int | None = None

        logger.debug(
            "TriMesh '%s': %d vertices, %d faces, texcoords=%s",
            self.name, n_verts, len(self.faces), self.texcoords is not None,
        )

    @property
    def num_faces(self) -> int:
        return len(self.faces)

    @property
    def has_texcoords(self) -> bool:
        return self.texcoords is not None

    def face_vertices(self, face_index: int) -> np.ndarray:
        """Positions of the three corners of a face. Shape: (3, 3)."""
        return self.vertices[self.faces[face_index]]

    # ------------------------------------------------------------------
    # Acceleration
    # ------------------------------------------------------------------

    def build_bvh(self, arena: SceneArena) -> int:
        """Register one proxy per face in ``arena`` and build a BVH over them.

        The mesh itself must already be registered in the same arena.

        Returns
        -------
        int
            Handle of the face BVH root.
        """
        if self.node_id < 0 or arena[self.node_id] is not self:
            raise ValueError(f"Mesh '{self.name}' must be registered in the arena first")
        if self.num_faces == 0:
            raise ValueError(f"Mesh '{self.name}' has no faces")

        self.arena = arena
        proxies = [
            arena.add(MeshFace(arena, self.node_id, f)) for f in range(self.num_faces)
        ]
        self.bvh_root = build_bvh(arena, proxies, name=f"{self.name}.bvh")
        self.bound_dirty = True
        return self.bvh_root

    # ------------------------------------------------------------------
    # Intersection
    # ------------------------------------------------------------------

    def ray_face_hit(
        self,
        face_index: int,
        ray: Ray,
        t_min: float,
        t_max: float,
        hit_record: HitRecord,
    ) -> bool:
        """Intersect one face and fill ``hit_record`` with the interpolated normal."""
        i0, i1, i2 = self.faces[face_index]
        found, t, beta, gamma = ray_triangle(
            ray.origin,
            ray.direction,
            self.vertices[i0],
            self.vertices[i1],
            self.vertices[i2],
            float(t_min),
            float(t_max),
            K_EPSILON,
        )
        if not found:
            return False

        alpha = 1.0 - beta - gamma
        normal = (
            alpha * self.vertex_normals[i0]
            + beta * self.vertex_normals[i1]
            + gamma * self.vertex_normals[i2]
        )
        norm = np.linalg.norm(normal)
        if norm > 0.0:
            normal = normal / norm

        if self.texcoords is None:
            global_uv = np.array([-1.0, -1.0])
        else:
            global_uv = (
                alpha * self.texcoords[i0]
                + beta * self.texcoords[i1]
                + gamma * self.texcoords[i2]
            )

        hit_record.t = t
        hit_record.point = ray.at(t)
        hit_record.set_normal(ray, normal)
        hit_record.surface = self
        hit_record.face_geouv = FaceGeoUV(
            face_id=int(face_index), uv=np.array([beta, gamma]), global_uv=global_uv
        )
        return True

    def hit(self, ray: Ray, t_min: float, t_max: float, hit_record: HitRecord) -> bool:
        if self.bvh_root is not None:
            return self.arena[self.bvh_root].hit(ray, t_min, t_max, hit_record)

        # No acceleration structure: linear scan over faces.
        if not self.bounds().hit(ray, t_min, t_max):
            return False
        hit_anything = False
        closest = t_max
        for f in range(self.num_faces):
            if self.ray_face_hit(f, ray, t_min, closest, hit_record):
                hit_anything = True
                closest = hit_record.t
        return hit_anything

    def _compute_bounding_box(self, force_recompute: bool) -> AABB:
        if self.bvh_root is not None:
            return self.arena[self.bvh_root].bounds(force_recompute).copy()
        return AABB.from_points(self.vertices)

    def metadata(self) -> dict[str, Any]:
        """Summary statistics for logging and the output sidecar."""
        box = self.bounds()
        return {
            "name": self.name,
            "num_vertices": len(self.vertices),
            "num_faces": self.num_faces,
            "has_texcoords": self.has_texcoords,
            "has_bvh": self.bvh_root is not None,
            "bbox_min": box.min.tolist(),
            "bbox_max": box.max.tolist(),
        }
