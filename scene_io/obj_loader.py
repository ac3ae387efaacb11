"""Wavefront OBJ loader producing :class:`~render_engine.mesh.TriMesh` surfaces.

Parsing is delegated to ``trimesh``, loaded with ``process=False`` so
vertices are neither merged nor reordered beyond what OBJ requires:

- quads and larger polygons are triangulated (fan),
- corners that share a position but differ in texture coordinate or
  normal become separate vertices,
- negative indices count back from the end of the vertex list.

Vertex normals come from the file when every corner has one and are
otherwise computed by trimesh from the face normals.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import trimesh

from render_engine.mesh import TriMesh

logger = logging.getLogger(__name__)


def _texcoords(mesh: trimesh.Trimesh) -> np.ndarray | None:
    uv = getattr(mesh.visual, "uv", None)
    if uv is None:
        return None
    uv = np.asarray(uv, dtype=np.float64)
    if uv.shape != (len(mesh.vertices), 2):
        return None
    return uv


def load_obj(path: str | Path, name: str = "") -> TriMesh:
    """Load an OBJ file into a triangle mesh.

    Parameters
    ----------
    path : str or Path
        OBJ file.
    name : str
        Mesh name, the file stem by default.

    Returns
    -------
    TriMesh
        Mesh with one texture coordinate per vertex when the file maps
        every corner to one.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file is malformed or has no faces.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Mesh file not found: {path}")

    try:
        scene = trimesh.load_scene(path, file_type="obj", process=False)
    except (IndexError, ValueError) as exc:
        raise ValueError(f"Malformed OBJ file {path}: {exc}") from exc

    # OBJ parts carry identity transforms; taking them from the scene
    # directly keeps the normals read from the file.
    parts = [
        g for g in scene.geometry.values()
        if isinstance(g, trimesh.Trimesh) and len(g.faces) > 0
    ]
    if not parts:
        raise ValueError(f"OBJ file {path} contains no faces")
    mesh = parts[0] if len(parts) == 1 else trimesh.util.concatenate(parts)

    vertices = np.asarray(mesh.vertices, dtype=np.float64)
    faces = np.asarray(mesh.faces, dtype=np.int64)
    texcoords = _texcoords(mesh)

    normals = np.asarray(mesh.vertex_normals, dtype=np.float64)
    lengths = np.linalg.norm(normals, axis=1)
    normals = normals / np.where(lengths > 0.0, lengths, 1.0)[:, np.newaxis]

    result = TriMesh(
        vertices,
        faces,
        vertex_normals=normals,
        texcoords=texcoords,
        name=name or path.stem,
    )
    logger.info(
        "Loaded OBJ %s: %d vertices, %d triangles (texcoords=%s)",
        path.name, len(vertices), len(faces), texcoords is not None,
    )
    return result
