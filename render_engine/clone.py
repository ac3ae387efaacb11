"""Deep copies of arena surfaces.

``clone_surface`` copies geometry and recursively clones the children of
composite surfaces into new arena nodes. Materials are shared between a
surface and its clone.
"""

from __future__ import annotations

import logging

from render_engine.arena import SceneArena
from render_engine.bvh import BVHNode
from render_engine.mesh import TriMesh
from render_engine.surfaces import MeshFace, Sphere, Surface, SurfaceList, Triangle

logger = logging.getLogger(__name__)


def clone_surface(arena: SceneArena, handle: int) -> int:
    """Clone the surface at ``handle`` and return the handle of the copy.

    Raises
    ------
    TypeError
        If the node is not one of the known surface kinds.
    """
    source = arena[handle]

    if isinstance(source, Sphere):
        copy: Surface = Sphere(source.center, source.radius, name=source.name)

    elif isinstance(source, Triangle):
        copy = Triangle(source.points, name=source.name)

    elif isinstance(source, TriMesh):
        copy = TriMesh(
            source.vertices.copy(),
            source.faces.copy(),
            vertex_normals=source.vertex_normals.copy(),
            texcoords=None if source.texcoords is None else source.texcoords.copy(),
            name=source.name,
        )
        copy.material = source.material
        new_handle = arena.add(copy)
        if source.bvh_root is not None:
            copy.build_bvh(arena)
        return new_handle

    elif isinstance(source, MeshFace):
        copy = MeshFace(arena, source.mesh_handle, source.face_index, name=source.name)

    elif isinstance(source, SurfaceList):
        copy = SurfaceList(
            arena, [clone_surface(arena, h) for h in source.handles], name=source.name
        )

    elif isinstance(source, BVHNode):
        left = clone_surface(arena, source.left)
        right = None if source.right is None else clone_surface(arena, source.right)
        copy = BVHNode(arena, left, right, name=source.name)

    else:
        raise TypeError(f"Cannot clone surface of type {type(source).__name__}")

    copy.material = source.material
    logger.debug("Cloned %s '%s' (id %d)", type(source).__name__, source.name, handle)
    return arena.add(copy)
