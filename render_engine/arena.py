"""Scene arena: owner of every surface node.

Composite surfaces (lists, BVH nodes, meshes and their face proxies)
refer to other nodes by integer handle, never by reference, so the scene
graph has no ownership cycles and can be pickled as one flat list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from render_engine.surfaces import Surface


class SceneArena:
    """Append-only store of surfaces addressed by handle.

    A handle is the node's creation index and doubles as its ``node_id``.
    """

    def __init__(self):
        self._nodes: list[Surface] = []

    def add(self, surface: Surface) -> int:
        """Register ``surface`` and return its handle."""
        if surface.node_id >= 0:
            raise ValueError(
                f"Surface '{surface.name}' is already registered with id {surface.node_id}"
            )
        handle = len(self._nodes)
        surface.node_id = handle
        self._nodes.append(surface)
        return handle

    def __getitem__(self, handle: int) -> Surface:
        return self._nodes[handle]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Surface]:
        return iter(self._nodes)

    def count_by_kind(self) -> dict[str, int]:
        """Number of registered nodes per surface class name."""
        counts: dict[str, int] = {}
        for node in self._nodes:
            kind = type(node).__name__
            counts[kind] = counts.get(kind, 0) + 1
        return counts
