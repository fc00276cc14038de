"""Live scene graph model and the identity side table.

The host engine owns its nodes; this module describes the narrow surface the
persistence core needs from them (name, parent/children, local transform,
active flag) and keeps identity markers in a side table keyed by node handle
instead of attaching components to the host's node type.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from transformcache.scene import ids
from transformcache.scene.rotation import Vector3

logger = logging.getLogger(__name__)

_handles = itertools.count(1)


class SceneNode:
    """A node in the live graph. Identity is the ``handle``, not the name."""

    def __init__(
        self,
        name: str,
        *,
        position: Vector3 = (0.0, 0.0, 0.0),
        rotation: Vector3 = (0.0, 0.0, 0.0),
        scale: Vector3 = (1.0, 1.0, 1.0),
        active: bool = True,
    ) -> None:
        self.handle = next(_handles)
        self.name = name
        self.position = position
        self.rotation = rotation
        self.scale = scale
        self.active = active
        self.parent: SceneNode | None = None
        self.children: list[SceneNode] = []
        self.scene: str | None = None

    def __repr__(self) -> str:
        return f"SceneNode({self.path!r}, handle={self.handle})"

    # ── Hierarchy ─────────────────────────────────────────────

    def add_child(self, child: SceneNode) -> SceneNode:
        if child.parent is not None:
            child.parent.children.remove(child)
        child.parent = self
        self.children.append(child)
        child._set_scene(self.scene)
        return child

    def detach(self) -> None:
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    def _set_scene(self, scene: str | None) -> None:
        for node in self.walk():
            node.scene = scene

    def walk(self) -> Iterator[SceneNode]:
        """Depth-first, pre-order traversal including self."""
        yield self
        for child in list(self.children):
            yield from child.walk()

    def child_named(self, name: str) -> SceneNode | None:
        """Exact child name match first, then case-insensitive."""
        for child in self.children:
            if child.name == name:
                return child
        lowered = name.lower()
        for child in self.children:
            if child.name.lower() == lowered:
                return child
        return None

    @property
    def path(self) -> str:
        """Hierarchy path: ``/``-joined names from the root to this node."""
        names = [self.name]
        parent = self.parent
        while parent is not None:
            names.append(parent.name)
            parent = parent.parent
        return "/".join(reversed(names))

    @property
    def parent_path(self) -> str:
        return self.parent.path if self.parent is not None else ""


class SceneGraph:
    """The set of loaded scenes and their root nodes."""

    def __init__(self) -> None:
        self._roots: dict[str, list[SceneNode]] = {}

    def add_root(self, scene: str, node: SceneNode) -> SceneNode:
        node.detach()
        node._set_scene(scene)
        self._roots.setdefault(scene, []).append(node)
        return node

    def unload(self, scene: str) -> None:
        self._roots.pop(scene, None)

    def scenes(self) -> list[str]:
        return list(self._roots)

    def roots(self, scene: str | None = None) -> list[SceneNode]:
        """Root nodes of one scene, or of every loaded scene."""
        if scene is not None:
            return list(self._roots.get(scene, []))
        return [root for roots in self._roots.values() for root in roots]

    def walk(self, scene: str | None = None) -> Iterator[SceneNode]:
        for root in self.roots(scene):
            yield from root.walk()

    def find(self, path: str, scene: str | None = None) -> SceneNode | None:
        """Exact hierarchy path lookup."""
        for node in self.walk(scene):
            if node.path == path:
                return node
        return None

    def remove(self, node: SceneNode) -> None:
        """Physically remove ``node`` and its subtree from the graph."""
        if node.parent is not None:
            node.detach()
            return
        for roots in self._roots.values():
            if node in roots:
                roots.remove(node)
                return
        raise KeyError(f"node {node.path!r} is not part of the graph")


# ── Identity side table ───────────────────────────────────────


@dataclass
class IdentityMarker:
    """Identity metadata remembered for a live node."""

    path_id: str = ""
    item_id: str = ""
    is_spawned: bool = False
    is_destroyed: bool = False
    origin_reference: str = ""


class IdentityTable:
    """Side table mapping node handles to identity markers."""

    def __init__(self) -> None:
        self._markers: dict[int, IdentityMarker] = {}

    def get(self, node: SceneNode) -> IdentityMarker | None:
        return self._markers.get(node.handle)

    def ensure(self, node: SceneNode) -> IdentityMarker:
        """Return the node's marker, creating one from its current state."""
        marker = self._markers.get(node.handle)
        if marker is None:
            marker = IdentityMarker(
                path_id=ids.path_id(node.path),
                item_id=ids.item_id(node.name, node.position),
            )
            self._markers[node.handle] = marker
        return marker

    def update(self, node: SceneNode, path_id: str, item_id: str) -> IdentityMarker:
        marker = self.ensure(node)
        if path_id:
            marker.path_id = path_id
        if item_id:
            marker.item_id = item_id
        return marker

    def destroyed(self) -> list[int]:
        return [handle for handle, m in self._markers.items() if m.is_destroyed]

    def discard(self, node: SceneNode) -> None:
        self._markers.pop(node.handle, None)

    def __len__(self) -> int:
        return len(self._markers)


# ── Host capability detection ─────────────────────────────────


@dataclass
class Capability:
    """Result of probing a host object for an optional hook."""

    name: str
    found: bool
    target: Any = field(default=None, repr=False)


def detect_capability(host: object | None, name: str) -> Capability:
    """Look up an optional callable hook on ``host`` without raising."""
    if host is None:
        return Capability(name=name, found=False)
    target = getattr(host, name, None)
    if target is None or not callable(target):
        logger.debug("Host capability %s not found on %r", name, type(host).__name__)
        return Capability(name=name, found=False)
    return Capability(name=name, found=True, target=target)
