"""Lookup tables over the live graph, built in one synchronous pass."""

from __future__ import annotations

from dataclasses import dataclass, field

from transformcache.scene import ids
from transformcache.scene.graph import SceneGraph, SceneNode


@dataclass
class GraphIndex:
    by_path: dict[str, SceneNode] = field(default_factory=dict)
    by_lower_path: dict[str, SceneNode] = field(default_factory=dict)
    by_name: dict[str, list[SceneNode]] = field(default_factory=dict)
    by_legacy_id: dict[str, SceneNode] = field(default_factory=dict)
    roots: list[SceneNode] = field(default_factory=list)
    all_roots: list[SceneNode] = field(default_factory=list)

    @classmethod
    def build(cls, graph: SceneGraph, scene: str | None = None) -> GraphIndex:
        """Index every node of ``scene`` (or of all loaded scenes).

        ``all_roots`` always lists every loaded root for the last-resort search.

        The first node seen wins for duplicate paths and legacy ids, so
        lookups are deterministic in traversal order.
        """
        index = cls(roots=graph.roots(scene), all_roots=graph.roots())
        for root in index.roots:
            for node in root.walk():
                path = node.path
                index.by_path.setdefault(path, node)
                index.by_lower_path.setdefault(path.lower(), node)
                index.by_name.setdefault(node.name, []).append(node)
                index.by_legacy_id.setdefault(ids.path_id(path), node)
                index.by_legacy_id.setdefault(ids.item_id(node.name, node.position), node)
        return index

    def __len__(self) -> int:
        return len(self.by_path)
