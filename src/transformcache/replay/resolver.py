"""Re-associate a persisted record with a node of the live graph.

Strategies are tried in order and the first hit wins:

1. exact hierarchy path
2. case-insensitive hierarchy path
3. segment walk from the matching root; a missing segment yields the
   deepest node reached so far (degraded)
4. recomputed legacy ids (path id or item id)
5. exact name, preferring a child of the record's parent
6. name search over every loaded root for the trailing path segment (low)

Strict mode drops degraded segment-walk results and the final search.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from transformcache.errors import ResolutionFailure
from transformcache.replay.index import GraphIndex
from transformcache.scene.graph import IdentityTable, SceneNode
from transformcache.store.records import TransformRecord

logger = logging.getLogger(__name__)

TRANSIENT_SEGMENT = "InvisibleHighlighter"

EXACT = "exact"
DEGRADED = "degraded"
LOW = "low"


@dataclass
class Resolution:
    node: SceneNode
    method: str
    confidence: str = EXACT


def is_transient(record: TransformRecord) -> bool:
    return TRANSIENT_SEGMENT in record.hierarchy_path.split("/")


class NodeResolver:
    """Finds live nodes for records. Never mutates persisted data."""

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict

    def resolve(self, record: TransformRecord, index: GraphIndex) -> Resolution | None:
        path = record.hierarchy_path
        if path:
            node = index.by_path.get(path)
            if node is not None:
                return Resolution(node, "path")
            node = index.by_lower_path.get(path.lower())
            if node is not None:
                return Resolution(node, "path_ci")
            walked = self._walk_segments(path, index)
            if walked is not None and (walked.confidence == EXACT or not self.strict):
                return walked

        for legacy in (record.path_id, record.item_id):
            if legacy and legacy in index.by_legacy_id:
                return Resolution(index.by_legacy_id[legacy], "legacy_id")

        named = self._by_name(record, index)
        if named is not None:
            return named

        if not self.strict:
            return self._search(record.trailing_name, index)
        return None

    def require(self, record: TransformRecord, index: GraphIndex) -> Resolution:
        resolution = self.resolve(record, index)
        if resolution is None:
            raise ResolutionFailure(
                f"No live node for {record.hierarchy_path or record.object_name}",
                record.unique_id,
            )
        return resolution

    # ── Strategies ────────────────────────────────────────────

    def _walk_segments(self, path: str, index: GraphIndex) -> Resolution | None:
        segments = [s for s in path.split("/") if s]
        if not segments:
            return None
        current = _match_root(segments[0], index.roots)
        if current is None:
            return None
        for segment in segments[1:]:
            if segment == TRANSIENT_SEGMENT:
                return Resolution(current, "transient")
            child = current.child_named(segment)
            if child is None:
                logger.debug("Segment %r missing under %s, degrading", segment, current.path)
                return Resolution(current, "segments", DEGRADED)
            current = child
        return Resolution(current, "segments")

    def _by_name(self, record: TransformRecord, index: GraphIndex) -> Resolution | None:
        candidates = index.by_name.get(record.object_name)
        if not candidates:
            return None
        if record.parent_path:
            parent = index.by_path.get(record.parent_path) or index.by_lower_path.get(
                record.parent_path.lower()
            )
            if parent is not None:
                for node in candidates:
                    if node.parent is parent:
                        return Resolution(node, "name_in_parent")
        return Resolution(candidates[0], "name", DEGRADED)

    def _search(self, name: str, index: GraphIndex) -> Resolution | None:
        if not name:
            return None
        for root in index.all_roots or index.roots:
            for node in root.walk():
                if node.name == name:
                    return Resolution(node, "search", LOW)
        return None


def _match_root(name: str, roots: list[SceneNode]) -> SceneNode | None:
    for root in roots:
        if root.name == name:
            return root
    lowered = name.lower()
    for root in roots:
        if root.name.lower() == lowered:
            return root
    return None


def apply_record(node: SceneNode, record: TransformRecord, identities: IdentityTable) -> None:
    """Overwrite the node's local transform and refresh its identity marker."""
    node.position = tuple(record.position)
    node.rotation = tuple(record.rotation)
    node.scale = tuple(record.scale)
    identities.update(node, record.path_id, record.item_id)
