"""The persisted edit record and its JSON payload form."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from transformcache.scene import ids
from transformcache.scene.graph import SceneNode
from transformcache.scene.rotation import Vector3

SPAWNED_SUFFIX = "_spawned"
BUNDLE_PREFIX = "bundle:"


@dataclass
class TransformRecord:
    """One persisted edit of a node's transform, existence or origin."""

    unique_id: str
    object_name: str
    hierarchy_path: str
    scene_name: str = ""
    parent_path: str = ""
    position: Vector3 = (0.0, 0.0, 0.0)
    rotation: Vector3 = (0.0, 0.0, 0.0)
    scale: Vector3 = (1.0, 1.0, 1.0)
    is_destroyed: bool = False
    is_spawned: bool = False
    origin_reference: str = ""
    path_id: str = ""
    item_id: str = ""
    children: list[str] = field(default_factory=list)

    @classmethod
    def capture(
        cls,
        node: SceneNode,
        scene: str,
        *,
        is_destroyed: bool = False,
        is_spawned: bool = False,
        origin_reference: str = "",
    ) -> TransformRecord:
        """Snapshot a live node's current local transform."""
        path = node.path
        return cls(
            unique_id=ids.unique_id(scene, path),
            object_name=node.name,
            hierarchy_path=path,
            scene_name=scene,
            parent_path=node.parent_path,
            position=tuple(node.position),
            rotation=tuple(node.rotation),
            scale=tuple(node.scale),
            is_destroyed=is_destroyed,
            is_spawned=is_spawned,
            origin_reference=origin_reference,
            path_id=ids.path_id(path),
            item_id=ids.item_id(node.name, node.position),
            children=[ids.unique_id(scene, child.path) for child in node.children],
        )

    def copy(self, **changes: Any) -> TransformRecord:
        return replace(self, children=list(self.children), **changes)

    @property
    def trailing_name(self) -> str:
        """Last segment of the hierarchy path (falls back to the object name)."""
        if self.hierarchy_path:
            return self.hierarchy_path.rsplit("/", 1)[-1]
        return self.object_name

    @property
    def base_name(self) -> str:
        """Object name without the spawn suffix."""
        if self.object_name.endswith(SPAWNED_SUFFIX):
            return self.object_name[: -len(SPAWNED_SUFFIX)]
        return self.object_name

    # ── Payload conversion ────────────────────────────────────

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation of the record."""
        return {
            "unique_id": self.unique_id,
            "object_name": self.object_name,
            "hierarchy_path": self.hierarchy_path,
            "scene_name": self.scene_name,
            "parent_path": self.parent_path,
            "position": list(self.position),
            "rotation": list(self.rotation),
            "scale": list(self.scale),
            "is_destroyed": self.is_destroyed,
            "is_spawned": self.is_spawned,
            "origin_reference": self.origin_reference,
            "path_id": self.path_id,
            "item_id": self.item_id,
            "children": list(self.children),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TransformRecord:
        """Build a record from its stored payload. Unknown keys are ignored."""
        if not isinstance(payload, dict):
            raise ValueError("Invalid record payload: expected a mapping")
        unique_id = payload.get("unique_id")
        if not unique_id:
            raise ValueError("Invalid record payload: missing unique_id")
        children = payload.get("children") or []
        if not isinstance(children, (list, tuple)):
            raise ValueError("Invalid record payload: children must be a list")
        return cls(
            unique_id=str(unique_id),
            object_name=str(payload.get("object_name", "")),
            hierarchy_path=str(payload.get("hierarchy_path", "")),
            scene_name=str(payload.get("scene_name", "")),
            parent_path=str(payload.get("parent_path") or ""),
            position=_vector(payload.get("position"), (0.0, 0.0, 0.0), "position"),
            rotation=_vector(payload.get("rotation"), (0.0, 0.0, 0.0), "rotation"),
            scale=_vector(payload.get("scale"), (1.0, 1.0, 1.0), "scale"),
            is_destroyed=bool(payload.get("is_destroyed", False)),
            is_spawned=bool(payload.get("is_spawned", False)),
            origin_reference=str(payload.get("origin_reference") or ""),
            path_id=str(payload.get("path_id") or ""),
            item_id=str(payload.get("item_id") or ""),
            children=[str(c) for c in children],
        )


def _vector(value: object, default: Vector3, name: str) -> Vector3:
    if value is None:
        return default
    if isinstance(value, dict):
        value = [value.get("x"), value.get("y"), value.get("z")]
    if not isinstance(value, Iterable) or isinstance(value, (str, bytes)):
        raise ValueError(f"Invalid record payload: {name} must be a 3-vector")
    items = list(value)
    if len(items) != 3:
        raise ValueError(f"Invalid record payload: {name} must have 3 components")
    try:
        return (float(items[0]), float(items[1]), float(items[2]))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid record payload: {name} is not numeric") from exc
