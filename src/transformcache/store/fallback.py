"""Durable JSON store for edits that could not be embedded in a patch file.

The whole file is rewritten on every save: written to a ``.temp`` sibling
and then atomically moved over the original.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from transformcache.errors import IoFailure
from transformcache.store.records import TransformRecord

logger = logging.getLogger(__name__)


class FallbackStore:
    """``scene → unique_id → TransformRecord``, persisted as one JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._scenes: dict[str, dict[str, TransformRecord]] = {}

    # ── Persistence ───────────────────────────────────────────

    def load(self) -> int:
        """Read the store file, replacing in-memory state. Returns record count.

        A missing file is an empty store. Malformed records are skipped with a
        warning; an unreadable or non-JSON file raises :class:`IoFailure`.
        """
        self._scenes.clear()
        if not self.path.exists():
            return 0
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise IoFailure(f"Cannot read fallback store: {e}", str(self.path)) from e
        if not isinstance(data, dict):
            raise IoFailure("Fallback store root must be an object", str(self.path))

        loaded = 0
        for scene, payloads in data.items():
            if not isinstance(payloads, dict):
                logger.warning("Skipping malformed scene %r in fallback store", scene)
                continue
            bucket = self._scenes.setdefault(scene, {})
            for uid, payload in payloads.items():
                try:
                    record = TransformRecord.from_payload(payload)
                except ValueError as e:
                    logger.warning("Skipping record %s in %s: %s", uid, scene, e)
                    continue
                bucket[record.unique_id] = record
                loaded += 1
        logger.info("Loaded %d records for %d scenes from %s", loaded, len(self._scenes), self.path)
        return loaded

    def save(self) -> None:
        """Rewrite the whole store atomically."""
        payload = {
            scene: {uid: record.to_payload() for uid, record in records.items()}
            for scene, records in self._scenes.items()
            if records
        }
        temp = self.path.with_name(self.path.name + ".temp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(temp, self.path)
        except OSError as e:
            raise IoFailure(f"Cannot write fallback store: {e}", str(self.path)) from e

    # ── Records ───────────────────────────────────────────────

    def scenes(self) -> list[str]:
        return [scene for scene, records in self._scenes.items() if records]

    def records(self, scene: str) -> list[TransformRecord]:
        return list(self._scenes.get(scene, {}).values())

    def get(self, scene: str, unique_id: str) -> TransformRecord | None:
        return self._scenes.get(scene, {}).get(unique_id)

    def merge(self, scene: str, records: list[TransformRecord]) -> None:
        """Upsert records by id.

        A spawned record never loses a known ``origin_reference``.
        """
        bucket = self._scenes.setdefault(scene, {})
        for record in records:
            existing = bucket.get(record.unique_id)
            if (
                existing is not None
                and existing.origin_reference
                and not record.origin_reference
                and (record.is_spawned or existing.is_spawned)
            ):
                record = record.copy(origin_reference=existing.origin_reference)
            bucket[record.unique_id] = record

    def drop_scene(self, scene: str) -> int:
        return len(self._scenes.pop(scene, {}))

    def remove_destroyed(self, scene: str) -> int:
        bucket = self._scenes.get(scene, {})
        doomed = [uid for uid, record in bucket.items() if record.is_destroyed]
        for uid in doomed:
            del bucket[uid]
        return len(doomed)

    def __len__(self) -> int:
        return sum(len(records) for records in self._scenes.values())
