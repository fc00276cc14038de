"""Staged edits and their transactional commit.

Edits are staged per scene and committed together. Each dirty scene is
embedded into its patch file; a scene whose patch write fails has its edits
merged into the fallback store instead. Commit never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from transformcache.errors import CommitFailure
from transformcache.store.fallback import FallbackStore
from transformcache.store.records import TransformRecord

if TYPE_CHECKING:
    from transformcache.store.registry import ModifiedSceneRegistry

logger = logging.getLogger(__name__)


class SceneWriter(Protocol):
    def apply(self, scene: str, records: list[TransformRecord]) -> bool: ...


@dataclass
class CommitReport:
    """Outcome of one commit: which scenes were patched, which fell back."""

    patched: list[str] = field(default_factory=list)
    fallback: list[str] = field(default_factory=list)
    committed: dict[str, int] = field(default_factory=dict)
    store_saved: bool = False

    @property
    def empty(self) -> bool:
        return not self.committed


class TransactionLedger:
    """In-memory ``scene → unique_id → record`` map with commit/discard."""

    def __init__(
        self,
        writer: SceneWriter,
        store: FallbackStore,
        registry: ModifiedSceneRegistry | None = None,
    ) -> None:
        self._writer = writer
        self._store = store
        self._registry = registry
        self._staged: dict[str, dict[str, TransformRecord]] = {}

    @property
    def store(self) -> FallbackStore:
        return self._store

    def stage(self, scene: str, record: TransformRecord) -> None:
        """Upsert a record; the last write for a ``unique_id`` wins."""
        bucket = self._staged.setdefault(scene, {})
        previous = bucket.get(record.unique_id)
        if previous is not None and previous.is_destroyed and not record.is_destroyed:
            # A later transform edit does not resurrect a destroyed node.
            record = record.copy(is_destroyed=True)
        bucket[record.unique_id] = record
        logger.debug("Staged %s in %s", record.unique_id, scene)

    def has_pending(self, scene: str | None = None) -> bool:
        if scene is not None:
            return bool(self._staged.get(scene))
        return any(self._staged.values())

    def pending(self, scene: str) -> dict[str, TransformRecord]:
        return dict(self._staged.get(scene, {}))

    def discard(self) -> None:
        count = sum(len(records) for records in self._staged.values())
        self._staged.clear()
        if count:
            logger.info("Discarded %d staged edits", count)

    def commit(self) -> CommitReport:
        """Write every dirty scene, demoting failures to the fallback store."""
        report = CommitReport()
        dirty = {scene: records for scene, records in self._staged.items() if records}
        if not dirty:
            return report

        for scene, staged in dirty.items():
            records = list(staged.values())
            report.committed[scene] = len(records)
            try:
                if not self._writer.apply(scene, records):
                    raise CommitFailure("patch write reported failure", scene)
            except Exception as e:
                logger.warning("Scene %s not patched (%s), using fallback store", scene, e)
                self._store.merge(scene, records)
                report.fallback.append(scene)
                continue
            self._store.drop_scene(scene)
            report.patched.append(scene)
            if self._registry is not None:
                self._registry.register([scene])

        try:
            self._store.save()
            report.store_saved = True
        except Exception as e:
            logger.error("Failed to persist fallback store: %s", e)
        finally:
            self._staged.clear()

        logger.info(
            "Committed %d scenes (%d patched, %d fallback)",
            len(report.committed),
            len(report.patched),
            len(report.fallback),
        )
        return report

    def cleanup_destroyed(self, scene: str) -> int:
        """Remove destroyed records of ``scene`` from the fallback store."""
        removed = self._store.remove_destroyed(scene)
        if removed:
            try:
                self._store.save()
            except Exception as e:
                logger.error("Failed to persist fallback store after cleanup: %s", e)
        logger.info("Cleaned %d destroyed records from %s", removed, scene)
        return removed
