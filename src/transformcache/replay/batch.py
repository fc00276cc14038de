"""Replay a scene's records onto the live graph as a cooperative task."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from transformcache.replay.index import GraphIndex
from transformcache.replay.resolver import NodeResolver, apply_record, is_transient
from transformcache.scene.graph import IdentityTable, SceneGraph
from transformcache.store.records import TransformRecord

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    """Counts for one replay pass.

    ``applied`` includes destroyed, spawned and transient records, which are
    handled by the sweep and respawn passes. ``skipped`` are records with no
    live node. ``failed`` are records whose application raised, plus
    unresolved records in strict mode; only they count against acceptance.
    """

    scene: str
    total: int = 0
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    threshold: float = 0.9
    methods: dict[str, int] = field(default_factory=dict)

    @property
    def ratio(self) -> float:
        if self.total == 0:
            return 1.0
        return (self.applied + self.skipped) / self.total

    @property
    def accepted(self) -> bool:
        # Small tolerance so 9/10 against 0.9 is not lost to float rounding.
        return self.ratio >= self.threshold - 1e-9


class BatchReplayer:
    def __init__(
        self,
        graph: SceneGraph,
        identities: IdentityTable,
        resolver: NodeResolver,
        *,
        batch_size: int = 10,
        threshold: float = 0.9,
    ) -> None:
        self._graph = graph
        self._identities = identities
        self._resolver = resolver
        self._batch_size = max(1, batch_size)
        self._threshold = threshold

    async def replay(self, scene: str, records: list[TransformRecord]) -> BatchReport:
        """Apply every record independently. Partial results are never undone."""
        # Build the index before the first suspension point.
        index = GraphIndex.build(self._graph, scene)
        report = BatchReport(scene=scene, total=len(records), threshold=self._threshold)
        logger.info("Replaying %d records onto %s (%d nodes)", len(records), scene, len(index))

        for i, record in enumerate(records, 1):
            self._replay_one(record, index, report)
            if i % self._batch_size == 0:
                await asyncio.sleep(0)

        level = logging.INFO if report.accepted else logging.WARNING
        logger.log(
            level,
            "Replay of %s: %d applied, %d skipped, %d failed of %d (%s)",
            scene,
            report.applied,
            report.skipped,
            report.failed,
            report.total,
            "accepted" if report.accepted else "rejected",
        )
        return report

    def _replay_one(self, record: TransformRecord, index: GraphIndex, report: BatchReport) -> None:
        if record.is_destroyed or record.is_spawned or is_transient(record):
            report.applied += 1
            return
        try:
            resolution = self._resolver.resolve(record, index)
            if resolution is None:
                logger.warning(
                    "No live node for %s (%s)", record.hierarchy_path or record.object_name, record.unique_id
                )
                if self._resolver.strict:
                    report.failed += 1
                else:
                    report.skipped += 1
                return
            apply_record(resolution.node, record, self._identities)
        except Exception as e:
            logger.error("Failed to apply %s: %s", record.unique_id, e)
            report.failed += 1
            return
        report.applied += 1
        report.methods[resolution.method] = report.methods.get(resolution.method, 0) + 1
        logger.debug(
            "Applied %s to %s via %s (%s)",
            record.unique_id,
            resolution.node.path,
            resolution.method,
            resolution.confidence,
        )
