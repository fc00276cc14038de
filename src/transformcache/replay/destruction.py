"""Soft deletion of nodes and the later physical sweep.

Marking a node destroyed deactivates it and its whole subtree at once and
stages one destroyed record per node. Nodes are only removed from the graph
by :meth:`Destruction.sweep`.
"""

from __future__ import annotations

import asyncio
import gc
import logging
from dataclasses import dataclass

from transformcache.replay.index import GraphIndex
from transformcache.replay.resolver import EXACT, NodeResolver
from transformcache.scene.graph import IdentityTable, SceneGraph, SceneNode
from transformcache.store.ledger import TransactionLedger
from transformcache.store.records import TransformRecord

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    scene: str
    removed: int = 0
    failed: int = 0
    cleaned: int = 0


class Destruction:
    def __init__(
        self,
        graph: SceneGraph,
        identities: IdentityTable,
        ledger: TransactionLedger,
        batch_size: int = 10,
    ) -> None:
        self._graph = graph
        self._identities = identities
        self._ledger = ledger
        self._batch_size = max(1, batch_size)

    def mark_destroyed(self, node: SceneNode, scene: str | None = None) -> list[TransformRecord]:
        """Soft-delete ``node`` and every descendant, depth-first."""
        scene = scene or node.scene or ""
        records = []
        for target in node.walk():
            marker = self._identities.ensure(target)
            marker.is_destroyed = True
            target.active = False
            record = TransformRecord.capture(
                target,
                scene,
                is_destroyed=True,
                is_spawned=marker.is_spawned,
                origin_reference=marker.origin_reference,
            )
            self._ledger.stage(scene, record)
            records.append(record)
        logger.info("Marked %s destroyed (%d records)", node.path, len(records))
        return records

    def restore(
        self, scene: str, records: list[TransformRecord], resolver: NodeResolver
    ) -> int:
        """Re-mark nodes of destroyed records after a reload. Returns the count found.

        Only exact resolutions are honoured so a guess never hides a node.
        """
        destroyed = [r for r in records if r.is_destroyed and not r.is_spawned]
        if not destroyed:
            return 0
        index = GraphIndex.build(self._graph, scene)
        found = 0
        for record in destroyed:
            resolution = resolver.resolve(record, index)
            if resolution is None or resolution.confidence != EXACT:
                logger.debug("Destroyed node %s not present", record.hierarchy_path)
                continue
            self._identities.ensure(resolution.node).is_destroyed = True
            resolution.node.active = False
            found += 1
        return found

    async def sweep(self, scene: str, cleanup: bool = True) -> SweepReport:
        """Physically remove destroyed nodes of ``scene`` from the graph.

        Each removal is independent; failures are counted and skipped. With
        ``cleanup`` the scene's destroyed records are then dropped from the
        fallback store. Ends with a full garbage collection pass.
        """
        report = SweepReport(scene=scene)
        doomed = []
        for node in self._graph.walk(scene):
            marker = self._identities.get(node)
            if marker is not None and marker.is_destroyed:
                doomed.append(node)
        for i, node in enumerate(doomed, 1):
            try:
                self._graph.remove(node)
                self._identities.discard(node)
                report.removed += 1
            except Exception as e:
                logger.warning("Failed to remove %s: %s", node.path, e)
                report.failed += 1
            if i % self._batch_size == 0:
                await asyncio.sleep(0)

        if cleanup:
            report.cleaned = self._ledger.cleanup_destroyed(scene)
        collected = gc.collect()
        logger.info(
            "Swept %s: %d removed, %d failed, %d records cleaned (gc freed %d)",
            scene,
            report.removed,
            report.failed,
            report.cleaned,
            collected,
        )
        return report
