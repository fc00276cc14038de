"""TransformCache facade: the single entry point host integrations call.

Responsibilities:
1. Own the process-wide state (ledger, fallback store, registry) created by
   ``initialize()`` and inject it into collaborators
2. Capture edits from live nodes into the ledger
3. Commit staged edits to patch files, falling back to the JSON store
4. On scene load, replay fallback records, sweep destroyed nodes and
   respawn spawned ones
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from transformcache.catalog import SpawnCatalog
from transformcache.config import CacheConfig
from transformcache.errors import IoFailure
from transformcache.patch.applier import PatchApplier
from transformcache.patch.resolver import SceneFileResolver
from transformcache.replay.batch import BatchReplayer, BatchReport
from transformcache.replay.destruction import Destruction, SweepReport
from transformcache.replay.resolver import NodeResolver
from transformcache.scene.graph import IdentityTable, SceneGraph, SceneNode
from transformcache.scene.rotation import Vector3
from transformcache.scheduler.jobs import RetryPolicy, run_with_retries
from transformcache.store.fallback import FallbackStore
from transformcache.store.ledger import CommitReport, TransactionLedger
from transformcache.store.records import TransformRecord
from transformcache.store.registry import ModifiedSceneRegistry

logger = logging.getLogger(__name__)


@dataclass
class SceneLoadReport:
    """What happened when a scene was (re)loaded."""

    scene: str
    already_patched: bool = False
    replay: BatchReport | None = None
    attempts: int = 0
    sweep: SweepReport | None = None
    respawned: int = 0
    error: str = ""


class TransformCache:
    """Persistence and replay of transform edits for one live scene graph."""

    def __init__(
        self,
        config: CacheConfig,
        graph: SceneGraph,
        identities: IdentityTable | None = None,
        catalog: SpawnCatalog | None = None,
    ) -> None:
        self.config = config
        self.graph = graph
        self.identities = identities or IdentityTable()
        self.catalog = catalog or SpawnCatalog(
            config.paths.catalog_dir, config.catalog.ready_timeout
        )
        self._initialized = False

    # ── Lifecycle ────────────────────────────────────────────

    def initialize(self) -> bool:
        """Create the shared state. Idempotent; returns False if the store was unreadable."""
        if self._initialized:
            return True
        self.scene_files = SceneFileResolver(self.config)
        self.applier = PatchApplier(self.config, self.scene_files)
        self.store = FallbackStore(self.config.paths.store_file)
        self.registry = ModifiedSceneRegistry(self.scene_files, self.config.sniff_bytes)
        self.ledger = TransactionLedger(self.applier, self.store, self.registry)
        self.resolver = NodeResolver(strict=self.config.replay.strict_resolution)
        self.replayer = BatchReplayer(
            self.graph,
            self.identities,
            self.resolver,
            batch_size=self.config.replay.batch_size,
            threshold=self.config.replay.acceptance_threshold,
        )
        self.destruction = Destruction(
            self.graph, self.identities, self.ledger, self.config.replay.batch_size
        )
        self.retry_policy = RetryPolicy.from_config(self.config.replay)
        self._initialized = True

        ok = True
        try:
            self.store.load()
        except IoFailure as e:
            logger.error("Fallback store unreadable, starting empty: %s", e)
            ok = False
        logger.info(
            "TransformCache initialized (root=%s, %d fallback records)",
            self.config.paths.managed_root,
            len(self.store),
        )
        return ok

    def _ensure(self) -> None:
        if not self._initialized:
            self.initialize()

    # ── Editing ──────────────────────────────────────────────

    def stage_edit(self, node: SceneNode, scene: str | None = None) -> TransformRecord | None:
        """Capture the node's current transform into the ledger."""
        self._ensure()
        scene = scene or node.scene
        if not scene:
            logger.warning("Cannot stage %s: node is not in a loaded scene", node.name)
            return None
        marker = self.identities.ensure(node)
        record = TransformRecord.capture(
            node,
            scene,
            is_destroyed=marker.is_destroyed,
            is_spawned=marker.is_spawned,
            origin_reference=marker.origin_reference,
        )
        self.ledger.stage(scene, record)
        return record

    def mark_destroyed(self, node: SceneNode) -> list[TransformRecord]:
        self._ensure()
        if not node.scene:
            logger.warning("Cannot destroy %s: node is not in a loaded scene", node.name)
            return []
        return self.destruction.mark_destroyed(node)

    async def spawn(
        self, origin: str, at: Vector3, scene: str | None = None
    ) -> SceneNode | None:
        """Instantiate a catalog entry (or ``bundle:`` reference) at ``at``."""
        self._ensure()
        scene = scene or next(iter(self.graph.scenes()), None)
        if scene is None:
            logger.warning("Cannot spawn %s: no scene loaded", origin)
            return None
        await self.catalog.wait_ready()
        entry = self.catalog.lookup(origin)
        if entry is None:
            logger.warning("Unknown spawn origin %r", origin)
            return None

        node = entry.instantiate()
        node.position = tuple(at)
        self.graph.add_root(scene, node)
        marker = self.identities.ensure(node)
        marker.is_spawned = True
        marker.origin_reference = origin
        self.ledger.stage(
            scene,
            TransformRecord.capture(node, scene, is_spawned=True, origin_reference=origin),
        )
        logger.info("Spawned %s in %s from %s", node.name, scene, origin)
        return node

    def save_all(self) -> CommitReport:
        self._ensure()
        return self.ledger.commit()

    def discard_pending(self) -> None:
        self._ensure()
        self.ledger.discard()

    # ── Scene loading ────────────────────────────────────────

    async def on_scene_loaded(self, scene: str) -> SceneLoadReport:
        """Loader hook: replay persisted edits unless the scene is already patched."""
        self._ensure()
        if self.registry.is_modified(scene):
            logger.info("Scene %s already carries its edits, skipping replay", scene)
            return SceneLoadReport(scene=scene, already_patched=True)
        return await self._reapply(scene, self.store.records(scene))

    async def force_reapply(self, scene: str) -> SceneLoadReport:
        """Replay a scene's edits even if it was detected as patched."""
        self._ensure()
        self.registry.forget(scene)
        try:
            records = self.store.records(scene) or self.applier.extract(scene)
        except Exception as e:
            logger.error("Reading patch contents for %s failed: %s", scene, e)
            return SceneLoadReport(scene=scene, error=str(e))
        return await self._reapply(scene, records)

    async def _reapply(self, scene: str, records: list[TransformRecord]) -> SceneLoadReport:
        report = SceneLoadReport(scene=scene)
        if not records:
            logger.debug("No persisted edits for %s", scene)
            return report
        try:
            outcome = await run_with_retries(
                f"Replay of {scene}",
                lambda: self.replayer.replay(scene, records),
                lambda batch: batch.accepted,
                self.retry_policy,
            )
            report.replay = outcome.result
            report.attempts = outcome.attempts

            self.destruction.restore(scene, records, self.resolver)
            # Keep destroyed records so the deletion survives the next load too.
            report.sweep = await self.destruction.sweep(scene, cleanup=False)
            report.respawned = await self._respawn(scene, records)
        except Exception as e:
            logger.error("Reapplying edits to %s failed: %s", scene, e)
            report.error = str(e)
        return report

    async def _respawn(self, scene: str, records: list[TransformRecord]) -> int:
        spawned = [r for r in records if r.is_spawned and not r.is_destroyed]
        if not spawned:
            return 0
        await self.catalog.wait_ready()
        count = 0
        for record in spawned:
            if record.hierarchy_path and self.graph.find(record.hierarchy_path, scene):
                continue
            entry = None
            if record.origin_reference:
                entry = self.catalog.lookup(record.origin_reference)
            entry = entry or self.catalog.get(record.base_name) or self.catalog.first()
            if entry is None:
                logger.warning("No catalog entry to respawn %s", record.object_name)
                continue

            node = entry.instantiate()
            node.name = record.object_name
            parent = self.graph.find(record.parent_path, scene) if record.parent_path else None
            if parent is not None:
                parent.add_child(node)
            else:
                self.graph.add_root(scene, node)
            node.position = tuple(record.position)
            node.rotation = tuple(record.rotation)
            node.scale = tuple(record.scale)
            marker = self.identities.ensure(node)
            marker.is_spawned = True
            marker.origin_reference = record.origin_reference or entry.name
            count += 1
        if count:
            logger.info("Respawned %d nodes in %s", count, scene)
        return count

    # ── Maintenance ──────────────────────────────────────────

    def cleanup_destroyed(self, scene: str) -> int:
        """Drop a scene's destroyed records from the fallback store."""
        self._ensure()
        try:
            return self.ledger.cleanup_destroyed(scene)
        except Exception as e:
            logger.error("Cleanup of %s failed: %s", scene, e)
            return 0
