"""Catalog of spawnable prefabs.

Each entry is a markdown file with YAML frontmatter::

    ---
    name: Crate
    category: props
    bundle: props/crate.bundle
    tags: [wood, cover]
    children: [Lid, Body]
    ---
    Free-form notes.

The directory is scanned once into an in-memory index. Loading runs as a
background task; callers wait a bounded time and then force a synchronous
load.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

import frontmatter

from transformcache.scene.graph import SceneNode
from transformcache.store.records import BUNDLE_PREFIX, SPAWNED_SUFFIX

logger = logging.getLogger(__name__)


@dataclass
class CatalogEntry:
    name: str
    category: str = ""
    bundle: str = ""
    tags: list[str] = field(default_factory=list)
    children: list[str] = field(default_factory=list)
    notes: str = ""

    def instantiate(self) -> SceneNode:
        node = SceneNode(f"{self.name}{SPAWNED_SUFFIX}")
        for child in self.children:
            node.add_child(SceneNode(child))
        return node


class SpawnCatalog:
    """Read-only index of prefab entries keyed by name."""

    def __init__(self, directory: Path | None, ready_timeout: float = 10.0) -> None:
        self.directory = directory
        self.ready_timeout = ready_timeout
        self._entries: dict[str, CatalogEntry] = {}
        self._ready = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    # ── Loading ───────────────────────────────────────────────

    def start(self) -> asyncio.Task:
        """Begin loading in the background. Requires a running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._load_async())
        return self._task

    async def _load_async(self, batch_size: int = 10) -> None:
        files = self._files()
        entries: dict[str, CatalogEntry] = {}
        for i, path in enumerate(files, 1):
            entry = _parse_entry(path)
            if entry is not None:
                entries.setdefault(entry.name, entry)
            if i % batch_size == 0:
                await asyncio.sleep(0)
        if not self._ready.is_set():
            self._entries = entries
            self._ready.set()
            logger.info("Spawn catalog loaded: %d entries", len(entries))

    def load_sync(self) -> int:
        """Scan the directory now, replacing any partial state."""
        entries: dict[str, CatalogEntry] = {}
        for path in self._files():
            entry = _parse_entry(path)
            if entry is not None:
                entries.setdefault(entry.name, entry)
        self._entries = entries
        self._ready.set()
        logger.info("Spawn catalog loaded synchronously: %d entries", len(entries))
        return len(entries)

    async def wait_ready(self, timeout: float | None = None) -> bool:
        """Wait for the background load, forcing a synchronous one on timeout.

        Returns True when the background load finished in time.
        """
        if self._ready.is_set():
            return True
        if self._task is None:
            self.start()
        timeout = timeout or self.ready_timeout
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("Spawn catalog not ready after %.1fs, loading synchronously", timeout)
            self.load_sync()
            if not self._task.done():
                self._task.cancel()
            return False

    def _files(self) -> list[Path]:
        if self.directory is None or not self.directory.is_dir():
            return []
        return sorted(self.directory.rglob("*.md"))

    # ── Lookup ────────────────────────────────────────────────

    def entries(self) -> list[CatalogEntry]:
        return list(self._entries.values())

    def get(self, name: str) -> CatalogEntry | None:
        return self._entries.get(name)

    def first(self) -> CatalogEntry | None:
        return next(iter(self._entries.values()), None)

    def lookup(self, origin: str) -> CatalogEntry | None:
        """Entry for an origin reference: a catalog name or ``bundle:<path>``."""
        if origin.startswith(BUNDLE_PREFIX):
            bundle = origin[len(BUNDLE_PREFIX):]
            for entry in self._entries.values():
                if entry.bundle == bundle:
                    return entry
            name = Path(bundle).stem
            return CatalogEntry(name=name, bundle=bundle)
        return self._entries.get(origin)

    def __len__(self) -> int:
        return len(self._entries)


def _parse_entry(path: Path) -> CatalogEntry | None:
    try:
        post = frontmatter.load(str(path))
    except Exception as e:
        logger.warning("Skipping catalog file %s: %s", path, e)
        return None
    meta = post.metadata
    return CatalogEntry(
        name=str(meta.get("name") or path.stem),
        category=str(meta.get("category", "")),
        bundle=str(meta.get("bundle", "")),
        tags=[str(t) for t in meta.get("tags") or []],
        children=[str(c) for c in meta.get("children") or []],
        notes=post.content.strip(),
    )
