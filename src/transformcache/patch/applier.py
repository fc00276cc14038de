"""Embed staged records into a scene's patch file.

Writes go to a ``.temp`` sibling and are moved over the target atomically.
The first time an existing file is touched a ``.backup`` copy is kept.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from transformcache.config import CacheConfig
from transformcache.errors import IoFailure
from transformcache.patch import codec
from transformcache.patch.resolver import SceneFileResolver
from transformcache.store.records import TransformRecord

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"
TEMP_SUFFIX = ".temp"


class PatchApplier:
    """Writes patch files and mirrors original scene assets on first touch."""

    def __init__(self, config: CacheConfig, resolver: SceneFileResolver) -> None:
        self._config = config
        self._resolver = resolver
        self._mirrored: set[str] = set()

    def apply(self, scene: str, records: list[TransformRecord]) -> bool:
        """Write ``records`` as the patch for ``scene``. Never raises."""
        try:
            target = self._resolver.resolve(scene)
            self.mirror_scene(scene)
            data = codec.encode(codec.entries_from_records(records))
            if not codec.decode(data).marker_found:
                logger.error("Encoding %s produced an error container", scene)
                return False
            self._write(target, data)
        except Exception as e:
            logger.warning("Failed to apply %d records to %s: %s", len(records), scene, e)
            return False
        logger.info("Patched %s with %d records (%s)", scene, len(records), target)
        return True

    def _write(self, target: Path, data: bytes) -> None:
        temp = target.with_name(target.name + TEMP_SUFFIX)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.exists():
                backup = target.with_name(target.name + BACKUP_SUFFIX)
                if not backup.exists():
                    shutil.copy2(target, backup)
                    logger.info("Backed up %s", target)
            temp.write_bytes(data)
            os.replace(temp, target)
        except OSError as e:
            try:
                temp.unlink(missing_ok=True)
            except OSError:
                pass
            raise IoFailure(f"Cannot write patch file: {e}", str(target)) from e

    def extract(self, scene: str) -> list[TransformRecord]:
        """Records carried by the scene's existing patch file, if any."""
        path = self._resolver.resolve(scene, create=False)
        if path is None:
            return []
        try:
            result = codec.decode(path.read_bytes())
        except OSError as e:
            logger.warning("Cannot read patch for %s: %s", scene, e)
            return []
        if not result.marker_found:
            return []
        return codec.records_from_entries(scene, result.entries)

    # ── Asset mirror ──────────────────────────────────────────

    def mirror_scene(self, scene: str) -> int:
        """Copy the scene's original files into the managed root once.

        Only missing or newer files are copied. Returns the number of files
        copied; without a configured content root nothing happens.
        """
        content_root = self._config.paths.content_root
        if scene in self._mirrored or content_root is None or not content_root.is_dir():
            return 0
        self._mirrored.add(scene)

        managed = self._config.paths.managed_root
        level = self._resolver.level_name(scene)
        copied = 0
        for name in filter(None, (scene, level)):
            for suffix in ("", ".bundle"):
                src = content_root / "Scenes" / f"{name}{suffix}"
                if src.is_file():
                    copied += _copy_if_newer(src, managed / "Assets" / "Original" / src.name)
        if level:
            for rel in (level, f"level/{level}", f"bundles/{level}", f"StreamingAssets/{level}"):
                src = content_root / rel
                if not src.is_dir():
                    continue
                dst_root = managed / "Assets" / rel if rel.startswith("StreamingAssets") else managed / rel
                for path in src.rglob("*"):
                    if path.is_file():
                        copied += _copy_if_newer(path, dst_root / path.relative_to(src))
        if copied:
            logger.info("Mirrored %d asset files for %s", copied, scene)
        return copied


def _copy_if_newer(src: Path, dst: Path) -> int:
    try:
        if dst.exists() and dst.stat().st_mtime >= src.stat().st_mtime:
            return 0
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
        return 1
    except OSError as e:
        logger.warning("Failed to mirror %s: %s", src, e)
        return 0
