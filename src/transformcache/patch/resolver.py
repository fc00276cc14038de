"""Locate the patch file for a scene under the managed root.

Lookup order, first hit wins: known level table, exact file name, name
scan, content sniff, and finally a placeholder at the canonical path.
Custom scenes missing from the table skip straight to the canonical path.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from transformcache.config import CacheConfig
from transformcache.errors import IoFailure
from transformcache.patch import codec

logger = logging.getLogger(__name__)

PATCH_SUFFIX = ".bundle"
_SKIP_SUFFIXES = (".backup", ".temp")
_LEVEL_PATTERN = re.compile(r"level\d+", re.IGNORECASE)


def is_custom_scene(scene: str) -> bool:
    """Custom scenes without a table entry get their own ``<scene>.bundle`` file."""
    return scene.lower().endswith("_scripts") or "custom" in scene.lower()


class SceneFileResolver:
    """Maps scene names to patch files, memoising each answer."""

    def __init__(self, config: CacheConfig) -> None:
        self._scenes_dir = config.paths.scenes_dir
        self._table = dict(config.scene_levels)
        self._levels = {k.lower(): v for k, v in self._table.items()}
        self._sniff_bytes = config.sniff_bytes
        self._cache: dict[str, Path] = {}

    @property
    def scenes_dir(self) -> Path:
        return self._scenes_dir

    def level_name(self, scene: str) -> str | None:
        """Level file name for a scene: table lookup, then a ``levelNNN`` token."""
        level = self._levels.get(scene.lower())
        if level:
            return level
        match = _LEVEL_PATTERN.search(scene)
        return match.group(0).lower() if match else None

    def canonical_path(self, scene: str) -> Path:
        return self._scenes_dir / f"{scene}{PATCH_SUFFIX}"

    def clear_cache(self) -> None:
        self._cache.clear()

    def resolve(self, scene: str, create: bool = True) -> Path | None:
        """Return the patch file for ``scene``.

        With ``create`` False nothing is written and ``None`` is returned when
        no existing file matches.
        """
        cached = self._cache.get(scene)
        if cached is not None:
            return cached

        path = self._lookup(scene)
        if path is None:
            if not create:
                return None
            path = self.canonical_path(scene)
            self._write_placeholder(scene, path)
        logger.debug("Scene %s resolved to %s", scene, path)
        self._cache[scene] = path
        return path

    def _lookup(self, scene: str) -> Path | None:
        level = self.level_name(scene)

        # 1. Known level table
        if scene.lower() in self._levels:
            for path in (self._scenes_dir / level, self._scenes_dir / f"{level}{PATCH_SUFFIX}"):
                if path.is_file():
                    return path

        # Custom scenes outside the table never borrow another scene's file
        if is_custom_scene(scene) and scene.lower() not in self._levels:
            canonical = self.canonical_path(scene)
            return canonical if canonical.is_file() else None

        files = self._candidates()
        names = [n.lower() for n in (scene, level) if n]

        # 2. Exact file name, with or without extension
        for path in files:
            if path.name.lower() in names or path.stem.lower() in names:
                return path

        # 3. File name contains the scene or level name
        tried = []
        for path in files:
            lowered = path.name.lower()
            if any(n in lowered for n in names):
                return path
            tried.append(path)

        # 4. Content sniff
        needles = [n.encode("utf-8") for n in (scene, level) if n]
        for path in tried:
            try:
                with path.open("rb") as f:
                    head = f.read(self._sniff_bytes)
            except OSError as e:
                logger.warning("Cannot sniff %s: %s", path, e)
                continue
            if any(needle in head for needle in needles):
                return path
        return None

    def _candidates(self) -> list[Path]:
        if not self._scenes_dir.is_dir():
            return []
        return sorted(
            p
            for p in self._scenes_dir.iterdir()
            if p.is_file() and not p.name.endswith(_SKIP_SUFFIXES)
        )

    def _write_placeholder(self, scene: str, path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                path.write_bytes(codec.placeholder(scene))
                logger.info("Created placeholder patch file for %s at %s", scene, path)
        except OSError as e:
            raise IoFailure(f"Cannot create placeholder for {scene}: {e}", str(path)) from e

    def scenes_with_patches(self) -> list[str]:
        """Scenes whose file under the managed root carries the patch marker."""
        reverse = {level.lower(): scene for scene, level in self._table.items()}
        scenes = []
        for path in self._candidates():
            try:
                result = codec.decode(path.read_bytes())
            except OSError as e:
                logger.warning("Cannot read %s: %s", path, e)
                continue
            if result.marker_found:
                stem = path.stem if path.suffix == PATCH_SUFFIX else path.name
                scenes.append(reverse.get(stem.lower(), stem))
        return scenes
