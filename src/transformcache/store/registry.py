"""Which scenes already carry their edits in a patch file.

A patched scene needs no replay on load. Scenes are registered after a
successful commit, or detected lazily from the file itself; answers are
memoised for the process lifetime.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from transformcache.patch import codec
from transformcache.patch.resolver import SceneFileResolver

logger = logging.getLogger(__name__)

_MARKER_BYTES = codec.MODIFIED_MARKER.encode("utf-8")


class ModifiedSceneRegistry:
    def __init__(self, resolver: SceneFileResolver, sniff_bytes: int = 8192) -> None:
        self._resolver = resolver
        self._sniff_bytes = sniff_bytes
        self._registered: set[str] = set()
        self._detected: dict[str, bool] = {}

    def register(self, scenes: Iterable[str]) -> None:
        for scene in scenes:
            self._registered.add(scene)
            self._detected[scene] = True

    def forget(self, scene: str) -> None:
        self._registered.discard(scene)
        self._detected.pop(scene, None)

    def registered(self) -> list[str]:
        return sorted(self._registered)

    def is_modified(self, scene: str) -> bool:
        if scene in self._registered:
            return True
        if scene not in self._detected:
            self._detected[scene] = self._detect(scene)
        return self._detected[scene]

    def _detect(self, scene: str) -> bool:
        try:
            path = self._resolver.resolve(scene, create=False)
        except Exception as e:
            logger.warning("Cannot resolve patch file for %s: %s", scene, e)
            return False
        if path is None:
            return False
        try:
            data = path.read_bytes()
        except OSError as e:
            # An unreadable file is assumed to be one we wrote and locked.
            logger.warning("Cannot read %s, treating %s as modified: %s", path, scene, e)
            return True
        if codec.decode(data).marker_found:
            logger.info("Detected patched scene %s (%s)", scene, path)
            return True
        return _MARKER_BYTES in data[: self._sniff_bytes]
