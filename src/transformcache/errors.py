"""Error taxonomy for the persistence and replay engine.

These are raised by internal helpers and caught at every public entry point,
which logs them and returns a degraded result instead.
"""

from __future__ import annotations


class TransformCacheError(RuntimeError):
    """Base error for persistence and replay failures."""


class IoFailure(TransformCacheError):
    """A scene, patch or store file is missing, locked or unwritable."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class CodecFailure(TransformCacheError):
    """A patch payload could not be encoded or is malformed."""


class ResolutionFailure(TransformCacheError):
    """No live node matches a persisted record."""

    def __init__(self, message: str, unique_id: str | None = None):
        super().__init__(message)
        self.unique_id = unique_id


class CommitFailure(TransformCacheError):
    """A scene's staged edits could not be embedded in a patch file."""

    def __init__(self, message: str, scene: str | None = None):
        super().__init__(message)
        self.scene = scene
