"""Entry point: python -m transformcache <command>

- "inspect <file>":  Decode a patch file and print its entries
- "status":          Fallback store scenes and patched scenes
- "cleanup <scene>": Drop destroyed records of a scene from the fallback store
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from transformcache.config import load_config


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _run_inspect(path: Path) -> int:
    from transformcache.patch import codec

    try:
        data = path.read_bytes()
    except OSError as e:
        print(f"Cannot read {path}: {e}")
        return 1

    result = codec.decode(data)
    print(f"{path}: {result.status.value}, {len(result)} entries")
    for entry in result.entries:
        px, py, pz = entry.position
        print(
            f"  {entry.path_id:>12}  {entry.name:<32} "
            f"pos=({px:.3f}, {py:.3f}, {pz:.3f}) active={entry.active}"
        )
    if result.error:
        print(f"  (stopped: {result.error})")
    return 0 if result.marker_found else 1


def _run_status() -> int:
    from transformcache.patch.resolver import SceneFileResolver
    from transformcache.store.fallback import FallbackStore

    config = load_config()
    _setup_logging(config.log_level)

    store = FallbackStore(config.paths.store_file)
    try:
        store.load()
    except Exception as e:
        print(f"Fallback store unreadable: {e}")
        return 1

    print(f"Managed root: {config.paths.managed_root}")
    scenes = store.scenes()
    print(f"Fallback store: {len(store)} records in {len(scenes)} scenes")
    for scene in sorted(scenes):
        records = store.records(scene)
        destroyed = sum(1 for r in records if r.is_destroyed)
        spawned = sum(1 for r in records if r.is_spawned)
        print(f"  {scene}: {len(records)} records ({destroyed} destroyed, {spawned} spawned)")

    patched = SceneFileResolver(config).scenes_with_patches()
    print(f"Patched scenes: {', '.join(sorted(patched)) or '(none)'}")
    return 0


def _run_cleanup(scene: str) -> int:
    from transformcache.core import TransformCache
    from transformcache.scene.graph import SceneGraph

    config = load_config()
    _setup_logging(config.log_level)

    cache = TransformCache(config, SceneGraph())
    if not cache.initialize():
        return 1
    removed = cache.cleanup_destroyed(scene)
    print(f"Removed {removed} destroyed records from {scene}")
    return 0


def _usage() -> None:
    print("Usage: python -m transformcache <command>")
    print("  inspect <file>   Decode a patch file and print its entries")
    print("  status           Show fallback store and patched scenes")
    print("  cleanup <scene>  Drop destroyed records of a scene")


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    cmd = args[0] if args else ""

    if cmd == "inspect" and len(args) == 2:
        return _run_inspect(Path(args[1]))
    if cmd == "status" and len(args) == 1:
        return _run_status()
    if cmd == "cleanup" and len(args) == 2:
        return _run_cleanup(args[1])
    _usage()
    return 1


if __name__ == "__main__":
    sys.exit(main())
