"""Tests for scene file resolution and patch writing."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from transformcache.config import CacheConfig, PathsConfig
from transformcache.patch import codec
from transformcache.patch.applier import PatchApplier
from transformcache.patch.codec import DecodeStatus
from transformcache.patch.resolver import SceneFileResolver, is_custom_scene
from transformcache.store.records import TransformRecord


@pytest.fixture
def config(tmp_path: Path) -> CacheConfig:
    return CacheConfig(
        paths=PathsConfig(managed_root=tmp_path / "managed", content_root=tmp_path / "game")
    )


@pytest.fixture
def scenes_dir(config: CacheConfig) -> Path:
    config.paths.scenes_dir.mkdir(parents=True)
    return config.paths.scenes_dir


def _records() -> list[TransformRecord]:
    return [
        TransformRecord(
            unique_id="Woods_1",
            object_name="Rock",
            hierarchy_path="World/Rock",
            position=(1.0, 2.0, 3.0),
            rotation=(0.0, 90.0, 0.0),
            path_id="0000ABCD",
        ),
        TransformRecord(
            unique_id="Woods_2",
            object_name="Fence",
            hierarchy_path="World/Fence",
            is_destroyed=True,
        ),
    ]


class TestSceneFileResolver:
    def test_level_name(self, config: CacheConfig):
        resolver = SceneFileResolver(config)
        assert resolver.level_name("Factory") == "factory4_day"
        assert resolver.level_name("factory") == "factory4_day"
        assert resolver.level_name("Arena_Level912_Main") == "level912"
        assert resolver.level_name("Nowhere") is None

    def test_custom_scene_detection(self):
        assert is_custom_scene("Factory_Rework_Day_Scripts")
        assert is_custom_scene("my_Custom_map")
        assert not is_custom_scene("Woods")

    def test_known_table_wins(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "factory4_day.bundle").write_bytes(b"a")
        (scenes_dir / "Factory").write_bytes(b"b")
        assert SceneFileResolver(config).resolve("Factory") == scenes_dir / "factory4_day.bundle"

    def test_exact_name_match(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "Arena").write_bytes(b"x")
        (scenes_dir / "Arena_old.bundle").write_bytes(b"x")
        assert SceneFileResolver(config).resolve("Arena") == scenes_dir / "Arena"

    def test_name_contains_match(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "my_arena_v2.bundle").write_bytes(b"x")
        assert SceneFileResolver(config).resolve("Arena") == scenes_dir / "my_arena_v2.bundle"

    def test_content_sniff(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "a.bundle").write_bytes(b"nothing here")
        (scenes_dir / "b.bundle").write_bytes(b"header Arena payload")
        assert SceneFileResolver(config).resolve("Arena") == scenes_dir / "b.bundle"

    def test_content_sniff_is_bounded(self, config: CacheConfig, scenes_dir: Path):
        config.sniff_bytes = 16
        (scenes_dir / "b.bundle").write_bytes(b"x" * 32 + b"Arena")
        resolver = SceneFileResolver(config)
        assert resolver.resolve("Arena") == resolver.canonical_path("Arena")

    def test_backup_and_temp_files_are_ignored(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "Arena.bundle.backup").write_bytes(b"x")
        resolver = SceneFileResolver(config)
        assert resolver.resolve("Arena", create=False) is None

    def test_placeholder_created_last(self, config: CacheConfig):
        resolver = SceneFileResolver(config)
        path = resolver.resolve("Arena")
        assert path == config.paths.scenes_dir / "Arena.bundle"
        assert codec.decode(path.read_bytes()).status is DecodeStatus.FOREIGN

    def test_custom_scene_uses_canonical_path(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "bunker_scripts_v2.bundle").write_bytes(b"x")
        resolver = SceneFileResolver(config)
        path = resolver.resolve("Bunker_Scripts")
        assert path == scenes_dir / "Bunker_Scripts.bundle"

    def test_table_wins_over_custom_rule(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "level528").write_bytes(b"x")
        (scenes_dir / "customs").write_bytes(b"x")
        resolver = SceneFileResolver(config)
        assert resolver.resolve("Factory_Rework_Day_Scripts") == scenes_dir / "level528"
        assert resolver.resolve("Customs") == scenes_dir / "customs"
        assert not (scenes_dir / "Customs.bundle").exists()

    def test_table_scene_without_level_file_falls_through(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "customs_edit.bundle").write_bytes(b"x")
        assert SceneFileResolver(config).resolve("Customs") == scenes_dir / "customs_edit.bundle"

    def test_memoised(self, config: CacheConfig, scenes_dir: Path):
        resolver = SceneFileResolver(config)
        first = resolver.resolve("Arena")
        (scenes_dir / "Arena").write_bytes(b"x")
        assert resolver.resolve("Arena") == first
        resolver.clear_cache()
        assert resolver.resolve("Arena") == scenes_dir / "Arena"

    def test_scenes_with_patches(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "woods.bundle").write_bytes(codec.encode([]))
        (scenes_dir / "Arena.bundle").write_bytes(codec.placeholder("Arena"))
        (scenes_dir / "Custom_Hall.bundle").write_bytes(codec.encode([]))
        assert sorted(SceneFileResolver(config).scenes_with_patches()) == ["Custom_Hall", "Woods"]


class TestPatchApplier:
    def test_apply_writes_patch(self, config: CacheConfig):
        resolver = SceneFileResolver(config)
        applier = PatchApplier(config, resolver)
        assert applier.apply("Woods", _records())

        target = resolver.resolve("Woods")
        result = codec.decode(target.read_bytes())
        assert result.status is DecodeStatus.OK
        assert [e.name for e in result.entries] == ["Rock", "Fence"]
        assert result.entries[0].path_id == 0xABCD
        assert result.entries[1].active is False
        assert not target.with_name(target.name + ".temp").exists()

    def test_backup_written_once(self, config: CacheConfig, scenes_dir: Path):
        original = scenes_dir / "woods.bundle"
        original.write_bytes(b"original scene bytes")
        applier = PatchApplier(config, SceneFileResolver(config))

        assert applier.apply("Woods", _records())
        backup = scenes_dir / "woods.bundle.backup"
        assert backup.read_bytes() == b"original scene bytes"

        assert applier.apply("Woods", _records()[:1])
        assert backup.read_bytes() == b"original scene bytes"
        assert len(codec.decode(original.read_bytes()).entries) == 1

    @pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs permission checks")
    def test_unwritable_target_returns_false(self, config: CacheConfig, scenes_dir: Path):
        (scenes_dir / "woods.bundle").write_bytes(b"x")
        scenes_dir.chmod(0o500)
        try:
            assert not PatchApplier(config, SceneFileResolver(config)).apply("Woods", _records())
        finally:
            scenes_dir.chmod(0o700)

    def test_resolution_failure_returns_false(self, config: CacheConfig, tmp_path: Path):
        # A regular file where the managed root should be makes every write fail.
        config.paths.managed_root.parent.mkdir(parents=True, exist_ok=True)
        config.paths.managed_root.write_text("not a directory")
        assert not PatchApplier(config, SceneFileResolver(config)).apply("Woods", _records())

    def test_extract(self, config: CacheConfig):
        resolver = SceneFileResolver(config)
        applier = PatchApplier(config, resolver)
        applier.apply("Woods", _records())
        records = applier.extract("Woods")
        assert [r.object_name for r in records] == ["Rock", "Fence"]
        assert records[0].path_id == "0000ABCD"
        assert records[1].is_destroyed

    def test_extract_without_patch(self, config: CacheConfig):
        assert PatchApplier(config, SceneFileResolver(config)).extract("Woods") == []

    def test_mirror_copies_missing_or_newer(self, config: CacheConfig):
        game = config.paths.content_root
        (game / "woods").mkdir(parents=True)
        (game / "woods" / "terrain.dat").write_bytes(b"t")
        (game / "StreamingAssets" / "woods").mkdir(parents=True)
        (game / "StreamingAssets" / "woods" / "lights.bundle").write_bytes(b"l")
        (game / "Scenes").mkdir()
        (game / "Scenes" / "Woods").write_bytes(b"s")

        applier = PatchApplier(config, SceneFileResolver(config))
        assert applier.mirror_scene("Woods") == 3
        managed = config.paths.managed_root
        assert (managed / "woods" / "terrain.dat").read_bytes() == b"t"
        assert (managed / "Assets" / "StreamingAssets" / "woods" / "lights.bundle").exists()
        assert (managed / "Assets" / "Original" / "Woods").exists()
        # Only the first touch mirrors
        assert applier.mirror_scene("Woods") == 0

    def test_mirror_without_content_root(self, tmp_path: Path):
        config = CacheConfig(paths=PathsConfig(managed_root=tmp_path / "managed"))
        assert PatchApplier(config, SceneFileResolver(config)).mirror_scene("Woods") == 0
