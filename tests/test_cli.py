"""Tests for the command-line entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from transformcache.__main__ import main
from transformcache.patch import codec
from transformcache.patch.codec import PatchEntry
from transformcache.store.fallback import FallbackStore
from transformcache.store.records import TransformRecord


@pytest.fixture
def managed(tmp_path: Path, monkeypatch) -> Path:
    root = tmp_path / "managed"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("TRANSFORMCACHE_ROOT", str(root))
    return root


class TestCli:
    def test_unknown_command_prints_usage(self, capsys):
        assert main(["frobnicate"]) == 1
        assert "Usage: python -m transformcache" in capsys.readouterr().out

    def test_no_command_prints_usage(self, capsys):
        assert main([]) == 1
        assert "inspect <file>" in capsys.readouterr().out

    def test_inspect(self, tmp_path: Path, capsys):
        patch = tmp_path / "woods.bundle"
        patch.write_bytes(
            codec.encode(
                [PatchEntry(12, "Tent", (1.0, 2.0, 3.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0))]
            )
        )
        assert main(["inspect", str(patch)]) == 0
        out = capsys.readouterr().out
        assert "ok, 1 entries" in out
        assert "Tent" in out

    def test_inspect_foreign_file(self, tmp_path: Path, capsys):
        patch = tmp_path / "arena.bundle"
        patch.write_bytes(codec.placeholder("Arena"))
        assert main(["inspect", str(patch)]) == 1
        assert "foreign" in capsys.readouterr().out

    def test_inspect_missing_file(self, tmp_path: Path, capsys):
        assert main(["inspect", str(tmp_path / "missing.bundle")]) == 1
        assert "Cannot read" in capsys.readouterr().out

    def test_status(self, managed: Path, capsys):
        store = FallbackStore(managed / "transforms_db.json")
        store.merge(
            "Woods",
            [
                TransformRecord(unique_id="Woods_1", object_name="A", hierarchy_path="A"),
                TransformRecord(
                    unique_id="Woods_2", object_name="B", hierarchy_path="B", is_destroyed=True
                ),
            ],
        )
        store.save()
        scenes = managed / "Assets" / "Scenes"
        scenes.mkdir(parents=True)
        (scenes / "customs.bundle").write_bytes(codec.encode([]))

        assert main(["status"]) == 0
        out = capsys.readouterr().out
        assert "2 records in 1 scenes" in out
        assert "Woods: 2 records (1 destroyed, 0 spawned)" in out
        assert "Patched scenes: Customs" in out

    def test_cleanup(self, managed: Path, capsys):
        store = FallbackStore(managed / "transforms_db.json")
        store.merge(
            "Woods",
            [TransformRecord(unique_id="Woods_1", object_name="A", hierarchy_path="A", is_destroyed=True)],
        )
        store.save()

        assert main(["cleanup", "Woods"]) == 0
        assert "Removed 1 destroyed records from Woods" in capsys.readouterr().out
        reloaded = FallbackStore(managed / "transforms_db.json")
        reloaded.load()
        assert len(reloaded) == 0
