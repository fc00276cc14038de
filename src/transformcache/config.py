"""Configuration loading from environment variables and transformcache.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_MANAGED_ROOT = Path.home() / ".transformcache" / "ModifiedAssets"
_CONFIG_FILENAME = "transformcache.toml"

# Scenes whose patch file is named after the level rather than the scene.
KNOWN_SCENE_LEVELS: dict[str, str] = {
    "Factory": "factory4_day",
    "FactoryNight": "factory4_night",
    "Woods": "woods",
    "Customs": "customs",
    "Interchange": "interchange",
    "Laboratory": "laboratory",
    "Reserve": "rezervbase",
    "Shoreline": "shoreline",
    "Lighthouse": "lighthouse",
    "Streets": "tarkovstreets",
    "Factory_Rework_Day_Scripts": "level528",
}


@dataclass
class PathsConfig:
    """Where patches, mirrors and the fallback store live."""

    managed_root: Path = _DEFAULT_MANAGED_ROOT
    content_root: Path | None = None
    catalog_dir: Path | None = None

    @property
    def assets_dir(self) -> Path:
        return self.managed_root / "Assets"

    @property
    def scenes_dir(self) -> Path:
        return self.assets_dir / "Scenes"

    @property
    def store_file(self) -> Path:
        return self.managed_root / "transforms_db.json"


@dataclass
class ReplayConfig:
    """Replay batch and retry tuning."""

    batch_size: int = 10
    acceptance_threshold: float = 0.9
    max_attempts: int = 3
    retry_delay: float = 2.0
    initial_delay: float = 1.0
    strict_resolution: bool = False


@dataclass
class CatalogConfig:
    """Spawnable catalog configuration."""

    ready_timeout: float = 10.0


@dataclass
class CacheConfig:
    """Top-level transformcache configuration."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    replay: ReplayConfig = field(default_factory=ReplayConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    scene_levels: dict[str, str] = field(default_factory=lambda: dict(KNOWN_SCENE_LEVELS))
    sniff_bytes: int = 8192
    log_level: str = "INFO"


def _optional_path(value: str | None) -> Path | None:
    return Path(value).expanduser() if value else None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(config_path: Path | None = None) -> CacheConfig:
    """Load configuration from environment variables and optional transformcache.toml.

    Priority: environment variables > transformcache.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.transformcache/
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / ".transformcache" / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    paths_data = file_data.get("paths", {})
    replay_data = file_data.get("replay", {})
    catalog_data = file_data.get("catalog", {})

    scene_levels = dict(KNOWN_SCENE_LEVELS)
    scene_levels.update({str(k): str(v) for k, v in file_data.get("scenes", {}).items()})

    config = CacheConfig(
        paths=PathsConfig(
            managed_root=Path(
                os.getenv(
                    "TRANSFORMCACHE_ROOT",
                    paths_data.get("managed_root", str(_DEFAULT_MANAGED_ROOT)),
                )
            ).expanduser(),
            content_root=_optional_path(
                os.getenv("TRANSFORMCACHE_CONTENT_ROOT", paths_data.get("content_root"))
            ),
            catalog_dir=_optional_path(
                os.getenv("TRANSFORMCACHE_CATALOG_DIR", paths_data.get("catalog_dir"))
            ),
        ),
        replay=ReplayConfig(
            batch_size=int(replay_data.get("batch_size", 10)),
            acceptance_threshold=float(
                os.getenv(
                    "TRANSFORMCACHE_THRESHOLD", replay_data.get("acceptance_threshold", 0.9)
                )
            ),
            max_attempts=int(
                os.getenv("TRANSFORMCACHE_MAX_ATTEMPTS", replay_data.get("max_attempts", 3))
            ),
            retry_delay=float(replay_data.get("retry_delay", 2.0)),
            initial_delay=float(replay_data.get("initial_delay", 1.0)),
            strict_resolution=_env_bool(
                "TRANSFORMCACHE_STRICT", bool(replay_data.get("strict_resolution", False))
            ),
        ),
        catalog=CatalogConfig(
            ready_timeout=float(catalog_data.get("ready_timeout", 10.0)),
        ),
        scene_levels=scene_levels,
        sniff_bytes=int(file_data.get("sniff_bytes", 8192)),
        log_level=os.getenv("TRANSFORMCACHE_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
