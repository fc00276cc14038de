"""Binary patch container: encode/decode of per-node transform entries.

Layout (big-endian throughout):

    magic "UnityFS" · version i32 · engine str · marker str · count i32
    entries: path_id i64 · name str · position 3×f32 · rotation 4×f32
             · scale 3×f32 · active bool
    trailer: "SCENE_DATA" str · "MODIFIED_BY_TRANSFORM_CACHER" str

Encoding never raises; on an internal failure a minimal error container is
returned instead of a partial stream.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from enum import Enum

from transformcache.errors import CodecFailure
from transformcache.patch.endian import ByteOrder, EndianReader, EndianWriter
from transformcache.scene import ids
from transformcache.scene.rotation import (
    Quaternion,
    Vector3,
    euler_from_quaternion,
    quaternion_from_euler,
)
from transformcache.store.records import TransformRecord

logger = logging.getLogger(__name__)

MAGIC = "UnityFS"
FORMAT_VERSION = 6
ENGINE_VERSION = "5.x.x"
MARKER = "TRANSFORM_CACHER_BUNDLE"
SCENE_DATA_TAG = "SCENE_DATA"
MODIFIED_MARKER = "MODIFIED_BY_TRANSFORM_CACHER"
ERROR_MARKER = "ERROR_BUNDLE"
PLACEHOLDER_MARKER = "PLACEHOLDER_BUNDLE"

# Entry count above which a stream is treated as garbage rather than truncated.
_MAX_ENTRIES = 1 << 24


@dataclass
class PatchEntry:
    path_id: int
    name: str
    position: Vector3
    rotation: Quaternion
    scale: Vector3
    active: bool = True


class DecodeStatus(Enum):
    OK = "ok"
    NOT_PATCH = "not_patch"
    FOREIGN = "foreign"
    TRUNCATED = "truncated"


@dataclass
class DecodeResult:
    """Entries read from a container plus how far decoding got."""

    status: DecodeStatus
    entries: list[PatchEntry] = field(default_factory=list)
    error: str = ""

    @property
    def marker_found(self) -> bool:
        return self.status in (DecodeStatus.OK, DecodeStatus.TRUNCATED)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


# ── Encoding ──────────────────────────────────────────────────


def _write_header(writer: EndianWriter, version: int, marker: str) -> None:
    writer.write_string(MAGIC)
    writer.write_int32(version)
    writer.write_string(ENGINE_VERSION)
    writer.write_string(marker)


def encode(entries: list[PatchEntry]) -> bytes:
    """Serialise entries into a patch container.

    Any failure yields :func:`error_container` with the failure message.
    """
    try:
        buf = io.BytesIO()
        writer = EndianWriter(buf, ByteOrder.BIG)
        _write_header(writer, FORMAT_VERSION, MARKER)
        writer.write_int32(len(entries))
        for entry in entries:
            writer.write_int64(entry.path_id)
            writer.write_string(entry.name)
            writer.write_vector(_exact(entry.position, 3, "position"))
            writer.write_vector(_exact(entry.rotation, 4, "rotation"))
            writer.write_vector(_exact(entry.scale, 3, "scale"))
            writer.write_bool(entry.active)
        writer.write_string(SCENE_DATA_TAG)
        writer.write_string(MODIFIED_MARKER)
        return buf.getvalue()
    except Exception as e:
        logger.error("Patch encoding failed, writing error container: %s", e)
        return error_container(str(e))


def _exact(values: tuple[float, ...], size: int, what: str) -> tuple[float, ...]:
    if len(values) != size:
        raise CodecFailure(f"{what} needs {size} components, got {len(values)}")
    return values


def error_container(message: str) -> bytes:
    """Minimal valid container recording an encoding failure."""
    buf = io.BytesIO()
    writer = EndianWriter(buf, ByteOrder.BIG)
    _write_header(writer, 0, ERROR_MARKER)
    writer.write_string(message)
    return buf.getvalue()


def placeholder(scene: str) -> bytes:
    """Structurally valid container that carries no edits."""
    buf = io.BytesIO()
    writer = EndianWriter(buf, ByteOrder.BIG)
    _write_header(writer, FORMAT_VERSION, PLACEHOLDER_MARKER)
    writer.write_string(scene)
    return buf.getvalue()


# ── Decoding ──────────────────────────────────────────────────


def decode(data: bytes) -> DecodeResult:
    """Read a container. Never raises.

    A magic mismatch gives ``NOT_PATCH``, a marker mismatch ``FOREIGN``;
    a stream cut short after the marker keeps the entries read so far and
    reports ``TRUNCATED``.
    """
    reader = EndianReader(io.BytesIO(data), ByteOrder.BIG)
    try:
        if reader.read_string() != MAGIC:
            return DecodeResult(DecodeStatus.NOT_PATCH)
        reader.read_int32()
        reader.read_string()
        marker = reader.read_string()
    except CodecFailure as e:
        return DecodeResult(DecodeStatus.NOT_PATCH, error=str(e))
    if marker != MARKER:
        return DecodeResult(DecodeStatus.FOREIGN)

    entries: list[PatchEntry] = []
    try:
        count = reader.read_int32()
        if count < 0 or count > _MAX_ENTRIES:
            raise CodecFailure(f"implausible entry count {count}")
        for _ in range(count):
            entries.append(
                PatchEntry(
                    path_id=reader.read_int64(),
                    name=reader.read_string(),
                    position=reader.read_vector(3),
                    rotation=reader.read_vector(4),
                    scale=reader.read_vector(3),
                    active=reader.read_bool(),
                )
            )
        reader.read_string()
        reader.read_string()
    except CodecFailure as e:
        logger.debug("Patch stream truncated after %d entries: %s", len(entries), e)
        return DecodeResult(DecodeStatus.TRUNCATED, entries, error=str(e))
    return DecodeResult(DecodeStatus.OK, entries)


# ── Record conversion ─────────────────────────────────────────


def entry_from_record(record: TransformRecord) -> PatchEntry:
    return PatchEntry(
        path_id=ids.numeric_path_id(record.path_id),
        name=record.object_name,
        position=tuple(record.position),
        rotation=quaternion_from_euler(record.rotation),
        scale=tuple(record.scale),
        active=not record.is_destroyed,
    )


def entries_from_records(records: list[TransformRecord]) -> list[PatchEntry]:
    return [entry_from_record(r) for r in records]


def records_from_entries(scene: str, entries: list[PatchEntry]) -> list[TransformRecord]:
    """Rebuild replayable records from patch entries.

    Entries carry no hierarchy path, so records are keyed by the name and
    matched at replay time through the legacy ``path_id``.
    """
    records = []
    for entry in entries:
        legacy = f"{entry.path_id:08X}" if entry.path_id else ""
        records.append(
            TransformRecord(
                unique_id=f"{scene}_{legacy or ids.hash8(entry.name)}",
                object_name=entry.name,
                hierarchy_path="",
                scene_name=scene,
                position=tuple(entry.position),
                rotation=euler_from_quaternion(entry.rotation),
                scale=tuple(entry.scale),
                is_destroyed=not entry.active,
                path_id=legacy,
            )
        )
    return records
