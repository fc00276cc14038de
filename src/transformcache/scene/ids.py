"""Identity derivation for persisted records.

All ids are stable 32-bit CRC hashes rendered as eight upper-case hex digits,
so they survive process restarts (unlike per-process string hashing).
"""

from __future__ import annotations

import zlib

from transformcache.scene.rotation import Vector3


def hash8(text: str) -> str:
    return f"{zlib.crc32(text.encode('utf-8')) & 0xFFFFFFFF:08X}"


def unique_id(scene: str, hierarchy_path: str) -> str:
    """Primary key of a record within its scene."""
    return f"{scene}_{hash8(hierarchy_path)}"


def path_id(hierarchy_path: str) -> str:
    """Legacy id: hash of the hierarchy path alone."""
    return hash8(hierarchy_path)


def item_id(name: str, position: Vector3) -> str:
    """Legacy id: hash of the node name and its position at capture time."""
    x, y, z = position
    return hash8(f"{name}_{x:g}_{y:g}_{z:g}")


def numeric_path_id(legacy_id: str | None) -> int:
    """Parse a hex legacy id into the signed 64-bit value stored in patches.

    Unparsable or empty ids map to 0.
    """
    if not legacy_id:
        return 0
    try:
        value = int(legacy_id, 16)
    except ValueError:
        return 0
    if value >= 1 << 63:
        return 0
    return value
